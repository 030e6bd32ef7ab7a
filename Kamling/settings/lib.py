"""Settings library for the spreadsheet, OAuth and record-store configuration.

Provides:
    - Schema validation and enforcement for the kamling.json structure.
    - Loading, saving, reverting and environment overrides of configuration sections.
    - Application paths for the config file, the token store and the local cache.
"""

import json
import logging
import os
import pathlib
import shutil
from typing import Any, Dict, List, Optional

from PySide6 import QtCore

from ..status import status

app_name: str = 'Kamling'

OWNER_FILTER_VALUES: List[str] = ['all', 'owner']

CONFIG_SCHEMA: Dict[str, Any] = {
    'spreadsheet': {
        'type': dict,
        'required': True,
        'item_schema': {
            'id': {'type': str, 'required': True},
            'api_key': {'type': str, 'required': True},
        }
    },
    'oauth': {
        'type': dict,
        'required': True,
        'item_schema': {
            'client_id': {'type': str, 'required': True},
            'redirect_uri': {'type': str, 'required': True},
        }
    },
    'records': {
        'type': dict,
        'required': True,
        'item_schema': {
            'owner_filter': {'type': str, 'required': True, 'allowed_values': OWNER_FILTER_VALUES},
            'locale': {'type': str, 'required': True},
            'timeout': {'type': int, 'required': True},
        }
    },
}

# Environment variables take precedence over the values stored in kamling.json
ENV_OVERRIDES: Dict[str, Dict[str, str]] = {
    'spreadsheet': {
        'id': 'KAMLING_SPREADSHEET_ID',
        'api_key': 'KAMLING_API_KEY',
    },
    'oauth': {
        'client_id': 'KAMLING_CLIENT_ID',
        'redirect_uri': 'KAMLING_REDIRECT_URI',
    },
}


def _validate_section(name: str, data: Dict[str, Any], item_schema: Dict[str, Any]) -> None:
    """Validate a single configuration section against its item schema.

    Args:
        name: Section name, used in error messages.
        data: The section data.
        item_schema: Mapping of field names to ``type``, ``required`` and optional ``allowed_values``.

    Raises:
        TypeError: If the section or a field has the wrong type.
        ValueError: If a required field is missing or a value is not allowed.
    """
    logging.debug(f'Validating "{name}" section.')
    if not isinstance(data, dict):
        msg: str = f'"{name}" must be a dict.'
        logging.error(msg)
        raise TypeError(msg)

    for field, specs in item_schema.items():
        if field not in data:
            if specs['required']:
                msg = f'"{name}" is missing "{field}".'
                logging.error(msg)
                raise ValueError(msg)
            continue

        value = data[field]
        # bool is an int subclass but never a valid timeout
        if not isinstance(value, specs['type']) or (specs['type'] is int and isinstance(value, bool)):
            msg = f'"{name}.{field}" must be {specs["type"].__name__}, got {type(value).__name__}.'
            logging.error(msg)
            raise TypeError(msg)

        allowed = specs.get('allowed_values')
        if allowed and value not in allowed:
            msg = f'"{name}.{field}" must be one of {allowed}, got "{value}".'
            logging.error(msg)
            raise ValueError(msg)


class ConfigPaths:
    """Manage application file paths and ensure the default config exists.

    Paths live under ``QStandardPaths.AppDataLocation`` unless an explicit root
    directory is given, which is how the tests isolate themselves.
    """

    def __init__(self, root: Optional[pathlib.Path] = None) -> None:
        """Set up application paths and ensure required directories and templates exist.

        Args:
            root: Optional directory replacing the platform app data location.
        """
        QtCore.QCoreApplication.setApplicationName(app_name)
        QtCore.QCoreApplication.setOrganizationName('')

        if root is None:
            p = QtCore.QStandardPaths.writableLocation(QtCore.QStandardPaths.AppDataLocation)
            root = pathlib.Path(p)
        app_data_dir = pathlib.Path(root)
        logging.debug(f'Using app data directory: {app_data_dir}')

        self.template_dir: pathlib.Path = pathlib.Path(__file__).parent.parent / 'config'
        self.config_template: pathlib.Path = self.template_dir / 'kamling.json.template'

        self.config_dir: pathlib.Path = app_data_dir / 'config'
        self.auth_dir: pathlib.Path = self.config_dir / 'auth'
        self.db_dir: pathlib.Path = self.config_dir / 'db'

        self.config_path: pathlib.Path = self.config_dir / 'kamling.json'
        self.usersettings_path: pathlib.Path = self.auth_dir / 'usersettings.ini'
        self.db_path: pathlib.Path = self.db_dir / 'cache.db'

        self._verify_and_prepare()

    def _verify_and_prepare(self) -> None:
        """Verify the template exists, create directories and copy the default config.

        Raises:
            FileNotFoundError: If the packaged config template is missing.
        """
        if not self.config_template.exists():
            msg: str = f'Missing config template: {self.config_template}'
            logging.error(msg)
            raise FileNotFoundError(msg)

        for directory in (self.config_dir, self.auth_dir, self.db_dir):
            if not directory.exists():
                logging.debug(f'Creating directory: {directory}')
                directory.mkdir(parents=True, exist_ok=True)

        if not self.config_path.exists():
            logging.debug(f'Copying default config from template to {self.config_path}')
            shutil.copy(self.config_template, self.config_path)

    def revert_config_to_template(self) -> None:
        """Restore kamling.json from the default template file."""
        logging.debug(f'Reverting config to template: {self.config_template}')
        shutil.copy(self.config_template, self.config_path)


class SettingsAPI(ConfigPaths):
    """Get, set, revert and save kamling.json sections."""

    def __init__(self, root: Optional[pathlib.Path] = None) -> None:
        super().__init__(root=root)

        self.config_data: Dict[str, Any] = {k: {} for k in CONFIG_SCHEMA}
        self.load_config()

    def load_config(self) -> Dict[str, Any]:
        """Load kamling.json from disk and validate against the schema.

        Returns:
            The loaded configuration dictionary.

        Raises:
            status.ConfigInvalidException: If the file is missing, unparsable or invalid.
        """
        logging.debug(f'Loading config from "{self.config_path}"')
        if not self.config_path.exists():
            raise status.ConfigInvalidException(f'Config file not found: {self.config_path}')

        try:
            with self.config_path.open('r', encoding='utf-8') as f:
                data: Dict[str, Any] = json.load(f)
            self.validate_config_data(data)
        except (ValueError, TypeError) as ex:
            raise status.ConfigInvalidException(str(ex)) from ex

        self.config_data = data
        return self.config_data

    def validate_config_data(self, data: Dict[str, Any] = None) -> None:
        """Validate configuration data against :data:`CONFIG_SCHEMA`.

        Args:
            data (dict, optional): Data to validate. Defaults to the loaded config.

        Raises:
            ValueError: If a required section or field is missing, or a value is not allowed.
            TypeError: If a section or field has the wrong type.
        """
        if data is None:
            data = self.config_data

        for section, specs in CONFIG_SCHEMA.items():
            if specs['required'] and section not in data:
                msg: str = f'Missing required section: {section}'
                logging.error(msg)
                raise ValueError(msg)
            _validate_section(section, data[section], specs['item_schema'])

        logging.debug('Config data is valid.')

    def get_section(self, section_name: str) -> Dict[str, Any]:
        """Return a copy of a configuration section with environment overrides applied.

        Args:
            section_name: A key of :data:`CONFIG_SCHEMA`.

        Raises:
            KeyError: If the section is unknown.
        """
        data = self.config_data[section_name].copy()
        for key, env_key in ENV_OVERRIDES.get(section_name, {}).items():
            value = os.environ.get(env_key)
            if value:
                data[key] = value
        return data

    def set_section(self, section_name: str, new_data: Dict[str, Any]) -> None:
        """Replace, validate and persist a configuration section.

        Raises:
            ValueError: If the section is unknown or the data is invalid.
            TypeError: If the data has the wrong types.
        """
        if section_name not in CONFIG_SCHEMA:
            msg: str = f'Unknown section_name for set: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        _validate_section(section_name, new_data, CONFIG_SCHEMA[section_name]['item_schema'])
        self.config_data[section_name] = dict(new_data)
        self.save_section(section_name)

        from ..core.signals import signals
        signals.configSectionChanged.emit(section_name)

    def save_section(self, section_name: str) -> None:
        """Persist a single configuration section to kamling.json.

        Raises:
            ValueError: If the section is unknown.
        """
        if section_name not in CONFIG_SCHEMA:
            msg: str = f'Unknown section_name for save: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        with self.config_path.open('r', encoding='utf-8') as f:
            original_data: Dict[str, Any] = json.load(f)

        new_data: Dict[str, Any] = original_data.copy()
        new_data[section_name] = self.config_data[section_name]

        with self.config_path.open('w', encoding='utf-8') as f:
            json.dump(new_data, f, indent=4, ensure_ascii=False)

    def revert_section(self, section_name: str) -> None:
        """Revert a configuration section to its template default and save it.

        Raises:
            ValueError: If the section is unknown.
        """
        if section_name not in CONFIG_SCHEMA:
            msg: str = f'Unknown section_name for revert: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        with self.config_template.open('r', encoding='utf-8') as f:
            template_data: Dict[str, Any] = json.load(f)

        self.config_data[section_name] = template_data[section_name]
        self.save_section(section_name)

        from ..core.signals import signals
        signals.configSectionChanged.emit(section_name)
