"""
Kamling: a contribution ledger persisted to a shared Google spreadsheet.

This package provides:

- :mod:`Kamling.core` – Authorization, Sheets API access, the local cache and the record store.
- :mod:`Kamling.settings` – Configuration paths, kamling.json schema validation and locale helpers.
- :mod:`Kamling.status` – Status codes and the exception taxonomy.
- :mod:`Kamling.log` – Root logger setup and the in-memory log tank.

Use :func:`Kamling.create_store` to wire a :class:`~Kamling.core.records.RecordStore`.
"""

import pathlib
import sys
from typing import Callable, Optional

# Fail on Python < 3.11
if not (sys.version_info.major == 3 and sys.version_info.minor >= 11):
    raise RuntimeError('Kamling requires Python 3.11 or higher.')

__version__ = '0.1.0'
__description__ = 'Kamling: a contribution ledger persisted to a shared Google spreadsheet.'

from .log import log

log.setup_logging()


def create_store(settings=None, root: Optional[pathlib.Path] = None,
                 http_factory: Optional[Callable] = None):
    """Create a record store and its collaborators.

    Args:
        settings (SettingsAPI, optional): Settings to use. Created from ``root`` when omitted.
        root (pathlib.Path, optional): App data directory, defaults to the platform location.
        http_factory (callable, optional): Transport factory passed to the gateway.

    Returns:
        RecordStore: The wired record store.
    """
    from .core.auth import AuthFlow
    from .core.database import LocalCache
    from .core.records import RecordStore
    from .core.schema import SheetSchemaGuard
    from .core.service import SheetGateway
    from .core.tokens import TokenStore
    from .settings.lib import SettingsAPI

    if settings is None:
        settings = SettingsAPI(root=root)

    tokens = TokenStore(settings.usersettings_path)
    auth = AuthFlow(settings, tokens)
    gateway = SheetGateway(settings, http_factory=http_factory)
    guard = SheetSchemaGuard(gateway)
    cache = LocalCache(settings.db_path)
    return RecordStore(settings, auth, gateway, guard, cache)
