"""
Module for formatting the date labels written to the spreadsheet using Babel.

"""
import datetime
import logging
from typing import Optional

from babel import Locale, UnknownLocaleError
from babel.dates import format_date

DEFAULT_LOCALE: str = 'id_ID'

# Short date pattern used for the Users sheet createdAt column, e.g. "1 Jan 2026"
CREATED_AT_PATTERN: str = 'd MMM y'


def get_locale(locale: Optional[str] = None) -> str:
    """
    Return a locale identifier Babel can parse, falling back to :data:`DEFAULT_LOCALE`.

    Args:
        locale (str, optional): Locale string, e.g. 'id_ID'.

    Returns:
        str: The validated locale identifier.
    """
    if not locale:
        return DEFAULT_LOCALE
    try:
        Locale.parse(locale)
    except (UnknownLocaleError, ValueError) as ex:
        logging.warning(f'Invalid locale "{locale}", using "{DEFAULT_LOCALE}": {ex}')
        return DEFAULT_LOCALE
    return locale


def format_created_at(date: Optional[datetime.date] = None, locale: Optional[str] = None) -> str:
    """
    Format a date as the short label used in the createdAt column.

    Args:
        date (datetime.date, optional): The date to format. Defaults to today.
        locale (str, optional): Babel locale. Defaults to :data:`DEFAULT_LOCALE`.

    Returns:
        str: The formatted date, e.g. '1 Jan 2026'.
    """
    if date is None:
        date = datetime.date.today()
    return format_date(date, CREATED_AT_PATTERN, locale=get_locale(locale))
