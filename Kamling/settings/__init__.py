"""
Settings package: configuration API and locale helpers.

This package provides:

- :mod:`Kamling.settings.lib` – Config paths, kamling.json loading and schema validation.
- :mod:`Kamling.settings.locale` – Babel-based date labels written to the spreadsheet.
"""
