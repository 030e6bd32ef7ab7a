"""
Core package for Kamling.

This package includes:

- :mod:`Kamling.core.auth` – OAuth implicit-grant authorization and its state machine.
- :mod:`Kamling.core.tokens` – Durable access token and CSRF state storage.
- :mod:`Kamling.core.service` – Sheets API gateway and asynchronous execution helpers.
- :mod:`Kamling.core.schema` – Sheet column layout, row codecs and the sheet existence guard.
- :mod:`Kamling.core.database` – Local SQLite mirror of users and transactions.
- :mod:`Kamling.core.records` – The record store exposing the domain operations.
"""
