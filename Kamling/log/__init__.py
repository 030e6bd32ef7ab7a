"""
Logging subsystem for Kamling.

Modules:

- :mod:`Kamling.log.log` – Root logger setup, Qt message routing and the in-memory log tank.
"""
