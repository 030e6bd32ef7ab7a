"""Status package: enums and exceptions describing the outcome of ledger operations.

This package defines:
    - Status: a StrEnum of possible outcomes and failure kinds
    - STATUS_MESSAGE: default user-facing messages per status
    - get_message: helper to retrieve messages for statuses
    - BaseStatusException: base exception for status-driven error handling
    - Specific exceptions (e.g., AuthRequiredException) tagged with statuses
"""
