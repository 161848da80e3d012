"""Errors raised by the relay.

Each error carries the HTTP status it maps to; the app-level exception
handler renders them as ``{"status": "error", "message": ...}``.
"""


class RelayError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(RelayError):
    status_code = 400


class PayloadTooLarge(RelayError):
    status_code = 500


class NotFound(RelayError):
    status_code = 404


class UpstreamUploadFailed(RelayError):
    status_code = 500


class UpstreamFetchFailed(RelayError):
    status_code = 502


class AllocationExhausted(RelayError):
    status_code = 500


class StoreError(RelayError):
    status_code = 500


class DuplicateShortName(StoreError):
    """Insert hit the UNIQUE constraint on the short name."""

    def __init__(self, short_name: str):
        super().__init__(f"Short name already taken: {short_name}")
        self.short_name = short_name
