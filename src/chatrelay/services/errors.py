"""Relay error taxonomy.

Learn: Each error knows its HTTP status, so the API layer needs a
single exception handler (registered in main.py) instead of a
try/except ladder in every route. All failures are terminal for the
HTTP call that hit them — nothing here is retried by the relay.
"""


class RelayError(Exception):
    """Base class for errors surfaced to HTTP callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(RelayError):
    """Missing or empty required fields."""

    status_code = 400


class WorkerNotFoundError(RelayError):
    """No session is registered for the credential."""

    status_code = 404

    def __init__(self, message: str = "Extension not found"):
        super().__init__(message)


class WorkerTimedOutError(RelayError):
    """The worker went silent past the liveness threshold; session evicted."""

    status_code = 404

    def __init__(self, message: str = "Extension connection timed out"):
        super().__init__(message)


class QueueFullError(RelayError):
    """The worker's pending queue hit its configured bound."""

    status_code = 429

    def __init__(self, message: str = "Too many pending requests for this extension"):
        super().__init__(message)


class RequestTimedOutError(RelayError):
    """No result arrived before the query deadline."""

    status_code = 504

    def __init__(self, message: str = "Request timed out waiting for extension response"):
        super().__init__(message)
