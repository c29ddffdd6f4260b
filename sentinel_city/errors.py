"""Error taxonomy surfaced to API callers."""


class SentinelError(Exception):
    status_code = 500


class InvalidInputError(SentinelError):
    """Bad request data. Reported as 400, never retried."""
    status_code = 400


class NotFoundError(SentinelError):
    status_code = 404
