class CinelogError(Exception):
    """Base for every error a service reports back to its caller.

    The HTTP layer maps ``status_code`` to the response once, in
    ``cinelog.main``; services never build responses themselves.
    """

    status_code = 500

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(CinelogError):
    status_code = 400


class InvalidOperation(CinelogError):
    status_code = 400


class Unauthorized(CinelogError):
    status_code = 401


class Forbidden(CinelogError):
    status_code = 403


class NotFound(CinelogError):
    status_code = 404


class Conflict(CinelogError):
    status_code = 409


class AlreadyFollowing(Conflict):
    """Duplicate follow edge; reported as a bad request rather than 409."""

    status_code = 400


class StoreError(CinelogError):
    status_code = 503
