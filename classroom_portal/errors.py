"""Exceptions raised by the portal client; everything derives from PortalError."""


class PortalError(Exception):
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ConfigurationError(PortalError):
    """No service URL (or another required setting) is configured."""


class PortalConnectionError(PortalError):
    """The service could not be reached or did not answer in time."""


class AuthenticationError(PortalError):
    """Bad credentials, rejected registration, or an expired token."""


class InvalidRequest(PortalError):
    pass


class PermissionDenied(PortalError):
    pass


class NotFound(PortalError):
    pass


class Conflict(PortalError):
    pass


STATUS_ERRORS = {
    400: InvalidRequest,
    401: AuthenticationError,
    403: PermissionDenied,
    404: NotFound,
    409: Conflict,
}


def error_for_status(status_code, message):
    """Map an HTTP status from the service onto the matching PortalError subclass."""
    error_cls = STATUS_ERRORS.get(status_code, PortalError)
    return error_cls(message, status_code=status_code)
