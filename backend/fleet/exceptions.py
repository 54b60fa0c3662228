"""Errors raised by the fleet client stack. Each carries a displayable message."""


class FleetError(Exception):
    default_message = 'Request failed. Please try again.'

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(FleetError):
    """Bad credentials on login or registration."""
    default_message = 'Login failed'


class SessionExpired(FleetError):
    """The session could not be recovered; the user must log in again."""
    default_message = 'Your session has expired. Please log in again.'


class NetworkError(FleetError):
    default_message = 'Could not reach the ELD service. Check your connection and retry.'


class ServerError(FleetError):
    default_message = 'The ELD service returned an error.'

    def __init__(self, status_code: int, message: str = None):
        self.status_code = status_code
        super().__init__(message)


class SchemaError(FleetError):
    """A successful response whose payload does not have the expected shape."""
    default_message = 'The ELD service returned an unexpected response.'

    def __init__(self, message: str = None, errors=None):
        self.errors = errors or {}
        super().__init__(message)
