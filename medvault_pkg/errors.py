# medvault_pkg/errors.py
"""
Error taxonomy shared by the services and blueprints.

Services raise these; the app factory turns them into JSON responses.
RemoteUnavailable is absorbed by the repositories and only reaches a client
when a route has no local state to fall back on.
"""


class PortalError(Exception):
    status_code = 500

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__ or "Request failed.")
        self.message = message or self.__class__.__doc__ or "Request failed."

    def to_dict(self):
        return {"error": self.message, "code": self.__class__.__name__}


class AuthRequired(PortalError):
    """Authentication required. Please log in."""
    status_code = 401


class Forbidden(PortalError):
    """You do not have permission to perform this action."""
    status_code = 403


class RecordNotFound(PortalError):
    """The requested record was not found."""
    status_code = 404


class InvalidState(PortalError):
    """The record is not in a state that allows this action."""
    status_code = 409


class DuplicatePendingRequest(InvalidState):
    """An access request for this patient is already pending."""


class MalformedInput(PortalError):
    """The request data is invalid."""
    status_code = 400


class RemoteUnavailable(PortalError):
    """The record store is currently unavailable."""
    status_code = 503
