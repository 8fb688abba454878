"""
Portal-wide exception hierarchy.

Services raise these; blueprints register handlers against them once
(see utils/errors.register_api_error_handlers) and get consistent HTTP
status codes everywhere.

Usage:
    from research_portal.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Proposal", resource_id=proposal_id)
    raise ValidationError("Missing required fields", details={"title": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Maps to HTTP 404.

    Args:
        resource: Human-readable entity name (e.g. "Proposal").
        resource_id: The key that was looked up. Included in logs only.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)

    @property
    def public_message(self) -> str:
        return f"{self.resource} not found"


class ValidationError(Exception):
    """Raised when input is missing or malformed.

    Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ForbiddenError(Exception):
    """Raised when the caller's role or ownership does not allow the action.

    Maps to HTTP 403.
    """

    def __init__(self, message: str, *, user_id: str | None = None, action: str | None = None) -> None:
        self.user_id = user_id
        self.action = action
        super().__init__(message)


class InvalidStateError(Exception):
    """Raised when an action is illegal for the entity's current status.

    Maps to HTTP 400.

    Args:
        message: Explanation shown to the caller.
        action: The attempted lifecycle action.
        current_status: Status the entity was in when the action was rejected.
    """

    def __init__(self, message: str, *, action: str | None = None, current_status: str | None = None) -> None:
        self.action = action
        self.current_status = current_status
        super().__init__(message)


class ConflictError(Exception):
    """Raised when a concurrent write won the race, or a unique value collides.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        message: Explanation shown to the caller.
    """

    def __init__(self, resource: str, message: str) -> None:
        self.resource = resource
        super().__init__(message)


class AuthenticationError(Exception):
    """Raised when no valid bearer token or credentials were presented.

    Maps to HTTP 401.
    """
