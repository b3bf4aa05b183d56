"""
Error taxonomy raised by the engine services.

Every error is raised before any state is mutated. The API layer maps each
class to an HTTP status code; storage failures are not wrapped and propagate
unchanged.
"""

from typing import Any, Optional


class LadderError(Exception):
    """Base exception for all engine errors."""

    status_code = 400

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.user_message = user_message or message


class ValidationError(LadderError):
    """Malformed input: bad mode, participant counts, scores or unknown players."""

    status_code = 400


class AuthorizationError(LadderError):
    """The actor is not allowed to perform the operation."""

    status_code = 403


class NotFoundError(LadderError):
    """Referenced entity does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found", f"{entity} not found")
        self.entity = entity
        self.entity_id = entity_id


class StateConflictError(LadderError):
    """The entity is not in a state that allows the operation.

    ``current_state`` is surfaced to the caller so it can react.
    """

    status_code = 409

    def __init__(self, message: str, current_state: Any = None):
        super().__init__(message)
        self.current_state = current_state
