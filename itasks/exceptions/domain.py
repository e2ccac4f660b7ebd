# itasks/exceptions/domain.py
"""Domain error taxonomy raised by the lifecycle core.

Authorization, NotFound and Validation errors abort the operation and reach
the caller with their message intact. DependencyFailure wraps side-effect
errors (email, notifications, file storage) and is only ever logged.
"""


class ITasksError(Exception):
    """Base class for domain errors"""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message


class AuthorizationError(ITasksError):
    """Acting user lacks the role or relationship the operation requires"""
    status_code = 403


class NotFoundError(ITasksError):
    status_code = 404

    def __init__(self, entity: str, identifier=None):
        message = f"{entity} not found" if identifier is None else f"{entity} {identifier} not found"
        super().__init__(message)
        self.entity = entity
        self.identifier = identifier


class ValidationError(ITasksError):
    status_code = 422

    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.field = field


class DependencyFailure(ITasksError):
    """A side effect failed; the primary mutation stands"""
    status_code = 502

    def __init__(self, dependency: str, message: str):
        super().__init__(f"{dependency}: {message}")
        self.dependency = dependency
