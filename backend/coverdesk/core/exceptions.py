class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppError):
    """Raised when an absence, lesson, duty or substitution id does not resolve."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class ConflictError(AppError):
    """Raised when the target item of an absence already has a substitution."""
    def __init__(self, message: str = "Already assigned, reassign by deleting first", details: dict = None):
        super().__init__(message, status_code=409, details=details)


class ValidationError(AppError):
    """Raised for unknown substitute teachers and malformed absence time bounds."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)
