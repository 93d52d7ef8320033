class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class BulkOperationInputError(AppError):
    """Raised when a bulk operation request references missing or degenerate inputs."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)

class InvalidOperationStateError(AppError):
    """Raised when a bulk operation cannot move to the requested state."""
    def __init__(self, operation_id: str, current: str, requested: str):
        super().__init__(
            f"Operation {operation_id} cannot move from {current} to {requested}",
            status_code=409,
            details={"operation_id": operation_id, "current": current, "requested": requested},
        )

class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""
    def __init__(self, message: str):
        super().__init__(message, status_code=500)
