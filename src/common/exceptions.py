class AppError(Exception):
    """Base class for all application exceptions."""
    pass

class ResourceNotFoundError(AppError):
    """Generic error when a requested resource is not found."""
    def __init__(self, resource_name: str, identifier: any):
        self.message = f"{resource_name} with identifier {identifier} not found."
        super().__init__(self.message)

class ResourceAccessDeniedError(AppError):
    """Raised when a user tries to read a record owned by another user."""
    def __init__(self, resource_name: str, identifier: any):
        self.message = f"Access to {resource_name} {identifier} denied."
        self.identifier = identifier
        super().__init__(self.message)
