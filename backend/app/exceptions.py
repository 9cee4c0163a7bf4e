"""
Custom exceptions for the simulator and form builder.
"""


class ConfigurationError(ValueError):
    """Raised when a form-builder edit would break the step structure."""
    pass


class FormBuilderValidationError(ValueError):
    """Raised when publishing a draft that does not pass validation."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("Form builder validation failed:\n" + "\n".join(f"  - {e}" for e in errors))
        self.errors = errors


class NotFoundError(LookupError):
    """Raised when a requested record does not exist."""
    pass


class DatabaseOperationError(RuntimeError):
    """Raised when a database operation fails."""
    pass


class PublishConflictError(ValueError):
    """Raised when a published id already belongs to another form."""
    pass
