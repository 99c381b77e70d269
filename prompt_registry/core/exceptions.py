"""Custom exceptions for the prompt registry."""
from typing import Iterable, Optional


class PromptRegistryError(Exception):
    """Base exception for the prompt registry."""

    error_code = "PROMPT_REGISTRY_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(PromptRegistryError):
    """Raised when input is malformed or a source transition is not allowed."""

    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(PromptRegistryError):
    """Raised when a block, revision or composition does not exist."""

    error_code = "NOT_FOUND"


class CompositionNotFoundError(NotFoundError):
    """Raised when a composition name is neither a known id nor an alias."""

    def __init__(self, name: str, available: Iterable[str]):
        self.name = name
        self.available = sorted(available)
        super().__init__(
            f"Unknown composition: '{name}'. Available: {', '.join(self.available)}"
        )


class CompositionResolutionError(PromptRegistryError):
    """Raised when a composition references a block that cannot be resolved."""

    error_code = "COMPOSITION_RESOLUTION_ERROR"

    def __init__(self, composition_id: str, slug: str):
        self.composition_id = composition_id
        self.slug = slug
        super().__init__(
            f"Composition '{composition_id}' references missing block '{slug}'"
        )


class PersistenceError(PromptRegistryError):
    """Raised when the underlying datastore fails a read or write."""

    error_code = "PERSISTENCE_ERROR"

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class WriteConflictError(PersistenceError):
    """Raised when a conditional write loses to a concurrent writer."""

    error_code = "WRITE_CONFLICT"


class ConfigurationError(PromptRegistryError):
    """Raised when the builtin catalog or settings are invalid."""

    error_code = "CONFIGURATION_ERROR"
