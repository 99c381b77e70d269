"""Core utilities shared across the prompt registry."""
from .exceptions import (
    CompositionNotFoundError,
    CompositionResolutionError,
    ConfigurationError,
    NotFoundError,
    PersistenceError,
    PromptRegistryError,
    ValidationError,
    WriteConflictError,
)

__all__ = [
    "CompositionNotFoundError",
    "CompositionResolutionError",
    "ConfigurationError",
    "NotFoundError",
    "PersistenceError",
    "PromptRegistryError",
    "ValidationError",
    "WriteConflictError",
]
