"""Interfaces for dependency inversion."""
from .prompt_repository import (
    AppendRevision,
    DeleteBlock,
    IPromptRepository,
    PromptTransaction,
    PutBlock,
)

__all__ = [
    "AppendRevision",
    "DeleteBlock",
    "IPromptRepository",
    "PromptTransaction",
    "PutBlock",
]
