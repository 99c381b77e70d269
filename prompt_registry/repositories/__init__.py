"""Prompt repository implementations."""
from .dynamodb_repository import DynamoDBPromptRepository
from .memory_repository import InMemoryPromptRepository

__all__ = [
    "DynamoDBPromptRepository",
    "InMemoryPromptRepository",
]
