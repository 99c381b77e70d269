"""FastAPI dependencies backed by the DI container."""
from typing import Optional

from fastapi import Header

from prompt_registry.container import get_container
from prompt_registry.services import (
    AuditLog,
    BlockStore,
    CompositionResolver,
    PromptService,
)


def get_block_store() -> BlockStore:
    """
    Get block store from container.

    Returns:
        BlockStore: Block reads and mutations
    """
    return get_container().block_store()


def get_audit_log() -> AuditLog:
    """
    Get audit log from container.

    Returns:
        AuditLog: Revision history
    """
    return get_container().audit_log()


def get_composition_resolver() -> CompositionResolver:
    return get_container().composition_resolver()


def get_prompt_service() -> PromptService:
    return get_container().prompt_service()


def get_actor_id(x_actor_id: Optional[str] = Header(None)) -> str:
    """Actor recorded on revisions, taken from the X-Actor-Id header."""
    if x_actor_id and x_actor_id.strip():
        return x_actor_id.strip()
    return "unknown"
