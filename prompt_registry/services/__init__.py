"""Prompt registry services."""
from .audit_log import AuditLog
from .block_store import BlockStore
from .composition_resolver import CompositionResolver, ResolvedBlock, ResolvedComposition
from .prompt_assembler import AssembledPrompt, append_section, assemble
from .prompt_service import PromptService, SystemPrompt

__all__ = [
    "AuditLog",
    "BlockStore",
    "CompositionResolver",
    "ResolvedBlock",
    "ResolvedComposition",
    "AssembledPrompt",
    "append_section",
    "assemble",
    "PromptService",
    "SystemPrompt",
]
