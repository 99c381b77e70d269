"""Shared test fixtures for prompt registry tests."""
import os

# Set test environment variables BEFORE importing app modules
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("DYNAMODB_CREATE_TABLE", "false")

import pytest

from prompt_registry.domain import (
    BlockReference,
    BuiltinBlock,
    Composition,
    CompositionCatalog,
)
from prompt_registry.prompts.catalog import PromptCatalog, builtin_id
from prompt_registry.repositories import InMemoryPromptRepository
from prompt_registry.services import (
    AuditLog,
    BlockStore,
    CompositionResolver,
    PromptService,
)

VARIANT_CONTEXTS = ("chat", "slack")


# =============================================================================
# Small demo catalog
# =============================================================================

@pytest.fixture
def builtins():
    """Builtins for the demo composition: intro="Hello", rules="Be concise"."""
    return {
        "intro": BuiltinBlock(
            id=builtin_id("intro"),
            slug="intro",
            name="Intro",
            content="Hello",
            tier=2,
            categories=["core"],
        ),
        "rules": BuiltinBlock(
            id=builtin_id("rules"),
            slug="rules",
            name="Rules",
            content="Be concise",
            variants={"slack": "Be brief."},
        ),
    }


@pytest.fixture
def compositions():
    """demo = [intro, rules], reachable through the "hello" alias too."""
    return CompositionCatalog(
        [
            Composition("demo", "Demo", [BlockReference("intro"), BlockReference("rules")]),
            Composition(
                "demo_slack",
                "Demo (Slack)",
                [BlockReference("intro"), BlockReference("rules", variant="slack")],
            ),
            Composition(
                "broken",
                "Broken",
                [BlockReference("intro"), BlockReference("missing_block"), BlockReference("rules")],
            ),
        ],
        aliases={"hello": "demo"},
    )


@pytest.fixture
def repository():
    return InMemoryPromptRepository()


@pytest.fixture
def audit_log(repository):
    return AuditLog(repository)


@pytest.fixture
def block_store(repository, builtins, audit_log):
    return BlockStore(repository, builtins, VARIANT_CONTEXTS, audit_log)


@pytest.fixture
def resolver(block_store, compositions):
    return CompositionResolver(block_store, compositions)


# =============================================================================
# Packaged catalog
# =============================================================================

@pytest.fixture(scope="session")
def packaged_catalog():
    """The builtin catalog shipped with the package."""
    return PromptCatalog()


@pytest.fixture
def packaged_store(repository, packaged_catalog):
    return BlockStore(
        repository,
        packaged_catalog.builtins,
        packaged_catalog.variant_contexts,
        AuditLog(repository),
    )


@pytest.fixture
def prompt_service(packaged_store, packaged_catalog):
    resolver = CompositionResolver(packaged_store, packaged_catalog.compositions)
    return PromptService(resolver, packaged_store, packaged_catalog.libraries)
