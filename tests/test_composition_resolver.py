"""Unit tests for CompositionResolver."""
import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from prompt_registry.core.exceptions import (
    CompositionNotFoundError,
    CompositionResolutionError,
    NotFoundError,
)
from prompt_registry.domain import BuiltinBlock
from prompt_registry.services import BlockStore, CompositionResolver


class TestResolve:
    """Tests for resolve()."""

    @pytest.mark.asyncio
    async def test_demo_composition(self, resolver):
        """resolve("demo") returns intro then rules with builtin content."""
        resolved = await resolver.resolve("demo")

        assert resolved.composition_id == "demo"
        assert [(b.slug, b.content) for b in resolved.blocks] == [
            ("intro", "Hello"),
            ("rules", "Be concise"),
        ]
        assert resolved.block_ids == ["builtin-intro", "builtin-rules"]

    @pytest.mark.asyncio
    async def test_alias_resolves_to_canonical_id(self, resolver):
        resolved = await resolver.resolve("hello")
        assert resolved.composition_id == "demo"

    @pytest.mark.asyncio
    async def test_unknown_composition(self, resolver):
        with pytest.raises(NotFoundError) as exc_info:
            await resolver.resolve("nope")

        assert isinstance(exc_info.value, CompositionNotFoundError)
        assert exc_info.value.available == ["broken", "demo", "demo_slack", "hello"]

    @pytest.mark.asyncio
    async def test_order_preserved_with_overrides(self, resolver, block_store):
        await block_store.create_override("rules", "Be very concise", "Tighter", "alice")

        resolved = await resolver.resolve("demo")

        assert [b.slug for b in resolved.blocks] == ["intro", "rules"]
        assert resolved.blocks[1].content == "Be very concise"
        assert resolved.block_ids[0] == "builtin-intro"
        assert resolved.block_ids[1] != "builtin-rules"

    @pytest.mark.asyncio
    async def test_override_then_reset(self, resolver, block_store):
        """Override content wins until reset, then the builtin shows again."""
        await block_store.create_override("intro", "Hi there", "Friendlier", "alice")
        assert (await resolver.resolve("demo")).blocks[0].content == "Hi there"

        assert await block_store.reset_to_default("intro") is True
        assert (await resolver.resolve("demo")).blocks[0].content == "Hello"

    @pytest.mark.asyncio
    async def test_variant_substituted(self, resolver):
        resolved = await resolver.resolve("demo_slack")

        assert resolved.blocks[1].content == "Be brief."
        assert resolved.blocks[1].variant == "slack"
        # intro has no slack variant
        assert resolved.blocks[0].variant is None

    @pytest.mark.asyncio
    async def test_override_variant_wins(self, resolver, block_store):
        await block_store.update_variant("rules", "slack", "Two lines max.", "Slack tweak", "alice")

        resolved = await resolver.resolve("demo_slack")

        assert resolved.blocks[1].content == "Two lines max."

    @pytest.mark.asyncio
    async def test_blank_override_variant_falls_back(self, resolver, block_store):
        override = await block_store.update_block(
            "builtin-rules", {"variants": {"slack": ""}}, "Clear slack variant", "alice"
        )

        resolved = await resolver.resolve("demo_slack")

        assert resolved.blocks[1].content == "Be concise"
        assert resolved.blocks[1].variant is None
        assert resolved.block_ids == ["builtin-intro", override.id]

    @pytest.mark.asyncio
    async def test_blank_builtin_variant_falls_back(self, block_store, builtins, compositions):
        builtins["rules"] = BuiltinBlock(
            id="builtin-rules", slug="rules", name="Rules", content="Be concise", variants={"slack": "   "}
        )
        store = BlockStore(block_store.repository, builtins, ("slack",), block_store.audit_log)

        resolved = await CompositionResolver(store, compositions).resolve("demo_slack")

        assert resolved.blocks[1].content == "Be concise"
        assert resolved.blocks[1].variant is None

    @pytest.mark.asyncio
    async def test_missing_block_aborts(self, resolver):
        with pytest.raises(CompositionResolutionError) as exc_info:
            await resolver.resolve("broken")

        assert exc_info.value.slug == "missing_block"
        assert exc_info.value.composition_id == "broken"

    @pytest.mark.asyncio
    async def test_deleted_custom_block_aborts(self, block_store, compositions):
        """A composition pointing at a deleted custom block fails closed."""
        from prompt_registry.domain import BlockReference, Composition, CompositionCatalog

        block = await block_store.create_custom_block("faq", "FAQ", "x", "Add", "alice")
        catalog = CompositionCatalog([Composition("faq_only", "FAQ", [BlockReference("faq")])])
        resolver = CompositionResolver(block_store, catalog)
        assert (await resolver.resolve("faq_only")).blocks[0].content == "x"

        await block_store.delete_custom_block(block.id)

        with pytest.raises(CompositionResolutionError):
            await resolver.resolve("faq_only")

    @pytest.mark.asyncio
    async def test_single_batch_read(self, resolver, block_store):
        with patch.object(
            block_store, "get_effective_blocks", wraps=block_store.get_effective_blocks
        ) as spy:
            await resolver.resolve("demo")

        spy.assert_called_once_with(["intro", "rules"])


class TestTimeout:
    """Tests for resolution timeouts."""

    @pytest.mark.asyncio
    async def test_timeout(self, resolver, block_store):
        async def slow(slugs):
            await asyncio.sleep(1)
            return {}

        with patch.object(block_store, "get_effective_blocks", AsyncMock(side_effect=slow)):
            with pytest.raises(asyncio.TimeoutError):
                await resolver.resolve("demo", timeout=0.01)

    @pytest.mark.asyncio
    async def test_default_timeout_used(self, block_store, compositions):
        resolver = CompositionResolver(block_store, compositions, default_timeout=0.01)

        async def slow(slugs):
            await asyncio.sleep(1)
            return {}

        with patch.object(block_store, "get_effective_blocks", AsyncMock(side_effect=slow)):
            with pytest.raises(asyncio.TimeoutError):
                await resolver.resolve("demo")

    @pytest.mark.asyncio
    async def test_within_timeout(self, resolver):
        resolved = await resolver.resolve("demo", timeout=5)
        assert len(resolved.blocks) == 2


class TestCatalogViews:
    """Tests for listing and token estimates."""

    def test_list_compositions(self, resolver):
        assert [c.composition_id for c in resolver.list_compositions()] == [
            "demo",
            "demo_slack",
            "broken",
        ]

    def test_get_composition_by_alias(self, resolver):
        assert resolver.get_composition("hello").composition_id == "demo"

    @pytest.mark.asyncio
    async def test_token_breakdown(self, resolver):
        breakdown = await resolver.token_breakdown("hello")

        assert breakdown["composition_id"] == "demo"
        assert breakdown["blocks"] == [
            {"slug": "intro", "name": "Intro", "variant": None, "tokens": 2},
            {"slug": "rules", "name": "Rules", "variant": None, "tokens": 3},
        ]
        assert breakdown["total_tokens"] == 5
