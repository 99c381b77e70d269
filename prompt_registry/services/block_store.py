"""Block store: reads and mutations of prompt blocks.

Builtins come from the packaged catalog and are never written. Every other
block lives in the repository as an override of one builtin or as a custom
block, and every change to one of them is written together with its
revision.
"""
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..core.exceptions import NotFoundError, ValidationError, WriteConflictError
from ..domain import (
    Block,
    BuiltinBlock,
    CustomBlock,
    OverrideBlock,
    RevisionAction,
    StoredBlock,
    effective_block,
)
from ..domain.block import BLOCK_TIERS
from ..interfaces.prompt_repository import IPromptRepository
from ..prompts.catalog import BUILTIN_ID_PREFIX
from .audit_log import AuditLog, validate_commit_message

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_\-]*$")
UPDATABLE_FIELDS = ("content", "name", "description", "categories", "variants", "tier")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _message_or_default(commit_message: Optional[str], default: str) -> str:
    """Commit message for system-initiated writes; blank falls back to default."""
    return validate_commit_message((commit_message or "").strip() or default)


class BlockStore:
    """
    Business logic for prompt blocks.

    Handles:
    - Reading effective blocks (override beats builtin)
    - Creating custom blocks and overrides
    - Updating blocks and their variants
    - Resetting overrides and deleting custom blocks
    - Rolling a slug back to an earlier revision

    Example:
        store = BlockStore(repository, catalog.builtins, catalog.variant_contexts, audit_log)
        await store.create_override("source_fidelity", "Cite sources.", "Tighten wording", "alice")
        await store.reset_to_default("source_fidelity")
    """

    def __init__(
        self,
        repository: IPromptRepository,
        builtins: Mapping[str, BuiltinBlock],
        variant_contexts: Iterable[str],
        audit_log: AuditLog,
        namespace: str = "prompts",
    ):
        """
        Initialize block store with dependencies.

        Args:
            repository: Storage for override and custom blocks.
            builtins: Builtin blocks by slug (read-only).
            variant_contexts: Context keys a variant may use.
            audit_log: Revision log sharing the repository's transactions.
            namespace: Namespace stamped on stored blocks.
        """
        self.repository = repository
        self.builtins = dict(builtins)
        self.variant_contexts = tuple(variant_contexts)
        self.audit_log = audit_log
        self.namespace = namespace

    # ========== Validation ==========

    def _validate_slug(self, slug: str):
        if not isinstance(slug, str) or not SLUG_PATTERN.match(slug):
            raise ValidationError(
                f"Invalid slug '{slug}': use lowercase letters, digits, '-' and '_'",
                field="slug",
            )

    def _validate_variants(self, variants: Any) -> Dict[str, str]:
        if not isinstance(variants, dict):
            raise ValidationError("variants must be a mapping of context to content", field="variants")
        for context, content in variants.items():
            if context not in self.variant_contexts:
                raise ValidationError(
                    f"Unknown variant context '{context}'. "
                    f"Allowed: {', '.join(self.variant_contexts)}",
                    field="variants",
                )
            if not isinstance(content, str):
                raise ValidationError(f"Variant '{context}' content must be text", field="variants")
        # Blank content means "no variant"
        return {context: content for context, content in variants.items() if content.strip()}

    def _validate_fields(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Check a partial update and return the fields to apply."""
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        cleaned: Dict[str, Any] = {}
        for key, value in fields.items():
            # None means "leave unchanged"
            if value is None:
                continue
            if key in ("content", "description") and not isinstance(value, str):
                raise ValidationError(f"{key} must be text", field=key)
            if key == "name" and (not isinstance(value, str) or not value.strip()):
                raise ValidationError("name must not be empty", field="name")
            if key == "categories":
                if not isinstance(value, (list, tuple, set)) or not all(isinstance(c, str) for c in value):
                    raise ValidationError("categories must be a list of strings", field="categories")
                value = sorted(set(value))
            if key == "tier" and value not in BLOCK_TIERS:
                raise ValidationError(f"tier must be one of {BLOCK_TIERS}", field="tier")
            if key == "variants":
                value = self._validate_variants(value)
            cleaned[key] = value
        return cleaned

    def _builtin_slug_for_id(self, block_id: str) -> Optional[str]:
        if block_id.startswith(BUILTIN_ID_PREFIX):
            slug = block_id[len(BUILTIN_ID_PREFIX):]
            if slug in self.builtins:
                return slug
        return None

    # ========== Reads ==========

    async def get_block(self, slug: str) -> Block:
        """
        Get the effective block for a slug.

        Raises:
            NotFoundError: If neither a builtin nor a stored block has the slug.
        """
        stored = await self.repository.get_by_slug(slug)
        block = effective_block(self.builtins.get(slug), stored)
        if block is None:
            raise NotFoundError(f"Prompt not found: {slug}")
        return block

    async def get_block_by_id(self, block_id: str) -> Block:
        """
        Get a block by id. Builtin ids return the catalog record.

        Raises:
            NotFoundError: If the id is unknown.
        """
        slug = self._builtin_slug_for_id(block_id)
        if slug is not None:
            return self.builtins[slug]

        block = await self.repository.get_by_id(block_id)
        if block is None:
            raise NotFoundError(f"Block not found: {block_id}")
        return block

    async def list_blocks(self) -> List[Block]:
        """Builtins (overrides applied) sorted by slug, then custom blocks sorted by slug."""
        stored = await self.repository.list_blocks()
        by_slug = {block.slug: block for block in stored}

        builtins = [
            effective_block(self.builtins[slug], by_slug.get(slug))
            for slug in sorted(self.builtins)
        ]
        customs = sorted(
            (block for block in stored if isinstance(block, CustomBlock)),
            key=lambda block: block.slug,
        )

        orphans = [
            block.slug for block in stored
            if isinstance(block, OverrideBlock) and block.overrides_slug not in self.builtins
        ]
        if orphans:
            logger.warning(f"Overrides without a builtin are hidden: {', '.join(sorted(orphans))}")

        return builtins + customs

    async def get_effective_blocks(self, slugs: Iterable[str]) -> Dict[str, Block]:
        """Batch lookup used by the resolver; unknown slugs are left out."""
        unique = list(dict.fromkeys(slugs))
        stored = await self.repository.get_many_by_slug(unique)

        found = {}
        for slug in unique:
            block = effective_block(self.builtins.get(slug), stored.get(slug))
            if block is not None:
                found[slug] = block
        return found

    # ========== Writes ==========

    async def _create_override(
        self,
        builtin: BuiltinBlock,
        fields: Dict[str, Any],
        message: str,
        actor_id: str,
        action: RevisionAction = RevisionAction.OVERRIDE,
    ) -> OverrideBlock:
        now = _now()
        version = await self.audit_log.next_version(builtin.slug)
        block = OverrideBlock(
            id=str(uuid.uuid4()),
            slug=builtin.slug,
            name=fields.get("name", builtin.name),
            content=fields.get("content", builtin.content),
            description=fields.get("description", builtin.description),
            categories=fields.get("categories", list(builtin.categories)),
            tier=fields.get("tier", builtin.tier),
            variants=fields.get("variants", dict(builtin.variants)),
            namespace=self.namespace,
            version=version,
            created_at=now,
            updated_at=now,
            overrides_slug=builtin.slug,
        )

        async with self.repository.transaction() as tx:
            tx.put_block(block, create=True)
            await self.audit_log.record_revision(
                tx, block, actor_id, message,
                before=builtin.content,
                after=block.content,
                action=action,
                version=version,
            )

        logger.info(f"Override created for '{builtin.slug}' by {actor_id} (v{version})")
        return block

    async def _update_stored(
        self,
        stored: StoredBlock,
        fields: Dict[str, Any],
        message: str,
        actor_id: str,
        action: RevisionAction = RevisionAction.UPDATE,
    ) -> StoredBlock:
        version = await self.audit_log.next_version(stored.slug)
        updated = stored.with_changes(**fields, version=version, updated_at=_now())

        async with self.repository.transaction() as tx:
            tx.put_block(updated)
            await self.audit_log.record_revision(
                tx, updated, actor_id, message,
                before=stored.content,
                after=updated.content,
                action=action,
                version=version,
            )

        logger.info(f"Prompt '{stored.slug}' {action.value} by {actor_id} (v{version})")
        return updated

    async def _override(
        self,
        slug: str,
        fields: Dict[str, Any],
        message: str,
        actor_id: str,
    ) -> StoredBlock:
        stored = await self.repository.get_by_slug(slug)
        if isinstance(stored, CustomBlock):
            raise ValidationError(
                f"'{slug}' is a custom prompt; update it instead of overriding",
                field="slug",
            )
        if slug not in self.builtins:
            raise ValidationError(f"'{slug}' is not a builtin prompt", field="slug")

        if stored is not None:
            return await self._update_stored(stored, fields, message, actor_id)
        return await self._create_override(self.builtins[slug], fields, message, actor_id)

    async def create_custom_block(
        self,
        slug: str,
        name: str,
        content: str,
        commit_message: str,
        actor_id: str,
        description: str = "",
        categories: Optional[List[str]] = None,
        tier: int = 3,
        variants: Optional[Dict[str, str]] = None,
    ) -> CustomBlock:
        """
        Create a custom block under a new slug.

        Raises:
            ValidationError: On a blank commit message, bad fields, or a slug
                that is builtin or already stored.
        """
        message = validate_commit_message(commit_message)
        self._validate_slug(slug)
        if slug in self.builtins:
            raise ValidationError(
                f"'{slug}' is a builtin prompt; create an override instead",
                field="slug",
            )
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("content must not be empty", field="content")

        fields = self._validate_fields({
            "name": name,
            "content": content,
            "description": description,
            "categories": categories or [],
            "tier": tier,
            "variants": variants or {},
        })
        if "name" not in fields:
            raise ValidationError("name must not be empty", field="name")

        if await self.repository.get_by_slug(slug) is not None:
            raise ValidationError(f"Prompt already exists: {slug}", field="slug")

        now = _now()
        version = await self.audit_log.next_version(slug)
        block = CustomBlock(
            id=str(uuid.uuid4()),
            slug=slug,
            namespace=self.namespace,
            version=version,
            created_at=now,
            updated_at=now,
            **fields,
        )

        try:
            async with self.repository.transaction() as tx:
                tx.put_block(block, create=True)
                await self.audit_log.record_revision(
                    tx, block, actor_id, message,
                    before="",
                    after=block.content,
                    action=RevisionAction.CREATE,
                    version=version,
                )
        except WriteConflictError as e:
            raise ValidationError(f"Prompt already exists: {slug}", field="slug") from e

        logger.info(f"Custom prompt '{slug}' created by {actor_id}")
        return block

    async def create_override(
        self,
        slug: str,
        content: Optional[str],
        commit_message: str,
        actor_id: str,
        **fields,
    ) -> StoredBlock:
        """
        Override a builtin block, or update its existing override.

        Args:
            slug: Builtin slug to override.
            content: New content (None keeps the current content).
            commit_message: Required description of the change.
            actor_id: Who made the change.
            **fields: Other fields to change (name, description, categories,
                variants, tier).

        Raises:
            ValidationError: On a blank commit message, a custom slug, or a
                slug that is not builtin.
        """
        message = validate_commit_message(commit_message)
        changes = self._validate_fields({**fields, "content": content})
        return await self._override(slug, changes, message, actor_id)

    async def update_block(
        self,
        block_id: str,
        fields: Mapping[str, Any],
        commit_message: str,
        actor_id: str,
    ) -> StoredBlock:
        """
        Apply a partial update to a block.

        Updating a builtin id creates (or updates) its override.

        Raises:
            ValidationError: On a blank commit message or bad fields.
            NotFoundError: If the id is unknown.
        """
        message = validate_commit_message(commit_message)
        changes = self._validate_fields(fields)

        slug = self._builtin_slug_for_id(block_id)
        if slug is not None:
            return await self._override(slug, changes, message, actor_id)

        stored = await self.repository.get_by_id(block_id)
        if stored is None:
            raise NotFoundError(f"Block not found: {block_id}")
        return await self._update_stored(stored, changes, message, actor_id)

    async def update_variant(
        self,
        slug: str,
        context: str,
        content: str,
        commit_message: str,
        actor_id: str,
    ) -> StoredBlock:
        """
        Set the variant content of one context. Blank content removes the variant.

        Raises:
            ValidationError: On a blank commit message or unknown context.
            NotFoundError: If the slug is unknown.
        """
        message = validate_commit_message(commit_message)
        if not isinstance(content, str):
            raise ValidationError("Variant content must be text", field="content")
        self._validate_variants({context: content})

        current = await self.get_block(slug)
        variants = dict(current.variants)
        if content.strip():
            variants[context] = content
        else:
            variants.pop(context, None)

        if isinstance(current, BuiltinBlock):
            return await self._create_override(current, {"variants": variants}, message, actor_id)
        return await self._update_stored(current, {"variants": variants}, message, actor_id)

    async def reset_to_default(
        self,
        slug: str,
        actor_id: str = "system",
        commit_message: Optional[str] = None,
    ) -> bool:
        """
        Delete the override of a builtin so the builtin shows again.

        Returns:
            False if there was no override to reset (including when a
            concurrent reset got there first), True otherwise.

        Raises:
            ValidationError: If the slug is a custom block.
        """
        stored = await self.repository.get_by_slug(slug)
        if stored is None:
            return False
        if isinstance(stored, CustomBlock):
            raise ValidationError("Cannot reset custom prompts - use delete instead", field="slug")

        message = _message_or_default(commit_message, "Reset to default")
        builtin = self.builtins.get(stored.overrides_slug)
        default_content = builtin.content if builtin else ""
        default_variants = dict(builtin.variants) if builtin else {}

        try:
            version = await self.audit_log.next_version(slug)
            async with self.repository.transaction() as tx:
                tx.delete_block(stored)
                await self.audit_log.record_revision(
                    tx, stored, actor_id, message,
                    before=stored.content,
                    after=default_content,
                    action=RevisionAction.RESET,
                    version=version,
                    variants_snapshot=default_variants,
                )
        except WriteConflictError:
            logger.info(f"Override for '{slug}' was already reset")
            return False

        logger.info(f"Prompt '{slug}' reset to default by {actor_id}")
        return True

    async def delete_custom_block(
        self,
        block_id: str,
        actor_id: str = "system",
        commit_message: Optional[str] = None,
    ) -> bool:
        """
        Delete a custom block.

        Returns:
            False if the id is unknown (or already deleted), True otherwise.

        Raises:
            ValidationError: If the id names a builtin or an override.
        """
        if self._builtin_slug_for_id(block_id) is not None:
            raise ValidationError("Cannot delete built-in prompts - use reset instead")

        stored = await self.repository.get_by_id(block_id)
        if stored is None:
            return False
        if isinstance(stored, OverrideBlock):
            raise ValidationError("Cannot delete an override - use reset instead")

        message = _message_or_default(commit_message, f"Delete {stored.slug}")

        try:
            version = await self.audit_log.next_version(stored.slug)
            async with self.repository.transaction() as tx:
                tx.delete_block(stored)
                await self.audit_log.record_revision(
                    tx, stored, actor_id, message,
                    before=stored.content,
                    after="",
                    action=RevisionAction.DELETE,
                    version=version,
                    variants_snapshot={},
                )
        except WriteConflictError:
            logger.info(f"Custom prompt '{stored.slug}' was already deleted")
            return False

        logger.info(f"Custom prompt '{stored.slug}' deleted by {actor_id}")
        return True

    async def rollback_to_version(
        self,
        slug: str,
        version: int,
        actor_id: str,
        commit_message: Optional[str] = None,
    ) -> StoredBlock:
        """
        Restore the content and variants recorded by an earlier revision.

        Raises:
            NotFoundError: If the version does not exist or the slug no longer
                names a block that can take the content.
        """
        revision = await self.audit_log.get_revision(slug, version)
        message = _message_or_default(commit_message, f"Rollback to version {version}")

        variants = {
            context: content
            for context, content in revision.variants_snapshot.items()
            if context in self.variant_contexts
        }
        fields = {"content": revision.after, "variants": variants}

        stored = await self.repository.get_by_slug(slug)
        if stored is not None:
            return await self._update_stored(stored, fields, message, actor_id, action=RevisionAction.ROLLBACK)
        if slug in self.builtins:
            return await self._create_override(
                self.builtins[slug], fields, message, actor_id, action=RevisionAction.ROLLBACK,
            )
        raise NotFoundError(f"Prompt not found: {slug}")
