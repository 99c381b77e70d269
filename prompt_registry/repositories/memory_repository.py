"""In-memory prompt repository (local development and tests)"""
import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from ..core.exceptions import WriteConflictError
from ..domain import Revision, StoredBlock
from ..interfaces.prompt_repository import (
    AppendRevision,
    DeleteBlock,
    IPromptRepository,
    PromptTransaction,
    PutBlock,
)

logger = logging.getLogger(__name__)


class InMemoryPromptRepository(IPromptRepository):
    """Dict-backed repository.

    Commits apply staged operations to copies of the tables and swap them in
    only after every operation succeeded, so a failed commit leaves nothing
    behind.
    """

    def __init__(self):
        self._blocks: Dict[str, StoredBlock] = {}
        self._slug_index: Dict[str, str] = {}
        self._revisions: List[Revision] = []
        self._lock = asyncio.Lock()

    async def get_by_slug(self, slug: str) -> Optional[StoredBlock]:
        block_id = self._slug_index.get(slug)
        if block_id is None:
            return None
        return self._blocks.get(block_id)

    async def get_by_id(self, block_id: str) -> Optional[StoredBlock]:
        return self._blocks.get(block_id)

    async def get_many_by_slug(self, slugs: Iterable[str]) -> Dict[str, StoredBlock]:
        found = {}
        for slug in slugs:
            block_id = self._slug_index.get(slug)
            if block_id is not None:
                found[slug] = self._blocks[block_id]
        return found

    async def list_blocks(self) -> List[StoredBlock]:
        return list(self._blocks.values())

    async def list_revisions_for_block(
        self,
        block_id: str,
        offset: int = 0,
        limit: int = 50,
    ) -> List[Revision]:
        matching = [r for r in reversed(self._revisions) if r.block_id == block_id]
        return matching[offset:offset + limit]

    async def list_revisions_for_slug(
        self,
        slug: str,
        offset: int = 0,
        limit: int = 50,
    ) -> List[Revision]:
        matching = [r for r in reversed(self._revisions) if r.slug == slug]
        return matching[offset:offset + limit]

    async def get_revision(self, slug: str, version: int) -> Optional[Revision]:
        for revision in self._revisions:
            if revision.slug == slug and revision.version == version:
                return revision
        return None

    async def _commit(self, tx: PromptTransaction) -> None:
        async with self._lock:
            blocks = dict(self._blocks)
            slug_index = dict(self._slug_index)
            revisions = list(self._revisions)

            for op in tx.operations:
                self._apply(op, blocks, slug_index, revisions)

            self._blocks = blocks
            self._slug_index = slug_index
            self._revisions = revisions

        logger.debug(f"Committed {len(tx.operations)} operations")

    def _apply(
        self,
        op,
        blocks: Dict[str, StoredBlock],
        slug_index: Dict[str, str],
        revisions: List[Revision],
    ):
        if isinstance(op, PutBlock):
            owner = slug_index.get(op.block.slug)
            if op.create and owner is not None:
                raise WriteConflictError(f"Slug already taken: {op.block.slug}")
            if owner is not None and owner != op.block.id:
                raise WriteConflictError(
                    f"Slug '{op.block.slug}' belongs to another block"
                )
            blocks[op.block.id] = op.block
            slug_index[op.block.slug] = op.block.id

        elif isinstance(op, DeleteBlock):
            if op.block.id not in blocks:
                raise WriteConflictError(f"Block already deleted: {op.block.id}")
            del blocks[op.block.id]
            slug_index.pop(op.block.slug, None)

        elif isinstance(op, AppendRevision):
            new = op.revision
            if any(r.slug == new.slug and r.version == new.version for r in revisions):
                raise WriteConflictError(
                    f"Revision {new.version} of '{new.slug}' already exists"
                )
            revisions.append(new)

        else:
            raise TypeError(f"Unknown operation: {op!r}")
