"""Prompt repository interface (DIP - services depend on this, not on a datastore)"""
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Iterable, List, Optional, Union

from ..domain import Revision, StoredBlock


@dataclass(frozen=True)
class PutBlock:
    block: StoredBlock
    create: bool = False  # fail if the slug is already taken


@dataclass(frozen=True)
class DeleteBlock:
    block: StoredBlock


@dataclass(frozen=True)
class AppendRevision:
    revision: Revision


Operation = Union[PutBlock, DeleteBlock, AppendRevision]


@dataclass
class PromptTransaction:
    """Writes staged by services and committed together by the repository."""
    operations: List[Operation] = field(default_factory=list)

    def put_block(self, block: StoredBlock, create: bool = False):
        self.operations.append(PutBlock(block, create=create))

    def delete_block(self, block: StoredBlock):
        self.operations.append(DeleteBlock(block))

    def append_revision(self, revision: Revision):
        self.operations.append(AppendRevision(revision))

    @property
    def revisions(self) -> List[Revision]:
        return [op.revision for op in self.operations if isinstance(op, AppendRevision)]


class IPromptRepository(ABC):
    """Interface for stored (override and custom) blocks and their revisions.

    Builtin blocks never reach the repository. Block writes and revision
    appends only happen through transaction(); a transaction either commits
    every staged operation or none of them.

    Example:
        async with repository.transaction() as tx:
            tx.put_block(block)
            tx.append_revision(revision)
    """

    @abstractmethod
    async def get_by_slug(self, slug: str) -> Optional[StoredBlock]:
        """Get stored block by slug"""
        pass

    @abstractmethod
    async def get_by_id(self, block_id: str) -> Optional[StoredBlock]:
        """Get stored block by ID"""
        pass

    @abstractmethod
    async def get_many_by_slug(self, slugs: Iterable[str]) -> Dict[str, StoredBlock]:
        """Get stored blocks for several slugs; missing slugs are absent"""
        pass

    @abstractmethod
    async def list_blocks(self) -> List[StoredBlock]:
        """List every stored block in the namespace"""
        pass

    @abstractmethod
    async def list_revisions_for_block(
        self,
        block_id: str,
        offset: int = 0,
        limit: int = 50,
    ) -> List[Revision]:
        """Revisions of one block, newest first"""
        pass

    @abstractmethod
    async def list_revisions_for_slug(
        self,
        slug: str,
        offset: int = 0,
        limit: int = 50,
    ) -> List[Revision]:
        """Revisions of every block that has held this slug, newest first"""
        pass

    @abstractmethod
    async def get_revision(self, slug: str, version: int) -> Optional[Revision]:
        """Get one revision of a slug by version number"""
        pass

    @abstractmethod
    async def _commit(self, tx: PromptTransaction) -> None:
        """Apply all staged operations atomically.

        Raises:
            WriteConflictError: A conditional write lost to a concurrent writer.
            PersistenceError: The datastore failed.
        """
        pass

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PromptTransaction]:
        """Stage writes; commit on clean exit, discard on exception."""
        tx = PromptTransaction()
        yield tx
        if tx.operations:
            await self._commit(tx)
