"""Audit/versioning log for block mutations."""
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..core.exceptions import NotFoundError, ValidationError
from ..domain import Block, Revision, RevisionAction, line_diff
from ..interfaces.prompt_repository import IPromptRepository, PromptTransaction

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 500


def validate_commit_message(commit_message: Optional[str]) -> str:
    """Return the stripped commit message, or raise if it is blank."""
    if not commit_message or not commit_message.strip():
        raise ValidationError("Commit message is required", field="commit_message")
    return commit_message.strip()


def validate_page(offset: int, limit: int):
    if offset < 0:
        raise ValidationError("offset must be >= 0", field="offset")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")


class AuditLog:
    """
    Append-only revision log.

    Revisions are never written on their own: record_revision() stages the
    revision in the caller's transaction, next to the block write it
    describes, so both commit or neither does.

    Versions count per slug and keep counting across reset and delete, so a
    slug's history reads as one sequence even when the stored row behind it
    was replaced.
    """

    def __init__(self, repository: IPromptRepository):
        """
        Initialize audit log.

        Args:
            repository: Repository holding the revisions.
        """
        self.repository = repository

    async def next_version(self, slug: str) -> int:
        """Version number the next revision of slug will carry."""
        latest = await self.repository.list_revisions_for_slug(slug, offset=0, limit=1)
        return latest[0].version + 1 if latest else 1

    async def record_revision(
        self,
        tx: PromptTransaction,
        block: Block,
        actor_id: str,
        commit_message: str,
        before: str,
        after: str,
        action: RevisionAction,
        version: Optional[int] = None,
        variants_snapshot: Optional[Dict[str, str]] = None,
    ) -> Revision:
        """
        Stage one revision for a block mutation.

        Args:
            tx: Open transaction holding the paired block write.
            block: Block as it is after the mutation.
            actor_id: Who made the change.
            commit_message: Required description of the change.
            before: Content before the mutation.
            after: Content after the mutation.
            action: Kind of mutation.
            version: Version to record (defaults to the slug's next version).
            variants_snapshot: Variants after the mutation (defaults to block.variants).

        Returns:
            The staged Revision.

        Raises:
            ValidationError: If commit_message is blank.
        """
        message = validate_commit_message(commit_message)
        if version is None:
            version = await self.next_version(block.slug)

        revision = Revision(
            revision_id=str(uuid.uuid4()),
            block_id=block.id,
            slug=block.slug,
            actor_id=actor_id or "unknown",
            commit_message=message,
            action=action,
            before=before,
            after=after,
            version=version,
            created_at=datetime.now(timezone.utc),
            variants_snapshot=dict(block.variants if variants_snapshot is None else variants_snapshot),
            diff=line_diff(before, after),
        )
        tx.append_revision(revision)

        logger.debug(f"Staged {action.value} revision v{version} for '{block.slug}' by {revision.actor_id}")
        return revision

    async def list_history(self, block_id: str, offset: int = 0, limit: int = 50) -> List[Revision]:
        """Revisions of one block, newest first."""
        validate_page(offset, limit)
        return await self.repository.list_revisions_for_block(block_id, offset=offset, limit=limit)

    async def list_history_for_slug(self, slug: str, offset: int = 0, limit: int = 50) -> List[Revision]:
        """Revisions of a slug across every block that held it, newest first."""
        validate_page(offset, limit)
        return await self.repository.list_revisions_for_slug(slug, offset=offset, limit=limit)

    async def get_revision(self, slug: str, version: int) -> Revision:
        """
        Get one revision by slug and version.

        Raises:
            NotFoundError: If the slug has no such version.
        """
        revision = await self.repository.get_revision(slug, version)
        if revision is None:
            raise NotFoundError(f"Version {version} not found for prompt: {slug}")
        return revision
