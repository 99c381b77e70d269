"""Revision domain entity (one audit entry per content-changing mutation)."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional


class RevisionAction(str, Enum):
    CREATE = "create"
    OVERRIDE = "override"
    UPDATE = "update"
    RESET = "reset"
    DELETE = "delete"
    ROLLBACK = "rollback"


@dataclass(frozen=True)
class Revision:
    """Immutable audit record for one block mutation."""
    revision_id: str
    block_id: str
    slug: str
    actor_id: str
    commit_message: str
    action: RevisionAction
    before: str
    after: str
    version: int
    created_at: datetime
    variants_snapshot: Dict[str, str] = field(default_factory=dict)
    diff: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "revision_id": self.revision_id,
            "block_id": self.block_id,
            "slug": self.slug,
            "actor_id": self.actor_id,
            "commit_message": self.commit_message,
            "action": self.action.value,
            "before": self.before,
            "after": self.after,
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "variants_snapshot": dict(self.variants_snapshot),
            "diff": self.diff,
        }


def line_diff(old: str, new: str) -> str:
    """Simple positional line diff for display."""
    old_lines = old.split("\n") if old else []
    new_lines = new.split("\n") if new else []
    out = []

    for i in range(max(len(old_lines), len(new_lines))):
        old_line = old_lines[i] if i < len(old_lines) else None
        new_line = new_lines[i] if i < len(new_lines) else None
        if old_line == new_line:
            continue
        if old_line is not None:
            out.append(f"- {old_line}")
        if new_line is not None:
            out.append(f"+ {new_line}")

    return "\n".join(out) if out else "(no changes)"
