"""Diff planning: the operations that make the remote match the local tree."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .manifest import FileEntry, Manifest, parent_directories


class SyncAction(str, Enum):
    """Actions that can be taken during a deploy."""

    UPLOAD = "upload"
    """Upload local file to remote"""

    DELETE = "delete"
    """Delete remote file or directory"""

    SKIP = "skip"
    """Skip file (identical on both sides)"""


@dataclass(frozen=True)
class PlanDecision:
    """Represents a decision about one path."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    relative_path: str
    """Relative path of the file or directory"""

    local_file: Optional[FileEntry] = None
    """Local entry (if exists)"""

    remote_file: Optional[FileEntry] = None
    """Remote entry (if exists)"""

    conflict: bool = False
    """Deletion of a remote entry whose type differs from the local one"""


@dataclass(frozen=True)
class OperationPlan:
    """Uploads and deletions, each sorted by path.

    ``conflicts`` is the subset of ``deletions`` that clears a remote file
    where a local directory now is (or the other way round). Those must run
    before the uploads; the rest run after them.
    """

    uploads: tuple[FileEntry, ...] = ()
    deletions: tuple[str, ...] = ()
    conflicts: tuple[str, ...] = ()
    decisions: tuple[PlanDecision, ...] = field(default=(), compare=False)

    @property
    def is_empty(self) -> bool:
        return not self.uploads and not self.deletions

    def __len__(self) -> int:
        return len(self.uploads) + len(self.deletions)

    @property
    def upload_size(self) -> int:
        return sum(entry.size for entry in self.uploads)

    def to_dict(self) -> dict:
        return {
            "uploads": [entry.to_dict() for entry in self.uploads],
            "deletions": list(self.deletions),
            "conflicts": list(self.conflicts),
        }

    def to_json(self) -> str:
        """Deterministic serialization of the plan."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))


class DiffPlanner:
    """Compares local and remote manifests to determine deploy actions.

    A path present on both sides is uploaded only when the fingerprints
    differ; sizes and timestamps are never consulted. Remote directories
    missing locally are deleted. When a path is a file on one side and a
    directory on the other, the remote entry is deleted first.
    """

    def compare(self, local: Manifest, remote: Manifest) -> list[PlanDecision]:
        """Decide an action for every path on either side, in path order.

        Directories present on both sides, or only locally, need no action
        and get no decision. A local file replacing a remote directory gets
        two decisions: the deletion, then the upload.

        Args:
            local: Policy-filtered local manifest
            remote: Remote manifest

        Returns:
            List of PlanDecision objects
        """
        paths = set(local) | set(remote) | set(remote.directories)
        decisions: list[PlanDecision] = []
        for path in sorted(paths):
            local_file = local.get(path)
            remote_file = remote.get(path)

            if local_file is not None:
                if remote.has_directory(path):
                    decisions.append(
                        PlanDecision(
                            action=SyncAction.DELETE,
                            reason="Local file replaces remote directory",
                            relative_path=path,
                            local_file=local_file,
                            conflict=True,
                        )
                    )
                decisions.append(self._compare_file(local_file, remote_file))
            elif remote_file is not None:
                if local.has_directory(path):
                    decision = PlanDecision(
                        action=SyncAction.DELETE,
                        reason="Local directory replaces remote file",
                        relative_path=path,
                        remote_file=remote_file,
                        conflict=True,
                    )
                else:
                    decision = PlanDecision(
                        action=SyncAction.DELETE,
                        reason="File deleted locally",
                        relative_path=path,
                        remote_file=remote_file,
                    )
                decisions.append(decision)
            elif not local.has_directory(path):
                decisions.append(
                    PlanDecision(
                        action=SyncAction.DELETE,
                        reason="Directory deleted locally",
                        relative_path=path,
                    )
                )
        return decisions

    @staticmethod
    def _compare_file(
        local_file: FileEntry, remote_file: Optional[FileEntry]
    ) -> PlanDecision:
        if remote_file is None:
            action, reason = SyncAction.UPLOAD, "New local file"
        elif local_file.same_content(remote_file):
            action, reason = SyncAction.SKIP, "Files are identical"
        else:
            action, reason = SyncAction.UPLOAD, "Content changed"
        return PlanDecision(
            action=action,
            reason=reason,
            relative_path=local_file.path,
            local_file=local_file,
            remote_file=remote_file,
        )

    def plan(self, local: Manifest, remote: Manifest) -> OperationPlan:
        """Build the operation plan.

        A deletion below a directory that is itself deleted is dropped, since
        the remote removes a directory with everything in it.

        Examples:
            >>> local = Manifest([FileEntry("a.txt", 2, "h1"),
            ...                   FileEntry("b.txt", 3, "h2")])
            >>> remote = Manifest([FileEntry("a.txt", 2, "h1"),
            ...                    FileEntry("c.txt", 3, "h3")])
            >>> plan = DiffPlanner().plan(local, remote)
            >>> [e.path for e in plan.uploads], list(plan.deletions)
            (['b.txt'], ['c.txt'])
        """
        decisions = self.compare(local, remote)
        uploads = tuple(
            d.local_file
            for d in decisions
            if d.action == SyncAction.UPLOAD and d.local_file is not None
        )
        deleted = {d.relative_path for d in decisions if d.action == SyncAction.DELETE}
        deletions = tuple(
            path
            for path in sorted(deleted)
            if not any(parent in deleted for parent in parent_directories(path))
        )
        conflicting = {
            d.relative_path
            for d in decisions
            if d.action == SyncAction.DELETE and d.conflict
        }
        return OperationPlan(
            uploads=uploads,
            deletions=deletions,
            conflicts=tuple(path for path in deletions if path in conflicting),
            decisions=tuple(decisions),
        )


def plan(local: Manifest, remote: Manifest) -> OperationPlan:
    """Shortcut for ``DiffPlanner().plan(local, remote)``."""
    return DiffPlanner().plan(local, remote)
