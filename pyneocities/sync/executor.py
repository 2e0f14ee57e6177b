"""Execution of an operation plan against the remote site."""

import logging
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator, Optional

from ..exceptions import AggregateFailure, NeocitiesError, OperationError
from .manifest import FileEntry
from .operations import SyncOperations
from .planner import OperationPlan, SyncAction

logger = logging.getLogger(__name__)


class ErrorPolicy(str, Enum):
    """What to do when an operation fails."""

    ABORT_ON_ERROR = "abort"
    """Stop dispatching at the first failure"""

    CONTINUE_ON_ERROR = "continue"
    """Record the failure and go on"""


class OperationState(str, Enum):
    PENDING = "pending"
    ATTEMPTED = "attempted"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ApplyStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


@dataclass(frozen=True)
class Operation:
    """A single remote call: upload one file or delete one path."""

    action: SyncAction
    path: str
    size: Optional[int] = None
    entry: Optional[FileEntry] = field(default=None, compare=False, repr=False)

    @classmethod
    def upload(cls, entry: FileEntry) -> "Operation":
        return cls(SyncAction.UPLOAD, entry.path, entry.size, entry)

    @classmethod
    def delete(cls, path: str) -> "Operation":
        return cls(SyncAction.DELETE, path)

    def __str__(self) -> str:
        if self.action == SyncAction.UPLOAD:
            return f"upload {self.path}"
        return f"delete remote {self.path}"


@dataclass
class ApplyResult:
    """Outcome of applying a plan."""

    error_policy: ErrorPolicy = ErrorPolicy.ABORT_ON_ERROR
    succeeded: list[Operation] = field(default_factory=list)
    failed: list[OperationError] = field(default_factory=list)
    skipped: list[Operation] = field(default_factory=list)
    """Operations never attempted because of an abort"""

    @property
    def status(self) -> ApplyStatus:
        if not self.failed and not self.skipped:
            return ApplyStatus.SUCCESS
        if self.error_policy == ErrorPolicy.CONTINUE_ON_ERROR and self.succeeded:
            return ApplyStatus.PARTIAL
        return ApplyStatus.FAILURE

    @property
    def ok(self) -> bool:
        return self.status == ApplyStatus.SUCCESS

    @property
    def first_error(self) -> Optional[OperationError]:
        return self.failed[0] if self.failed else None

    def count(self, action: SyncAction) -> int:
        return sum(1 for op in self.succeeded if op.action == action)

    def raise_for_status(self) -> None:
        """Raise AggregateFailure if any operation failed."""
        if self.failed:
            raise AggregateFailure(list(self.failed), list(self.skipped))

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "succeeded": [str(op) for op in self.succeeded],
            "failed": [
                {"operation": str(err.operation), "reason": err.reason}
                for err in self.failed
            ],
            "skipped": [str(op) for op in self.skipped],
        }


class ApplyExecutor:
    """Runs deletions that clear conflicts, then uploads, then the remaining
    deletions, under an error policy.

    Uploads may run concurrently (up to ``max_workers`` in flight).
    Deletions always run sequentially. A deletion listed in the plan's
    ``conflicts`` removes a remote entry standing where an upload goes, so
    it runs first; every other deletion runs after all uploads have been
    attempted, so a rename never races its own delete.

    Only the calling thread touches the ApplyResult; worker threads return
    their outcome through the futures.
    """

    def __init__(
        self,
        operations: SyncOperations,
        error_policy: ErrorPolicy = ErrorPolicy.ABORT_ON_ERROR,
        max_workers: int = 1,
        on_complete: Optional[
            Callable[[Operation, Optional[OperationError]], None]
        ] = None,
    ):
        """Initialize the executor.

        Args:
            operations: Remote operations wrapper
            error_policy: Abort at the first failure or continue
            max_workers: Maximum number of uploads in flight
            on_complete: Optional callback called after each attempt
        """
        self.operations = operations
        self.error_policy = error_policy
        self.max_workers = max(1, max_workers)
        self.on_complete = on_complete
        self.states: dict[Operation, OperationState] = {}

    def apply(self, plan: OperationPlan) -> ApplyResult:
        """Apply a plan.

        Args:
            plan: Operation plan

        Returns:
            ApplyResult with succeeded, failed and skipped operations
        """
        result = ApplyResult(error_policy=self.error_policy)
        conflicts = set(plan.conflicts)
        clearing = [Operation.delete(path) for path in plan.conflicts]
        uploads = [Operation.upload(entry) for entry in plan.uploads]
        deletions = [
            Operation.delete(path) for path in plan.deletions if path not in conflicts
        ]
        self.states = {
            op: OperationState.PENDING for op in clearing + uploads + deletions
        }

        if not self.states:
            return result

        logger.debug(
            "Applying %d upload(s) and %d deletion(s) with %d worker(s)",
            len(uploads),
            len(clearing) + len(deletions),
            self.max_workers,
        )

        aborted = self._run_sequential(clearing, result)
        if not aborted:
            if self.max_workers > 1 and len(uploads) > 1:
                aborted = self._run_parallel(uploads, result)
            else:
                aborted = self._run_sequential(uploads, result)

        if not aborted:
            self._run_sequential(deletions, result)

        result.skipped.extend(
            op
            for op, state in self.states.items()
            if state == OperationState.PENDING
        )
        if result.skipped:
            logger.info("Skipped %d operation(s) after error", len(result.skipped))
        return result

    def _attempt(self, operation: Operation) -> Optional[OperationError]:
        """Perform one operation; return its error instead of raising."""
        if operation.action == SyncAction.UPLOAD and operation.entry is None:
            return OperationError(operation, "no local file to upload")

        start = time.time()
        try:
            if operation.action == SyncAction.UPLOAD:
                logger.debug("Uploading %s...", operation.path)
                self.operations.upload_file(operation.entry)
            else:
                logger.debug("Deleting %s...", operation.path)
                self.operations.delete_remote(operation.path)
        except (NeocitiesError, OSError) as e:
            logger.debug(
                "Failed %s in %.2fs: %s", operation, time.time() - start, e
            )
            return OperationError(operation, str(e), cause=e)
        logger.debug("Completed %s in %.2fs", operation, time.time() - start)
        return None

    def _record(
        self,
        operation: Operation,
        error: Optional[OperationError],
        result: ApplyResult,
    ) -> bool:
        """Record an outcome; return True if execution must stop."""
        if error is None:
            self.states[operation] = OperationState.SUCCEEDED
            result.succeeded.append(operation)
            logger.info("Action: %s", operation)
        else:
            self.states[operation] = OperationState.FAILED
            result.failed.append(error)
            logger.debug("Recorded failure: %s", error)
        if self.on_complete is not None:
            self.on_complete(operation, error)
        return error is not None and self.error_policy == ErrorPolicy.ABORT_ON_ERROR

    def _run_sequential(self, operations: list[Operation], result: ApplyResult) -> bool:
        for operation in operations:
            self.states[operation] = OperationState.ATTEMPTED
            if self._record(operation, self._attempt(operation), result):
                return True
        return False

    def _run_parallel(self, operations: list[Operation], result: ApplyResult) -> bool:
        """Run operations with at most ``max_workers`` in flight.

        After an abort no new operation is dispatched; those already in
        flight finish and are recorded.
        """
        queue: Iterator[Operation] = iter(operations)
        in_flight: dict[Future, Operation] = {}
        aborted = False

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:

            def dispatch() -> None:
                while len(in_flight) < self.max_workers:
                    operation = next(queue, None)
                    if operation is None:
                        return
                    self.states[operation] = OperationState.ATTEMPTED
                    in_flight[executor.submit(self._attempt, operation)] = operation

            dispatch()
            while in_flight:
                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    operation = in_flight.pop(future)
                    if self._record(operation, future.result(), result):
                        aborted = True
                if not aborted:
                    dispatch()

        return aborted
