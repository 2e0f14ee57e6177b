"""Core deploy engine: scan, filter, fetch, plan, apply."""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from ..exceptions import OperationError, PolicyViolation, ScanError
from ..output import OutputFormatter
from ..utils import format_size
from .context import DeployContext
from .executor import ApplyExecutor, ApplyResult, ErrorPolicy, Operation
from .operations import RemoteSite, SyncOperations
from .planner import DiffPlanner, OperationPlan, SyncAction
from .policy import filter_manifest, find_violations
from .scanner import DirectoryScanner

logger = logging.getLogger(__name__)


@dataclass
class DeployReport:
    """What a deploy of one site planned and did."""

    site: str
    plan: OperationPlan
    result: Optional[ApplyResult] = None
    """None for dry runs"""

    scan_failures: list[ScanError] = field(default_factory=list)
    violations: list[PolicyViolation] = field(default_factory=list)

    @property
    def dry_run(self) -> bool:
        return self.result is None

    @property
    def ok(self) -> bool:
        if self.scan_failures:
            return False
        return self.result is None or self.result.ok

    def to_dict(self) -> dict:
        data = {
            "site": self.site,
            "plan": self.plan.to_dict(),
            "scan_failures": [
                {"path": e.path, "reason": e.reason} for e in self.scan_failures
            ],
            "policy_violations": [v.path for v in self.violations],
        }
        if self.result is not None:
            data["result"] = self.result.to_dict()
        return data


class DeployEngine:
    """Deploys a local directory to a site."""

    def __init__(
        self,
        client: RemoteSite,
        output: Optional[OutputFormatter] = None,
    ):
        """Initialize deploy engine.

        Args:
            client: Neocities API client
            output: Output formatter for displaying progress/status
        """
        self.client = client
        self.output = output or OutputFormatter()
        self.operations = SyncOperations(client)
        self.planner = DiffPlanner()

    def deploy(self, context: DeployContext) -> DeployReport:
        """Deploy one site.

        Args:
            context: Settings of the site's deploy

        Returns:
            DeployReport with the plan and, unless dry run, the ApplyResult

        Raises:
            ScanError: If the local directory cannot be scanned (or, under
                the abort policy, any file in it)
            RemoteFetchError: If the remote file list cannot be fetched

        Examples:
            >>> engine = DeployEngine(client)
            >>> report = engine.deploy(site.to_context("mysite", dry_run=True))
            >>> print(f"Would upload {len(report.plan.uploads)} files")
        """
        start_time = time.time()
        if not self.output.quiet:
            self.output.info(f"Deploying site: {context.name}")
            self.output.info(f"Local path: {context.local_path}")
            if context.dry_run:
                self.output.info("Dry run: No changes will be made")
            self.output.print("")

        # Step 1: Scan local files and fetch the remote list
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            disable=self.output.quiet,
        ) as progress:
            task = progress.add_task("Scanning local directory...", total=None)
            scanner = DirectoryScanner(
                ignore_patterns=list(context.ignore_patterns),
                follow_symlinks=context.follow_symlinks,
                max_workers=context.max_workers,
                abort_on_error=context.error_policy == ErrorPolicy.ABORT_ON_ERROR,
            )
            scan = scanner.scan(context.local_path)
            progress.update(
                task, description=f"Found {len(scan.manifest)} local file(s)"
            )

            task = progress.add_task("Listing remote files...", total=None)
            remote = self.operations.fetch_manifest()
            progress.update(task, description=f"Found {len(remote)} remote file(s)")

        logger.debug(
            "Scan and list took %.2fs (%d local, %d remote)",
            time.time() - start_time,
            len(scan.manifest),
            len(remote),
        )

        # Step 2: Apply the account policy
        violations = find_violations(scan.manifest, context.policy)
        local = filter_manifest(scan.manifest, context.policy)
        for violation in violations:
            logger.info("%s", violation)

        # Paths that could not be read, and everything below them, must not
        # be deleted remotely
        if scan.failures:
            remote = remote.prune(failure.path for failure in scan.failures)

        # Step 3: Plan
        plan = self.planner.plan(local, remote)
        report = DeployReport(
            site=context.name,
            plan=plan,
            scan_failures=scan.failures,
            violations=violations,
        )
        self._display_plan(report)

        if context.dry_run:
            self._display_summary(report)
            return report
        if plan.is_empty:
            report.result = ApplyResult(error_policy=context.error_policy)
            self._display_summary(report)
            return report

        # Step 4: Apply
        report.result = self._apply(plan, context)

        # Step 5: Display summary
        self._display_summary(report)
        logger.info(
            "Deployment of %s finished in %.2fs",
            context.name,
            time.time() - start_time,
        )
        return report

    def _apply(self, plan: OperationPlan, context: DeployContext) -> ApplyResult:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            disable=self.output.quiet,
        ) as progress:
            task = progress.add_task("Deploying files...", total=len(plan))

            def on_complete(
                operation: Operation, error: Optional[OperationError]
            ) -> None:
                progress.update(task, advance=1)
                if error is not None:
                    self.output.error(f"Error: {error}")

            executor = ApplyExecutor(
                self.operations,
                error_policy=context.error_policy,
                max_workers=context.max_workers,
                on_complete=on_complete,
            )
            return executor.apply(plan)

    def _display_plan(self, report: DeployReport) -> None:
        """Display the deploy plan.

        Args:
            report: Report holding the plan
        """
        if self.output.quiet:
            return

        plan = report.plan
        for failure in report.scan_failures:
            self.output.warning(f"  ! {failure}")
        for violation in report.violations:
            self.output.info(f"  - Not allowed: {violation.path}")

        self.output.info("Deploy plan:")
        if plan.uploads:
            self.output.info(
                f"  ↑ Upload: {len(plan.uploads)} file(s) "
                f"({format_size(plan.upload_size)})"
            )
        if plan.deletions:
            self.output.info(f"  ✗ Delete remote: {len(plan.deletions)} path(s)")
        skips = sum(1 for d in plan.decisions if d.action == SyncAction.SKIP)
        if skips:
            self.output.info(f"  = Unchanged: {skips} file(s)")

        for decision in plan.decisions:
            if decision.action != SyncAction.SKIP:
                logger.debug(
                    "%s %s: %s",
                    decision.action.value,
                    decision.relative_path,
                    decision.reason,
                )
        self.output.print("")

    def _display_summary(self, report: DeployReport) -> None:
        """Display deploy summary.

        Args:
            report: Finished report
        """
        if self.output.quiet:
            return

        result = report.result
        if result is None:
            self.output.success("Dry run complete!")
            return
        if report.plan.is_empty:
            self.output.info("No changes needed - everything is up to date!")
            return

        if result.ok:
            self.output.success("Deploy complete!")
        else:
            self.output.warning("Deploy finished with errors")

        uploaded = result.count(SyncAction.UPLOAD)
        deleted = result.count(SyncAction.DELETE)
        if uploaded:
            self.output.info(f"  Uploaded: {uploaded}")
        if deleted:
            self.output.info(f"  Deleted remotely: {deleted}")
        if result.failed:
            self.output.info(f"  Failed: {len(result.failed)}")
        if result.skipped:
            self.output.info(f"  Skipped: {len(result.skipped)}")
