"""
One cleanup run against one repository.

Workflow:
- Load the protected tags
- Authenticate with Docker Hub
- Fetch every tag (all pages, before anything is deleted)
- Plan deletions for the retention policy
- Delete the planned tags one by one; failures are collected, not fatal
- Log a summary and optionally save it as JSON
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from tag_cleaner.config_manager import CleanerSettings
from tag_cleaner.error_utils import DeleteError
from tag_cleaner.logging_utils import get_logger, log_exception
from tag_cleaner.models import Repository
from tag_cleaner.protection import load_protected_tags
from tag_cleaner.registry_client import DockerHubClient
from tag_cleaner.report_utils import format_mb, format_plan_table, save_json, sizeof_fmt
from tag_cleaner.retention import DeletionReason, PlannedDeletion, RetentionPlan, plan_retention

logger = get_logger(__name__)


@dataclass
class RunSummary:
    """Result of a cleanup run"""

    repository: str
    dry_run: bool
    total_tags: int
    total_size: int
    deleted: List[str] = field(default_factory=list)
    deleted_size: int = 0
    failures: List[DeleteError] = field(default_factory=list)
    protected_skips: List[str] = field(default_factory=list)
    # Survivors plus tags whose deletion failed
    remaining_count: int = 0
    remaining_size: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repository": self.repository,
            "dry_run": self.dry_run,
            "total_tags": self.total_tags,
            "total_size_bytes": self.total_size,
            "deleted": self.deleted,
            "deleted_size_bytes": self.deleted_size,
            "failures": [
                {"tag": f.tag, "status_code": f.status_code, "reason": f.reason} for f in self.failures
            ],
            "protected_skips": self.protected_skips,
            "remaining_count": self.remaining_count,
            "remaining_size_bytes": self.remaining_size,
        }


def execute_plan(
    client: DockerHubClient,
    repository: Repository,
    plan: RetentionPlan,
    dry_run: bool = False,
) -> Tuple[List[PlannedDeletion], List[DeleteError]]:
    """Delete every planned tag in plan order.

    A failed deletion is logged and recorded; the batch always continues.

    Returns:
        (deletions that succeeded or would succeed in dry run, failures)
    """
    done: List[PlannedDeletion] = []
    failures: List[DeleteError] = []
    verb = "Would delete" if dry_run else "Deleting"

    for deletion in plan.deletions:
        name = deletion.tag.name
        if deletion.reason is DeletionReason.SIZE:
            logger.info(f"{verb} (exceeds size, total={format_mb(deletion.window_size_bytes or 0)}): {name}")
        else:
            logger.info(f"{verb} (exceeds count): {name}")

        if dry_run:
            done.append(deletion)
            continue

        try:
            client.delete_tag(repository, name)
        except DeleteError as e:
            logger.error(f"Error deleting: {name} ({e.reason})")
            failures.append(e)
            continue
        done.append(deletion)

    return done, failures


class TagCleanup:
    """Enforces the retention policy on one repository"""

    def __init__(self, settings: CleanerSettings, client: Optional[DockerHubClient] = None):
        """Initialize a cleanup run

        Args:
            settings: Validated settings for this run
            client: Docker Hub client to use; one is created (and closed after the run) if omitted
        """
        self.settings = settings
        self._owns_client = client is None
        self.client = client or DockerHubClient.from_settings(settings)
        self.logger = get_logger(self.__class__.__name__)

    def run(self) -> RunSummary:
        """Run the cleanup.

        Raises:
            ProtectionLoadError, AuthError, FetchError: Fatal; nothing has been deleted when these are raised
        """
        try:
            return self._run()
        finally:
            if self._owns_client:
                self.client.close()

    def _run(self) -> RunSummary:
        settings = self.settings
        repository = settings.repository

        self.logger.info("=" * 60)
        self.logger.info(f"   {'DRY RUN: ' if settings.dry_run else ''}Cleaning up {repository}")
        self.logger.info("=" * 60)
        self.logger.info(f"Retention policy: {settings.policy.describe()}")

        protected = load_protected_tags(settings.protection_file, settings.protected_tags)

        self.client.authenticate(settings.username, settings.password)
        tags = self.client.list_tags(repository)

        plan = plan_retention(tags, protected, settings.policy)
        self.logger.info(f"Deletion plan for {repository}:\n{format_plan_table(plan)}")

        done, failures = execute_plan(self.client, repository, plan, dry_run=settings.dry_run)

        failed_names = {f.tag for f in failures}
        failed_size = sum(d.tag.size_bytes for d in plan.deletions if d.tag.name in failed_names)

        summary = RunSummary(
            repository=str(repository),
            dry_run=settings.dry_run,
            total_tags=len(tags),
            total_size=sum(t.size_bytes for t in tags),
            deleted=[d.tag.name for d in done],
            deleted_size=sum(d.tag.size_bytes for d in done),
            failures=failures,
            protected_skips=[t.name for t in plan.protected_skips],
            remaining_count=len(plan.survivors) + len(failed_names),
            remaining_size=plan.total_size + failed_size,
        )

        self.log_summary(summary)
        if settings.report_path:
            try:
                save_json(settings.report_path, summary.to_dict(), timestamp=True)
            except OSError as e:
                # Deletions already happened; the run still succeeded
                log_exception(self.logger, f"Failed to save report to {settings.report_path}", e)
        return summary

    def log_summary(self, summary: RunSummary) -> None:
        """Log a standardized deletion summary"""
        mode = "DRY RUN: " if summary.dry_run else ""
        self.logger.info(f"📊 {mode}Deletion Summary:")
        self.logger.info(f"   Total tags: {summary.total_tags} ({sizeof_fmt(summary.total_size)})")
        self.logger.info(
            f"   {'Would delete' if summary.dry_run else 'Successfully deleted'}: "
            f"{len(summary.deleted)} ({sizeof_fmt(summary.deleted_size)})"
        )
        if summary.protected_skips:
            self.logger.info(f"   Skipped (protected): {len(summary.protected_skips)}")
        if summary.failures:
            self.logger.warning(f"   Failed deletions: {len(summary.failures)}")
            for failure in summary.failures:
                self.logger.warning(f"     - {failure.tag}: {failure.reason}")

        self.logger.info(
            f"Cleanup complete. Remaining images: {summary.remaining_count}, "
            f"total size: {format_mb(summary.remaining_size)}"
        )
