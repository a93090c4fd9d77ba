"""
Project provisioning pipeline, run once when the user confirms the collected requirements.

Stages before the project commit (prerequisites, owner, competitors, project transaction)
either all succeed or abort with a ProvisioningError and leave nothing behind. Once the
project is committed the pipeline always returns a ProvisioningResult; product, initial
report and schedule failures are recorded on it as soft failures.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Set

from ..agent.extractor import CADENCES, normalize_cadence
from ..core.config import settings
from ..core.correlation import generate_correlation_id
from ..core.errors import (
    CollaboratorRejectedError,
    CollaboratorUnavailableError,
    PrerequisiteFailure,
    ProvisioningError,
    SoftProvisioningFailure,
    TransactionIntegrityFailure,
)
from ..core.retry import EscalationMode, RetryPolicy, retry_with_backoff
from ..models.project import CompetitorInDB, ProductInDB, ProjectInDB
from ..models.provisioning import (
    InitialReportConfig,
    ProvisioningEvent,
    ProvisioningResult,
    ReportOutcome,
    ScheduleOutcome,
)
from ..models.requirements import RequirementsRecord
from ..repositories.base import ReportRepository, StorageRepository
from .status_probe import ExternalStatusProbe

logger = logging.getLogger(__name__)

MIN_COMPETITORS_FOR_VALIDATION = 3
COMPLETE_COMPETITOR_RATIO = 0.5
BUDGET_EXHAUSTED = "Provisioning time budget exhausted"


class ProjectProvisioner:
    """Turns a validated requirements record into a project and its follow-up work."""

    def __init__(
        self,
        storage: StorageRepository,
        reports: ReportRepository,
        status_probe: Optional[ExternalStatusProbe] = None,
        retry_policy: Optional[RetryPolicy] = None,
        timeout_seconds: Optional[float] = None,
        report_template: Optional[str] = None,
    ):
        self.storage = storage
        self.reports = reports
        self.status_probe = status_probe
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=settings.REPORT_MAX_RETRIES,
            base_delay_seconds=settings.REPORT_BACKOFF_BASE_SECONDS,
            max_delay_seconds=settings.REPORT_BACKOFF_MAX_SECONDS,
            escalation=EscalationMode.LENIENT,
        )
        self.timeout_seconds = settings.PROVISIONING_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        self.report_template = report_template or settings.REPORT_TEMPLATE
        self._background: Set[asyncio.Task] = set()

    def _event(
        self,
        events: List[ProvisioningEvent],
        name: str,
        correlation_id: str,
        **data: Any,
    ) -> None:
        event = ProvisioningEvent(name=name, correlation_id=correlation_id, data=data)
        events.append(event)
        logger.info(
            f"Provisioning event {name} ({correlation_id})",
            extra={"event": name, "correlation_id": correlation_id, "event_data": data},
        )

    def _report_config(self) -> InitialReportConfig:
        return InitialReportConfig(
            template=self.report_template,
            max_retries=self.retry_policy.max_retries,
        )

    async def provision(
        self,
        record: RequirementsRecord,
        session_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> ProvisioningResult:
        """Run the whole pipeline. Raises ProvisioningError only before the project commit."""
        correlation_id = correlation_id or generate_correlation_id()
        started = time.monotonic()
        events: List[ProvisioningEvent] = []
        warnings: List[str] = []

        cached = self.status_probe.get_cached_status() if self.status_probe else None
        dependency_status = cached.state if cached else None
        if cached and not cached.can_proceed_with_reports:
            warnings.append(cached.message)

        logger.info(f"Provisioning project {record.value_of('project_name')!r} ({correlation_id})")
        report_config = self._report_config()
        deadline = started + self.timeout_seconds
        try:
            owner_id, competitors, project = await self._within_budget(
                self._commit_stages(record, session_id, correlation_id, report_config, warnings),
                deadline,
            )
        except asyncio.TimeoutError:
            error = PrerequisiteFailure(
                f"Project creation did not finish within {self.timeout_seconds}s",
                stage="timeout",
                category="timeout",
                correlation_id=correlation_id,
            )
            self._abort(events, error)
            raise error
        except ProvisioningError as e:
            e.correlation_id = correlation_id
            self._abort(events, e)
            raise

        project_id = str(project.id)
        self._event(events, "project_created", correlation_id,
                    project_id=project_id, competitor_count=len(project.competitor_ids))

        result = ProvisioningResult(
            correlation_id=correlation_id,
            project_id=project_id,
            project_name=project.name,
            owner_id=owner_id,
            competitor_count=len(project.competitor_ids),
            competitor_data_complete=self._competitors_complete(competitors),
            dependency_status=dependency_status,
            warnings=warnings,
        )

        try:
            await self._within_budget(self._create_product(record, project, result, events), deadline)
        except asyncio.TimeoutError:
            result.product_error = BUDGET_EXHAUSTED
        if result.product_error:
            self._soft_failure(result, "product", "product_creation", result.product_error)

        try:
            result.initial_report = await self._within_budget(
                self.generate_initial_report(project_id, has_competitors=bool(project.competitor_ids), config=report_config),
                deadline,
            )
        except asyncio.TimeoutError:
            result.initial_report = ReportOutcome(generated=False, error=BUDGET_EXHAUSTED)
        if result.initial_report.generated:
            self._event(events, "initial_report_generated", correlation_id,
                        project_id=project_id, report_id=result.initial_report.report_id,
                        attempts=result.initial_report.attempts)
        elif not result.initial_report.skipped:
            self._event(events, "initial_report_failed", correlation_id,
                        project_id=project_id, error=result.initial_report.error,
                        attempts=result.initial_report.attempts)
            self._soft_failure(result, "initial_report", "report_generation", result.initial_report.error)

        try:
            result.schedule = await self._within_budget(
                self.schedule_reports(project_id, record.report_frequency, report_config),
                deadline,
            )
        except asyncio.TimeoutError:
            result.schedule = ScheduleOutcome(scheduled=False, error=BUDGET_EXHAUSTED)
        if result.schedule.scheduled:
            self._event(events, "schedule_registered", correlation_id,
                        project_id=project_id, schedule_id=result.schedule.schedule_id)
        elif not result.schedule.skipped:
            self._event(events, "schedule_failed", correlation_id,
                        project_id=project_id, error=result.schedule.error)
            self._soft_failure(result, "schedule", "schedule_registration", result.schedule.error)

        result.events = events
        result.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"Provisioned project {project_id} in {result.duration_ms}ms "
            f"(soft failures: {result.soft_failures or 'none'})"
        )
        return result

    @staticmethod
    async def _within_budget(stage, deadline: float):
        """Await a stage with whatever is left of the pipeline time budget."""
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            stage.close()
            raise asyncio.TimeoutError()
        return await asyncio.wait_for(stage, timeout=remaining)

    def _soft_failure(self, result: ProvisioningResult, stage: str, category: str, message: Optional[str]) -> None:
        failure = SoftProvisioningFailure(
            message or "unknown error", stage=stage, category=category, correlation_id=result.correlation_id
        )
        result.failures.append(failure)
        logger.warning(
            f"Soft failure at {stage} [{category}, severity={failure.severity}] ({result.correlation_id}): {failure}"
        )

    def _abort(self, events: List[ProvisioningEvent], error: ProvisioningError) -> None:
        self._event(events, "provisioning_aborted", error.correlation_id or "",
                    stage=error.stage, category=error.category, error=str(error))
        logger.error(
            f"Provisioning aborted at {error.stage} [{error.category}, severity={error.severity}] "
            f"({error.correlation_id}): {error}"
        )

    async def _commit_stages(
        self,
        record: RequirementsRecord,
        session_id: Optional[str],
        correlation_id: str,
        report_config: InitialReportConfig,
        warnings: List[str],
    ):
        await self._check_prerequisites()
        owner_id = await self._resolve_owner(record.value_of("user_email"))
        competitors = await self._resolve_competitors(warnings)
        competitor_ids = [str(c.id) for c in competitors]

        metadata: Dict[str, Any] = {
            "auto_assigned_competitors": True,
            "assigned_competitor_count": len(competitor_ids),
            "created_via_chat": True,
            "chat_session_id": session_id,
            "correlation_id": correlation_id,
            "report_frequency": normalize_cadence(record.report_frequency),
            "initial_report_config": report_config.model_dump(),
            "requirements": record.model_dump(exclude_none=True),
        }
        try:
            project = await self.storage.create_project(
                record.value_of("project_name"), owner_id, competitor_ids, metadata
            )
        except TransactionIntegrityFailure:
            raise
        except (CollaboratorUnavailableError, CollaboratorRejectedError) as e:
            category = "database_connection" if isinstance(e, CollaboratorUnavailableError) else "project_transaction"
            raise ProvisioningError(f"Project could not be created: {e}", stage="project_creation", category=category)

        linked = {str(c) for c in project.competitor_ids}
        if linked != set(competitor_ids):
            logger.critical(
                f"Project {project.id} links {len(linked)} competitors, expected {len(competitor_ids)}"
            )
            await self._rollback_project(str(project.id))
            raise TransactionIntegrityFailure(
                "Created competitor associations do not match the request",
                stage="project_transaction",
                category="project_transaction",
            )
        return owner_id, competitors, project

    async def _rollback_project(self, project_id: str) -> None:
        try:
            await self.storage.delete_project(project_id)
            logger.info(f"Rolled back project {project_id}")
        except (CollaboratorUnavailableError, CollaboratorRejectedError) as e:
            logger.critical(f"Rollback of project {project_id} failed: {e}")

    async def _check_prerequisites(self) -> None:
        if not await self._available(self.storage, "storage"):
            raise PrerequisiteFailure(
                "The project database is not reachable",
                stage="prerequisites",
                category="database_connection",
            )
        if not await self._available(self.reports, "report service"):
            raise PrerequisiteFailure(
                "The report service is not available",
                stage="prerequisites",
                category="service_dependency",
            )

    @staticmethod
    async def _available(collaborator: Any, label: str) -> bool:
        try:
            return bool(await collaborator.check_availability())
        except (CollaboratorUnavailableError, CollaboratorRejectedError, OSError) as e:
            logger.warning(f"{label} availability check failed: {e}")
            return False

    async def _resolve_owner(self, email: str) -> str:
        try:
            owner = await self.storage.find_owner(email)
            if owner is None:
                owner = await self.storage.create_owner(email)
        except (CollaboratorUnavailableError, CollaboratorRejectedError) as e:
            raise PrerequisiteFailure(
                f"Could not set up the account for {email}: {e}",
                stage="owner_resolution",
                category="user_setup",
            )
        return str(owner.id)

    async def _resolve_competitors(self, warnings: List[str]) -> List[CompetitorInDB]:
        try:
            competitors = await self.storage.list_competitors()
        except (CollaboratorUnavailableError, CollaboratorRejectedError) as e:
            raise PrerequisiteFailure(
                f"Competitors could not be loaded: {e}",
                stage="competitor_resolution",
                category="competitor_validation",
            )
        if not competitors:
            raise PrerequisiteFailure(
                "No competitors are available to assign to the project",
                stage="competitor_resolution",
                category="competitor_validation",
            )

        complete = sum(1 for c in competitors if c.is_complete)
        if complete < len(competitors) * COMPLETE_COMPETITOR_RATIO:
            message = f"Only {complete} of {len(competitors)} competitors have complete data"
            logger.warning(f"Competitor data quality concern: {message}")
            warnings.append(message)
        validation_passed = complete >= min(MIN_COMPETITORS_FOR_VALIDATION, len(competitors))
        logger.info(
            f"Resolved {len(competitors)} competitors ({complete} complete, validation_passed={validation_passed})"
        )
        return competitors

    @staticmethod
    def _competitors_complete(competitors: List[CompetitorInDB]) -> bool:
        complete = sum(1 for c in competitors if c.is_complete)
        return complete >= len(competitors) * COMPLETE_COMPETITOR_RATIO

    async def _create_product(
        self,
        record: RequirementsRecord,
        project: ProjectInDB,
        result: ProvisioningResult,
        events: List[ProvisioningEvent],
    ) -> None:
        if not (record.value_of("product_name") and record.value_of("product_url")):
            return
        fields = {
            "project_id": project.id,
            "name": record.value_of("product_name"),
            "website": record.value_of("product_url"),
            "industry": record.value_of("industry") or None,
            "positioning": record.value_of("positioning") or None,
            "customer_data": record.value_of("customer_data") or None,
            "user_problem": record.value_of("user_problem") or None,
        }
        try:
            product = await self.storage.create_product(fields)
        except Exception as e:
            result.product_error = str(e) or type(e).__name__
            logger.warning(f"Product creation failed for project {project.id}: {result.product_error}")
            return
        result.product_created = True
        result.product_id = str(product.id)
        self._event(events, "product_created", result.correlation_id,
                    project_id=str(project.id), product_id=result.product_id)

        task = asyncio.create_task(self._request_snapshot(product))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _request_snapshot(self, product: ProductInDB) -> None:
        try:
            job_id = await self.reports.request_product_snapshot(product)
            logger.info(f"Requested snapshot {job_id} for product {product.id}")
        except Exception as e:
            logger.warning(f"Snapshot request for product {product.id} failed: {e}")

    async def generate_initial_report(
        self,
        project_id: str,
        has_competitors: bool = True,
        config: Optional[InitialReportConfig] = None,
    ) -> ReportOutcome:
        """Attempted regardless of the probe's cached state; retries escalate to lenient mode."""
        if not has_competitors:
            return ReportOutcome(skipped=True)
        base = config or self._report_config()

        async def attempt(number: int, escalated: bool) -> str:
            config = base.escalated() if escalated else base
            try:
                return await asyncio.wait_for(
                    self.reports.generate_initial_report(project_id, config),
                    timeout=config.timeout_seconds,
                )
            except asyncio.TimeoutError:
                raise CollaboratorUnavailableError(
                    f"Report generation did not answer within {config.timeout_seconds}s"
                )

        outcome = await retry_with_backoff(attempt, self.retry_policy, operation_name=f"initial report for {project_id}")
        if outcome.succeeded:
            return ReportOutcome(generated=True, report_id=outcome.value, attempts=outcome.attempts)
        return ReportOutcome(generated=False, error=outcome.error, attempts=outcome.attempts)

    async def schedule_reports(
        self,
        project_id: str,
        cadence: Optional[str],
        config: Optional[InitialReportConfig] = None,
    ) -> ScheduleOutcome:
        normalized = (normalize_cadence(cadence) or "").lower()
        if normalized not in CADENCES:
            return ScheduleOutcome(skipped=True)
        options = {"template": (config or self._report_config()).template}
        try:
            info = await self.reports.schedule_recurring_reports(project_id, normalized, options)
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.warning(f"Schedule registration failed for project {project_id}: {error}")
            return ScheduleOutcome(scheduled=False, error=error)
        return ScheduleOutcome(scheduled=True, schedule_id=info.schedule_id, next_run_time=info.next_run_time)
