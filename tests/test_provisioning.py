import asyncio
from datetime import datetime

import pytest
from bson import ObjectId

from app.core.errors import (
    CollaboratorUnavailableError,
    PrerequisiteFailure,
    ProvisioningError,
    TransactionIntegrityFailure,
)
from app.core.retry import EscalationMode, RetryPolicy
from app.models.project import CompetitorInDB, ProductInDB, ProjectInDB
from app.models.provisioning import InitialReportConfig, ScheduleInfo
from app.models.requirements import RequirementsRecord
from app.models.status import DependencyStatus
from app.models.user import UserInDB
from app.repositories.base import ReportRepository, StorageRepository
from app.services.provisioning_service import ProjectProvisioner


def _record(**overrides) -> RequirementsRecord:
    data = dict(
        user_email="jane.doe@acme.io",
        report_frequency="Weekly",
        project_name="Acme Competitive Watch",
        product_name="Acme Analytics",
        product_url="https://acmeanalytics.com",
        industry="Software",
        positioning="The fastest self-serve analytics platform for lean product teams",
        customer_data="B2B SaaS startups with 10 to 200 employees and small data teams",
        user_problem="Product teams wait weeks for analysts to answer simple questions",
    )
    data.update(overrides)
    return RequirementsRecord(**data)


class FakeStorage(StorageRepository):
    def __init__(self, competitors=None, available=True, drop_links=0, product_error=None):
        self.available = available
        self.competitors = competitors if competitors is not None else [
            CompetitorInDB(name=f"Rival {i}", website=f"https://rival{i}.com") for i in range(3)
        ]
        self.drop_links = drop_links
        self.product_error = product_error
        self.owners = {}
        self.projects = []
        self.products = []
        self.create_project_calls = 0
        self.deleted_projects = []

    async def check_availability(self):
        return self.available

    async def find_owner(self, email):
        return self.owners.get(email)

    async def create_owner(self, email):
        owner = UserInDB(email=email)
        self.owners[email] = owner
        return owner

    async def list_competitors(self):
        return list(self.competitors)

    async def create_project(self, name, owner_id, competitor_ids, metadata):
        self.create_project_calls += 1
        linked = competitor_ids[: len(competitor_ids) - self.drop_links]
        project = ProjectInDB(
            name=name,
            user_id=owner_id,
            competitor_ids=[ObjectId(c) for c in linked],
            parameters=metadata,
        )
        self.projects.append(project)
        return project

    async def delete_project(self, project_id):
        self.deleted_projects.append(project_id)
        before = len(self.projects)
        self.projects = [p for p in self.projects if str(p.id) != project_id]
        return len(self.projects) < before

    async def create_product(self, fields):
        if self.product_error:
            raise self.product_error
        product = ProductInDB(**fields)
        self.products.append(product)
        return product


class FakeReports(ReportRepository):
    def __init__(self, available=True, report_failures=0, schedule_error=None):
        self.available = available
        self.report_failures = report_failures
        self.schedule_error = schedule_error
        self.report_configs = []
        self.schedules = []
        self.snapshots = []

    async def check_availability(self):
        return self.available

    async def generate_initial_report(self, project_id, config):
        self.report_configs.append(config)
        if len(self.report_configs) <= self.report_failures:
            raise RuntimeError("report worker unavailable")
        return "report-1"

    async def schedule_recurring_reports(self, project_id, cadence, config):
        if self.schedule_error:
            raise self.schedule_error
        self.schedules.append((project_id, cadence))
        return ScheduleInfo(schedule_id="schedule-1", cadence=cadence, next_run_time=datetime(2030, 1, 8, 9))

    async def request_product_snapshot(self, product):
        self.snapshots.append(product.id)
        return "snapshot-1"


class DummyProbe:
    def __init__(self, status):
        self.status = status

    def get_cached_status(self):
        return self.status


def _provisioner(storage, reports, **kwargs) -> ProjectProvisioner:
    policy = RetryPolicy(max_retries=2, base_delay_seconds=0, escalation=EscalationMode.LENIENT)
    return ProjectProvisioner(storage, reports, retry_policy=policy, timeout_seconds=5, **kwargs)


@pytest.mark.asyncio
async def test_full_pipeline_creates_project_product_report_and_schedule():
    storage, reports = FakeStorage(), FakeReports()

    result = await _provisioner(storage, reports).provision(_record(), session_id="s-1", correlation_id="COR-1-abc")

    assert result.project_created
    assert result.correlation_id == "COR-1-abc"
    assert result.competitor_count == 3
    assert result.product_created
    assert result.report_generated
    assert result.schedule.scheduled
    assert result.soft_failures == []
    assert reports.schedules == [(result.project_id, "weekly")]
    assert [e.name for e in result.events] == [
        "project_created",
        "product_created",
        "initial_report_generated",
        "schedule_registered",
    ]
    project = storage.projects[0]
    assert project.parameters["chat_session_id"] == "s-1"
    assert project.parameters["report_frequency"] == "Weekly"


@pytest.mark.asyncio
async def test_existing_owner_is_reused():
    storage = FakeStorage()
    owner = await storage.create_owner("jane.doe@acme.io")

    result = await _provisioner(storage, FakeReports()).provision(_record())

    assert result.owner_id == str(owner.id)
    assert len(storage.owners) == 1


@pytest.mark.asyncio
async def test_empty_competitor_pool_aborts_before_project_creation():
    storage = FakeStorage(competitors=[])

    with pytest.raises(PrerequisiteFailure) as exc:
        await _provisioner(storage, FakeReports()).provision(_record(), correlation_id="COR-2-abc")

    assert exc.value.category == "competitor_validation"
    assert exc.value.correlation_id == "COR-2-abc"
    assert storage.create_project_calls == 0


@pytest.mark.asyncio
async def test_unavailable_storage_is_a_prerequisite_failure():
    storage = FakeStorage(available=False)

    with pytest.raises(PrerequisiteFailure) as exc:
        await _provisioner(storage, FakeReports()).provision(_record())

    assert exc.value.category == "database_connection"
    assert storage.create_project_calls == 0


@pytest.mark.asyncio
async def test_unavailable_report_service_is_a_prerequisite_failure():
    with pytest.raises(PrerequisiteFailure) as exc:
        await _provisioner(FakeStorage(), FakeReports(available=False)).provision(_record())

    assert exc.value.category == "service_dependency"


@pytest.mark.asyncio
async def test_owner_lookup_failure_is_user_setup_error():
    storage = FakeStorage()

    async def broken_find(email):
        raise CollaboratorUnavailableError("connection refused")

    storage.find_owner = broken_find

    with pytest.raises(ProvisioningError) as exc:
        await _provisioner(storage, FakeReports()).provision(_record())

    assert exc.value.category == "user_setup"


@pytest.mark.asyncio
async def test_association_mismatch_aborts_with_integrity_failure():
    storage = FakeStorage(drop_links=1)

    with pytest.raises(TransactionIntegrityFailure) as exc:
        await _provisioner(storage, FakeReports()).provision(_record())

    assert exc.value.severity == "critical"
    assert storage.projects == []
    assert len(storage.deleted_projects) == 1


@pytest.mark.asyncio
async def test_report_failure_is_soft_after_three_attempts():
    reports = FakeReports(report_failures=10)

    result = await _provisioner(FakeStorage(), reports).provision(_record())

    assert result.project_created
    assert not result.report_generated
    assert result.initial_report.attempts == 3
    assert "initial_report" in result.soft_failures
    # Retries escalate to the lenient report configuration
    assert not reports.report_configs[0].fallback_to_partial_data
    assert reports.report_configs[1].fallback_to_partial_data
    assert reports.report_configs[2].force_generation


@pytest.mark.asyncio
async def test_report_succeeds_on_retry():
    result = await _provisioner(FakeStorage(), FakeReports(report_failures=1)).provision(_record())

    assert result.report_generated
    assert result.initial_report.attempts == 2


@pytest.mark.asyncio
async def test_product_and_schedule_failures_are_soft():
    storage = FakeStorage(product_error=RuntimeError("duplicate product"))
    reports = FakeReports(schedule_error=RuntimeError("scheduler down"))

    result = await _provisioner(storage, reports).provision(_record())

    assert result.project_created
    assert result.product_error == "duplicate product"
    assert set(result.soft_failures) == {"product", "schedule"}
    assert all(f.severity == "medium" for f in result.failures)
    assert {f.category for f in result.failures} == {"product_creation", "schedule_registration"}
    assert "failures" not in result.model_dump()


@pytest.mark.asyncio
async def test_unknown_cadence_skips_schedule():
    reports = FakeReports()

    result = await _provisioner(FakeStorage(), reports).provision(_record(report_frequency="Hourly"))

    assert result.schedule.skipped
    assert reports.schedules == []
    assert "schedule" not in result.soft_failures


@pytest.mark.asyncio
async def test_unhealthy_dependency_still_attempts_report():
    probe = DummyProbe(DependencyStatus(available=False, state="unavailable", message="AI services are unavailable"))
    reports = FakeReports()

    result = await _provisioner(FakeStorage(), reports, status_probe=probe).provision(_record())

    assert result.report_generated
    assert result.dependency_status == "unavailable"
    assert "AI services are unavailable" in result.warnings


@pytest.mark.asyncio
async def test_incomplete_competitor_data_adds_warning():
    competitors = [CompetitorInDB(name="Rival"), CompetitorInDB(name="Other"), CompetitorInDB(name="Third", website="https://third.com")]

    result = await _provisioner(FakeStorage(competitors=competitors), FakeReports()).provision(_record())

    assert not result.competitor_data_complete
    assert any("complete data" in w for w in result.warnings)


@pytest.mark.asyncio
async def test_slow_pipeline_times_out_as_prerequisite_failure():
    storage = FakeStorage()

    async def slow_list():
        await asyncio.sleep(1)
        return []

    storage.list_competitors = slow_list
    provisioner = ProjectProvisioner(storage, FakeReports(), timeout_seconds=0.01)

    with pytest.raises(PrerequisiteFailure) as exc:
        await provisioner.provision(_record())

    assert exc.value.category == "timeout"
    assert storage.create_project_calls == 0


class HangingReports(FakeReports):
    def __init__(self, hang_attempts=None, **kwargs):
        super().__init__(**kwargs)
        self.hang_attempts = hang_attempts

    async def generate_initial_report(self, project_id, config):
        self.report_configs.append(config)
        if self.hang_attempts is None or len(self.report_configs) <= self.hang_attempts:
            await asyncio.sleep(3600)
        return "report-1"


@pytest.mark.asyncio
async def test_hung_report_is_bounded_by_pipeline_budget():
    storage = FakeStorage()
    policy = RetryPolicy(max_retries=2, base_delay_seconds=0)
    provisioner = ProjectProvisioner(storage, HangingReports(), retry_policy=policy, timeout_seconds=0.5)

    result = await asyncio.wait_for(provisioner.provision(_record()), timeout=3)

    assert result.project_created
    assert not result.report_generated
    assert result.initial_report.error == "Provisioning time budget exhausted"
    assert "initial_report" in result.soft_failures
    assert "schedule" in result.soft_failures
    assert len(storage.projects) == 1


@pytest.mark.asyncio
async def test_each_report_attempt_has_its_own_timeout():
    reports = HangingReports(hang_attempts=1)
    provisioner = _provisioner(FakeStorage(), reports)

    outcome = await provisioner.generate_initial_report(
        "project-1", config=InitialReportConfig(timeout_seconds=0.05)
    )

    assert outcome.generated
    assert outcome.attempts == 2
