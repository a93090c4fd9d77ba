import pytest

from app.core.config import settings
from app.core.errors import PrerequisiteFailure
from app.models.provisioning import ProvisioningResult, ReportOutcome, ScheduleOutcome
from app.models.session import ConversationSession, ConversationStep
from app.services.conversation_service import ConversationService


NARRATIVE = "\n".join([
    "Hi! My email is jane.doe@acme.io and I'd like weekly reports.",
    "The project should be called \"Acme Competitive Watch\".",
    "Our product is Acme Analytics, website https://acmeanalytics.com.",
    "We operate in the software industry.",
    "Our positioning is the fastest self-serve analytics platform for lean product teams.",
    "Our customers are B2B SaaS startups with 10 to 200 employees and small data teams.",
    "The main problem we solve is that product teams wait weeks for analysts to answer simple questions.",
])


class InMemorySessions:
    def __init__(self):
        self.snapshots = {}
        self.saves = 0

    async def load(self, session_id):
        snapshot = self.snapshots.get(session_id)
        return ConversationSession.from_snapshot(snapshot) if snapshot else None

    async def load_or_create(self, session_id):
        return await self.load(session_id) or ConversationSession(session_id=session_id)

    async def save(self, session):
        self.saves += 1
        self.snapshots[session.session_id] = session.to_snapshot()

    async def delete(self, session_id):
        return self.snapshots.pop(session_id, None) is not None


class DummyProvisioner:
    def __init__(self, error=None):
        self.error = error
        self.records = []
        self.retried = []

    async def provision(self, record, session_id=None, correlation_id=None):
        self.records.append(record)
        if self.error:
            self.error.correlation_id = correlation_id
            raise self.error
        return ProvisioningResult(
            correlation_id=correlation_id,
            project_id="665f1c2e9b1e8a0012345678",
            project_name=record.project_name,
            owner_id="665f1c2e9b1e8a0012345679",
            competitor_count=3,
            initial_report=ReportOutcome(generated=True, report_id="report-1", attempts=1),
            schedule=ScheduleOutcome(skipped=True),
        )

    async def generate_initial_report(self, project_id, has_competitors=True, config=None):
        self.retried.append(project_id)
        return ReportOutcome(generated=True, report_id="report-2", attempts=1)

    async def schedule_reports(self, project_id, cadence, config=None):
        return ScheduleOutcome(skipped=True)


@pytest.mark.asyncio
async def test_confirmed_session_is_provisioned_and_saved():
    sessions, provisioner = InMemorySessions(), DummyProvisioner()
    service = ConversationService(sessions, provisioner)

    first = await service.submit_message("s-1", NARRATIVE)
    assert first["next_step"] == "confirming"
    assert first["expected_input_kind"] == "confirmation"

    second = await service.submit_message("s-1", "yes")

    assert second["next_step"] == "complete"
    assert second["project_id"] == "665f1c2e9b1e8a0012345678"
    assert "Project created successfully" in second["assistant_text"]
    assert provisioner.records[0].product_url == "https://acmeanalytics.com"

    stored = await sessions.load("s-1")
    assert stored.project_id == "665f1c2e9b1e8a0012345678"
    assert stored.last_correlation_id.startswith("COR-")
    assert stored.messages[-1].content == second["assistant_text"]


@pytest.mark.asyncio
async def test_provisioning_failure_returns_to_confirmation():
    error = PrerequisiteFailure("No competitors are available", stage="competitor_resolution",
                                category="competitor_validation")
    sessions = InMemorySessions()
    service = ConversationService(sessions, DummyProvisioner(error=error))

    await service.submit_message("s-2", NARRATIVE)
    result = await service.submit_message("s-2", "yes")

    assert result["next_step"] == "confirming"
    assert result["project_id"] is None
    assert "Project creation failed" in result["assistant_text"]
    assert "No competitors are available" in result["assistant_text"]

    stored = await sessions.load("s-2")
    assert stored.step == ConversationStep.CONFIRMING
    assert stored.collected_data.project_name == "Acme Competitive Watch"


@pytest.mark.asyncio
async def test_unexpected_provisioning_error_gets_reference():
    sessions = InMemorySessions()
    service = ConversationService(sessions, DummyProvisioner(error=RuntimeError("driver crashed")))

    await service.submit_message("s-3", NARRATIVE)
    result = await service.submit_message("s-3", "yes")

    assert result["next_step"] == "confirming"
    assert "ERR-" in result["assistant_text"]


@pytest.mark.asyncio
async def test_report_retry_after_completion():
    sessions, provisioner = InMemorySessions(), DummyProvisioner()
    service = ConversationService(sessions, provisioner)
    await service.submit_message("s-4", NARRATIVE)
    await service.submit_message("s-4", "yes")

    result = await service.submit_message("s-4", "retry")

    assert provisioner.retried == ["665f1c2e9b1e8a0012345678"]
    assert "report-2" in result["assistant_text"]


@pytest.mark.asyncio
async def test_over_long_message_is_rejected():
    service = ConversationService(InMemorySessions(), DummyProvisioner())

    with pytest.raises(ValueError):
        await service.submit_message("s-5", "x" * (settings.MAX_INPUT_CHARS + 1))


@pytest.mark.asyncio
async def test_get_and_delete_session():
    sessions = InMemorySessions()
    service = ConversationService(sessions, DummyProvisioner())
    await service.submit_message("s-6", "")

    assert (await service.get_session("s-6")).session_id == "s-6"
    assert await service.delete_session("s-6")
    assert await service.get_session("s-6") is None
