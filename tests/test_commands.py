import pytest

from app.agent.commands import is_migration_request, is_support_request


@pytest.mark.parametrize("text", ["migrate", "I'd like to migrate", "please migrate", "switch to the new flow"])
def test_migration_commands(text):
    assert is_migration_request(text)


@pytest.mark.parametrize("text", [
    "IT teams who need to migrate legacy databases to the cloud",
    "Companies planning to switch to the new ERP",
])
def test_answers_mentioning_migration_are_not_commands(text):
    assert not is_migration_request(text)


@pytest.mark.parametrize("text", ["support", "contact support", "need support", "talk to a human", "contact us"])
def test_support_commands(text):
    assert is_support_request(text)


def test_answers_mentioning_contact_are_not_support_requests():
    assert not is_support_request("Sales teams who contact hundreds of leads a week")
    assert not is_support_request("Contact management for small agencies")
