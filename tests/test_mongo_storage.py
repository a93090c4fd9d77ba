from types import SimpleNamespace

import pytest
from bson import ObjectId
from pymongo.errors import OperationFailure

from app.core.errors import CollaboratorRejectedError, TransactionIntegrityFailure
from app.repositories.mongo_storage import MongoStorageRepository


class FakeCursor:
    def __init__(self, docs):
        self.docs = docs

    def sort(self, *args):
        return self

    async def to_list(self, length=None):
        return list(self.docs)


class FakeCollection:
    def __init__(self, docs=None, fail_on=None):
        self.docs = list(docs or [])
        self.fail_on = fail_on

    def _check(self, operation):
        if self.fail_on == operation:
            raise OperationFailure(f"{operation} rejected")

    @staticmethod
    def _matches(doc, query):
        for key, expected in query.items():
            if isinstance(expected, dict) and "$in" in expected:
                if doc.get(key) not in expected["$in"]:
                    return False
            elif doc.get(key) != expected:
                return False
        return True

    async def insert_one(self, doc, session=None):
        self._check("insert_one")
        self.docs.append(doc)

    async def insert_many(self, docs, session=None):
        self._check("insert_many")
        self.docs.extend(docs)

    def find(self, query, projection=None, session=None):
        return FakeCursor([d for d in self.docs if self._matches(d, query)])

    async def delete_many(self, query, session=None):
        self.docs = [d for d in self.docs if not self._matches(d, query)]

    async def delete_one(self, query, session=None):
        before = len(self.docs)
        for doc in self.docs:
            if self._matches(doc, query):
                self.docs.remove(doc)
                break
        return SimpleNamespace(deleted_count=before - len(self.docs))


def _repository(links=None, rival_ids=None):
    rivals = [{"_id": oid, "name": f"Rival {i}"} for i, oid in enumerate(rival_ids or [])]
    database = SimpleNamespace(
        users=FakeCollection(),
        competitors=FakeCollection(rivals),
        projects=FakeCollection(),
        project_competitors=links or FakeCollection(),
        products=FakeCollection(),
    )
    return MongoStorageRepository(database, use_transactions=False), database


@pytest.mark.asyncio
async def test_project_is_created_with_links():
    rival_ids = [ObjectId(), ObjectId()]
    repository, database = _repository(rival_ids=rival_ids)

    project = await repository.create_project("Acme Watch", str(ObjectId()), [str(r) for r in rival_ids], {})

    assert len(database.projects.docs) == 1
    assert {str(c) for c in project.competitor_ids} == {str(r) for r in rival_ids}


@pytest.mark.asyncio
async def test_link_write_failure_removes_project_without_transactions():
    rival_ids = [ObjectId(), ObjectId()]
    repository, database = _repository(links=FakeCollection(fail_on="insert_many"), rival_ids=rival_ids)

    with pytest.raises(CollaboratorRejectedError):
        await repository.create_project("Acme Watch", str(ObjectId()), [str(r) for r in rival_ids], {})

    assert database.projects.docs == []


@pytest.mark.asyncio
async def test_missing_competitor_removes_project_and_links():
    rival_ids = [ObjectId()]
    repository, database = _repository(rival_ids=rival_ids)

    with pytest.raises(TransactionIntegrityFailure):
        await repository.create_project("Acme Watch", str(ObjectId()), [str(rival_ids[0]), str(ObjectId())], {})

    assert database.projects.docs == []
    assert database.project_competitors.docs == []


@pytest.mark.asyncio
async def test_delete_project_reports_missing_project():
    repository, _ = _repository()

    assert await repository.delete_project(str(ObjectId())) is False
