"""
MongoDB implementation of the StorageRepository.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    NetworkTimeout,
    PyMongoError,
    ServerSelectionTimeoutError,
)

from app.core.config import settings
from app.core.errors import (
    CollaboratorRejectedError,
    CollaboratorUnavailableError,
    TransactionIntegrityFailure,
)
from app.models.project import CompetitorInDB, ProductInDB, ProjectInDB
from app.models.user import UserInDB
from app.repositories.base import StorageRepository

logger = logging.getLogger(__name__)


def translate_mongo_error(e: PyMongoError, operation: str) -> Exception:
    """Map a driver error to the collaborator taxonomy."""
    if isinstance(e, (ConnectionFailure, ServerSelectionTimeoutError, NetworkTimeout)):
        return CollaboratorUnavailableError(f"{operation}: database unavailable: {e}")
    if isinstance(e, DuplicateKeyError):
        return CollaboratorRejectedError(f"{operation}: duplicate record: {e}")
    return CollaboratorRejectedError(f"{operation}: {e}")


class MongoStorageRepository(StorageRepository):
    """Repository for owners, competitors, projects and products."""

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        client: Optional[AsyncIOMotorClient] = None,
        use_transactions: Optional[bool] = None,
    ):
        self.database = database
        self.client = client
        self.use_transactions = settings.MONGODB_USE_TRANSACTIONS if use_transactions is None else use_transactions
        self.users = database.users
        self.competitors = database.competitors
        self.projects = database.projects
        self.project_competitors = database.project_competitors
        self.products = database.products

    async def create_indexes(self):
        """Create database indexes for optimal query performance."""
        await self.users.create_index("email", unique=True)
        await self.competitors.create_index([("name", ASCENDING)])
        await self.projects.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
        await self.project_competitors.create_index(
            [("project_id", ASCENDING), ("competitor_id", ASCENDING)], unique=True
        )
        await self.products.create_index("project_id", unique=True)

    async def check_availability(self) -> bool:
        try:
            await self.database.command("ping")
            return True
        except PyMongoError as e:
            logger.warning(f"Storage availability check failed: {e}")
            return False

    async def find_owner(self, email: str) -> Optional[UserInDB]:
        try:
            doc = await self.users.find_one({"email": email.strip().lower()})
        except PyMongoError as e:
            logger.error(f"Error finding owner {email}: {e}")
            raise translate_mongo_error(e, "find_owner") from e
        return UserInDB(**doc) if doc else None

    async def create_owner(self, email: str) -> UserInDB:
        address = email.strip().lower()
        user = UserInDB(
            email=address,
            name=address.split("@", 1)[0],
            created_via="chat",
        )
        doc = user.model_dump(by_alias=True)
        doc["email"] = str(user.email)
        try:
            await self.users.insert_one(doc)
        except DuplicateKeyError:
            # Created concurrently by another session
            existing = await self.find_owner(address)
            if existing:
                return existing
            raise CollaboratorRejectedError(f"create_owner: could not create owner {address}")
        except PyMongoError as e:
            logger.error(f"Error creating owner {address}: {e}")
            raise translate_mongo_error(e, "create_owner") from e
        logger.info(f"Created owner {user.id} for {address}")
        return user

    async def list_competitors(self) -> List[CompetitorInDB]:
        try:
            docs = await self.competitors.find({}).sort("name", ASCENDING).to_list(length=None)
        except PyMongoError as e:
            logger.error(f"Error listing competitors: {e}")
            raise translate_mongo_error(e, "list_competitors") from e
        return [CompetitorInDB(**doc) for doc in docs]

    async def create_project(
        self,
        name: str,
        owner_id: str,
        competitor_ids: List[str],
        metadata: Dict[str, Any],
    ) -> ProjectInDB:
        """Insert the project and its competitor links; verify the links before commit."""
        project = ProjectInDB(
            name=name,
            user_id=owner_id,
            status="active",
            priority="high",
            parameters=metadata,
            tags=["chat-created"],
        )
        requested = {str(c) for c in competitor_ids}
        try:
            if self.use_transactions and self.client is not None:
                async with await self.client.start_session() as session:
                    async with session.start_transaction():
                        linked = await self._write_project(project, requested, session)
            else:
                try:
                    linked = await self._write_project(project, requested, None)
                except (TransactionIntegrityFailure, PyMongoError, asyncio.CancelledError):
                    # No transaction to abort, so remove whatever was written
                    await self._discard_project(project)
                    raise
        except TransactionIntegrityFailure:
            raise
        except PyMongoError as e:
            logger.error(f"Error creating project {name!r}: {e}")
            raise translate_mongo_error(e, "create_project") from e

        project.competitor_ids = [ObjectId(c) for c in sorted(linked)]
        logger.info(f"Created project {project.id} with {len(linked)} competitors")
        return project

    async def _write_project(self, project: ProjectInDB, requested: set, session) -> set:
        doc = project.model_dump(by_alias=True, exclude={"competitor_ids"})
        await self.projects.insert_one(doc, session=session)

        object_ids = [ObjectId(c) for c in requested if ObjectId.is_valid(c)]
        existing = await self.competitors.find(
            {"_id": {"$in": object_ids}}, {"_id": 1}, session=session
        ).to_list(length=None)
        links = [
            {"project_id": project.id, "competitor_id": doc["_id"], "created_at": datetime.utcnow()}
            for doc in existing
        ]
        if links:
            await self.project_competitors.insert_many(links, session=session)

        linked_docs = await self.project_competitors.find(
            {"project_id": project.id}, {"competitor_id": 1}, session=session
        ).to_list(length=None)
        linked = {str(d["competitor_id"]) for d in linked_docs}
        if linked != requested:
            raise TransactionIntegrityFailure(
                f"Linked {len(linked)} of {len(requested)} requested competitors",
                stage="project_transaction",
                category="project_transaction",
            )
        return linked

    async def _discard_project(self, project: ProjectInDB) -> None:
        try:
            await self.delete_project(str(project.id))
        except (CollaboratorUnavailableError, CollaboratorRejectedError) as e:
            logger.critical(f"Could not remove partially written project {project.id}: {e}")

    async def delete_project(self, project_id: str) -> bool:
        object_id = ObjectId(project_id)
        try:
            await self.project_competitors.delete_many({"project_id": object_id})
            result = await self.projects.delete_one({"_id": object_id})
        except PyMongoError as e:
            logger.error(f"Error deleting project {project_id}: {e}")
            raise translate_mongo_error(e, "delete_project") from e
        logger.info(f"Deleted project {project_id} and its competitor links")
        return result.deleted_count > 0

    async def create_product(self, fields: Dict[str, Any]) -> ProductInDB:
        product = ProductInDB(**fields)
        try:
            await self.products.insert_one(product.model_dump(by_alias=True))
        except PyMongoError as e:
            logger.error(f"Error creating product {product.name!r}: {e}")
            raise translate_mongo_error(e, "create_product") from e
        logger.info(f"Created product {product.id} for project {product.project_id}")
        return product
