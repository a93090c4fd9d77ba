"""
Conversation session snapshot repository using MongoDB, read-through cached in Redis.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from app.core.config import settings
from app.models.session import ConversationSession
from app.repositories.base import CacheRepository
from app.repositories.mongo_storage import translate_mongo_error

logger = logging.getLogger(__name__)


class SessionRepository:
    """Repository for persisted conversation session snapshots."""

    def __init__(self, database: AsyncIOMotorDatabase, cache: Optional[CacheRepository] = None):
        self.database = database
        self.cache = cache
        self.collection = database.conversation_sessions

    async def create_indexes(self):
        """Create database indexes for optimal query performance."""
        await self.collection.create_index("sessionId", unique=True)
        await self.collection.create_index([("updatedAt", DESCENDING)])
        await self.collection.create_index([("projectId", ASCENDING)])

    def _cache_key(self, session_id: str) -> str:
        return self.cache.generate_cache_key("session", session_id)

    async def get_snapshot(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Raw persisted snapshot, or None for an unknown session."""
        if self.cache is not None:
            cached = await self.cache.get(self._cache_key(session_id))
            if isinstance(cached, dict):
                return cached
        try:
            doc = await self.collection.find_one({"sessionId": session_id}, {"_id": 0})
        except PyMongoError as e:
            logger.error(f"Error loading session {session_id}: {e}")
            raise translate_mongo_error(e, "get_session") from e
        if doc and self.cache is not None:
            await self.cache.set(self._cache_key(session_id), doc, ttl=settings.SESSION_CACHE_TTL)
        return doc

    async def load(self, session_id: str) -> Optional[ConversationSession]:
        snapshot = await self.get_snapshot(session_id)
        if snapshot is None:
            return None
        return ConversationSession.from_snapshot(snapshot)

    async def load_or_create(self, session_id: str) -> ConversationSession:
        session = await self.load(session_id)
        if session is None:
            session = ConversationSession(session_id=session_id)
            logger.info(f"Created conversation session {session_id}")
        return session

    async def save(self, session: ConversationSession) -> None:
        session.updated_at = datetime.utcnow()
        snapshot = session.to_snapshot()
        try:
            await self.collection.replace_one({"sessionId": session.session_id}, snapshot, upsert=True)
        except PyMongoError as e:
            logger.error(f"Error saving session {session.session_id}: {e}")
            raise translate_mongo_error(e, "save_session") from e
        if self.cache is not None:
            await self.cache.set(self._cache_key(session.session_id), snapshot, ttl=settings.SESSION_CACHE_TTL)

    async def delete(self, session_id: str) -> bool:
        try:
            result = await self.collection.delete_one({"sessionId": session_id})
        except PyMongoError as e:
            logger.error(f"Error deleting session {session_id}: {e}")
            raise translate_mongo_error(e, "delete_session") from e
        if self.cache is not None:
            await self.cache.delete(self._cache_key(session_id))
        return result.deleted_count > 0
