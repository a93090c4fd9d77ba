"""
Dependency injection setup for the application.
"""

from functools import lru_cache
from app.db.database import db, get_database
from app.repositories.mongo_storage import MongoStorageRepository
from app.repositories.redis_cache import RedisCacheRepository
from app.repositories.report import MongoReportRepository
from app.repositories.session import SessionRepository
from app.services.ai_service import ai_connection_client
from app.services.conversation_service import ConversationService
from app.services.provisioning_service import ProjectProvisioner
from app.services.status_probe import ExternalStatusProbe


# Process-wide instances (singletons)
_cache_repository = None
_status_probe = None


@lru_cache()
def get_cache_repository() -> RedisCacheRepository:
    """Get cache repository instance."""
    global _cache_repository
    if _cache_repository is None:
        _cache_repository = RedisCacheRepository()
    return _cache_repository


@lru_cache()
def get_status_probe() -> ExternalStatusProbe:
    """Get the shared external status probe.

    One probe per process so concurrent status requests share a single cached
    connection test.
    """
    global _status_probe
    if _status_probe is None:
        _status_probe = ExternalStatusProbe(ai_connection_client)
    return _status_probe


def get_session_repository() -> SessionRepository:
    """Get session repository instance."""
    return SessionRepository(get_database(), get_cache_repository())


def get_storage_repository() -> MongoStorageRepository:
    """Get storage repository instance."""
    return MongoStorageRepository(get_database(), db.client)


def get_report_repository() -> MongoReportRepository:
    """Get report repository instance."""
    return MongoReportRepository(get_database())


def get_project_provisioner() -> ProjectProvisioner:
    """Get project provisioner instance."""
    return ProjectProvisioner(
        get_storage_repository(),
        get_report_repository(),
        status_probe=get_status_probe(),
    )


@lru_cache()
def get_conversation_service() -> ConversationService:
    """Get conversation service instance.

    Cached so the per-session turn locks are shared by every request.
    """
    return ConversationService(get_session_repository(), get_project_provisioner())


async def create_indexes():
    """Create the indexes of every repository."""
    await get_session_repository().create_indexes()
    await get_storage_repository().create_indexes()
    await get_report_repository().create_indexes()


# Cleanup function for application shutdown
async def cleanup_dependencies():
    """Clean up dependencies on application shutdown."""
    global _cache_repository, _status_probe
    if _cache_repository:
        await _cache_repository.close()
    if _status_probe:
        _status_probe.clear_cache()
    get_conversation_service.cache_clear()
