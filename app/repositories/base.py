"""
Base repository interfaces for the provisioning collaborators and the session cache.

Storage and report implementations raise CollaboratorUnavailableError when the
backend cannot be reached and CollaboratorRejectedError when it refuses a request.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from app.models.project import CompetitorInDB, ProductInDB, ProjectInDB
from app.models.provisioning import InitialReportConfig, ScheduleInfo
from app.models.user import UserInDB


class StorageRepository(ABC):
    """Abstract interface for owner, competitor, project and product persistence."""

    @abstractmethod
    async def check_availability(self) -> bool:
        """Return True when the storage backend answers."""
        pass

    @abstractmethod
    async def find_owner(self, email: str) -> Optional[UserInDB]:
        """
        Find the owner account for an email address.

        Args:
            email: Contact email collected in the conversation

        Returns:
            The owner, or None when no account exists yet
        """
        pass

    @abstractmethod
    async def create_owner(self, email: str) -> UserInDB:
        """Create an owner account for an email address."""
        pass

    @abstractmethod
    async def list_competitors(self) -> List[CompetitorInDB]:
        """Return the full competitor pool."""
        pass

    @abstractmethod
    async def create_project(
        self,
        name: str,
        owner_id: str,
        competitor_ids: List[str],
        metadata: Dict[str, Any],
    ) -> ProjectInDB:
        """
        Create a project and link it to competitors in one transaction.

        Args:
            name: Project name
            owner_id: Owner account id
            competitor_ids: Competitors to link; the linked set must equal this set
            metadata: Project parameters stored with the project

        Returns:
            The committed project with its linked competitor ids
        """
        pass

    @abstractmethod
    async def delete_project(self, project_id: str) -> bool:
        """Remove a project and its competitor links. Returns False when it did not exist."""
        pass

    @abstractmethod
    async def create_product(self, fields: Dict[str, Any]) -> ProductInDB:
        """Create the product record of a project."""
        pass


class ReportRepository(ABC):
    """Abstract interface for report generation requests and schedules."""

    @abstractmethod
    async def check_availability(self) -> bool:
        """Return True when report requests can be accepted."""
        pass

    @abstractmethod
    async def generate_initial_report(self, project_id: str, config: InitialReportConfig) -> str:
        """
        Request the first report of a project.

        Args:
            project_id: Project to report on
            config: Generation options; retries pass a more lenient config

        Returns:
            The report id
        """
        pass

    @abstractmethod
    async def schedule_recurring_reports(
        self,
        project_id: str,
        cadence: str,
        config: Dict[str, Any],
    ) -> ScheduleInfo:
        """Register recurring reports for a project."""
        pass

    @abstractmethod
    async def request_product_snapshot(self, product: ProductInDB) -> str:
        """Queue a website snapshot of a product; returns the job id."""
        pass


class CacheRepository(ABC):
    """Abstract interface for caching operations."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in cache with TTL."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete value from cache."""
        pass

    def generate_cache_key(self, prefix: str, *args) -> str:
        """Generate a cache key from prefix and arguments."""
        key_parts = [prefix] + [str(arg) for arg in args]
        return ":".join(key_parts)
