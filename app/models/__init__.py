"""Models package."""

from .user import UserInDB
from .project import CompetitorInDB, ProjectInDB, ProductInDB
from .requirements import RequirementsRecord, ValidationOutcome
from .session import ConversationSession, ConversationStep, TurnResult
from .provisioning import ProvisioningResult
from .status import DependencyStatus

__all__ = [
    "UserInDB", "CompetitorInDB", "ProjectInDB", "ProductInDB",
    "RequirementsRecord", "ValidationOutcome",
    "ConversationSession", "ConversationStep", "TurnResult",
    "ProvisioningResult", "DependencyStatus"
]
