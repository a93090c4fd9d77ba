"""Services package."""

from .ai_service import ai_connection_client
from .status_probe import ExternalStatusProbe
from .provisioning_service import ProjectProvisioner
from .conversation_service import ConversationService

__all__ = ["ai_connection_client", "ExternalStatusProbe", "ProjectProvisioner", "ConversationService"]
