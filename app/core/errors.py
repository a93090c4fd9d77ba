"""
Error taxonomy for requirement collection and project provisioning.

Parse and validation errors are resolved inside a conversation turn and turned into
a next prompt. Provisioning errors raised before the project commit abort the
pipeline; soft failures are only recorded on the result.
"""

from typing import List, Optional


class ConversationError(Exception):
    """Base class for errors resolved locally into a next prompt."""

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.fields = fields or []


class FormatError(ConversationError):
    """Input could not be read in any supported format."""
    pass


class IncompleteDataError(ConversationError):
    """Required fields are missing from the input."""
    pass


class RequirementsValidationError(ConversationError):
    """Collected fields failed format or business-rule validation."""
    pass


class RecoverableParseFailure(ConversationError):
    """Unexpected failure while parsing; recovery salvages what it can."""
    pass


class ProvisioningError(Exception):
    """Base class for provisioning pipeline failures."""

    severity = "high"

    def __init__(
        self,
        message: str,
        stage: str,
        category: str = "unknown_error",
        correlation_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.stage = stage
        self.category = category
        self.correlation_id = correlation_id


class PrerequisiteFailure(ProvisioningError):
    """A stage before the project commit failed; nothing was persisted."""
    pass


class TransactionIntegrityFailure(ProvisioningError):
    """Project transaction did not match the request and was rolled back."""

    severity = "critical"


class SoftProvisioningFailure(ProvisioningError):
    """An optional stage failed after the project was committed."""

    severity = "medium"


class CollaboratorUnavailableError(Exception):
    """Collaborator could not be reached (connection, timeout)."""
    pass


class CollaboratorRejectedError(Exception):
    """Collaborator was reached but refused the request."""
    pass
