"""
Requirements record collected during a conversation, plus extraction and validation results.
"""

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, model_validator

REQUIRED_FIELDS = (
    "user_email",
    "report_frequency",
    "project_name",
    "product_name",
    "product_url",
    "industry",
    "positioning",
    "customer_data",
    "user_problem",
)

OPTIONAL_FIELDS = ("competitor_hints", "focus_areas", "report_template")

# Fields only written by the older step-by-step flow
LEGACY_FIELDS = ("customer_description", "product_website")

FIELD_DISPLAY_NAMES = {
    "user_email": "Email Address",
    "report_frequency": "Report Frequency",
    "project_name": "Project Name",
    "product_name": "Product Name",
    "product_url": "Website URL",
    "industry": "Industry",
    "positioning": "Product Positioning",
    "customer_data": "Customer Information",
    "user_problem": "User Problems",
    "competitor_hints": "Competitor Hints",
    "focus_areas": "Focus Areas",
    "report_template": "Report Template",
    "customer_description": "Customer Description",
    "product_website": "Product Website",
}


def display_name(field: str) -> str:
    return FIELD_DISPLAY_NAMES.get(field, field.replace("_", " ").title())


class RequirementsRecord(BaseModel):
    """Accumulated project requirements. Every field is optional until validated."""
    user_email: Optional[str] = Field(default=None, alias="userEmail")
    report_frequency: Optional[str] = Field(default=None, alias="reportFrequency")
    project_name: Optional[str] = Field(default=None, alias="projectName")
    product_name: Optional[str] = Field(default=None, alias="productName")
    product_url: Optional[str] = Field(default=None, alias="productUrl")
    industry: Optional[str] = None
    positioning: Optional[str] = None
    customer_data: Optional[str] = Field(default=None, alias="customerData")
    user_problem: Optional[str] = Field(default=None, alias="userProblem")

    competitor_hints: List[str] = Field(default_factory=list, alias="competitorHints")
    focus_areas: List[str] = Field(default_factory=list, alias="focusAreas")
    report_template: Optional[str] = Field(default=None, alias="reportTemplate")

    customer_description: Optional[str] = Field(default=None, alias="customerDescription")
    product_website: Optional[str] = Field(default=None, alias="productWebsite")

    class Config:
        populate_by_name = True

    @model_validator(mode="before")
    @classmethod
    def accept_report_name(cls, data: Any) -> Any:
        """Older snapshots stored the project name as ``reportName``."""
        if isinstance(data, dict) and data.get("reportName") and not (data.get("projectName") or data.get("project_name")):
            data = dict(data)
            data["projectName"] = data.pop("reportName")
        return data

    def value_of(self, field: str) -> str:
        value = getattr(self, field, None)
        if isinstance(value, str):
            return value.strip()
        return ""

    def filled_required(self) -> List[str]:
        return [f for f in REQUIRED_FIELDS if self.value_of(f)]

    def missing_required(self) -> List[str]:
        return [f for f in REQUIRED_FIELDS if not self.value_of(f)]

    def has_legacy_fields(self) -> bool:
        return any(self.value_of(f) for f in LEGACY_FIELDS)

    def is_empty(self) -> bool:
        return not self.present_fields()

    def present_fields(self) -> List[str]:
        present = []
        for name in type(self).model_fields:
            value = getattr(self, name)
            if (isinstance(value, str) and value.strip()) or (isinstance(value, list) and value):
                present.append(name)
        return present

    def with_legacy_fields_promoted(self) -> "RequirementsRecord":
        """Copy legacy-only values into their current counterparts where those are empty."""
        updates = {}
        if self.value_of("customer_description") and not self.value_of("customer_data"):
            updates["customer_data"] = self.customer_description
        if self.value_of("product_website") and not self.value_of("product_url"):
            updates["product_url"] = self.product_website
        return self.model_copy(update=updates) if updates else self


def merge_requirements(base: RequirementsRecord, update: RequirementsRecord) -> RequirementsRecord:
    """Overwrite fields of ``base`` with every non-empty field of ``update``.

    Absent or blank fields in ``update`` never clear data already collected, so merging
    is associative and merging the same update twice changes nothing.
    """
    changes = {}
    for name in type(update).model_fields:
        value = getattr(update, name)
        if isinstance(value, str):
            if value.strip():
                changes[name] = value.strip()
        elif isinstance(value, list):
            if value:
                changes[name] = list(value)
    return base.model_copy(update=changes)


class ExtractionResult(BaseModel):
    """Output of a parsing pass over free text."""
    record: RequirementsRecord = Field(default_factory=RequirementsRecord)
    confidence: Dict[str, int] = Field(default_factory=dict)
    success: bool = False
    tier: Literal["structured", "unstructured", "progressive", "none"] = "none"

    @property
    def extracted_fields(self) -> List[str]:
        return self.record.present_fields()


class ValidationIssue(BaseModel):
    """One blocking error or non-blocking warning."""
    field: str
    type: str
    message: str
    suggestion: Optional[str] = None


class ValidationOutcome(BaseModel):
    """Result of validating a candidate record."""
    is_valid: bool = False
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    completeness: int = 0

    @property
    def missing_fields(self) -> List[str]:
        return [e.field for e in self.errors if e.type == "required"]

    @property
    def invalid_fields(self) -> List[str]:
        seen: List[str] = []
        for e in self.errors:
            if e.type != "required" and e.field not in seen:
                seen.append(e.field)
        return seen


class DataQualityAssessment(BaseModel):
    """Summary shown on the confirmation screen."""
    completeness: int
    completeness_label: str
    detail_level: str
    detail_description: str
    analysis_potential: str
