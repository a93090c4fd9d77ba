"""
Competitor, project and product data models.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from bson import ObjectId
from pydantic import BaseModel, Field, field_validator
from app.models.user import PyObjectId


class CompetitorInDB(BaseModel):
    """Competitor from the shared pool assigned to new projects."""
    id: PyObjectId = Field(default_factory=PyObjectId, alias="_id")
    name: Optional[str] = None
    website: Optional[str] = None
    industry: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True
        arbitrary_types_allowed = True
        json_encoders = {ObjectId: str}

    @property
    def is_complete(self) -> bool:
        return bool((self.name or "").strip() and (self.website or "").strip())


class ProjectInDB(BaseModel):
    """Competitive-analysis project."""
    id: PyObjectId = Field(default_factory=PyObjectId, alias="_id")
    name: str = Field(..., min_length=1, max_length=255)
    user_id: PyObjectId = Field(...)
    competitor_ids: List[PyObjectId] = Field(default_factory=list)
    status: str = Field(default="active")  # draft, active, archived
    priority: str = Field(default="medium")
    parameters: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True
        arbitrary_types_allowed = True
        json_encoders = {ObjectId: str}

    @field_validator("status")
    def validate_status(cls, v):
        """Validate project status."""
        allowed_statuses = ["draft", "active", "archived"]
        if v not in allowed_statuses:
            raise ValueError(f"Status must be one of: {allowed_statuses}")
        return v


class ProductInDB(BaseModel):
    """The user's own product, compared against project competitors."""
    id: PyObjectId = Field(default_factory=PyObjectId, alias="_id")
    project_id: PyObjectId = Field(...)
    name: str = Field(..., min_length=1, max_length=255)
    website: str = Field(...)
    industry: Optional[str] = None
    positioning: Optional[str] = None
    customer_data: Optional[str] = None
    user_problem: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True
        arbitrary_types_allowed = True
        json_encoders = {ObjectId: str}
