"""
Pydantic schemas for the records kept by the in-memory store.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field

from dataprosim.schemas.ai import CamelModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# USERS
# =============================================================================

class UserCreate(CamelModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    name: str
    email: str
    role: str = "data_analyst"


class User(UserCreate):
    id: str
    level: int = 1
    xp: int = 0
    badges: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class UserProfile(CamelModel):
    """User as exposed over HTTP, without credentials."""

    id: str
    username: str
    name: str
    email: str
    role: str
    level: int
    xp: int
    badges: List[Dict[str, Any]]
    created_at: datetime


class XpAward(CamelModel):
    xp: int


# =============================================================================
# PROJECTS
# =============================================================================

class ProjectCreate(CamelModel):
    """Project fields supplied by the client; unknown fields are kept."""

    model_config = ConfigDict(extra="allow")

    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    type: str = "classification"
    status: str = "in_progress"
    current_step: str = "data_ingestion"
    progress: int = Field(0, ge=0, le=100)
    dataset_info: Optional[Dict[str, Any]] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    results: Optional[Dict[str, Any]] = None


class ProjectUpdate(CamelModel):
    model_config = ConfigDict(extra="allow")

    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    current_step: Optional[str] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
    dataset_info: Optional[Dict[str, Any]] = None
    config: Optional[Dict[str, Any]] = None
    results: Optional[Dict[str, Any]] = None


class Project(ProjectCreate):
    id: int
    user_id: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# DATASETS
# =============================================================================

class DatasetCreate(CamelModel):
    project_id: int
    filename: str
    size: int
    columns: List[str]
    rows: int


class Dataset(DatasetCreate):
    id: int
    uploaded_at: datetime = Field(default_factory=utcnow)


class UploadResponse(CamelModel):
    dataset: Dataset
    preview: List[str]


class ChartRequest(CamelModel):
    chart_type: str = "bar"
    x_axis: Optional[str] = None
    y_axis: Optional[str] = None


class ChartDatasetSummary(CamelModel):
    filename: str
    rows: int
    columns: List[str]


class ChartResponse(CamelModel):
    data: List[Dict[str, Any]]
    insights: List[str]
    dataset: ChartDatasetSummary


# =============================================================================
# ACHIEVEMENTS
# =============================================================================

class AchievementCreate(CamelModel):
    user_id: str
    badge_type: str
    title: str
    description: str


class Achievement(AchievementCreate):
    id: int
    earned_at: datetime = Field(default_factory=utcnow)
