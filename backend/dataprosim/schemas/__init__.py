"""
Pydantic schemas for API request/response models.
"""

from dataprosim.schemas.ai import (
    BloomLevel,
    ChallengeRequest,
    ContextualTip,
    Difficulty,
    MentorContext,
    MentorRequest,
    MicroChallenge,
    TipCategory,
    TipsRequest,
)
from dataprosim.schemas.storage import (
    Achievement,
    Dataset,
    Project,
    ProjectCreate,
    ProjectUpdate,
    User,
    UserCreate,
)

__all__ = [
    "BloomLevel",
    "ChallengeRequest",
    "ContextualTip",
    "Difficulty",
    "MentorContext",
    "MentorRequest",
    "MicroChallenge",
    "TipCategory",
    "TipsRequest",
    "Achievement",
    "Dataset",
    "Project",
    "ProjectCreate",
    "ProjectUpdate",
    "User",
    "UserCreate",
]
