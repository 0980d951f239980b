"""
Pydantic schemas for the AI mentor, contextual tips and micro-challenges.

Wire format is camelCase; Python attributes are snake_case.
"""

from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serializing to camelCase and accepting either casing."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# ENUMS
# =============================================================================

class TipCategory(str, Enum):
    """Workflow stage a contextual tip is generated for."""
    DATA_UPLOAD = "data_upload"
    DATA_CLEANING = "data_cleaning"
    EDA = "eda"
    MODELING = "modeling"
    CHART_GENERATION = "chart_generation"


class Difficulty(str, Enum):
    """Difficulty tier."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class BloomLevel(str, Enum):
    """Bloom's taxonomy level, lowest to highest."""
    REMEMBER = "remember"
    UNDERSTAND = "understand"
    APPLY = "apply"
    ANALYZE = "analyze"
    EVALUATE = "evaluate"
    CREATE = "create"


BLOOM_LEVELS: List[BloomLevel] = list(BloomLevel)


# =============================================================================
# MENTOR
# =============================================================================

class MentorContext(CamelModel):
    """Optional metadata describing where the learner currently is."""

    project_title: Optional[str] = None
    current_step: Optional[str] = None
    dataset_info: Optional[Any] = None
    user_level: Optional[int] = None


class MentorRequest(CamelModel):
    """Request body for a mentor chat message."""

    message: str = Field(..., description="Learner question; empty text is forwarded as-is")
    context: Optional[MentorContext] = None


class MentorResponse(CamelModel):
    response: str


class MentorChatRequest(CamelModel):
    message: str = ""


class MentorChatResponse(CamelModel):
    message: str
    timestamp: str


# =============================================================================
# CONTEXTUAL TIPS
# =============================================================================

class TipsRequest(CamelModel):
    """Request body for contextual tip generation."""

    type: TipCategory
    dataset_info: Optional[Any] = None
    user_level: Optional[int] = None
    recent_actions: Optional[List[str]] = None


class GeneratedTip(CamelModel):
    """A single tip as returned by a provider, before it is tagged with a category."""

    title: str
    content: str
    actionable: bool = True
    difficulty: Difficulty = Difficulty.BEGINNER

    @field_validator("difficulty", mode="before")
    @classmethod
    def _normalize_difficulty(cls, value: Any) -> Difficulty:
        # Unknown tiers from a provider read as beginner
        if isinstance(value, str):
            value = value.strip().lower()
        try:
            return Difficulty(value)
        except (TypeError, ValueError):
            return Difficulty.BEGINNER

    @field_validator("actionable", mode="before")
    @classmethod
    def _default_actionable(cls, value: Any) -> Any:
        return True if value is None else value


class WrappedTips(BaseModel):
    """Provider payload shaped as ``{"tips": [...]}``."""

    tips: List[GeneratedTip]


# Either a bare JSON array of tips or an object wrapping them
TipsPayload = Union[List[GeneratedTip], WrappedTips]


class ContextualTip(GeneratedTip):
    type: TipCategory


class TipsResponse(CamelModel):
    tips: List[ContextualTip]


# =============================================================================
# MICRO-CHALLENGES
# =============================================================================

class ChallengeRequest(CamelModel):
    """Request body for micro-challenge generation."""

    user_level: int
    skill_area: str
    dataset_info: Optional[Any] = None
    # Accepted but not used to exclude repeats
    completed_challenges: Optional[List[str]] = None


class GeneratedChallenge(CamelModel):
    """Challenge body as returned by a provider."""

    title: str
    description: str
    time_limit: Optional[int] = None
    xp_reward: Optional[int] = None
    hints: Optional[List[str]] = None
    expected_answer: Optional[str] = None
    validation_criteria: Optional[List[str]] = None

    @field_validator("time_limit", "xp_reward", mode="before")
    @classmethod
    def _lenient_positive_int(cls, value: Any) -> Optional[int]:
        """Round numeric values; anything unusable becomes None so the default applies."""
        if isinstance(value, bool):
            return None
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                return None
        if not isinstance(value, (int, float)):
            return None
        try:
            value = round(value)
        except (ValueError, OverflowError):
            return None
        return value if value > 0 else None


class MicroChallenge(CamelModel):
    """A timed, XP-rewarded exercise returned to the client."""

    id: str
    title: str
    description: str
    difficulty: Difficulty
    bloom_level: BloomLevel
    time_limit: int
    xp_reward: int
    hints: List[str] = Field(default_factory=list)
    expected_answer: Optional[str] = None
    validation_criteria: List[str] = Field(default_factory=list)
