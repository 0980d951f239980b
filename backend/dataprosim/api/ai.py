"""
AI routes: mentor chat, contextual tips and micro-challenges.

These endpoints always answer 200 for well-formed requests; provider
outages degrade to fallback content inside AIService.
"""
import logging
import random
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from dataprosim.api.deps import get_ai_service
from dataprosim.schemas.ai import (
    ChallengeRequest,
    MentorChatRequest,
    MentorChatResponse,
    MentorRequest,
    MentorResponse,
    MicroChallenge,
    TipsRequest,
    TipsResponse,
)
from dataprosim.services.ai_service import AIService

logger = logging.getLogger(__name__)

router = APIRouter()

# Canned lines for the lightweight sidebar mentor
QUICK_MENTOR_REPLIES = [
    "That's a great question! For data cleaning, I recommend starting with null value analysis.",
    "Consider using feature scaling for better model performance.",
    "Have you tried cross-validation to assess model stability?",
    "Outlier detection might reveal interesting patterns in your data.",
    "Remember to check for data leakage in your feature engineering process.",
]


@router.post("/ai/mentor", response_model=MentorResponse)
async def ai_mentor(
    request: MentorRequest,
    ai_service: AIService = Depends(get_ai_service),
):
    """Answer a learner question with the AI mentor."""
    logger.info(f"[AI_API] Mentor request: {request.message[:80]!r}")
    response = await ai_service.get_mentor_response(request)
    return MentorResponse(response=response)


@router.post("/ai/tips", response_model=TipsResponse)
async def ai_tips(
    request: TipsRequest,
    ai_service: AIService = Depends(get_ai_service),
):
    """Contextual tips for the learner's current workflow stage."""
    tips = await ai_service.generate_contextual_tips(request)
    return TipsResponse(tips=tips)


@router.post("/ai/challenge", response_model=MicroChallenge)
async def ai_challenge(
    request: ChallengeRequest,
    ai_service: AIService = Depends(get_ai_service),
):
    """Generate one micro-challenge, returned unwrapped."""
    return await ai_service.generate_micro_challenge(request)


@router.post("/mentor/chat", response_model=MentorChatResponse)
async def quick_mentor_chat(request: MentorChatRequest):
    return MentorChatResponse(
        message=random.choice(QUICK_MENTOR_REPLIES),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
