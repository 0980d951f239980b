"""Current user routes. The demo user stands in for an authenticated session."""
import logging
from typing import List

from fastapi import APIRouter, Depends

from dataprosim.api.deps import get_app_settings, get_storage
from dataprosim.core.config import Settings
from dataprosim.core.exceptions import ErrorCode, NotFoundError
from dataprosim.schemas.storage import Achievement, User, UserProfile, XpAward
from dataprosim.services.storage import InMemoryStorage

logger = logging.getLogger(__name__)

router = APIRouter()

XP_PER_LEVEL = 1000


def level_for_xp(xp: int) -> int:
    return xp // XP_PER_LEVEL + 1


async def _require_user(storage: InMemoryStorage, user_id: str) -> User:
    user = await storage.get_user(user_id)
    if user is None:
        raise NotFoundError(
            "User not found",
            code=ErrorCode.USR_NOT_FOUND,
            resource_type="user",
            resource_id=user_id,
        )
    return user


@router.get("", response_model=UserProfile)
async def get_current_user(
    storage: InMemoryStorage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
):
    return await _require_user(storage, settings.demo_user_id)


@router.post("/xp", response_model=UserProfile)
async def award_xp(
    award: XpAward,
    storage: InMemoryStorage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
):
    """Add XP and recompute the level."""
    user = await _require_user(storage, settings.demo_user_id)

    new_xp = user.xp + award.xp
    updated = await storage.update_user(
        user.id,
        {"xp": new_xp, "level": level_for_xp(new_xp)},
    )
    logger.info(
        f"[USERS] Awarded {award.xp} XP to {user.id} (total={new_xp}, level={updated.level})",
        extra={"user_id": user.id},
    )
    return updated


@router.get("/achievements", response_model=List[Achievement])
async def list_achievements(
    storage: InMemoryStorage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
):
    user = await _require_user(storage, settings.demo_user_id)
    return await storage.get_achievements_by_user(user.id)
