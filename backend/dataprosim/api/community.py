"""Community forum, challenge and real-world project acknowledgement routes."""
import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, Body, status

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/community/posts")
async def list_posts():
    return []


@router.post("/community/posts", status_code=status.HTTP_201_CREATED)
async def create_post(post: Dict[str, Any] = Body(...)):
    """Echo the post back with an id and zeroed counters. Nothing is stored."""
    return {"id": int(time.time() * 1000), **post, "likes": 0, "views": 0}


@router.post("/community/posts/{post_id}/like")
async def like_post(post_id: str):
    return {"message": "Post liked", "postId": post_id}


@router.post("/challenges/{challenge_id}/start")
async def start_challenge(challenge_id: str):
    logger.info(f"[COMMUNITY] Challenge started: {challenge_id}")
    return {"message": "Challenge started successfully", "challengeId": challenge_id, "xp": 0}


@router.post("/real-world-projects/{project_id}/start")
async def start_real_world_project(project_id: str):
    return {"message": "Real-world project started", "projectId": project_id}
