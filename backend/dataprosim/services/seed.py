"""
Demo data loaded into a fresh store at startup.
"""
import logging

from dataprosim.schemas.storage import Project, User, utcnow
from dataprosim.services.storage import InMemoryStorage

logger = logging.getLogger(__name__)

DEMO_USER_ID = "user-1"
DEMO_PROJECT_ID = 1


def _demo_user(user_id: str) -> User:
    earned_at = utcnow().isoformat()
    return User(
        id=user_id,
        username="johnsmith",
        password="password",
        name="John Smith",
        email="john@example.com",
        role="ml_engineer",
        level=3,
        xp=2450,
        badges=[
            {"type": "data_janitor", "title": "Data Janitor", "earnedAt": earned_at},
            {"type": "viz_master", "title": "Viz Master", "earnedAt": earned_at},
            {"type": "model_builder", "title": "Model Builder", "earnedAt": earned_at},
        ],
    )


def _demo_project(user_id: str) -> Project:
    return Project(
        id=DEMO_PROJECT_ID,
        user_id=user_id,
        title="Customer Churn Prediction Analysis",
        description="Telecom industry classification problem",
        type="classification",
        status="in_progress",
        current_step="eda",
        progress=65,
        dataset_info={
            "filename": "telecom_churn.csv",
            "rows": 10000,
            "columns": 18,
            "features": ["customer_id", "tenure", "monthly_charges", "total_charges", "churn"],
        },
        config={},
        results=None,
    )


async def seed_demo_data(storage: InMemoryStorage, user_id: str = DEMO_USER_ID) -> bool:
    """
    Create the demo user and sample project if they are missing.

    Returns:
        True if anything was created.
    """
    if await storage.get_user(user_id) is not None:
        logger.info("[SEED] Demo user already exists")
        return False

    await storage.add_user(_demo_user(user_id))
    if await storage.get_project(DEMO_PROJECT_ID) is None:
        await storage.add_project(_demo_project(user_id))

    logger.info(f"[SEED] Demo user '{user_id}' and sample project created")
    return True
