"""
In-memory storage for users, projects, datasets and achievements.

Nothing is persisted; state lives as long as the process. Numeric ids are
auto-incremented per collection, user ids are UUID strings.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from dataprosim.core.exceptions import ConflictError, ErrorCode, ValidationError, field_path
from dataprosim.schemas.storage import (
    Achievement,
    AchievementCreate,
    Dataset,
    DatasetCreate,
    Project,
    ProjectCreate,
    User,
    UserCreate,
    utcnow,
)

logger = logging.getLogger(__name__)

_PROTECTED_PROJECT_FIELDS = {"id", "user_id", "created_at", "updated_at"}

# camelCase keys can arrive as extras on partial updates
_PROJECT_FIELDS_BY_ALIAS = {
    field.alias: name for name, field in Project.model_fields.items() if field.alias
}


class InMemoryStorage:
    """Keyed maps with the async interface the routers expect."""

    def __init__(self):
        self.users: Dict[str, User] = {}
        self.projects: Dict[int, Project] = {}
        self.datasets: Dict[int, Dataset] = {}
        self.achievements: Dict[int, Achievement] = {}
        self._next_project_id = 1
        self._next_dataset_id = 1
        self._next_achievement_id = 1

    # ========== Users ==========

    async def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.username == username), None)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        email = email.lower()
        return next((u for u in self.users.values() if u.email.lower() == email), None)

    async def create_user(self, data: UserCreate) -> User:
        """Create a user with a fresh UUID and starting progression."""
        if await self.get_user_by_username(data.username):
            raise ConflictError(
                f"Username '{data.username}' is already taken",
                code=ErrorCode.USR_USERNAME_TAKEN,
                field="username",
            )
        if await self.get_user_by_email(data.email):
            raise ConflictError(
                f"Email '{data.email}' is already registered",
                code=ErrorCode.USR_EMAIL_TAKEN,
                field="email",
            )

        user = User(
            **data.model_dump(),
            id=str(uuid.uuid4()),
            level=1,
            xp=0,
            badges=[],
        )
        self.users[user.id] = user
        logger.info(f"[STORAGE] Created user {user.id} ({user.username})", extra={"user_id": user.id})
        return user

    async def add_user(self, user: User) -> User:
        """Insert a fully formed user, keeping its id and progression."""
        self.users[user.id] = user
        return user

    async def update_user(self, user_id: str, updates: Dict[str, Any]) -> Optional[User]:
        user = self.users.get(user_id)
        if user is None:
            return None

        updated = User.model_validate({**user.model_dump(), **updates})
        self.users[user_id] = updated
        return updated

    # ========== Projects ==========

    async def get_project(self, project_id: int) -> Optional[Project]:
        return self.projects.get(project_id)

    async def get_projects_by_user(self, user_id: str) -> List[Project]:
        return [p for p in self.projects.values() if p.user_id == user_id]

    async def create_project(self, data: ProjectCreate, user_id: str) -> Project:
        project_id = self._next_project_id
        self._next_project_id += 1

        now = utcnow()
        project = Project.model_validate({
            **data.model_dump(),
            "id": project_id,
            "user_id": user_id,
            "created_at": now,
            "updated_at": now,
        })
        self.projects[project_id] = project
        logger.info(f"[STORAGE] Created project {project_id}", extra={"project_id": project_id})
        return project

    async def add_project(self, project: Project) -> Project:
        """Insert a project with a preset id; later ids continue after it."""
        self.projects[project.id] = project
        self._next_project_id = max(self._next_project_id, project.id + 1)
        return project

    async def update_project(self, project_id: int, updates: Dict[str, Any]) -> Optional[Project]:
        """
        Merge the given fields into the project and refresh updated_at.

        Raises:
            ValidationError: (422) if the merged project is invalid, e.g. a null title.
        """
        project = self.projects.get(project_id)
        if project is None:
            return None

        changes = {}
        for key, value in updates.items():
            field = _PROJECT_FIELDS_BY_ALIAS.get(key, key)
            if field not in _PROTECTED_PROJECT_FIELDS:
                changes[field] = value
        try:
            updated = Project.model_validate({
                **project.model_dump(),
                **changes,
                "updated_at": utcnow(),
            })
        except PydanticValidationError as e:
            error = e.errors()[0]
            raise ValidationError(
                f"Invalid project update: {error['msg']}",
                field=field_path(error["loc"]),
                status_code=422,
            ) from e
        self.projects[project_id] = updated
        return updated

    # ========== Datasets ==========

    async def get_dataset(self, dataset_id: int) -> Optional[Dataset]:
        return self.datasets.get(dataset_id)

    async def get_datasets_by_project(self, project_id: int) -> List[Dataset]:
        return [d for d in self.datasets.values() if d.project_id == project_id]

    async def create_dataset(self, data: DatasetCreate) -> Dataset:
        dataset_id = self._next_dataset_id
        self._next_dataset_id += 1

        dataset = Dataset(**data.model_dump(), id=dataset_id)
        self.datasets[dataset_id] = dataset
        return dataset

    # ========== Achievements ==========

    async def get_achievements_by_user(self, user_id: str) -> List[Achievement]:
        return [a for a in self.achievements.values() if a.user_id == user_id]

    async def create_achievement(self, data: AchievementCreate) -> Achievement:
        achievement_id = self._next_achievement_id
        self._next_achievement_id += 1

        achievement = Achievement(**data.model_dump(), id=achievement_id)
        self.achievements[achievement_id] = achievement
        return achievement
