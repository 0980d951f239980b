"""Shared FastAPI dependencies."""
from fastapi import Request

from dataprosim.core.config import Settings
from dataprosim.services.ai_service import AIService
from dataprosim.services.storage import InMemoryStorage


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> InMemoryStorage:
    return request.app.state.storage


def get_ai_service(request: Request) -> AIService:
    return request.app.state.ai_service
