"""Shared FastAPI dependencies for the application services in app.state."""

from typing import Annotated

from fastapi import Depends, Request

from core.events import EventBus
from services.achievement_store import AchievementStore
from services.achievement_sync_service import AchievementPipelineRegistry
from services.notifications_service import InboxNotifier


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


def get_registry(request: Request) -> AchievementPipelineRegistry:
    return request.app.state.achievement_registry


def get_inbox(request: Request) -> InboxNotifier:
    return request.app.state.inbox


def get_achievement_store(request: Request) -> AchievementStore:
    return request.app.state.achievement_store


Bus = Annotated[EventBus, Depends(get_event_bus)]
Registry = Annotated[AchievementPipelineRegistry, Depends(get_registry)]
Inbox = Annotated[InboxNotifier, Depends(get_inbox)]
Store = Annotated[AchievementStore, Depends(get_achievement_store)]
