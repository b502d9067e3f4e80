"""FastAPI dependencies for the service objects."""

from typing import Annotated

from fastapi import Depends, Request

from laudreader.db.models import Article
from laudreader.errors import ArticleNotFound
from laudreader.library import ArticleLibrary
from laudreader.notifications import MessageQueue
from laudreader.player.tracker import PlaybackTracker
from laudreader.services import Services
from laudreader.store import ArticleStore
from laudreader.tts.coordinator import GenerationCoordinator


def get_services(request: Request) -> Services:
    """Services built on startup."""
    return request.app.state.services


ServicesDep = Annotated[Services, Depends(get_services)]


def get_store(services: ServicesDep) -> ArticleStore:
    return services.store


def get_tracker(services: ServicesDep) -> PlaybackTracker:
    return services.tracker


def get_coordinator(services: ServicesDep) -> GenerationCoordinator:
    return services.coordinator


def get_library(services: ServicesDep) -> ArticleLibrary:
    return services.library


def get_messages(services: ServicesDep) -> MessageQueue:
    return services.messages


StoreDep = Annotated[ArticleStore, Depends(get_store)]
TrackerDep = Annotated[PlaybackTracker, Depends(get_tracker)]
CoordinatorDep = Annotated[GenerationCoordinator, Depends(get_coordinator)]
LibraryDep = Annotated[ArticleLibrary, Depends(get_library)]
MessagesDep = Annotated[MessageQueue, Depends(get_messages)]


async def get_article(article_id: int, store: StoreDep) -> Article:
    """Article from the path, or 404."""
    article = await store.get_by_id(article_id)
    if article is None:
        raise ArticleNotFound(article_id)
    return article


ArticleDep = Annotated[Article, Depends(get_article)]
