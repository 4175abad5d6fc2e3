"""
Pytest configuration and shared fixtures.

Tests never talk to Gemini: models and the Files API client are replaced by
mocks, and the API key is a placeholder.
"""

import os
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.messages import AIMessage

os.environ.setdefault("GOOGLE_API_KEY", "test-key")

from config.settings import Settings, get_settings  # noqa: E402
from tutor.core.attachments import AttachmentReference  # noqa: E402
from tutor.dispatcher import Dispatcher, ModelSet  # noqa: E402


def make_model(text: str = "ok") -> MagicMock:
    """A chat model double whose ``ainvoke`` returns ``text``."""
    model = MagicMock()
    model.ainvoke = AsyncMock(return_value=AIMessage(content=text))
    return model


@pytest.fixture(autouse=True)
def _fresh_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings(monkeypatch) -> Settings:
    monkeypatch.setenv("GOOGLE_API_KEY", "test-key")
    return Settings()


@pytest.fixture
def models() -> ModelSet:
    return ModelSet(
        chat=make_model("Let's work through it together."),
        vision=make_model('{"latex": "x^2", "hint": "h", "solution": "s"}'),
        flashcards=make_model("[]"),
        title=make_model("Intro to Derivatives"),
    )


@pytest.fixture
def blob_store() -> MagicMock:
    store = MagicMock()

    async def upload_all(uploads):
        return [
            AttachmentReference(uri=f"files/{u.display_name}", mime_type=u.media.mime_type)
            for u in uploads
        ]

    store.upload_all = AsyncMock(side_effect=upload_all)
    return store


@pytest.fixture
def dispatcher(models: ModelSet, blob_store: MagicMock, settings: Settings) -> Dispatcher:
    return Dispatcher(models=models, blob_store=blob_store, settings=settings)
