from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from google import genai
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from config.settings import Settings, get_settings
from tutor.core.attachments import classify_media, filter_prior, inline_image, reconcile
from tutor.core.context import build, parse_history
from tutor.core.prompt import FLASHCARD_PROMPT, MATH_VISION_PROMPT, SYSTEM_PROMPT, TITLE_PROMPT
from tutor.core.structured import parse_flashcards, parse_math_analysis
from tutor.errors import ActionTimeout, ModelCallFailure, ValidationFailure
from tutor.schemas import ActionRequest
from tutor.tools.blob_store import BlobStore, RawUpload


logger = logging.getLogger("archie.dispatcher")

JSON_MIME = "application/json"


class ModelSet:
    """The chat models used by each action. Built once at startup, read-only after."""

    def __init__(
        self,
        chat: BaseChatModel,
        vision: BaseChatModel,
        flashcards: BaseChatModel,
        title: BaseChatModel,
    ) -> None:
        self.chat = chat
        self.vision = vision
        self.flashcards = flashcards
        self.title = title


def build_models(settings: Settings) -> ModelSet:
    api_key = settings.require_api_key()

    def gemini(model: str, json_output: bool = False) -> ChatGoogleGenerativeAI:
        kwargs: Dict[str, Any] = {}
        if json_output:
            kwargs["response_mime_type"] = JSON_MIME
        return ChatGoogleGenerativeAI(
            model=model,
            google_api_key=api_key,
            temperature=settings.temperature,
            **kwargs,
        )

    return ModelSet(
        chat=gemini(settings.chat_model),
        vision=gemini(settings.vision_model, json_output=True),
        flashcards=gemini(settings.flashcard_model, json_output=True),
        title=gemini(settings.title_model),
    )


def build_dispatcher(settings: Optional[Settings] = None) -> "Dispatcher":
    settings = settings or get_settings()
    models = build_models(settings)
    blob_store = BlobStore(genai.Client(api_key=settings.require_api_key()))
    return Dispatcher(models=models, blob_store=blob_store, settings=settings)


def _message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        chunks: List[str] = []
        for part in content:
            if isinstance(part, str):
                chunks.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                chunks.append(str(part.get("text") or ""))
        return "".join(chunks)
    return str(content or "")


def _non_blank(value: Optional[str]) -> Optional[str]:
    return value if value and value.strip() else None


class Dispatcher:
    """Routes an ``ActionRequest`` to its handler.

    Handlers share nothing between requests; conversation state arrives with
    each request and leaves in the response.
    """

    def __init__(self, models: ModelSet, blob_store: BlobStore, settings: Settings) -> None:
        self._models = models
        self._blob_store = blob_store
        self._history_window = settings.history_window
        self._flashcard_count = settings.flashcard_count
        self._timeout = settings.request_timeout
        self._handlers: Dict[str, Callable[[ActionRequest], Awaitable[Any]]] = {
            "generate_title": self._generate_title,
            "chat": self._chat,
            "math_vision": self._math_vision,
            "generate_flashcards": self._generate_flashcards,
        }

    @property
    def actions(self) -> List[str]:
        return list(self._handlers)

    async def dispatch(self, request: ActionRequest) -> Any:
        handler = self._handlers.get(request.action or "")
        if handler is None:
            logger.warning("Rejected unknown action %r", request.action)
            raise ValidationFailure("Unknown action")

        logger.info("Dispatching action=%s", request.action)
        try:
            return await asyncio.wait_for(handler(request), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise ActionTimeout(
                f"Action '{request.action}' timed out after {self._timeout:g}s"
            ) from exc

    async def _invoke(self, model: BaseChatModel, messages: List[BaseMessage], action: str) -> str:
        try:
            result = await model.ainvoke(messages)
        except Exception as exc:
            logger.error("Model call failed for action=%s: %s", action, exc)
            raise ModelCallFailure(f"Model call failed: {exc}") from exc
        text = _message_text(result)
        logger.info("Model responded for action=%s: %s chars", action, len(text))
        return text

    async def _generate_title(self, request: ActionRequest) -> Dict[str, str]:
        message = _non_blank(request.message)
        if message is None:
            raise ValidationFailure("Message is required")
        prompt = TITLE_PROMPT.format(message=message)
        text = await self._invoke(self._models.title, [HumanMessage(content=prompt)], "generate_title")
        return {"title": text.strip()}

    async def _chat(self, request: ActionRequest) -> Dict[str, Any]:
        message = _non_blank(request.message)
        files = request.files or []
        prior = filter_prior(request.active_file_uris)
        if message is None and not files and not prior:
            raise ValidationFailure("Message or file is required")
        for index, item in enumerate(files):
            if not item.data:
                raise ValidationFailure(f"File {index} ('{item.name}') has no data")

        uploads = [
            RawUpload(
                display_name=item.name,
                media=classify_media(item.type, item.name),
                payload=item.data,
            )
            for item in files
        ]
        logger.info(
            "Chat turn: history_turns=%s prior_files=%s new_files=%s message_len=%s",
            len(request.history or []),
            len(prior),
            len(uploads),
            len(message or ""),
        )

        uploaded = await self._blob_store.upload_all(uploads)
        active = reconcile(prior, uploaded)

        conversation = build(
            parse_history(request.history),
            self._history_window,
            message,
            active,
        )
        text = await self._invoke(
            self._models.chat, conversation.to_messages(SYSTEM_PROMPT), "chat"
        )
        return {
            "text": text,
            "activeFileUris": [ref.to_wire() for ref in active],
        }

    async def _math_vision(self, request: ActionRequest) -> Dict[str, str]:
        if not request.image:
            raise ValidationFailure("No image provided")
        mime_type, data = inline_image(request.image)
        content = [
            {"type": "text", "text": MATH_VISION_PROMPT},
            {"type": "image_url", "image_url": f"data:{mime_type};base64,{data}"},
        ]
        text = await self._invoke(self._models.vision, [HumanMessage(content=content)], "math_vision")
        return parse_math_analysis(text)

    async def _generate_flashcards(self, request: ActionRequest) -> List[Dict[str, str]]:
        topic = _non_blank(request.topic) or _non_blank(request.message)
        if topic is None:
            raise ValidationFailure("Topic is required")
        prompt = FLASHCARD_PROMPT.format(count=self._flashcard_count, topic=topic)
        text = await self._invoke(
            self._models.flashcards, [HumanMessage(content=prompt)], "generate_flashcards"
        )
        cards = parse_flashcards(text)
        if len(cards) != self._flashcard_count:
            logger.warning(
                "Expected %s flashcards, model returned %s", self._flashcard_count, len(cards)
            )
        return cards
