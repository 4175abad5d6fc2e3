from __future__ import annotations

import json
from typing import Any, Dict, List

from pydantic import BaseModel, TypeAdapter, ValidationError

from tutor.errors import MalformedModelOutput


class MathAnalysis(BaseModel):
    latex: str
    hint: str
    solution: str


class Flashcard(BaseModel):
    front: str
    back: str
    tag: str


_FLASHCARDS = TypeAdapter(List[Flashcard])


def normalize(raw: str) -> str:
    """Strip surrounding whitespace and markdown code fences (```json or bare ```)."""
    stripped = (raw or "").strip()
    if stripped.startswith("```"):
        stripped = stripped[3:]
        if stripped[:4].lower() == "json":
            stripped = stripped[4:]
        stripped = stripped.lstrip()
    stripped = stripped.rstrip()
    if stripped.endswith("```"):
        stripped = stripped[:-3]
    return stripped.strip()


def parse_structured(raw: str) -> Any:
    cleaned = normalize(raw)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise MalformedModelOutput(f"Model returned invalid JSON: {exc.msg}") from exc


def parse_math_analysis(raw: str) -> Dict[str, str]:
    data = parse_structured(raw)
    try:
        return MathAnalysis.model_validate(data).model_dump()
    except ValidationError as exc:
        raise MalformedModelOutput(
            f"Model returned an unexpected math analysis shape: {exc.error_count()} errors"
        ) from exc


def parse_flashcards(raw: str) -> List[Dict[str, str]]:
    data = parse_structured(raw)
    try:
        cards = _FLASHCARDS.validate_python(data)
    except ValidationError as exc:
        raise MalformedModelOutput(
            f"Model returned an unexpected flashcard shape: {exc.error_count()} errors"
        ) from exc
    return [card.model_dump() for card in cards]
