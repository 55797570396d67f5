"""Structured payloads returned by the text generation endpoints."""

from __future__ import annotations

import json
from typing import Any, Type, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .exceptions import GenerationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class OutlinePage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_prompt: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("image_prompt", "imagePrompt")
    )
    caption: str = Field(..., min_length=1)


class StoryOutline(BaseModel):
    title: str = ""
    pages: list[OutlinePage] = Field(..., min_length=1)


class AdCopy(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    headline: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    call_to_action: str = ""
    visual_prompt: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("visual_prompt", "background_prompt"),
    )
    hashtags: list[str] = Field(default_factory=list)


class CharacterSheet(BaseModel):
    name: str = Field(..., min_length=1)
    archetype: str = ""
    backstory: str = Field(..., min_length=1)
    traits: list[str] = Field(default_factory=list)
    image_prompt: str = Field(..., min_length=1)


def parse_structured(payload: str | None, model: Type[ModelT], *, label: str) -> ModelT:
    """Decode a JSON provider response into ``model``.

    Markdown code fences are tolerated because some models wrap JSON output in
    them even when a response schema is supplied.

    Raises:
        GenerationError: If the payload is empty, not JSON, or fails validation.
    """

    text = (payload or "").strip()
    if not text:
        raise GenerationError(f"{label} response was empty")
    if text.startswith("```"):
        text = text.strip("`")
        if text.startswith("json"):
            text = text[4:]
        text = text.strip()
    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise GenerationError(f"{label} response was not valid JSON") from exc
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise GenerationError(f"{label} response failed validation: {exc.error_count()} error(s)") from exc


__all__ = [
    "AdCopy",
    "CharacterSheet",
    "OutlinePage",
    "StoryOutline",
    "parse_structured",
]
