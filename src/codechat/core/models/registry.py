"""Known chat models and their context windows."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Annotated

from fastapi import Depends
from pydantic import BaseModel, ConfigDict

from codechat.configs.config import AppConfig, get_app_config


class ModelNotFound(LookupError):
    """The model code is not in the registry.

    An expected outcome (custom or local models), not an error: callers
    skip the context-window budget check.
    """

    def __init__(self, code: str) -> None:
        super().__init__(f"Unknown model code: {code}")
        self.code = code


class ModelDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    description: str = ""
    max_context_tokens: int


BUILTIN_MODELS: tuple[ModelDescriptor, ...] = (
    ModelDescriptor(
        code="gpt-3.5-turbo", description="GPT-3.5 (4k)", max_context_tokens=4097
    ),
    ModelDescriptor(
        code="gpt-3.5-turbo-16k",
        description="GPT-3.5 (16k)",
        max_context_tokens=16385,
    ),
    ModelDescriptor(
        code="gpt-3.5-turbo-1106",
        description="GPT-3.5 Turbo (1106)",
        max_context_tokens=16385,
    ),
    ModelDescriptor(code="gpt-4", description="GPT-4 (8k)", max_context_tokens=8192),
    ModelDescriptor(
        code="gpt-4-32k", description="GPT-4 (32k)", max_context_tokens=32768
    ),
    ModelDescriptor(
        code="gpt-4-1106-preview",
        description="GPT-4 Turbo (128k)",
        max_context_tokens=128000,
    ),
    ModelDescriptor(code="gpt-4o", description="GPT-4o", max_context_tokens=128000),
)


class ModelRegistry:
    """Lookup of ``ModelDescriptor`` by model code."""

    def __init__(self, models: Iterable[ModelDescriptor] = BUILTIN_MODELS) -> None:
        self._models: dict[str, ModelDescriptor] = {}
        for model in models:
            self._models[model.code] = model

    def find_by_code(self, code: str) -> ModelDescriptor:
        try:
            return self._models[code]
        except KeyError:
            raise ModelNotFound(code) from None

    def list_models(self) -> list[ModelDescriptor]:
        return list(self._models.values())


def get_model_registry(
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> ModelRegistry:
    """Built-in models with configured extras layered on top."""
    extras = [
        ModelDescriptor(
            code=entry.code,
            description=entry.description,
            max_context_tokens=entry.max_context_tokens,
        )
        for entry in config.models
    ]
    return ModelRegistry([*BUILTIN_MODELS, *extras])
