"""Model registry: per-model context limits."""

from .registry import (  # noqa: F401
    BUILTIN_MODELS,
    ModelDescriptor,
    ModelNotFound,
    ModelRegistry,
    get_model_registry,
)
