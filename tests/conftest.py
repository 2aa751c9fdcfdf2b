"""Shared fixtures."""

import pytest

from codechat.configs.config import SettingsView
from codechat.core.conversation import ConversationsState
from codechat.core.models import ModelDescriptor, ModelRegistry


@pytest.fixture()
def registry() -> ModelRegistry:
    return ModelRegistry(
        [
            ModelDescriptor(code="tiny", max_context_tokens=1000),
            ModelDescriptor(code="small", max_context_tokens=500),
        ]
    )


@pytest.fixture()
def settings() -> SettingsView:
    return SettingsView(system_prompt="SYSTEM", max_output_tokens=100, temperature=0.2)


@pytest.fixture()
def state() -> ConversationsState:
    return ConversationsState()
