"""Shared pytest fixtures."""

import pytest

from tests.helpers import FakeAgents, FakeStore
from inkwell.schemas import GenerationConfig


@pytest.fixture
def fake_agents() -> FakeAgents:
    return FakeAgents()


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def keywords_config() -> GenerationConfig:
    return GenerationConfig(keywords=["ai safety"])
