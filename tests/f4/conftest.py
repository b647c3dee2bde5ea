"""Fixtures for F4 tests - Content-generation client."""

from unittest.mock import MagicMock, patch

import pytest


@pytest.fixture
def mock_openai_client():
    """Replace the OpenAI SDK client (no real API calls)."""
    with patch("curriculum.llm.client.OpenAI") as mock:
        mock_instance = MagicMock()
        mock.return_value = mock_instance
        yield mock_instance


@pytest.fixture
def make_completion():
    """Factory: build a chat completion response with the given content."""

    def _make(content: str):
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = content
        response.model = "test-model"
        response.usage = MagicMock()
        response.usage.prompt_tokens = 10
        response.usage.completion_tokens = 20
        response.usage.total_tokens = 30
        return response

    return _make
