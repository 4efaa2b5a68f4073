"""
Unit tests for LLMService.

Covers client construction, the chat completion call, empty completions and
retry logic. The OpenAI client is mocked.
"""

import pytest
from unittest.mock import Mock, patch

from config import Settings
from mentor.exceptions import ConfigurationError
from mentor.services.chat_service import create_llm_service
from shared.services.llm_service import LLMService, LLMServiceError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_chat_response(content="Hola, ¿qué tema quieres trabajar?"):
    """Create a mock response for client.chat.completions.create."""
    response = Mock()
    response.choices = [Mock(message=Mock(content=content))]
    return response


def _make_service(mock_openai_cls, **kwargs):
    mock_client = Mock()
    mock_openai_cls.return_value = mock_client
    service = LLMService(api_key="fake-key", model_id="openai/gpt-4o-mini", **kwargs)
    return service, mock_client


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

class TestLLMServiceInit:
    @patch("shared.services.llm_service.OpenAI")
    def test_client_points_at_base_url(self, mock_openai_cls):
        service = LLMService(
            api_key="fake-key",
            model_id="openai/gpt-4o-mini",
            base_url="https://openrouter.ai/api/v1",
        )

        mock_openai_cls.assert_called_once_with(
            api_key="fake-key", base_url="https://openrouter.ai/api/v1", max_retries=0
        )
        assert service.model_id == "openai/gpt-4o-mini"
        assert service.max_retries == 2

    @patch("shared.services.llm_service.OpenAI")
    def test_at_least_one_attempt(self, mock_openai_cls):
        service, _ = _make_service(mock_openai_cls, max_retries=0)
        assert service.max_retries == 1

    @patch("shared.services.llm_service.OpenAI")
    def test_create_llm_service_from_settings(self, mock_openai_cls):
        settings = Settings(
            openrouter_api_key="key-123",
            llm_model="openai/gpt-4o-mini",
            llm_max_retries=4,
        )
        service = create_llm_service(settings)

        assert service.model_id == "openai/gpt-4o-mini"
        assert service.max_retries == 4
        assert service.timeout == 7.5
        assert mock_openai_cls.call_args.kwargs["api_key"] == "key-123"

    @patch("shared.services.llm_service.OpenAI")
    def test_attempts_share_the_turn_deadline(self, mock_openai_cls):
        settings = Settings(openrouter_api_key="key", llm_timeout_seconds=30, llm_max_retries=3)
        service = create_llm_service(settings)

        assert service.timeout * service.max_retries == 30

    def test_create_llm_service_requires_key(self):
        settings = Settings(openrouter_api_key="")
        with pytest.raises(ConfigurationError):
            create_llm_service(settings)


# ---------------------------------------------------------------------------
# chat
# ---------------------------------------------------------------------------

class TestChat:
    @patch("shared.services.llm_service.OpenAI")
    def test_happy_path(self, mock_openai_cls):
        service, mock_client = _make_service(mock_openai_cls)
        mock_client.chat.completions.create.return_value = _make_chat_response("Vale.")
        messages = [
            {"role": "system", "content": "Eres el Profesor Mentis"},
            {"role": "user", "content": "hola"},
        ]

        assert service.chat(messages) == "Vale."

        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "openai/gpt-4o-mini"
        assert kwargs["messages"] == messages
        assert kwargs["timeout"] == 30.0

    @patch("shared.services.llm_service.OpenAI")
    @pytest.mark.parametrize("content", [None, "", "   "])
    def test_empty_completion_raises(self, mock_openai_cls, content):
        service, mock_client = _make_service(mock_openai_cls)
        mock_client.chat.completions.create.return_value = _make_chat_response(content)

        with pytest.raises(LLMServiceError, match="empty completion"):
            service.chat([{"role": "user", "content": "hola"}])
        assert mock_client.chat.completions.create.call_count == 1

    @patch("shared.services.llm_service.OpenAI")
    def test_no_choices_raises(self, mock_openai_cls):
        service, mock_client = _make_service(mock_openai_cls)
        response = Mock()
        response.choices = []
        mock_client.chat.completions.create.return_value = response

        with pytest.raises(LLMServiceError, match="no choices"):
            service.chat([{"role": "user", "content": "hola"}])


# ---------------------------------------------------------------------------
# _execute_with_retry
# ---------------------------------------------------------------------------

class TestExecuteWithRetry:
    @patch("shared.services.llm_service.time")
    @patch("shared.services.llm_service.OpenAI")
    def test_retries_on_rate_limit(self, mock_openai_cls, mock_time):
        mock_time.time.return_value = 0
        mock_time.sleep = Mock()

        from openai import RateLimitError

        service, _ = _make_service(mock_openai_cls, max_retries=3, initial_retry_delay=0.01)
        fn = Mock(side_effect=[
            RateLimitError("rate limit", response=Mock(status_code=429), body=None),
            "success",
        ])

        assert service._execute_with_retry(fn, "TestModel") == "success"
        assert fn.call_count == 2
        mock_time.sleep.assert_called_once()

    @patch("shared.services.llm_service.time")
    @patch("shared.services.llm_service.OpenAI")
    def test_raises_after_max_retries(self, mock_openai_cls, mock_time):
        mock_time.time.return_value = 0
        mock_time.sleep = Mock()

        from openai import RateLimitError

        service, _ = _make_service(mock_openai_cls, max_retries=2, initial_retry_delay=0.01)
        fn = Mock(side_effect=RateLimitError(
            "rate limit", response=Mock(status_code=429), body=None,
        ))

        with pytest.raises(LLMServiceError, match="failed after 2 attempts"):
            service._execute_with_retry(fn, "TestModel")
        assert fn.call_count == 2
        # No sleep after the last attempt
        assert mock_time.sleep.call_count == 1

    @patch("shared.services.llm_service.OpenAI")
    def test_non_retryable_openai_error_raises_immediately(self, mock_openai_cls):
        from openai import AuthenticationError

        service, _ = _make_service(mock_openai_cls, max_retries=3)
        fn = Mock(side_effect=AuthenticationError(
            "bad key", response=Mock(status_code=401), body=None,
        ))

        with pytest.raises(LLMServiceError):
            service._execute_with_retry(fn, "TestModel")
        assert fn.call_count == 1

    @patch("shared.services.llm_service.time")
    @patch("shared.services.llm_service.OpenAI")
    def test_stops_retrying_when_budget_is_spent(self, mock_openai_cls, mock_time):
        mock_time.time.side_effect = [0, 5, 5]
        mock_time.sleep = Mock()

        from openai import APITimeoutError

        service, _ = _make_service(mock_openai_cls, max_retries=3, timeout=1.0)
        fn = Mock(side_effect=APITimeoutError(request=Mock()))

        with pytest.raises(LLMServiceError, match="failed after 1 attempts"):
            service._execute_with_retry(fn, "TestModel")
        assert fn.call_count == 1
        mock_time.sleep.assert_not_called()
