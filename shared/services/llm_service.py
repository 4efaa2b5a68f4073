"""
LLM Service: centralized interface for text-completion calls.

Talks to any OpenAI-compatible chat completions endpoint (OpenRouter by
default). Callers pass an ordered list of role/content messages and receive a
single text reply.
"""

import json
import time
from typing import Dict, List, Optional, Protocol
from openai import OpenAI, OpenAIError, RateLimitError, APITimeoutError, APIConnectionError
import logging

logger = logging.getLogger(__name__)


class CompletionClient(Protocol):
    """Anything that turns ordered role/content messages into one text reply."""

    model_id: str

    def chat(self, messages: List[Dict[str, str]]) -> str:
        ...


class LLMService:
    """
    Service for making LLM API calls with retry logic and error handling.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model_id: str,
        base_url: Optional[str] = None,
        max_retries: int = 2,
        initial_retry_delay: float = 1.0,
        timeout: float = 30.0,
    ):
        self.client = OpenAI(api_key=api_key, base_url=base_url, max_retries=0)
        self.max_retries = max(1, max_retries)
        self.initial_retry_delay = initial_retry_delay
        self.timeout = timeout
        self.model_id = model_id

    # ─── Primary entry point ───────────────────────────────────────────

    def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ) -> str:
        """
        Send ordered role/content messages and return the completion text.

        Raises LLMServiceError on any failure, including an empty completion.
        """
        logger.info(json.dumps({
            "step": "LLM_CALL",
            "status": "starting",
            "model": self.model_id,
            "params": {"messages": len(messages), "temperature": temperature},
        }))

        def _api_call():
            response = self.client.chat.completions.create(
                model=self.model_id,
                messages=messages,
                max_completion_tokens=max_tokens,
                temperature=temperature,
                timeout=self.timeout,
            )
            if not response.choices:
                raise LLMServiceError(f"{self.model_id} returned no choices")
            content = response.choices[0].message.content
            if not content or not content.strip():
                raise LLMServiceError(f"{self.model_id} returned an empty completion")
            return content

        return self._execute_with_retry(_api_call, self.model_id)

    # ─── Helpers ──────────────────────────────────────────────────────

    def _execute_with_retry(self, api_call_fn, model_name: str) -> str:
        """Execute API call with exponential backoff retry logic."""
        last_error = None
        delay = self.initial_retry_delay
        start_time = time.time()

        # Attempts plus backoff stay within timeout * max_retries
        budget = self.timeout * self.max_retries
        attempts = 0

        for attempt in range(self.max_retries):
            attempts = attempt + 1
            try:
                result = api_call_fn()
                duration_ms = int((time.time() - start_time) * 1000)

                logger.info(json.dumps({
                    "step": "LLM_CALL",
                    "status": "complete",
                    "model": model_name,
                    "output": {"response_length": len(result)},
                    "duration_ms": duration_ms,
                    "attempts": attempt + 1
                }))
                return result

            except (RateLimitError, APITimeoutError, APIConnectionError) as e:
                last_error = e
                logger.warning(
                    f"{model_name} transient error {type(e).__name__} "
                    f"(attempt {attempt + 1}/{self.max_retries}). Retrying in {delay}s..."
                )
                if attempts >= self.max_retries:
                    break
                if time.time() - start_time + delay >= budget:
                    logger.warning(f"{model_name} retry budget of {budget}s exhausted")
                    break
                time.sleep(delay)
                delay *= 2

            except LLMServiceError:
                raise

            except OpenAIError as e:
                logger.error(f"{model_name} API error: {str(e)}")
                raise LLMServiceError(f"{model_name} API error: {str(e)}") from e

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(json.dumps({
            "step": "LLM_CALL",
            "status": "failed",
            "model": model_name,
            "error": str(last_error),
            "duration_ms": duration_ms,
            "attempts": attempts
        }))
        raise LLMServiceError(
            f"{model_name} failed after {attempts} attempts. Last error: {str(last_error)}"
        ) from last_error


class LLMServiceError(Exception):
    """Custom exception for LLM service errors"""
    pass
