"""
Custom Exception Hierarchy for the Mentor Chat Engine

Exception Hierarchy:
    MentorChatError (base)
    ├── LLMError
    │   ├── LLMEmptyReplyError
    │   └── LLMTimeoutError
    ├── ConversationError
    │   ├── ConversationNotFoundError
    │   └── StaleTurnError
    ├── PromptError
    │   └── PromptTemplateError
    └── ConfigurationError
"""

from typing import Optional


class MentorChatError(Exception):
    """Base exception for all mentor chat errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# LLM Errors

class LLMError(MentorChatError):
    """Base exception for LLM-related errors."""
    pass


class LLMEmptyReplyError(LLMError):
    """Raised when the completion succeeds but carries no text."""

    def __init__(self, model_name: Optional[str] = None):
        message = "LLM returned an empty completion"
        if model_name:
            message += f" (model: {model_name})"
        super().__init__(message)
        self.model_name = model_name


class LLMTimeoutError(LLMError):
    """Raised when a tutor turn exceeds its deadline."""

    def __init__(self, timeout_seconds: float, model_name: Optional[str] = None):
        message = f"LLM call timed out after {timeout_seconds}s"
        if model_name:
            message += f" (model: {model_name})"
        super().__init__(message)
        self.timeout_seconds = timeout_seconds
        self.model_name = model_name


# Conversation Errors

class ConversationError(MentorChatError):
    """Base exception for conversation state errors."""
    pass


class ConversationNotFoundError(ConversationError):
    """Raised when a conversation id has no stored state."""

    def __init__(self, conversation_id: str):
        message = f"Conversation not found: {conversation_id}"
        super().__init__(message)
        self.conversation_id = conversation_id


class StaleTurnError(ConversationError):
    """Raised when a turn result arrives after a newer turn was committed."""

    def __init__(self, conversation_id: str, expected_seq: int, actual_seq: int):
        message = (
            f"Stale turn for conversation {conversation_id}: "
            f"started at seq {expected_seq}, stored seq is {actual_seq}"
        )
        super().__init__(message)
        self.conversation_id = conversation_id
        self.expected_seq = expected_seq
        self.actual_seq = actual_seq


# Prompt Errors

class PromptError(MentorChatError):
    """Base exception for prompt-related errors."""
    pass


class PromptTemplateError(PromptError):
    """Raised when prompt template rendering fails."""

    def __init__(self, template_name: str, missing_vars: list[str]):
        message = f"Prompt template '{template_name}' missing variables: {', '.join(missing_vars)}"
        super().__init__(message)
        self.template_name = template_name
        self.missing_vars = missing_vars


# Configuration Errors

class ConfigurationError(MentorChatError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, config_key: str, reason: str):
        message = f"Configuration error for '{config_key}': {reason}"
        super().__init__(message)
        self.config_key = config_key
        self.reason = reason
