"""
Application errors.

Agent errors never leave the MasterAgent boundary; retrieval errors degrade
per source; completion and chat errors carry the provider and model name so
the API can render a useful message.
"""

from typing import Optional


class VaultChatError(Exception):
    """Base class for every error raised by this package."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ClassificationError(VaultChatError):
    """The intent model call failed. Always degraded to UNKNOWN by the classifier."""


class AgentError(VaultChatError):
    pass


class AgentPreconditionError(AgentError):
    """A vault, note or collaborator required by an agent is missing."""


class AgentExecutionError(AgentError):
    """An agent's domain action failed or produced nothing usable."""


class RetrievalError(VaultChatError):
    pass


class WebSearchError(VaultChatError):
    pass


class CompletionError(VaultChatError):
    """Raised by the LLM client once its retries are exhausted."""

    def __init__(self, message: str, provider: str = "ollama", model: Optional[str] = None) -> None:
        self.provider = provider
        self.model = model
        super().__init__(message)


class ChatError(VaultChatError):
    """The only error the chat path surfaces to a user."""

    def __init__(self, message: str, provider: Optional[str] = None, model: Optional[str] = None) -> None:
        self.provider = provider
        self.model = model
        super().__init__(message)

    @property
    def detail(self) -> str:
        if self.provider or self.model:
            return f"{self.message} (provider: {self.provider or 'unknown'}, model: {self.model or 'unknown'})"
        return self.message
