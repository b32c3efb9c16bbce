"""AI client, backend gateway, prompt templates and request builders."""

from .backend import Backend, BackendError, OpenAIBackend
from .client import AIClient, ClientSettings

__all__ = ["AIClient", "Backend", "BackendError", "ClientSettings", "OpenAIBackend"]
