from multichat.providers.google.client import GeminiClient
from multichat.providers.google.provider import GoogleProvider

__all__ = ["GeminiClient", "GoogleProvider"]
