from multichat.providers.huggingface.provider import HuggingFaceProvider

__all__ = ["HuggingFaceProvider"]
