from multichat.providers.nvidia.provider import NvidiaProvider

__all__ = ["NvidiaProvider"]
