"""Vision capability detection for catalog and upstream models."""

from __future__ import annotations

# NVIDIA NIM models that accept image_url content blocks
NVIDIA_VISION_MODELS: frozenset[str] = frozenset({
    "meta/llama-3.2-11b-vision-instruct",
    "meta/llama-3.2-90b-vision-instruct",
    "microsoft/phi-3-vision-128k-instruct",
})

# Hub models we call through the router never receive media
HUGGINGFACE_VISION_MODELS: frozenset[str] = frozenset()


def model_has_vision(provider: str, model_id: str) -> bool:
    """Detect if the given model supports image/vision inputs.

    Args:
        provider: Provider name (Google, HuggingFace, Nvidia).
        model_id: Upstream model id (e.g. meta/llama-3.2-11b-vision-instruct).

    Returns:
        True if the model supports vision inputs, False otherwise.
    """
    label_lower = model_id.lower()
    if provider == "Google":
        # Every Gemini generation accepts inline image data.
        return label_lower.startswith("gemini")
    if provider == "Nvidia":
        return model_id in NVIDIA_VISION_MODELS
    if provider == "HuggingFace":
        return model_id in HUGGINGFACE_VISION_MODELS
    return False
