"""Static defaults shared by settings, providers and the chat service."""

DEFAULT_CHAT_TITLE = "New Chat"
DEFAULT_MODEL = "gemini-2.0-flash"

GOOGLE_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
HUGGINGFACE_BASE_URL = "https://router.huggingface.co/v1"
HUGGINGFACE_INFERENCE_URL = "https://router.huggingface.co/hf-inference/models"
NVIDIA_BASE_URL = "https://integrate.api.nvidia.com/v1"
NVIDIA_GENAI_URL = "https://ai.api.nvidia.com/v1/genai"

GOOGLE_TITLE_MODEL = "gemini-2.0-flash"
HUGGINGFACE_TITLE_MODEL = "microsoft/DialoGPT-medium"
NVIDIA_TITLE_MODEL = "meta/llama-3.1-8b-instruct"

HUGGINGFACE_MAX_TOKENS = 1000
NVIDIA_MAX_TOKENS = 1024
DEFAULT_TEMPERATURE = 0.7
TITLE_MAX_TOKENS = 50
TITLE_TEMPERATURE = 0.3
