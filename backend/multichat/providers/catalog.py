"""Static catalog of the models offered in the model picker."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

from multichat.providers.base import ProviderName


@dataclass(frozen=True)
class ModelFeatures:
    imageGeneration: bool = False
    imageUpload: bool = False
    fileUpload: bool = False
    webSearch: bool = False
    streaming: bool = True
    maxTokens: int = 1024

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class LLMModel:
    id: str
    name: str
    provider: ProviderName
    category: str
    contextLength: int
    description: str
    features: ModelFeatures = field(default_factory=ModelFeatures)


LLM_MODELS: tuple[LLMModel, ...] = (
    LLMModel(
        id="gemini-2.0-flash",
        name="Gemini 2.0",
        provider=ProviderName.GOOGLE,
        category="chat",
        contextLength=1_048_576,
        description="Google's latest multimodal AI with advanced reasoning and real-time capabilities",
        features=ModelFeatures(
            imageUpload=True, fileUpload=True, webSearch=True, maxTokens=8192
        ),
    ),
    LLMModel(
        id="gemini-2.5-flash-preview-05-20",
        name="Gemini 2.5 Flash Preview",
        provider=ProviderName.GOOGLE,
        category="chat",
        contextLength=1_048_576,
        description="Experimental preview with enhanced speed and performance",
        features=ModelFeatures(
            imageUpload=True, fileUpload=True, webSearch=True, maxTokens=65_536
        ),
    ),
    LLMModel(
        id="gemini-2.0-flash-preview-image-generation",
        name="Gemini 2.0 Flash Image Generation",
        provider=ProviderName.GOOGLE,
        category="image",
        contextLength=32_768,
        description="Gemini variant that answers with text and generated images",
        features=ModelFeatures(
            imageGeneration=True, imageUpload=True, streaming=False, maxTokens=8192
        ),
    ),
    LLMModel(
        id="meta/llama-3.1-8b-instruct",
        name="Llama 3.1 8B Instruct",
        provider=ProviderName.NVIDIA,
        category="chat",
        contextLength=128_000,
        description="Meta's compact instruction-tuned model served by NVIDIA NIM",
    ),
    LLMModel(
        id="meta/llama-3.1-70b-instruct",
        name="Llama 3.1 70B Instruct",
        provider=ProviderName.NVIDIA,
        category="chat",
        contextLength=128_000,
        description="Larger Llama 3.1 for harder reasoning tasks, served by NVIDIA NIM",
    ),
    LLMModel(
        id="meta/llama-3.2-11b-vision-instruct",
        name="Llama 3.2 11B Vision",
        provider=ProviderName.NVIDIA,
        category="vision",
        contextLength=128_000,
        description="Multimodal Llama that can read attached images",
        features=ModelFeatures(imageUpload=True),
    ),
    LLMModel(
        id="microsoft/phi-3-vision-128k-instruct",
        name="Phi-3 Vision",
        provider=ProviderName.NVIDIA,
        category="vision",
        contextLength=128_000,
        description="Small Microsoft vision-language model with a long context",
        features=ModelFeatures(imageUpload=True),
    ),
    LLMModel(
        id="stabilityai/stable-diffusion-xl",
        name="Stable Diffusion XL",
        provider=ProviderName.NVIDIA,
        category="image",
        contextLength=77,
        description="Text-to-image generation through the NVIDIA genai endpoint",
        features=ModelFeatures(imageGeneration=True, streaming=False, maxTokens=0),
    ),
    LLMModel(
        id="mistralai/Mistral-7B-Instruct-v0.3",
        name="Mistral 7B Instruct",
        provider=ProviderName.HUGGINGFACE,
        category="chat",
        contextLength=32_768,
        description="Open-weight instruction model through the Hugging Face router",
        features=ModelFeatures(streaming=False, maxTokens=1000),
    ),
    LLMModel(
        id="HuggingFaceH4/zephyr-7b-beta",
        name="Zephyr 7B Beta",
        provider=ProviderName.HUGGINGFACE,
        category="chat",
        contextLength=32_768,
        description="Fine-tuned Mistral chat model from the Hugging Face H4 team",
        features=ModelFeatures(maxTokens=1000),
    ),
    LLMModel(
        id="hf-stabilityai/stable-diffusion-xl-base-1.0",
        name="SDXL Base (Hub)",
        provider=ProviderName.HUGGINGFACE,
        category="image",
        contextLength=77,
        description="Text-to-image on the Hugging Face inference router",
        features=ModelFeatures(imageGeneration=True, streaming=False, maxTokens=0),
    ),
)

_BY_ID: dict[str, LLMModel] = {model.id: model for model in LLM_MODELS}


def get_model(model_id: str) -> LLMModel | None:
    return _BY_ID.get(model_id)


def models_for_provider(provider: ProviderName | str) -> list[LLMModel]:
    name = provider.value if isinstance(provider, ProviderName) else provider
    return [model for model in LLM_MODELS if model.provider.value == name]
