from fastapi import APIRouter, Depends

from multichat.api.deps import get_registry
from multichat.api.envelope import ok
from multichat.providers.catalog import LLM_MODELS, LLMModel
from multichat.providers.registry import ProviderRegistry
from multichat.schemas.chat import ModelOut

router = APIRouter(prefix="/api/models", tags=["models"])


def _to_model_out(model: LLMModel, registry: ProviderRegistry) -> ModelOut:
    capabilities = registry.capabilities(model.id)
    return ModelOut(
        id=model.id,
        name=model.name,
        provider=model.provider.value,
        category=model.category,
        contextLength=model.contextLength,
        description=model.description,
        features=model.features.to_dict(),
        supportsStreaming=capabilities.streaming,
        supportsImageGeneration=capabilities.image_generation,
        supportsVision=capabilities.vision,
    )


@router.get("")
def list_models(registry: ProviderRegistry = Depends(get_registry)):
    return ok({"models": [_to_model_out(m, registry).model_dump() for m in LLM_MODELS]})


@router.get("/{model_id:path}/capabilities")
def model_capabilities(model_id: str, registry: ProviderRegistry = Depends(get_registry)):
    route = registry.resolve(model_id)
    capabilities = registry.capabilities(model_id)
    return ok(
        {
            "modelId": model_id,
            "provider": route.provider.value,
            "actualModelId": route.actual_model_id,
            "supportsStreaming": capabilities.streaming,
            "supportsImageGeneration": capabilities.image_generation,
            "supportsVision": capabilities.vision,
        }
    )
