from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class GenerationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", protected_namespaces=())

    # Only the model is typed; everything else goes upstream exactly as sent.
    model: str | None = None
    prompt: Any = None
    n: Any = None

    # OpenAI Images
    size: Any = None
    quality: Any = None
    style: Any = None
    response_format: Any = Field(default=None, alias="responseFormat")
    user: Any = None

    # fal.ai
    image_size: Any = None
    num_inference_steps: Any = None
    seed: Any = None
    enable_safety_checker: Any = None


class UrlResult(BaseModel):
    url: str


class Base64Result(BaseModel):
    b64_json: str


class ImagesResult(BaseModel):
    images: list[str]


GenerationResult = UrlResult | Base64Result | ImagesResult


class ErrorResponse(BaseModel):
    error: str


class ModelOptions(BaseModel):
    label: str
    provider: str
    hasKey: bool
    options: dict[str, Any]


class ModelsResponse(BaseModel):
    models: dict[str, ModelOptions]
    defaults: dict[str, Any]
