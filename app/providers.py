import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable

import httpx

from .config import settings
from .schemas import Base64Result, GenerationRequest, GenerationResult, ImagesResult, UrlResult

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Upstream provider failed or returned something unusable."""


class ImageModel(str, Enum):
    DALL_E_2 = "dall-e-2"
    DALL_E_3 = "dall-e-3"
    FLUX_SCHNELL = "flux-schnell"


OPENAI_OPTIONS: dict[str, Any] = {
    "qualities": ["standard", "hd"],
    "styles": ["vivid", "natural"],
    "responseFormats": ["url", "b64_json"],
    "count": {"min": 1, "max": 10},
}

MODEL_CATALOGUE: dict[ImageModel, dict[str, Any]] = {
    ImageModel.DALL_E_2: {
        "label": "DALL-E 2",
        "provider": "openai",
        "options": {**OPENAI_OPTIONS, "sizes": ["256x256", "512x512", "1024x1024"]},
    },
    ImageModel.DALL_E_3: {
        "label": "DALL-E 3",
        "provider": "openai",
        "options": {**OPENAI_OPTIONS, "sizes": ["1024x1024", "1792x1024", "1024x1792"]},
    },
    ImageModel.FLUX_SCHNELL: {
        "label": "FLUX Schnell",
        "provider": "fal",
        "endpoint": "fal-ai/flux/schnell",
        "options": {
            "imageSizes": [
                "square_hd",
                "square",
                "portrait_4_3",
                "portrait_16_9",
                "landscape_4_3",
                "landscape_16_9",
            ],
            "inferenceSteps": {"min": 1, "max": 50},
            "count": {"min": 1, "max": 10},
        },
    },
}

FORM_DEFAULTS: dict[str, Any] = {
    "model": ImageModel.DALL_E_2.value,
    "size": "1024x1024",
    "quality": "standard",
    "style": "vivid",
    "n": 1,
    "responseFormat": "url",
    "image_size": "landscape_4_3",
    "num_inference_steps": 4,
    "enable_safety_checker": True,
}

FAL_DONE_STATUS = "COMPLETED"


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.PROVIDER_TIMEOUT)


def _ensure_api_key(value: str | None, env_name: str, provider_label: str) -> str:
    if not value:
        raise ProviderError(f"{provider_label} API key not found in {env_name}")
    return value


def _drop_absent(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


def _provider_error(provider_name: str, response: httpx.Response) -> ProviderError:
    try:
        payload = response.json()
    except ValueError:
        return ProviderError(f"{provider_name} returned an unexpected error ({response.status_code}).")

    error_obj = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error_obj, dict) and error_obj.get("message"):
        return ProviderError(f"{provider_name} ({response.status_code}): {error_obj['message']}")
    detail = payload.get("detail") if isinstance(payload, dict) else None
    if detail:
        return ProviderError(f"{provider_name} ({response.status_code}): {detail}")

    return ProviderError(f"{provider_name} error ({response.status_code}).")


async def _generate_with_openai(request: GenerationRequest, entry: dict[str, Any]) -> GenerationResult:
    api_key = _ensure_api_key(settings.OPENAI_API_KEY, "OPENAI_API_KEY", "OpenAI")
    payload = _drop_absent(
        {
            "model": request.model,
            "prompt": request.prompt,
            "n": request.n,
            "size": request.size,
            "quality": request.quality,
            "style": request.style,
            "response_format": request.response_format,
            "user": request.user,
        }
    )

    async with _http_client() as client:
        response = await client.post(
            f"{settings.OPENAI_BASE_URL}/images/generations",
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            json=payload,
        )

    if response.status_code >= 400:
        raise _provider_error("OpenAI", response)

    body = response.json()
    first = (body.get("data") or [{}])[0]
    if request.response_format == "b64_json":
        image_b64 = first.get("b64_json")
        if not image_b64:
            raise ProviderError("OpenAI returned no b64_json image payload.")
        return Base64Result(b64_json=image_b64)

    url = first.get("url")
    if not url:
        raise ProviderError("OpenAI returned no image url.")
    return UrlResult(url=url)


def _image_url(image: Any) -> str:
    if isinstance(image, str):
        return image
    if isinstance(image, dict) and image.get("url"):
        return image["url"]
    raise ProviderError(f"fal returned an image entry without a url: {image!r}")


async def _wait_for_fal_job(client: httpx.AsyncClient, headers: dict[str, str], job: dict[str, Any]) -> dict[str, Any]:
    status_url = job["status_url"]
    while True:
        response = await client.get(status_url, headers=headers)
        if response.status_code >= 400:
            raise _provider_error("fal", response)
        status = response.json().get("status")
        logger.debug("fal job %s status=%s", job.get("request_id"), status)
        if status == FAL_DONE_STATUS:
            break
        await asyncio.sleep(settings.FAL_POLL_INTERVAL)

    response = await client.get(job["response_url"], headers=headers)
    if response.status_code >= 400:
        raise _provider_error("fal", response)
    return response.json()


def _fal_requests_url(endpoint: str) -> str:
    # Queue status lives under the app id ("fal-ai/flux"), not the full endpoint path.
    app_id = "/".join(endpoint.split("/")[:2])
    return f"{settings.FAL_QUEUE_URL}/{app_id}/requests"


async def _generate_with_fal(request: GenerationRequest, entry: dict[str, Any]) -> GenerationResult:
    api_key = _ensure_api_key(settings.FAL_KEY, "FAL_KEY", "fal")
    endpoint = entry["endpoint"]
    headers = {"Authorization": f"Key {api_key}"}
    payload = _drop_absent(
        {
            "prompt": request.prompt,
            "image_size": request.image_size,
            "num_inference_steps": request.num_inference_steps,
            "seed": request.seed,
            "num_images": request.n,
            "enable_safety_checker": request.enable_safety_checker,
        }
    )

    async with _http_client() as client:
        response = await client.post(
            f"{settings.FAL_QUEUE_URL}/{endpoint}",
            headers={**headers, "Content-Type": "application/json"},
            json=payload,
        )
        if response.status_code >= 400:
            raise _provider_error("fal", response)

        job = response.json()
        request_id = job.get("request_id")
        if not request_id:
            raise ProviderError(f"fal returned no request_id: {job}")
        job.setdefault("status_url", f"{_fal_requests_url(endpoint)}/{request_id}/status")
        job.setdefault("response_url", f"{_fal_requests_url(endpoint)}/{request_id}")
        logger.debug("fal job %s submitted to %s", request_id, endpoint)

        result = await _wait_for_fal_job(client, headers, job)

    images = result.get("images")
    if not isinstance(images, list):
        raise ProviderError(f"fal returned no image list for job {request_id}")
    return ImagesResult(images=[_image_url(image) for image in images])


Adapter = Callable[[GenerationRequest, dict[str, Any]], Awaitable[GenerationResult]]

PROVIDERS: dict[str, dict[str, Any]] = {
    "openai": {
        "label": "OpenAI",
        "requiresKey": "OPENAI_API_KEY",
        "generate": _generate_with_openai,
    },
    "fal": {
        "label": "fal.ai",
        "requiresKey": "FAL_KEY",
        "generate": _generate_with_fal,
    },
}

DEFAULT_PROVIDER = "openai"


def resolve_model(model: str | None) -> tuple[str, dict[str, Any]]:
    """Map a model name onto its provider id and catalogue entry.

    Names outside the catalogue go to the default provider untouched.
    """
    try:
        entry = MODEL_CATALOGUE[ImageModel(model)]
    except ValueError:
        return DEFAULT_PROVIDER, {}
    return entry["provider"], entry


def has_key(provider_id: str) -> bool:
    return bool(getattr(settings, PROVIDERS[provider_id]["requiresKey"]))


async def generate_image(request: GenerationRequest) -> GenerationResult:
    provider_id, entry = resolve_model(request.model)
    logger.info("Generating image with model=%s provider=%s n=%s", request.model, provider_id, request.n)
    adapter: Adapter = PROVIDERS[provider_id]["generate"]
    return await adapter(request, entry)
