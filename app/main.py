import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from .config import settings
from .providers import FORM_DEFAULTS, MODEL_CATALOGUE, PROVIDERS, generate_image, has_key
from .schemas import ErrorResponse, GenerationRequest, GenerationResult, ModelOptions, ModelsResponse

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Error generating image"


@asynccontextmanager
async def lifespan(_: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    yield


app = FastAPI(title="Image Generator", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/models", response_model=ModelsResponse)
async def get_models() -> ModelsResponse:
    models = {}
    for model, details in MODEL_CATALOGUE.items():
        provider_id = details["provider"]
        models[model.value] = ModelOptions(
            label=details["label"],
            provider=PROVIDERS[provider_id]["label"],
            hasKey=has_key(provider_id),
            options=details["options"],
        )
    return ModelsResponse(models=models, defaults=FORM_DEFAULTS)


@app.post(
    "/api/generate-image",
    response_model=GenerationResult,
    responses={500: {"model": ErrorResponse}},
)
async def generate(request: Request):
    try:
        body = await request.json()
        payload = GenerationRequest.model_validate(body)
        result = await generate_image(payload)
    except Exception:
        logger.exception("Error generating image")
        return JSONResponse(status_code=500, content=ErrorResponse(error=GENERIC_ERROR).model_dump())

    return result


@app.get("/")
async def root() -> FileResponse:
    return FileResponse(settings.STATIC_DIR / "index.html")


app.mount("/static", StaticFiles(directory=settings.STATIC_DIR), name="static")
