"""FastAPI application entry point for the Dialectic Engine."""

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from app.api import router as api_router
from app.core.config import get_settings

app = FastAPI(
    title="Dialectic Engine",
    description=(
        "Resolves stage inputs, fans generation out across a session's selected models "
        "and lists the documents a stage iteration is producing"
    ),
    version="0.1.0",
)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Liveness probe; reports the configured environment and contribution bucket."""
    settings = get_settings()
    return JSONResponse(
        content={
            "status": "ok",
            "environment": settings.DIALECTIC_ENV,
            "storage_bucket": settings.CONTENT_STORAGE_BUCKET,
        },
        status_code=200,
    )


# Dialectic routes live under /v1/dialectic
app.include_router(api_router, prefix="/v1", tags=["v1"])
