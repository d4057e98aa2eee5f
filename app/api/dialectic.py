"""API endpoints for dialectic stage generation and stage documents."""

from fastapi import APIRouter, Header, Query
from fastapi.responses import JSONResponse

from app.core.logging import get_logger
from app.core.schemas_dialectic import GenerateContributionsPayload, ListStageDocumentsPayload
from app.db.supabase_client import get_supabase
from app.services.contribution_generator import generate_contributions
from app.services.stage_documents import list_stage_documents

logger = get_logger(__name__)

router = APIRouter()


def _bearer_token(authorization: str | None) -> str | None:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return authorization


@router.post("/generate-contributions")
async def generate_stage_contributions(
    payload: GenerateContributionsPayload,
    authorization: str | None = Header(default=None),
) -> JSONResponse:
    """
    Run one generation round for a session stage across its selected models.

    Failures come back as the same envelope with ``success: false`` and the
    envelope's status code, so callers can show per-model diagnostics.
    """
    result = await generate_contributions(get_supabase(), payload, _bearer_token(authorization))

    if result.success:
        return JSONResponse(content=result.model_dump(mode="json"), status_code=200)

    status_code = result.error.status if result.error else 500
    return JSONResponse(content=result.model_dump(mode="json"), status_code=status_code)


@router.get("/sessions/{session_id}/stage-documents")
async def get_stage_documents(
    session_id: str,
    stage_slug: str = Query(..., description="Stage slug"),
    iteration_number: int = Query(..., ge=1, description="Iteration number"),
    user_id: str = Query(..., description="Requesting user ID"),
    project_id: str = Query(..., description="Owning project ID"),
) -> JSONResponse:
    """List the documents a stage iteration is producing and their latest rendered resource."""
    payload = ListStageDocumentsPayload(
        session_id=session_id,
        stage_slug=stage_slug,
        iteration_number=iteration_number,
        user_id=user_id,
        project_id=project_id,
    )
    response = list_stage_documents(payload, get_supabase())

    if response.error:
        logger.error(f"Failed to list stage documents for session {session_id}: {response.error.message}")
        return JSONResponse(
            content={"detail": "Failed to retrieve stage documents"},
            status_code=response.status,
        )

    return JSONResponse(content=response.data.model_dump(mode="json"), status_code=response.status)
