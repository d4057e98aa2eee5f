"""Read-only view of a stage's document-producing jobs and their latest rendered output."""

import logging
from typing import Any

from supabase import Client

from app.core.logging import get_logger, log_with_context
from app.core.schemas_dialectic import (
    ListStageDocumentsData,
    ListStageDocumentsPayload,
    ListStageDocumentsResponse,
    ServiceError,
    StageDocumentDescriptor,
)
from app.db.dialectic_resources import list_stage_rendered_documents
from app.db.generation_jobs import list_stage_jobs

logger = get_logger(__name__)


def _resource_document_key(resource: dict[str, Any]) -> str | None:
    description = resource.get("resource_description")
    if isinstance(description, dict):
        key = description.get("document_key")
        if isinstance(key, str) and key:
            return key
    return None


def list_stage_documents(
    payload: ListStageDocumentsPayload, supabase: Client
) -> ListStageDocumentsResponse:
    """
    List the documents a stage iteration is producing.

    Jobs without a document_key (planner jobs) are left out. Each remaining
    job is matched to its latest rendered resource, by source contribution
    first and by document key otherwise.

    Args:
        payload: Session, stage, iteration and the requesting user/project
        supabase: Supabase client

    Returns:
        ListStageDocumentsResponse with status 200, or 500 on catalog errors
    """
    log_extra = {"session_id": payload.session_id, "stage_slug": payload.stage_slug}

    try:
        jobs = list_stage_jobs(
            supabase,
            payload.session_id,
            payload.stage_slug,
            payload.iteration_number,
            payload.user_id,
            payload.project_id,
        )
    except Exception as e:
        logger.error(f"Failed to list stage jobs: {e}", extra=log_extra)
        return ListStageDocumentsResponse(status=500, error=ServiceError(message=str(e), status=500))

    document_jobs = [
        job for job in jobs if isinstance(job.get("payload"), dict) and job["payload"].get("document_key")
    ]
    if not document_jobs:
        return ListStageDocumentsResponse(status=200, data=ListStageDocumentsData(documents=[]))

    try:
        resources = list_stage_rendered_documents(
            supabase, payload.session_id, payload.stage_slug, payload.iteration_number
        )
    except Exception as e:
        logger.error(f"Failed to list rendered documents: {e}", extra=log_extra)
        return ListStageDocumentsResponse(status=500, error=ServiceError(message=str(e), status=500))

    # Resources arrive newest first; keep the first hit per key
    by_contribution: dict[str, str] = {}
    by_document_key: dict[str, str] = {}
    for resource in resources:
        contribution_id = resource.get("source_contribution_id")
        if contribution_id:
            by_contribution.setdefault(contribution_id, resource["id"])
        document_key = _resource_document_key(resource)
        if document_key:
            by_document_key.setdefault(document_key, resource["id"])

    documents: list[StageDocumentDescriptor] = []
    for job in document_jobs:
        job_payload = job["payload"]
        document_key = job_payload["document_key"]

        resource_id = None
        source_contribution_id = job_payload.get("source_contribution_id")
        if source_contribution_id:
            resource_id = by_contribution.get(source_contribution_id)
        if resource_id is None:
            resource_id = by_document_key.get(document_key)

        documents.append(
            StageDocumentDescriptor(
                document_key=document_key,
                model_id=job_payload.get("model_id"),
                last_rendered_resource_id=resource_id,
                job_id=job["id"],
                status=job.get("status"),
            )
        )

    log_with_context(
        logger,
        logging.INFO,
        f"Listed {len(documents)} stage document(s)",
        session_id=payload.session_id,
        stage_slug=payload.stage_slug,
        iteration_number=payload.iteration_number,
    )
    return ListStageDocumentsResponse(status=200, data=ListStageDocumentsData(documents=documents))
