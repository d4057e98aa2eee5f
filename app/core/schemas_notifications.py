"""Pydantic schemas for dialectic lifecycle notifications."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class NotificationType(str, Enum):
    """Closed set of events the generation pipeline reports."""

    PLANNER_STARTED = "planner_started"
    EXECUTE_STARTED = "execute_started"
    EXECUTE_CHUNK_COMPLETED = "execute_chunk_completed"
    RENDER_COMPLETED = "render_completed"
    JOB_FAILED = "job_failed"
    CONTRIBUTION_GENERATION_STARTED = "contribution_generation_started"
    DIALECTIC_CONTRIBUTION_STARTED = "dialectic_contribution_started"
    DIALECTIC_CONTRIBUTION_RECEIVED = "dialectic_contribution_received"
    CONTRIBUTION_GENERATION_FAILED = "contribution_generation_failed"
    CONTRIBUTION_GENERATION_COMPLETE = "contribution_generation_complete"


class NotificationError(BaseModel):
    code: str
    message: str


class DialecticNotification(BaseModel):
    model_config = ConfigDict(protected_namespaces=(), use_enum_values=True)

    type: NotificationType
    session_id: str
    stage_slug: str
    iteration_number: int
    job_id: str | None = None
    step_key: str | None = None
    document_key: str | None = None
    model_id: str | None = None
    error: NotificationError | None = None
