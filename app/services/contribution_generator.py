"""Multi-model contribution generation for one stage of a session.

Every selected model gets its own independent attempt. Attempts run
concurrently and are joined before anything is decided: a failing or slow
model never blocks the others, and the session status is written once, after
all outcomes are known.
"""

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from supabase import Client

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.llm import call_ai_model
from app.core.schemas_dialectic import (
    AIModelConfig,
    AIModelResponse,
    FailedAttempt,
    GenerateContributionsData,
    GenerateContributionsPayload,
    GenerateContributionsResult,
    PathContext,
    ServiceError,
    SessionContext,
    UploadContext,
)
from app.core.schemas_notifications import (
    DialecticNotification,
    NotificationError,
    NotificationType,
)
from app.core.storage_paths import join_storage_path
from app.db.ai_providers import get_ai_provider
from app.db.dialectic_projects import get_project
from app.db.dialectic_resources import get_seed_prompt_resource
from app.db.dialectic_sessions import get_session, update_session_status
from app.db.dialectic_stages import get_stage_by_slug
from app.db.storage import DownloadFn, make_download_fn
from app.services.file_manager import FileManagerService
from app.services.notifications import emit_notification

module_logger = get_logger(__name__)

ALL_MODELS_FAILED_MESSAGE = "All models failed to generate stage contributions."

CallAIModelFn = Callable[[AIModelConfig, list[dict[str, str]], dict[str, Any]], Awaitable[AIModelResponse]]
UploadAndRegisterFn = Callable[[UploadContext], Awaitable[dict[str, Any]]]
NotifyFn = Callable[[str | None, DialecticNotification], Awaitable[None]]


@dataclass
class GenerateContributionsDeps:
    """Collaborators for a generation round; unset ones are built from the Supabase client."""

    call_ai_model: CallAIModelFn = call_ai_model
    upload_and_register_file: UploadAndRegisterFn | None = None
    download_from_storage: DownloadFn | None = None
    notify: NotifyFn | None = None
    logger: logging.Logger = field(default_factory=lambda: module_logger)
    ai_call_timeout_seconds: float | None = None


def _error_result(
    message: str, code: str, status: int, details: Any = None
) -> GenerateContributionsResult:
    return GenerateContributionsResult(
        success=False,
        error=ServiceError(message=message, code=code, status=status, details=details),
    )


def _default_notifier(supabase: Client) -> NotifyFn:
    async def _notify(user_id: str | None, notification: DialecticNotification) -> None:
        await asyncio.to_thread(emit_notification, supabase, user_id, notification)

    return _notify


async def generate_contributions(
    supabase: Client,
    payload: GenerateContributionsPayload,
    auth_token: str | None = None,
    deps: GenerateContributionsDeps | None = None,
) -> GenerateContributionsResult:
    """
    Generate one contribution per selected model for a session stage.

    Args:
        supabase: Supabase client
        payload: Session, stage and iteration to generate for
        auth_token: Caller's token, forwarded to the model call options
        deps: Injected collaborators

    Returns:
        GenerateContributionsResult. When every model fails, ``error.details``
        lists one FailedAttempt per model in selection order.
    """
    deps = deps or GenerateContributionsDeps()
    log = deps.logger
    session_id = payload.session_id
    stage_slug = payload.stage_slug
    log_extra = {"session_id": session_id, "stage_slug": stage_slug}

    log.info(f"Starting for session ID: {session_id}", extra=log_extra)

    try:
        stage_row = await asyncio.to_thread(get_stage_by_slug, supabase, stage_slug)
        session_row = (
            await asyncio.to_thread(get_session, supabase, session_id) if stage_row else None
        )
    except Exception as e:
        log.error(f"Failed to load stage or session: {e}", extra=log_extra)
        return _error_result(f"Failed to load session context: {e}", "CATALOG_QUERY_FAILED", 500)

    if not stage_row:
        return _error_result(f"Stage '{stage_slug}' not found.", "STAGE_NOT_FOUND", 404)
    if not session_row:
        return _error_result("Session not found.", "SESSION_NOT_FOUND", 404)

    session = SessionContext.model_validate(session_row)

    expected_status = f"pending_{stage_slug}"
    if session.status not in (expected_status, f"{stage_slug}_generation_failed"):
        message = (
            f"Session is not in '{expected_status}' status. Current status: {session.status}"
        )
        log.warning(f"Session {session_id}: {message}", extra=log_extra)
        return _error_result(message, "INVALID_SESSION_STATUS", 400)

    model_ids = list(dict.fromkeys(session.selected_model_ids))
    if not model_ids:
        log.error(f"No models selected for session {session_id}", extra=log_extra)
        return _error_result("No models selected for this session.", "NO_MODELS_SELECTED", 400)

    project_id = payload.project_id or session.project_id
    try:
        project_row = await asyncio.to_thread(get_project, supabase, project_id)
    except Exception as e:
        log.error(f"Failed to load project {project_id}: {e}", extra=log_extra)
        return _error_result(f"Failed to load project: {e}", "CATALOG_QUERY_FAILED", 500)
    if not project_row:
        return _error_result("Project not found.", "PROJECT_NOT_FOUND", 404)
    user_id = project_row.get("user_id")

    download = deps.download_from_storage or make_download_fn(supabase)
    seed_prompt, seed_prompt_path, seed_error = await _load_seed_prompt(
        supabase, download, project_id, payload
    )
    if seed_error:
        log.error(seed_error, extra=log_extra)
        return _error_result(seed_error, "SEED_PROMPT_MISSING", 500)

    upload = deps.upload_and_register_file or FileManagerService(supabase).upload_and_register_file
    notify = deps.notify or _default_notifier(supabase)
    timeout = deps.ai_call_timeout_seconds or get_settings().AI_CALL_TIMEOUT_SECONDS

    def _notification(kind: NotificationType, **kwargs: Any) -> DialecticNotification:
        return DialecticNotification(
            type=kind,
            session_id=session_id,
            stage_slug=stage_slug,
            iteration_number=payload.iteration_number,
            **kwargs,
        )

    await notify(user_id, _notification(NotificationType.CONTRIBUTION_GENERATION_STARTED))

    attempt = _ModelAttempt(
        supabase=supabase,
        payload=payload,
        project_id=project_id,
        user_id=user_id,
        seed_prompt=seed_prompt,
        seed_prompt_path=seed_prompt_path,
        auth_token=auth_token,
        call_ai_model=deps.call_ai_model,
        upload=upload,
        notify=functools.partial(notify, user_id),
        make_notification=_notification,
        timeout=timeout,
        logger=log,
    )
    results = await asyncio.gather(*[attempt.run(model_id) for model_id in model_ids])

    contributions = [r for r in results if not isinstance(r, FailedAttempt)]
    failed_attempts = [r for r in results if isinstance(r, FailedAttempt)]

    if not contributions:
        log.error(
            f"All models failed to generate contributions for session {session_id}",
            extra={**log_extra, "extra_data": {"failures": [f.model_dump() for f in failed_attempts]}},
        )
        failed_status = f"{stage_slug}_generation_failed"
        await _set_final_status(supabase, session_id, failed_status, log)
        await notify(
            user_id,
            _notification(
                NotificationType.CONTRIBUTION_GENERATION_FAILED,
                error=NotificationError(code="ALL_MODELS_FAILED", message=ALL_MODELS_FAILED_MESSAGE),
            ),
        )
        return _error_result(ALL_MODELS_FAILED_MESSAGE, "ALL_MODELS_FAILED", 500, failed_attempts)

    for failure in failed_attempts:
        log.warning(
            f"Model {failure.model_id} failed ({failure.code}): {failure.error}",
            extra={**log_extra, "model_id": failure.model_id},
        )

    complete_status = f"{stage_slug}_generation_complete"
    await _set_final_status(supabase, session_id, complete_status, log)
    await notify(user_id, _notification(NotificationType.CONTRIBUTION_GENERATION_COMPLETE))

    log.info(
        f"Generated {len(contributions)}/{len(model_ids)} contribution(s) for session {session_id}",
        extra=log_extra,
    )
    return GenerateContributionsResult(
        success=True,
        data=GenerateContributionsData(contributions=contributions, status=complete_status),
    )


async def _load_seed_prompt(
    supabase: Client,
    download: DownloadFn,
    project_id: str,
    payload: GenerateContributionsPayload,
) -> tuple[str, str | None, str | None]:
    """Returns (prompt, storage path, error message)."""
    try:
        resource = await asyncio.to_thread(
            get_seed_prompt_resource,
            supabase,
            project_id,
            payload.session_id,
            payload.stage_slug,
            payload.iteration_number,
        )
    except Exception as e:
        return "", None, f"Failed to look up seed prompt: {e}"

    if not resource or not resource.get("storage_bucket") or not resource.get("storage_path"):
        return "", None, (
            f"Seed prompt for stage '{payload.stage_slug}' "
            f"iteration {payload.iteration_number} was not found."
        )

    path = join_storage_path(resource["storage_path"], resource.get("file_name"))
    try:
        content = await download(resource["storage_bucket"], path)
    except Exception as e:
        return "", path, f"Failed to download seed prompt from {path}: {e}"

    prompt = content.decode("utf-8", errors="replace")
    if not prompt.strip():
        return "", path, f"Seed prompt at {path} is empty."
    return prompt, path, None


async def _set_final_status(
    supabase: Client, session_id: str, status: str, log: logging.Logger
) -> None:
    try:
        await asyncio.to_thread(update_session_status, supabase, session_id, status)
    except Exception as e:
        # Contributions are already persisted; the status can be repaired later.
        log.error(
            f"Failed to set session {session_id} status to {status}: {e}",
            extra={"session_id": session_id},
        )


@dataclass
class _ModelAttempt:
    """Runs one model end to end. Each run owns its own result until the join."""

    supabase: Client
    payload: GenerateContributionsPayload
    project_id: str
    user_id: str | None
    seed_prompt: str
    seed_prompt_path: str | None
    auth_token: str | None
    call_ai_model: CallAIModelFn
    upload: UploadAndRegisterFn
    notify: Callable[[DialecticNotification], Awaitable[None]]
    make_notification: Callable[..., DialecticNotification]
    timeout: float
    logger: logging.Logger

    async def run(self, model_id: str) -> dict[str, Any] | FailedAttempt:
        try:
            outcome = await self._run(model_id)
        except Exception as e:
            self.logger.exception(
                f"Unexpected error generating with model {model_id}",
                extra={"session_id": self.payload.session_id, "model_id": model_id},
            )
            outcome = FailedAttempt(model_id=model_id, error=str(e), code="UNEXPECTED_ERROR")

        if isinstance(outcome, FailedAttempt):
            await self.notify(
                self.make_notification(
                    NotificationType.JOB_FAILED,
                    model_id=model_id,
                    error=NotificationError(code=outcome.code, message=outcome.error),
                )
            )
        return outcome

    async def _run(self, model_id: str) -> dict[str, Any] | FailedAttempt:
        log_extra = {"session_id": self.payload.session_id, "model_id": model_id}

        try:
            provider_row = await asyncio.to_thread(get_ai_provider, self.supabase, model_id)
        except Exception as e:
            self.logger.error(f"Failed to fetch AI provider {model_id}: {e}", extra=log_extra)
            return FailedAttempt(
                model_id=model_id,
                error="Failed to fetch AI Provider details from database.",
                code="PROVIDER_FETCH_FAILED",
                details=getattr(e, "message", None) or str(e),
            )
        if not provider_row:
            return FailedAttempt(
                model_id=model_id,
                error="AI Provider details not found.",
                code="PROVIDER_NOT_FOUND",
            )

        model_config = AIModelConfig.model_validate(provider_row)
        await self.notify(
            self.make_notification(NotificationType.DIALECTIC_CONTRIBUTION_STARTED, model_id=model_id)
        )

        options: dict[str, Any] = {}
        if self.payload.max_output_tokens:
            options["max_output_tokens"] = self.payload.max_output_tokens
        if self.auth_token:
            options["auth_token"] = self.auth_token

        try:
            response = await asyncio.wait_for(
                self.call_ai_model(
                    model_config, [{"role": "user", "content": self.seed_prompt}], options
                ),
                timeout=self.timeout,
            )
        except TimeoutError:
            self.logger.error(
                f"Model {model_config.name} timed out after {self.timeout}s", extra=log_extra
            )
            return FailedAttempt(
                model_id=model_id,
                error=f"AI model call timed out after {self.timeout}s.",
                code="AI_CALL_TIMEOUT",
            )

        if response.error:
            self.logger.error(
                f"Model {model_config.name} returned an error: {response.error}", extra=log_extra
            )
            return FailedAttempt(
                model_id=model_id,
                error=response.error,
                code=response.error_code or "AI_MODEL_ERROR",
            )

        if not response.content or not response.content.strip():
            self.logger.error(f"Model {model_config.name} returned no content", extra=log_extra)
            return FailedAttempt(
                model_id=model_id,
                error="AI model returned no content.",
                code="NO_CONTENT_RETURNED",
            )

        upload_context = UploadContext(
            path_context=PathContext(
                project_id=self.project_id,
                session_id=self.payload.session_id,
                iteration=self.payload.iteration_number,
                stage_slug=self.payload.stage_slug,
                model_slug=model_config.api_identifier,
                document_key=self.payload.stage_slug,
            ),
            content=response.content,
            user_id=self.user_id,
            model_id=model_id,
            model_name=model_config.name,
            seed_prompt_path=self.seed_prompt_path,
            tokens_used_input=response.input_tokens,
            tokens_used_output=response.output_tokens,
            processing_time_ms=response.processing_time_ms,
            raw_provider_response=response.raw_provider_response,
        )

        try:
            record = await self.upload(upload_context)
        except Exception as e:
            self.logger.error(f"FileManagerService failed for {model_config.name}: {e}", extra=log_extra)
            return FailedAttempt(model_id=model_id, error=str(e), code="FILE_MANAGER_ERROR")

        await self.notify(
            self.make_notification(
                NotificationType.DIALECTIC_CONTRIBUTION_RECEIVED,
                model_id=model_id,
                document_key=self.payload.stage_slug,
            )
        )
        return record
