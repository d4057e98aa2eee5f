"""Stage input resolution.

Turns a stage's recipe input rules into downloaded source documents for prompt
assembly. Each rule type has its own resolver:

- document rules read rendered documents only; they never fall back to raw
  contributions
- feedback rules read the user's feedback from the previous iteration
- header_context and contribution rules read raw contributions only

Rules are resolved one at a time so the output order always matches the rule
order. A required rule that cannot be satisfied raises an InputResolutionError;
an optional one is logged and left out.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from supabase import Client

from app.core.dialectic_errors import (
    CatalogQueryFailedError,
    RequiredDownloadFailedError,
    RequiredInputMissingError,
    RequiredStorageDetailsMissingError,
)
from app.core.logging import get_logger
from app.core.schemas_dialectic import (
    ContributionRule,
    DocumentRule,
    FeedbackRule,
    GatheredRecipeContext,
    HeaderContextRule,
    InputRule,
    ProjectContext,
    SessionContext,
    SourceDocument,
    SourceDocumentMetadata,
    StageContext,
)
from app.core.storage_paths import (
    deconstruct_file_name,
    file_name_mentions_document_key,
    join_storage_path,
    model_slug_from_file_name,
)
from app.db.dialectic_contributions import list_latest_contributions
from app.db.dialectic_feedback import find_feedback
from app.db.dialectic_resources import find_rendered_documents
from app.db.dialectic_stages import fallback_display_name, get_stage_display_names
from app.db.storage import DownloadFn

module_logger = get_logger(__name__)


@dataclass
class _ResolutionContext:
    """Per-call state shared by the rule resolvers."""

    supabase: Client
    download_fn: DownloadFn
    project: ProjectContext
    session: SessionContext
    iteration_number: int
    logger: logging.Logger
    display_names: dict[str, str] = field(default_factory=dict)

    def display_name(self, slug: str) -> str:
        return self.display_names.get(slug) or fallback_display_name(slug)

    def log_extra(self, rule: InputRule) -> dict[str, Any]:
        return {
            "session_id": self.session.id,
            "stage_slug": rule.slug,
            "extra_data": {
                "rule_type": rule.type,
                "document_key": rule.document_key,
                "required": rule.required,
                "iteration_number": self.iteration_number,
            },
        }


async def gather_inputs_for_stage(
    supabase: Client,
    download_fn: DownloadFn,
    stage: StageContext,
    project: ProjectContext,
    session: SessionContext,
    iteration_number: int,
    logger: logging.Logger | None = None,
) -> GatheredRecipeContext:
    """
    Resolve a stage's input rules into downloaded source documents.

    Args:
        supabase: Supabase client used for catalog queries
        download_fn: Async ``(bucket, path) -> bytes`` storage download
        stage: Stage whose recipe step declares the inputs
        project: Owning project (its user_id scopes feedback lookups)
        session: Session being generated
        iteration_number: Current iteration
        logger: Logger for diagnostics (defaults to this module's logger)

    Returns:
        GatheredRecipeContext with documents in rule order and the recipe step

    Raises:
        RequiredInputMissingError: A required input does not exist
        RequiredStorageDetailsMissingError: A required input has no storage location
        RequiredDownloadFailedError: A required input could not be downloaded
        CatalogQueryFailedError: The catalog query for a required input failed
    """
    log = logger or module_logger
    recipe_step = stage.recipe_step
    rules = recipe_step.inputs_required

    if not rules:
        log.info(
            f"No input rules for stage {stage.slug}, nothing to gather",
            extra={"session_id": session.id, "stage_slug": stage.slug},
        )
        return GatheredRecipeContext(source_documents=[], recipe_step=recipe_step)

    ctx = _ResolutionContext(
        supabase=supabase,
        download_fn=download_fn,
        project=project,
        session=session,
        iteration_number=iteration_number,
        logger=log,
    )
    ctx.display_names = await _load_display_names(ctx, [rule.slug for rule in rules])

    source_documents: list[SourceDocument] = []
    for rule in rules:
        source_documents.extend(await _resolve_rule(ctx, rule))

    log.info(
        f"Gathered {len(source_documents)} source document(s) from {len(rules)} rule(s) "
        f"for stage {stage.slug}",
        extra={"session_id": session.id, "stage_slug": stage.slug},
    )
    return GatheredRecipeContext(source_documents=source_documents, recipe_step=recipe_step)


async def _load_display_names(ctx: _ResolutionContext, slugs: list[str]) -> dict[str, str]:
    try:
        return await asyncio.to_thread(get_stage_display_names, ctx.supabase, slugs)
    except Exception as e:
        ctx.logger.warning(f"Could not fetch display names for stages {sorted(set(slugs))}: {e}")
        return {}


async def _resolve_rule(ctx: _ResolutionContext, rule: InputRule) -> list[SourceDocument]:
    if isinstance(rule, DocumentRule):
        return await _resolve_document_rule(ctx, rule)
    if isinstance(rule, FeedbackRule):
        return await _resolve_feedback_rule(ctx, rule)
    if isinstance(rule, HeaderContextRule | ContributionRule):
        return await _resolve_contribution_rule(ctx, rule)
    raise TypeError(f"Unsupported input rule type: {type(rule).__name__}")


# =============================================================================
# Per-type resolvers
# =============================================================================


async def _resolve_document_rule(
    ctx: _ResolutionContext, rule: DocumentRule
) -> list[SourceDocument]:
    """Rendered documents only; a missing required document is an error, never a fallback."""
    display_name = ctx.display_name(rule.slug)
    document_key = rule.key_filter

    rows = await _query_catalog(
        ctx,
        rule,
        "rendered documents",
        find_rendered_documents,
        ctx.supabase,
        ctx.session.id,
        ctx.iteration_number,
        rule.slug,
        document_key,
    )

    if not rows:
        if rule.required:
            raise RequiredInputMissingError(
                f"Required rendered document for stage '{display_name}' "
                f"with document_key '{rule.document_key}' was not found. "
                "Finished documents must be rendered before they can be used as inputs.",
                stage_slug=rule.slug,
                display_name=display_name,
                document_key=rule.document_key,
            )
        ctx.logger.info(
            f"Optional rendered document for stage '{display_name}' not found, skipping",
            extra=ctx.log_extra(rule),
        )
        return []

    if not rule.multiple:
        rows = rows[:1]

    return await _download_rows(ctx, rule, rows, "rendered document")


async def _resolve_feedback_rule(
    ctx: _ResolutionContext, rule: FeedbackRule
) -> list[SourceDocument]:
    """Feedback is left on the previous iteration of the source stage."""
    display_name = ctx.display_name(rule.slug)
    target_iteration = max(ctx.iteration_number - 1, 1)

    rows = await _query_catalog(
        ctx,
        rule,
        "feedback",
        _find_feedback_rows,
        ctx.supabase,
        ctx.session.id,
        rule.slug,
        target_iteration,
        ctx.project.user_id,
    )

    if not rows:
        if rule.required:
            raise RequiredInputMissingError(
                f"Required feedback for stage '{display_name}' was not found.",
                stage_slug=rule.slug,
                display_name=display_name,
                document_key=rule.document_key,
            )
        ctx.logger.info(
            f"Optional feedback for stage '{display_name}' not found, skipping",
            extra=ctx.log_extra(rule),
        )
        return []

    return await _download_rows(ctx, rule, rows, "feedback")


async def _resolve_contribution_rule(
    ctx: _ResolutionContext, rule: HeaderContextRule | ContributionRule
) -> list[SourceDocument]:
    """Raw model output; only the latest edit of each contribution is considered."""
    display_name = ctx.display_name(rule.slug)
    label = "header context" if isinstance(rule, HeaderContextRule) else "contributions"

    rows = await _query_catalog(
        ctx,
        rule,
        label,
        list_latest_contributions,
        ctx.supabase,
        ctx.session.id,
        ctx.iteration_number,
        rule.slug,
    )

    key = rule.key_filter
    if key is None and isinstance(rule, HeaderContextRule):
        key = "header_context"
    if key is not None:
        rows = [row for row in rows if _contribution_matches_key(row, key)]

    if not rows:
        if rule.required:
            key_text = f" with document_key '{key}'" if key else ""
            raise RequiredInputMissingError(
                f"Required {label} for stage '{display_name}'{key_text} were not found.",
                stage_slug=rule.slug,
                display_name=display_name,
                document_key=key,
            )
        ctx.logger.info(
            f"Optional {label} for stage '{display_name}' not found, skipping",
            extra=ctx.log_extra(rule),
        )
        return []

    if not rule.multiple:
        rows = rows[:1]

    return await _download_rows(ctx, rule, rows, "contribution")


# =============================================================================
# Helpers
# =============================================================================


def _find_feedback_rows(*args: Any) -> list[dict[str, Any]]:
    row = find_feedback(*args)
    return [row] if row else []


async def _query_catalog(
    ctx: _ResolutionContext,
    rule: InputRule,
    what: str,
    query_fn: Callable[..., list[dict[str, Any]]],
    *args: Any,
) -> list[dict[str, Any]]:
    """Run a catalog query; failures are fatal for required rules and 'not found' otherwise."""
    try:
        return await asyncio.to_thread(query_fn, *args)
    except Exception as e:
        display_name = ctx.display_name(rule.slug)
        message = getattr(e, "message", None) or str(e)
        ctx.logger.error(
            f"Failed to retrieve {what} for stage '{display_name}' (slug: {rule.slug}): {message}",
            extra=ctx.log_extra(rule),
        )
        if rule.required:
            raise CatalogQueryFailedError(
                f"Failed to retrieve REQUIRED {what} for stage '{display_name}'. Error: {message}",
                stage_slug=rule.slug,
                display_name=display_name,
                document_key=rule.document_key,
                code=getattr(e, "code", None),
            ) from e
        return []


def _contribution_matches_key(row: dict[str, Any], document_key: str) -> bool:
    """Structured match first (contribution type or parsed file name), then a loose file name match."""
    key = document_key.lower()
    contribution_type = row.get("contribution_type")
    if isinstance(contribution_type, str) and contribution_type.lower() == key:
        return True

    parts = deconstruct_file_name(row.get("file_name"))
    if parts is not None:
        return parts.document_key.lower() == key

    return file_name_mentions_document_key(row.get("file_name"), document_key)


async def _download_rows(
    ctx: _ResolutionContext,
    rule: InputRule,
    rows: list[dict[str, Any]],
    kind: str,
) -> list[SourceDocument]:
    """Download rows concurrently; results keep the row order."""
    display_name = ctx.display_name(rule.slug)

    downloadable: list[dict[str, Any]] = []
    for row in rows:
        if row.get("storage_bucket") and row.get("storage_path"):
            downloadable.append(row)
            continue

        ctx.logger.warning(
            f"{kind.capitalize()} {row.get('id')} from stage '{display_name}' "
            "is missing storage details",
            extra=ctx.log_extra(rule),
        )
        if rule.required:
            raise RequiredStorageDetailsMissingError(
                f"REQUIRED {kind} {row.get('id')} from stage '{display_name}' "
                "is missing storage details.",
                stage_slug=rule.slug,
                display_name=display_name,
                document_key=rule.document_key,
            )

    paths = [join_storage_path(row["storage_path"], row.get("file_name")) for row in downloadable]
    results = await asyncio.gather(
        *[
            ctx.download_fn(row["storage_bucket"], path)
            for row, path in zip(downloadable, paths, strict=True)
        ],
        return_exceptions=True,
    )

    documents: list[SourceDocument] = []
    for row, path, result in zip(downloadable, paths, results, strict=True):
        if isinstance(result, BaseException):
            ctx.logger.error(
                f"Failed to download {kind} file. Path: {path}. Error: {result}",
                extra=ctx.log_extra(rule),
            )
            if rule.required:
                raise RequiredDownloadFailedError(
                    f"Failed to download REQUIRED {kind} {row.get('id')} "
                    f"from stage '{display_name}'. Original error: {result}",
                    stage_slug=rule.slug,
                    display_name=display_name,
                    document_key=rule.document_key,
                ) from result
            continue

        documents.append(_to_source_document(rule, row, result, display_name))

    return documents


def _to_source_document(
    rule: InputRule,
    row: dict[str, Any],
    content: bytes,
    display_name: str,
) -> SourceDocument:
    file_name = row.get("file_name")
    parts = deconstruct_file_name(file_name)

    # Feedback files carry no model slug
    model_name = None
    if not isinstance(rule, FeedbackRule):
        model_name = model_slug_from_file_name(file_name) or row.get("model_name")

    document_key = parts.document_key if parts else rule.key_filter

    return SourceDocument(
        id=str(row["id"]),
        type=rule.type,
        content=content.decode("utf-8", errors="replace"),
        metadata=SourceDocumentMetadata(
            display_name=display_name,
            header=rule.section_header,
            model_name=model_name,
            document_key=document_key,
        ),
    )
