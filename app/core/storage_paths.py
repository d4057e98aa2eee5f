"""Storage path and file name conventions for dialectic artifacts.

Contribution files are named ``<modelSlug>_<attempt>_<documentKey>.<ext>`` and
live under ``<project_id>/session_<short id>/iteration_<n>/<stage_slug>``.
"""

import re
from dataclasses import dataclass

from app.core.schemas_dialectic import PathContext

RAW_RESPONSES_DIR = "raw_responses"

_FILE_NAME_RE = re.compile(
    r"^(?P<model_slug>[^_/]+)_(?P<attempt>\d+)_(?P<document_key>.+?)(?P<raw>_raw)?\.(?P<ext>[A-Za-z0-9]+)$"
)
_SLUG_INVALID_RE = re.compile(r"[^a-z0-9.-]+")


@dataclass(frozen=True)
class FileNameParts:
    """Components recovered from a contribution file name."""

    model_slug: str
    attempt_count: int
    document_key: str
    extension: str
    is_raw: bool = False


def sanitize_model_slug(value: str) -> str:
    """Make a model name usable as the leading file name segment.

    Underscores separate file name segments, so they are never allowed here.
    """
    slug = _SLUG_INVALID_RE.sub("-", value.strip().lower()).strip("-")
    return slug or "model"


def short_session_id(session_id: str) -> str:
    return session_id.replace("-", "")[:8]


def construct_storage_dir(context: PathContext) -> str:
    return (
        f"{context.project_id}/session_{short_session_id(context.session_id)}"
        f"/iteration_{context.iteration}/{context.stage_slug}"
    )


def construct_file_name(context: PathContext) -> str:
    model_slug = sanitize_model_slug(context.model_slug)
    return f"{model_slug}_{context.attempt_count}_{context.document_key}.{context.extension}"


def construct_storage_path(context: PathContext) -> tuple[str, str]:
    """
    Build the storage directory and file name for an artifact.

    Args:
        context: Path context for the artifact

    Returns:
        Tuple of (storage directory, file name)
    """
    return construct_storage_dir(context), construct_file_name(context)


def construct_raw_response_path(context: PathContext) -> tuple[str, str]:
    """Directory and file name for the raw provider response stored beside a contribution."""
    model_slug = sanitize_model_slug(context.model_slug)
    storage_dir = f"{construct_storage_dir(context)}/{RAW_RESPONSES_DIR}"
    file_name = f"{model_slug}_{context.attempt_count}_{context.document_key}_raw.json"
    return storage_dir, file_name


def deconstruct_file_name(file_name: str | None) -> FileNameParts | None:
    """
    Parse a contribution file name back into its parts.

    Args:
        file_name: File name (no directory)

    Returns:
        FileNameParts, or None if the name does not follow the convention
    """
    if not file_name:
        return None

    match = _FILE_NAME_RE.match(file_name)
    if not match:
        return None

    return FileNameParts(
        model_slug=match.group("model_slug"),
        attempt_count=int(match.group("attempt")),
        document_key=match.group("document_key"),
        extension=match.group("ext"),
        is_raw=bool(match.group("raw")),
    )


def model_slug_from_file_name(file_name: str | None) -> str | None:
    parts = deconstruct_file_name(file_name)
    return parts.model_slug if parts else None


def file_name_mentions_document_key(file_name: str | None, document_key: str) -> bool:
    """Loose match used when a file name does not parse cleanly."""
    if not file_name:
        return False
    lowered = file_name.lower()
    key = document_key.lower()
    return f"_{key}." in lowered or f"_{key}_" in lowered


def join_storage_path(storage_path: str, file_name: str | None) -> str:
    """Full object path for a row; rows without a file name store the full path already."""
    if not file_name:
        return storage_path
    if storage_path.endswith(f"/{file_name}") or storage_path == file_name:
        return storage_path
    return f"{storage_path.rstrip('/')}/{file_name}"
