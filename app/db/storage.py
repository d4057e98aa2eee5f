"""Artifact store operations (Supabase Storage)."""

import asyncio
from collections.abc import Awaitable, Callable

from supabase import Client

from app.core.dialectic_errors import StorageConflictError, StorageError
from app.core.logging import get_logger

logger = get_logger(__name__)

DownloadFn = Callable[[str, str], Awaitable[bytes]]


def download_object(supabase: Client, bucket: str, path: str) -> bytes:
    """
    Download an object from storage.

    Args:
        supabase: Supabase client
        bucket: Storage bucket name
        path: Object path inside the bucket

    Returns:
        Raw object bytes

    Raises:
        StorageError: If the object is missing or the download fails
    """
    try:
        data = supabase.storage.from_(bucket).download(path)
    except Exception as e:
        logger.error(f"Download failed for {bucket}/{path}: {e}")
        raise StorageError(f"Failed to download {bucket}/{path}: {e}") from e

    if not data:
        raise StorageError(f"No data returned from storage for {bucket}/{path}")

    return data


def upload_object(
    supabase: Client,
    bucket: str,
    path: str,
    content: bytes,
    content_type: str,
    upsert: bool = False,
) -> None:
    """
    Upload an object to storage.

    Raises:
        StorageConflictError: If the path is taken and upsert is False
        StorageError: For any other upload failure
    """
    try:
        supabase.storage.from_(bucket).upload(
            path=path,
            file=content,
            file_options={
                "content-type": content_type,
                "upsert": "true" if upsert else "false",
            },
        )
    except Exception as e:
        message = str(e)
        if "already exists" in message.lower() or "409" in message:
            raise StorageConflictError(f"Object already exists at {bucket}/{path}") from e
        logger.error(f"Upload failed for {bucket}/{path}: {e}")
        raise StorageError(f"Failed to upload {bucket}/{path}: {e}") from e


def remove_objects(supabase: Client, bucket: str, paths: list[str]) -> None:
    """Best-effort cleanup of uploaded objects."""
    if not paths:
        return
    try:
        supabase.storage.from_(bucket).remove(paths)
    except Exception as e:
        logger.warning(f"Failed to remove {len(paths)} object(s) from {bucket}: {e}")


async def download_from_storage(supabase: Client, bucket: str, path: str) -> bytes:
    """Async wrapper so downloads don't block the event loop."""
    return await asyncio.to_thread(download_object, supabase, bucket, path)


def make_download_fn(supabase: Client) -> DownloadFn:
    """Bind a client into the ``(bucket, path) -> bytes`` shape the resolver expects."""

    async def _download(bucket: str, path: str) -> bytes:
        return await download_from_storage(supabase, bucket, path)

    return _download
