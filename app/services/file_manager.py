"""Upload-and-register facade for generated contributions.

Writes the contribution body and the raw provider response to storage, then
records the contribution row. Nothing is left behind in storage when the row
can't be written.
"""

import asyncio
import json
from typing import Any

from supabase import Client

from app.core.config import get_settings
from app.core.dialectic_errors import FileManagerError, StorageConflictError, StorageError
from app.core.logging import get_logger
from app.core.schemas_dialectic import UploadContext
from app.core.storage_paths import construct_raw_response_path, construct_storage_path
from app.db.dialectic_contributions import insert_contribution
from app.db.storage import remove_objects, upload_object

logger = get_logger(__name__)


class FileManagerService:
    """Persists contribution artifacts and registers them in the catalog."""

    def __init__(
        self,
        supabase: Client,
        bucket: str | None = None,
        max_upload_attempts: int | None = None,
    ):
        settings = get_settings()
        self.supabase = supabase
        self.bucket = bucket or settings.CONTENT_STORAGE_BUCKET
        self.max_upload_attempts = max_upload_attempts or settings.MAX_UPLOAD_ATTEMPTS

    async def upload_and_register_file(self, context: UploadContext) -> dict[str, Any]:
        """
        Upload a contribution and insert its catalog row.

        The attempt counter in the file name is bumped on path collisions, up
        to ``max_upload_attempts`` times.

        Args:
            context: Upload context (path, content, model and usage metadata)

        Returns:
            The inserted contribution row

        Raises:
            FileManagerError: If upload or registration fails
        """
        storage_dir, file_name, path_context = await self._upload_with_collision_retry(context)
        main_path = f"{storage_dir}/{file_name}"

        raw_dir, raw_file_name = construct_raw_response_path(path_context)
        raw_path = f"{raw_dir}/{raw_file_name}"
        try:
            await asyncio.to_thread(
                upload_object,
                self.supabase,
                self.bucket,
                raw_path,
                json.dumps(context.raw_provider_response).encode("utf-8"),
                "application/json",
                True,
            )
        except StorageError as e:
            await asyncio.to_thread(remove_objects, self.supabase, self.bucket, [main_path])
            raise FileManagerError(f"Failed to upload raw response for {file_name}: {e}") from e

        content_bytes = context.content.encode("utf-8")
        row = {
            "session_id": path_context.session_id,
            "user_id": context.user_id,
            "stage": path_context.stage_slug,
            "iteration_number": path_context.iteration,
            "model_id": context.model_id,
            "model_name": context.model_name,
            "storage_bucket": self.bucket,
            "storage_path": storage_dir,
            "file_name": file_name,
            "mime_type": context.mime_type,
            "size_bytes": len(content_bytes),
            "raw_response_storage_path": raw_path,
            "seed_prompt_url": context.seed_prompt_path,
            "tokens_used_input": context.tokens_used_input,
            "tokens_used_output": context.tokens_used_output,
            "processing_time_ms": context.processing_time_ms,
            "contribution_type": context.contribution_type,
            "edit_version": 1,
            "is_latest_edit": True,
            "original_model_contribution_id": None,
            "error": None,
        }

        try:
            record = await asyncio.to_thread(insert_contribution, self.supabase, row)
        except Exception as e:
            logger.error(
                f"Failed to register contribution {file_name}: {e}",
                extra={"session_id": path_context.session_id, "model_id": context.model_id},
            )
            await asyncio.to_thread(
                remove_objects, self.supabase, self.bucket, [main_path, raw_path]
            )
            raise FileManagerError(f"Failed to register contribution {file_name}: {e}") from e

        logger.info(
            f"Registered contribution {record.get('id')} at {main_path}",
            extra={"session_id": path_context.session_id, "model_id": context.model_id},
        )
        return record

    async def _upload_with_collision_retry(self, context: UploadContext):
        path_context = context.path_context
        content_bytes = context.content.encode("utf-8")

        for _ in range(self.max_upload_attempts):
            storage_dir, file_name = construct_storage_path(path_context)
            try:
                await asyncio.to_thread(
                    upload_object,
                    self.supabase,
                    self.bucket,
                    f"{storage_dir}/{file_name}",
                    content_bytes,
                    context.mime_type,
                )
                return storage_dir, file_name, path_context
            except StorageConflictError:
                logger.debug(f"{file_name} already exists, bumping attempt count")
                path_context = path_context.model_copy(
                    update={"attempt_count": path_context.attempt_count + 1}
                )
            except StorageError as e:
                raise FileManagerError(f"Failed to upload {file_name}: {e}") from e

        raise FileManagerError(
            f"Failed to upload file after {self.max_upload_attempts} attempts "
            "due to filename collisions."
        )
