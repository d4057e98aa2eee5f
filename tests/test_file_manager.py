"""Tests for FileManagerService upload-and-register."""

import json
from unittest.mock import patch

import pytest

from app.core.dialectic_errors import FileManagerError, StorageError
from app.core.schemas_dialectic import PathContext, UploadContext
from app.services.file_manager import FileManagerService
from tests.fakes.fake_supabase import FakeSupabase
from tests.fixtures_dialectic import BUCKET, MODEL_ID_1, PROJECT_ID, SESSION_ID, USER_ID

STAGE_DIR = f"{PROJECT_ID}/session_c86425fd/iteration_1/thesis"
MAIN_PATH = f"{STAGE_DIR}/claude-3-opus_0_thesis.md"
RAW_PATH = f"{STAGE_DIR}/raw_responses/claude-3-opus_0_thesis_raw.json"


def _context(**overrides) -> UploadContext:
    data = {
        "path_context": PathContext(
            project_id=PROJECT_ID,
            session_id=SESSION_ID,
            iteration=1,
            stage_slug="thesis",
            model_slug="claude-3-opus",
            document_key="thesis",
        ),
        "content": "Thesis body",
        "user_id": USER_ID,
        "model_id": MODEL_ID_1,
        "model_name": "Claude 3 Opus",
        "seed_prompt_path": f"{STAGE_DIR}/_work/seed_prompt.md",
        "tokens_used_input": 100,
        "tokens_used_output": 250,
        "processing_time_ms": 1200,
        "raw_provider_response": {"id": "msg_1", "stop_reason": "end_turn"},
    }
    data.update(overrides)
    return UploadContext(**data)


class TestUploadAndRegister:
    @pytest.mark.asyncio
    async def test_uploads_content_raw_response_and_registers_row(self):
        supabase = FakeSupabase()
        service = FileManagerService(supabase, bucket=BUCKET)

        record = await service.upload_and_register_file(_context())

        assert supabase.storage.objects[(BUCKET, MAIN_PATH)] == b"Thesis body"
        raw = json.loads(supabase.storage.objects[(BUCKET, RAW_PATH)])
        assert raw == {"id": "msg_1", "stop_reason": "end_turn"}
        assert (BUCKET, MAIN_PATH, "text/markdown") in supabase.storage.uploads
        assert (BUCKET, RAW_PATH, "application/json") in supabase.storage.uploads

        assert record["id"]
        assert record["session_id"] == SESSION_ID
        assert record["stage"] == "thesis"
        assert record["storage_path"] == STAGE_DIR
        assert record["file_name"] == "claude-3-opus_0_thesis.md"
        assert record["raw_response_storage_path"] == RAW_PATH
        assert record["size_bytes"] == len(b"Thesis body")
        assert record["tokens_used_input"] == 100
        assert record["tokens_used_output"] == 250
        assert record["is_latest_edit"] is True
        assert record["edit_version"] == 1
        assert supabase.tables["dialectic_contributions"] == [record]

    @pytest.mark.asyncio
    async def test_collision_bumps_attempt_count(self):
        supabase = FakeSupabase()
        supabase.storage.put(BUCKET, MAIN_PATH, "earlier attempt")
        service = FileManagerService(supabase, bucket=BUCKET)

        record = await service.upload_and_register_file(_context())

        assert record["file_name"] == "claude-3-opus_1_thesis.md"
        assert record["raw_response_storage_path"] == (
            f"{STAGE_DIR}/raw_responses/claude-3-opus_1_thesis_raw.json"
        )
        assert supabase.storage.objects[(BUCKET, MAIN_PATH)] == b"earlier attempt"

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        supabase = FakeSupabase()
        supabase.storage.put(BUCKET, MAIN_PATH, "attempt 0")
        supabase.storage.put(BUCKET, f"{STAGE_DIR}/claude-3-opus_1_thesis.md", "attempt 1")
        service = FileManagerService(supabase, bucket=BUCKET, max_upload_attempts=2)

        with pytest.raises(FileManagerError) as exc_info:
            await service.upload_and_register_file(_context())

        assert str(exc_info.value) == (
            "Failed to upload file after 2 attempts due to filename collisions."
        )
        assert "dialectic_contributions" not in supabase.tables

    @pytest.mark.asyncio
    async def test_upload_error_is_not_retried(self):
        supabase = FakeSupabase()
        supabase.storage.upload_error = Exception("quota exceeded")
        service = FileManagerService(supabase, bucket=BUCKET)

        with pytest.raises(FileManagerError) as exc_info:
            await service.upload_and_register_file(_context())

        assert "quota exceeded" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_raw_upload_failure_removes_main_file(self):
        supabase = FakeSupabase()
        service = FileManagerService(supabase, bucket=BUCKET)

        with patch(
            "app.services.file_manager.upload_object",
            side_effect=[None, StorageError("raw upload failed")],
        ):
            with pytest.raises(FileManagerError):
                await service.upload_and_register_file(_context())

        assert supabase.storage.removed == [(BUCKET, MAIN_PATH)]
        assert "dialectic_contributions" not in supabase.tables

    @pytest.mark.asyncio
    async def test_registration_failure_removes_uploaded_files(self):
        supabase = FakeSupabase()
        supabase.fail("dialectic_contributions", "insert", Exception("duplicate key value"))
        service = FileManagerService(supabase, bucket=BUCKET)

        with pytest.raises(FileManagerError) as exc_info:
            await service.upload_and_register_file(_context())

        assert "duplicate key value" in str(exc_info.value)
        assert set(supabase.storage.removed) == {(BUCKET, MAIN_PATH), (BUCKET, RAW_PATH)}
        assert (BUCKET, MAIN_PATH) not in supabase.storage.objects
        assert (BUCKET, RAW_PATH) not in supabase.storage.objects
