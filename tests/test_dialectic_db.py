"""Tests for dialectic catalog helpers."""

from unittest.mock import MagicMock, patch

import pytest

from app.core.config import get_settings
from app.core.dialectic_errors import StorageConflictError, StorageError
from app.db.dialectic_sessions import update_session_status
from app.db.dialectic_stages import fallback_display_name, get_stage_display_names
from app.db.storage import download_object, upload_object
from app.db.supabase_client import get_supabase
from tests.fakes.fake_supabase import FakeSupabase
from tests.fixtures_dialectic import BUCKET, SESSION_ID, STAGE_ROWS


class TestStageDisplayNames:
    def test_single_query_for_distinct_slugs(self):
        supabase = FakeSupabase({"dialectic_stages": STAGE_ROWS})

        names = get_stage_display_names(supabase, ["thesis", "synthesis", "thesis"])

        assert names == {"thesis": "Thesis", "synthesis": "Synthesis"}
        assert len(supabase.queries) == 1

    def test_no_slugs_no_query(self):
        supabase = FakeSupabase({"dialectic_stages": STAGE_ROWS})

        assert get_stage_display_names(supabase, []) == {}
        assert supabase.queries == []

    def test_fallback_display_name(self):
        assert fallback_display_name("antithesis") == "Antithesis"
        assert fallback_display_name("") == ""


class TestSessionStatus:
    def test_update_session_status(self):
        supabase = FakeSupabase({"dialectic_sessions": [{"id": SESSION_ID, "status": "pending_thesis"}]})

        update_session_status(supabase, SESSION_ID, "thesis_generation_complete")

        assert supabase.tables["dialectic_sessions"][0]["status"] == "thesis_generation_complete"
        assert "updated_at" in supabase.tables["dialectic_sessions"][0]

    def test_update_failure_propagates(self):
        supabase = FakeSupabase()
        supabase.fail("dialectic_sessions", "update", Exception("connection reset"))

        with pytest.raises(Exception, match="connection reset"):
            update_session_status(supabase, SESSION_ID, "thesis_generation_failed")


class TestStorage:
    def test_download_missing_object(self):
        supabase = FakeSupabase()

        with pytest.raises(StorageError):
            download_object(supabase, BUCKET, "missing/file.md")

    def test_download_empty_object_is_an_error(self):
        supabase = FakeSupabase()
        supabase.storage.put(BUCKET, "empty.md", b"")

        with pytest.raises(StorageError, match="No data returned"):
            download_object(supabase, BUCKET, "empty.md")

    def test_upload_conflict(self):
        supabase = FakeSupabase()
        supabase.storage.put(BUCKET, "a/b.md", "existing")

        with pytest.raises(StorageConflictError):
            upload_object(supabase, BUCKET, "a/b.md", b"new", "text/markdown")

    def test_upsert_overwrites(self):
        supabase = FakeSupabase()
        supabase.storage.put(BUCKET, "a/b.json", "{}")

        upload_object(supabase, BUCKET, "a/b.json", b'{"x": 1}', "application/json", upsert=True)

        assert supabase.storage.objects[(BUCKET, "a/b.json")] == b'{"x": 1}'

    def test_upload_sends_content_type(self):
        supabase = MagicMock()

        upload_object(supabase, BUCKET, "a/b.md", b"body", "text/markdown")

        supabase.storage.from_.assert_called_once_with(BUCKET)
        supabase.storage.from_.return_value.upload.assert_called_once_with(
            path="a/b.md",
            file=b"body",
            file_options={"content-type": "text/markdown", "upsert": "false"},
        )


class TestSupabaseClient:
    def setup_method(self):
        get_supabase.cache_clear()

    def teardown_method(self):
        get_supabase.cache_clear()

    def test_client_is_cached_and_uses_timeouts(self):
        with patch("app.db.supabase_client.create_client", return_value=MagicMock()) as create:
            first = get_supabase()
            second = get_supabase()

        assert first is second
        create.assert_called_once()
        args, kwargs = create.call_args
        settings = get_settings()
        assert args == (settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
        assert kwargs["options"].postgrest_client_timeout == settings.SUPABASE_TIMEOUT_SECONDS

    def test_init_failure_raises_runtime_error(self):
        with patch("app.db.supabase_client.create_client", side_effect=ValueError("bad url")):
            with pytest.raises(RuntimeError, match="bad url"):
                get_supabase()
