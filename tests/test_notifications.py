"""Tests for lifecycle notification emission."""

from app.core.schemas_notifications import DialecticNotification, NotificationError, NotificationType
from app.services.notifications import emit_notification
from tests.fakes.fake_supabase import FakeSupabase
from tests.fixtures_dialectic import MODEL_ID_1, SESSION_ID, USER_ID


def _notification(**overrides) -> DialecticNotification:
    data = {
        "type": NotificationType.JOB_FAILED,
        "session_id": SESSION_ID,
        "stage_slug": "thesis",
        "iteration_number": 1,
        "model_id": MODEL_ID_1,
        "error": NotificationError(code="AI_CALL_TIMEOUT", message="timed out"),
    }
    data.update(overrides)
    return DialecticNotification(**data)


class TestEmitNotification:
    def test_inserts_internal_event(self):
        supabase = FakeSupabase()

        emit_notification(supabase, USER_ID, _notification())

        rows = supabase.tables["notifications"]
        assert len(rows) == 1
        assert rows[0]["user_id"] == USER_ID
        assert rows[0]["type"] == "job_failed"
        assert rows[0]["is_internal_event"] is True
        assert rows[0]["data"] == {
            "type": "job_failed",
            "session_id": SESSION_ID,
            "stage_slug": "thesis",
            "iteration_number": 1,
            "model_id": MODEL_ID_1,
            "error": {"code": "AI_CALL_TIMEOUT", "message": "timed out"},
        }

    def test_skipped_without_user(self):
        supabase = FakeSupabase()

        emit_notification(supabase, None, _notification())

        assert supabase.queries == []

    def test_insert_failure_is_swallowed(self):
        supabase = FakeSupabase()
        supabase.fail("notifications", "insert", Exception("realtime down"))

        emit_notification(supabase, USER_ID, _notification())

        assert len(supabase.queries_for("notifications", "insert")) == 1
