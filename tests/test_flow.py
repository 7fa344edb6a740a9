import pytest
import os
import sys
from unittest.mock import patch, MagicMock

import httpx
from sqlalchemy import select

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from db.models import Contact, ContactStatus, UsageLog, Workspace
from db.workspace import create_workspace
from errors import DeliveryError, UpstreamError, ValidationError
from graph.nodes.receive import receive
from graph.nodes.extract import extract
from graph.nodes.validate import validate
from graph.nodes.deliver import deliver
from graph.nodes.record import record
from graph.workflow import build_submission_workflow, build_transcription_workflow
from tools.crm_webhook import CRMForwarder

TRANSCRIPT = "My name is John Smith, phone 555-123-4567, email john at gmail dot com"


class TestTranscriptionFlow:
    """Test the audio → contact draft workflow."""

    def setup_method(self):
        self.initial_state = {
            "user_id": "user-1",
            "workspace_id": "workspace-1",
            "filename": "recording.webm",
            "content_type": "audio/webm",
            "audio": b"fake-webm-bytes",
            "errors": [],
        }

    def config(self, settings, **extra):
        return {"configurable": dict({"settings": settings}, **extra)}

    def test_receive_node(self, settings):
        result = receive(self.initial_state.copy(), self.config(settings))

        assert result["content_type"] == "audio/webm"
        assert result["errors"] == []

    def test_receive_node_missing_audio(self, settings):
        state = self.initial_state.copy()
        del state["audio"]

        with pytest.raises(ValidationError) as exc_info:
            receive(state, self.config(settings))
        assert exc_info.value.error == "No audio file provided"

    def test_receive_node_empty_audio(self, settings):
        state = dict(self.initial_state, audio=b"")

        with pytest.raises(ValidationError) as exc_info:
            receive(state, self.config(settings))
        assert exc_info.value.error == "Empty audio file"

    def test_receive_node_too_large(self, settings):
        state = dict(self.initial_state, audio=b"x" * (settings.max_audio_bytes + 1))

        with pytest.raises(ValidationError) as exc_info:
            receive(state, self.config(settings))
        assert exc_info.value.error == "Audio file too large"

    def test_receive_node_rejects_non_audio(self, settings):
        state = dict(self.initial_state, content_type="application/octet-stream")

        with pytest.raises(ValidationError) as exc_info:
            receive(state, self.config(settings))
        assert exc_info.value.error == "Unsupported file type"

    def test_extract_node(self):
        result = extract({"transcript": TRANSCRIPT, "errors": []})

        assert result["draft"]["name"] == "John Smith"
        assert result["draft"]["phone"] == "+15551234567"
        assert result["draft"]["email"] == "john@gmail.com"

    def test_complete_workflow(self, settings, db_session, user):
        workspace = create_workspace(db_session, user.id, "Field Team")
        transcriber = MagicMock()
        transcriber.transcribe.return_value = TRANSCRIPT

        state = dict(self.initial_state, user_id=user.id, workspace_id=workspace.id)
        result = build_transcription_workflow().invoke(
            state, config=self.config(settings, transcriber=transcriber, db=db_session)
        )

        transcriber.transcribe.assert_called_once_with("recording.webm", b"fake-webm-bytes", "audio/webm")
        assert result["transcript"] == TRANSCRIPT
        assert result["draft"]["name"] == "John Smith"
        assert result["errors"] == []

        entry = db_session.execute(select(UsageLog)).scalar_one()
        assert entry.action == "transcribe"
        assert entry.details["transcriptionLength"] == len(TRANSCRIPT)
        assert entry.details["contactDataExtracted"] is True

    def test_workflow_stops_on_invalid_upload(self, settings, db_session):
        transcriber = MagicMock()

        with pytest.raises(ValidationError):
            build_transcription_workflow().invoke(
                dict(self.initial_state, audio=b""),
                config=self.config(settings, transcriber=transcriber, db=db_session),
            )
        transcriber.transcribe.assert_not_called()

    def test_workflow_surfaces_upstream_error(self, settings, db_session):
        transcriber = MagicMock()
        transcriber.transcribe.side_effect = UpstreamError("Rate limit exceeded", None, 429)

        with pytest.raises(UpstreamError):
            build_transcription_workflow().invoke(
                self.initial_state.copy(),
                config=self.config(settings, transcriber=transcriber, db=db_session),
            )
        assert db_session.execute(select(UsageLog)).first() is None

    def test_usage_log_failure_is_swallowed(self, settings):
        transcriber = MagicMock()
        transcriber.transcribe.return_value = "hello"
        db = MagicMock()

        from sqlalchemy.exc import OperationalError

        with patch("graph.nodes.log_usage.record_usage") as mock_usage:
            mock_usage.side_effect = OperationalError("INSERT", {}, Exception("database is locked"))

            result = build_transcription_workflow().invoke(
                self.initial_state.copy(),
                config=self.config(settings, transcriber=transcriber, db=db),
            )

        assert result["transcript"] == "hello"
        assert len(result["errors"]) == 1
        assert "Usage log failed" in result["errors"][0]
        db.rollback.assert_called_once()


class TestSubmissionFlow:
    """Test the reviewed contact → CRM workflow."""

    def setup_method(self):
        self.contact = {
            "name": "John Smith",
            "phone": "+1 (555) 123-4567",
            "email": "John@Gmail.com",
            "company": "Acme Corp",
            "notes": "My name is John Smith",
        }
        self.requests = []

    def forwarder(self, handler):
        def recording_handler(request):
            self.requests.append(request)
            return handler(request)

        return CRMForwarder("https://crm.example.com/hook", transport=httpx.MockTransport(recording_handler))

    def test_validate_node(self):
        result = validate({"raw": self.contact, "errors": []})

        assert result["contact"]["name"] == "John Smith"
        assert result["contact"]["phone"] == "+1 (555) 123-4567"
        assert result["contact"]["email"] == "john@gmail.com"

    def test_validate_node_missing_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            validate({"raw": {"email": "a@b.co"}, "errors": []})

        assert exc_info.value.error == "Missing required fields"
        assert exc_info.value.details["missing"] == ["name", "phone"]

    def test_validate_node_invalid_phone(self):
        with pytest.raises(ValidationError) as exc_info:
            validate({"raw": dict(self.contact, phone="abc"), "errors": []})

        assert exc_info.value.error == "Invalid contact data"
        assert "phone" in exc_info.value.details

    def test_validate_node_invalid_email(self):
        with pytest.raises(ValidationError) as exc_info:
            validate({"raw": dict(self.contact, email="not-an-email"), "errors": []})

        assert "email" in exc_info.value.details

    def test_validate_node_strips_markup(self):
        result = validate({"raw": dict(self.contact, name="<b>John</b> Smith"), "errors": []})

        assert "<" not in result["contact"]["name"]

    def test_deliver_node_failure_kept_in_state(self):
        forwarder = self.forwarder(lambda request: httpx.Response(500, text="nope"))
        state = validate({"raw": self.contact, "errors": []})

        result = deliver(state, {"configurable": {"forwarder": forwarder}})

        assert result["status"] == ContactStatus.FAILED.value
        assert isinstance(result["delivery_error"], DeliveryError)

    def test_record_node_swallows_persistence_errors(self):
        db = MagicMock()
        state = {
            "workspace_id": "workspace-1",
            "user_id": "user-1",
            "contact": {"name": "John Smith", "phone": "5551234567"},
            "status": ContactStatus.PROCESSED.value,
            "delivery": {"variant": "form", "status_code": 200, "body": None},
            "errors": [],
        }

        from sqlalchemy.exc import OperationalError

        with patch("graph.nodes.record.create_contact") as mock_create, \
             patch("graph.nodes.record.adjust_contact_count") as mock_count, \
             patch("graph.nodes.record.record_usage") as mock_usage:
            mock_create.side_effect = OperationalError("INSERT", {}, Exception("disk full"))

            result = record(state, {"configurable": {"db": db}})

        assert result["contact_id"] is None
        mock_count.assert_not_called()
        mock_usage.assert_called_once()
        assert "Contact persistence failed" in result["errors"][0]

    def test_complete_workflow_second_variant(self, db_session, user):
        workspace = create_workspace(db_session, user.id, "Field Team")

        def handler(request):
            if request.headers["content-type"].startswith("application/json"):
                return httpx.Response(200, json={"received": True})
            return httpx.Response(400, json={"error": "unmapped"})

        result = build_submission_workflow().invoke(
            {"user_id": user.id, "workspace_id": workspace.id, "raw": self.contact, "errors": []},
            config={"configurable": {"forwarder": self.forwarder(handler), "db": db_session}},
        )

        assert result["status"] == ContactStatus.PROCESSED.value
        assert result["delivery"]["variant"] == "json"
        assert result.get("delivery_error") is None

        contact = db_session.get(Contact, result["contact_id"])
        assert contact.status == ContactStatus.PROCESSED
        assert contact.delivery_status_code == 200
        assert contact.delivery_variant == "json"
        assert db_session.get(Workspace, workspace.id).contact_count == 1

        usage = db_session.execute(select(UsageLog)).scalar_one()
        assert usage.action == "submit_contact"
        assert usage.details["deliveryStatus"] == 200

    def test_complete_workflow_all_variants_rejected(self, db_session, user):
        workspace = create_workspace(db_session, user.id, "Field Team")
        forwarder = self.forwarder(lambda request: httpx.Response(503, json={"error": "down"}))

        result = build_submission_workflow().invoke(
            {"user_id": user.id, "workspace_id": workspace.id, "raw": self.contact, "errors": []},
            config={"configurable": {"forwarder": forwarder, "db": db_session}},
        )

        assert isinstance(result["delivery_error"], DeliveryError)
        assert result["status"] == ContactStatus.FAILED.value

        contact = db_session.get(Contact, result["contact_id"])
        assert contact.status == ContactStatus.FAILED
        assert contact.delivery_status_code == 503
        assert db_session.get(Workspace, workspace.id).contact_count == 0

    def test_invalid_phone_never_reaches_crm(self, db_session):
        forwarder = self.forwarder(lambda request: httpx.Response(200))

        with pytest.raises(ValidationError):
            build_submission_workflow().invoke(
                {"user_id": "user-1", "workspace_id": "workspace-1", "raw": dict(self.contact, phone="abc")},
                config={"configurable": {"forwarder": forwarder, "db": db_session}},
            )

        assert self.requests == []
        assert db_session.execute(select(Contact)).first() is None


if __name__ == "__main__":
    # Run tests
    pytest.main([__file__, "-v"])
