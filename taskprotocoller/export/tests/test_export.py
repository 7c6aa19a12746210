"""Tests for research data export views."""
import csv
import datetime
import io
import json
import logging

import pytest
from django.contrib.auth.models import Permission
from django.urls import reverse
from django.utils import timezone

from taskprotocoller.protocols.tests.factories import protocol_with_tasks
from taskprotocoller.runs.helpers.session_helpers import create_session
from taskprotocoller.runs.models import ProgressEvent
from taskprotocoller.runs.models import Recording
from taskprotocoller.runs.models import TaskResponse
from taskprotocoller.runs.tests.factories import ParticipantFactory
from taskprotocoller.users.tests.factories import UserFactory

VIEW_NAMES = ["export:recordings_csv", "export:events_csv", "export:responses_json"]


def _superuser():
    return UserFactory(is_superuser=True, is_staff=True)


def _staff_with_permission():
    user = UserFactory(is_staff=True)
    user.user_permissions.add(Permission.objects.get(codename="export_data", content_type__app_label="runs"))
    return user


def _session(*categories, **kwargs):
    protocol = protocol_with_tasks(*(categories or ("reading",)))
    return create_session(protocol, **kwargs)


def _recording(session, recorded_at=None, **kwargs):
    kwargs.setdefault("task_category", "reading")
    kwargs.setdefault("task_order", 1)
    return Recording.objects.create(
        session=session,
        audio=f"recordings/{session.pk}/01_reading_1.webm",
        duration_ms=12000,
        speech_segments=[
            {"start_time": 0, "end_time": 3000, "duration_ms": 3000},
            {"start_time": 4000, "end_time": 9000, "duration_ms": 5000},
        ],
        recorded_at=recorded_at or timezone.now(),
        **kwargs,
    )


def _csv_rows(response):
    return list(csv.DictReader(io.StringIO(response.content.decode())))


# ─────────────────────────────────────────────────────────────────────────────
# Access control (common to all export views)
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.django_db
class TestExportAccessControl:
    @pytest.mark.parametrize("view_name", VIEW_NAMES)
    def test_anonymous_redirected(self, client, view_name):
        response = client.get(reverse(view_name))
        assert response.status_code == 302

    @pytest.mark.parametrize("view_name", VIEW_NAMES)
    def test_staff_without_permission_forbidden(self, client, view_name):
        client.force_login(UserFactory(is_staff=True))
        response = client.get(reverse(view_name))
        assert response.status_code == 403

    @pytest.mark.parametrize("view_name", VIEW_NAMES)
    def test_superuser_allowed(self, client, view_name):
        client.force_login(_superuser())
        response = client.get(reverse(view_name))
        assert response.status_code == 200

    @pytest.mark.parametrize("view_name", VIEW_NAMES)
    def test_staff_with_permission_allowed(self, client, view_name):
        client.force_login(_staff_with_permission())
        response = client.get(reverse(view_name))
        assert response.status_code == 200


# ─────────────────────────────────────────────────────────────────────────────
# Recordings CSV
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.django_db
class TestRecordingCsvExport:
    def test_row_per_recording(self, client):
        participant = ParticipantFactory()
        session = create_session(participant.protocol, participant=participant)
        _recording(session, task_param="rainbow")
        client.force_login(_superuser())
        response = client.get(reverse("export:recordings_csv"))

        assert response["Content-Type"] == "text/csv"
        assert "attachment" in response["Content-Disposition"]
        rows = _csv_rows(response)
        assert len(rows) == 1
        row = rows[0]
        assert row["session_id"] == str(session.pk)
        assert row["participant_id"] == str(participant.pk)
        assert row["task_param"] == "rainbow"
        assert row["speech_segment_count"] == "2"
        assert row["speech_ms"] == "8000"

    def test_no_personal_data(self, client):
        participant = ParticipantFactory(full_name="Jana Novak")
        session = create_session(participant.protocol, participant=participant)
        _recording(session)
        client.force_login(_superuser())
        response = client.get(reverse("export:recordings_csv"))
        assert "Jana Novak" not in response.content.decode()

    def test_date_filter(self, client):
        session = _session()
        _recording(session, recorded_at=timezone.now() - datetime.timedelta(days=10))
        _recording(session, task_order=2)
        client.force_login(_superuser())
        from_date = (timezone.now() - datetime.timedelta(days=1)).date().isoformat()
        response = client.get(reverse("export:recordings_csv"), {"from_date": from_date})
        rows = _csv_rows(response)
        assert [row["task_order"] for row in rows] == ["2"]

    def test_protocol_filter(self, client):
        wanted = _session()
        _recording(wanted)
        _recording(_session())
        client.force_login(_superuser())
        response = client.get(reverse("export:recordings_csv"), {"protocol": wanted.protocol_id})
        rows = _csv_rows(response)
        assert [row["session_id"] for row in rows] == [str(wanted.pk)]

    def test_export_is_logged(self, client, caplog):
        _recording(_session())
        user = _superuser()
        client.force_login(user)
        with caplog.at_level(logging.INFO, logger="taskprotocoller.export.views"):
            client.get(reverse("export:recordings_csv"))
        assert f"user={user.pk} rows=1" in caplog.text


# ─────────────────────────────────────────────────────────────────────────────
# Events CSV / responses JSON
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.django_db
class TestEventCsvExport:
    def test_row_per_event(self, client):
        session = _session()
        ProgressEvent.objects.create(session=session, task_index=1, action="task_opened")
        ProgressEvent.objects.create(
            session=session, task_index=1, action="task_saved", extra={"recording_duration": 4000}
        )
        client.force_login(_superuser())
        rows = _csv_rows(client.get(reverse("export:events_csv")))
        assert [row["action"] for row in rows] == ["task_opened", "task_saved"]
        assert json.loads(rows[1]["extra"]) == {"recording_duration": 4000}
        assert rows[0]["participant_id"] == ""


@pytest.mark.django_db
class TestResponseJsonExport:
    def test_includes_payload(self, client):
        session = _session("d15")
        TaskResponse.objects.create(
            session=session, task_type="vision", task_order=1, payload={"summary": {"is_normal": True}}
        )
        client.force_login(_superuser())
        data = client.get(reverse("export:responses_json")).json()
        assert len(data["responses"]) == 1
        item = data["responses"][0]
        assert item["session_id"] == str(session.pk)
        assert item["payload"] == {"summary": {"is_normal": True}}
