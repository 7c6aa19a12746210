"""Research data export views.

Access restricted to superusers and staff with the ``runs.export_data``
permission. Participants are identified by their database ID only, never by
name or birth date. Preview sessions store nothing and so never appear.
Export events are logged to the standard Python logger.
"""
import csv
import io
import json
import logging

from django.contrib.auth.mixins import LoginRequiredMixin
from django.contrib.auth.mixins import UserPassesTestMixin
from django.http import HttpResponse
from django.http import JsonResponse
from django.utils import timezone
from django.views import View

from taskprotocoller.runs.models import ProgressEvent
from taskprotocoller.runs.models import Recording
from taskprotocoller.runs.models import TaskResponse

logger = logging.getLogger(__name__)


class ExportAccessMixin(LoginRequiredMixin, UserPassesTestMixin):
    """Allow access only to superusers or staff with export_data permission."""

    def test_func(self):
        user = self.request.user
        return user.is_superuser or (user.is_staff and user.has_perm("runs.export_data"))


def _filter_dates(request, qs, field):
    """Apply the inclusive ``from_date`` / ``to_date`` (YYYY-MM-DD) query params."""
    from_date = request.GET.get("from_date")
    to_date = request.GET.get("to_date")
    if from_date:
        qs = qs.filter(**{f"{field}__date__gte": from_date})
    if to_date:
        qs = qs.filter(**{f"{field}__date__lte": to_date})
    return qs


def _csv_response(rows, header, name):
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(header)
    writer.writerows(rows)
    response = HttpResponse(output.getvalue(), content_type="text/csv")
    response["Content-Disposition"] = f'attachment; filename="{name}_{timezone.now().date().isoformat()}.csv"'
    return response


# ─────────────────────────────────────────────────────────────────────────────
# Recordings CSV
# ─────────────────────────────────────────────────────────────────────────────


class RecordingCsvExportView(ExportAccessMixin, View):
    """
    One row per voice recording, with its speech-segment statistics.

    Query params:
        from_date  YYYY-MM-DD  inclusive lower bound on recorded_at
        to_date    YYYY-MM-DD  inclusive upper bound on recorded_at
        protocol   protocol ID
    """

    HEADER = [
        "session_id",
        "protocol_id",
        "participant_id",
        "task_order",
        "task_category",
        "task_param",
        "repeat_index",
        "dynamic_index",
        "duration_ms",
        "speech_segment_count",
        "speech_ms",
        "recorded_at_utc",
        "audio_file",
    ]

    def get(self, request):
        qs = Recording.objects.select_related("session").order_by("session__started_at", "task_order")
        qs = _filter_dates(request, qs, "recorded_at")
        if request.GET.get("protocol"):
            qs = qs.filter(session__protocol_id=request.GET["protocol"])
        rows = [self._row(recording) for recording in qs]
        logger.info("Recording CSV export by user=%s rows=%d", request.user.pk, len(rows))
        return _csv_response(rows, self.HEADER, "recordings")

    def _row(self, recording):
        session = recording.session
        segments = recording.speech_segments or []
        return [
            str(session.pk),
            session.protocol_id,
            session.participant_id or "",
            recording.task_order,
            recording.task_category,
            recording.task_param,
            recording.repeat_index,
            recording.dynamic_index,
            recording.duration_ms,
            len(segments),
            sum(segment.get("duration_ms", 0) for segment in segments),
            recording.recorded_at.isoformat(),
            recording.audio.name,
        ]


# ─────────────────────────────────────────────────────────────────────────────
# Interaction events CSV
# ─────────────────────────────────────────────────────────────────────────────


class EventCsvExportView(ExportAccessMixin, View):
    """
    One row per interaction event.

    Query params: from_date, to_date on created_at, protocol.
    """

    HEADER = [
        "session_id",
        "protocol_id",
        "participant_id",
        "task_index",
        "protocol_task_id",
        "action",
        "extra",
        "created_at_utc",
    ]

    def get(self, request):
        qs = ProgressEvent.objects.select_related("session").order_by("session__started_at", "created_at", "id")
        qs = _filter_dates(request, qs, "created_at")
        if request.GET.get("protocol"):
            qs = qs.filter(session__protocol_id=request.GET["protocol"])
        rows = [
            [
                str(event.session_id),
                event.session.protocol_id,
                event.session.participant_id or "",
                event.task_index,
                event.protocol_task_id or "",
                event.action,
                json.dumps(event.extra, sort_keys=True),
                event.created_at.isoformat(),
            ]
            for event in qs
        ]
        logger.info("Event CSV export by user=%s rows=%d", request.user.pk, len(rows))
        return _csv_response(rows, self.HEADER, "events")


# ─────────────────────────────────────────────────────────────────────────────
# Task responses JSON
# ─────────────────────────────────────────────────────────────────────────────


class ResponseJsonExportView(ExportAccessMixin, View):
    """Questionnaire, vision and consent results with their full payloads."""

    def get(self, request):
        qs = TaskResponse.objects.select_related("session").order_by("session__started_at", "task_order")
        qs = _filter_dates(request, qs, "submitted_at")
        if request.GET.get("protocol"):
            qs = qs.filter(session__protocol_id=request.GET["protocol"])
        responses = [
            {
                "session_id": str(item.session_id),
                "protocol_id": item.session.protocol_id,
                "participant_id": item.session.participant_id,
                "task_type": item.task_type,
                "task_order": item.task_order,
                "protocol_task_id": item.protocol_task_id,
                "payload": item.payload,
                "submitted_at_utc": item.submitted_at.isoformat(),
            }
            for item in qs
        ]
        logger.info("Response JSON export by user=%s rows=%d", request.user.pk, len(responses))
        response = JsonResponse({"exported_at": timezone.now().isoformat(), "responses": responses})
        response["Content-Disposition"] = (
            f'attachment; filename="responses_{timezone.now().date().isoformat()}.json"'
        )
        return response


recording_csv_export_view = RecordingCsvExportView.as_view()
event_csv_export_view = EventCsvExportView.as_view()
response_json_export_view = ResponseJsonExportView.as_view()
