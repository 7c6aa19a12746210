import dataclasses
import json
import logging

from django.core.exceptions import PermissionDenied
from django.core.exceptions import ValidationError
from django.db import transaction
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.shortcuts import redirect
from django.shortcuts import render
from django.urls import reverse
from django.utils import timezone
from django.views import View

from taskprotocoller.protocols.models import Project
from taskprotocoller.protocols.models import Protocol
from taskprotocoller.protocols.variants import ConsentTask
from taskprotocoller.protocols.variants import InfoTask
from taskprotocoller.protocols.variants import QuestionnaireTask
from taskprotocoller.protocols.variants import UnknownTaskTypeError
from taskprotocoller.protocols.variants import VisionTask
from taskprotocoller.protocols.variants import VoiceTask
from taskprotocoller.protocols.variants import task_from_dict
from taskprotocoller.protocols.views import StaffRequiredMixin
from taskprotocoller.recording.media import CapturedAudio
from taskprotocoller.recording.state_machine import AttemptResult
from taskprotocoller.recording.state_machine import RecordingTaskConfig
from taskprotocoller.recording.state_machine import parse_speech_segments
from taskprotocoller.runs.forms import ParticipantForm
from taskprotocoller.runs.helpers.session_helpers import create_session
from taskprotocoller.runs.helpers.session_helpers import run_for
from taskprotocoller.runs.helpers.session_helpers import StaleRunPositionError
from taskprotocoller.runs.helpers.session_helpers import save_run_position
from taskprotocoller.runs.helpers.submission import DjangoResultSink
from taskprotocoller.runs.helpers.submission import SubmissionError
from taskprotocoller.runs.helpers.submission import save_task_response
from taskprotocoller.runs.helpers.vision import score_d15_arrangement
from taskprotocoller.runs.models import Participant
from taskprotocoller.runs.models import ParticipantSession

logger = logging.getLogger(__name__)

# Session ids this browser may act on
_SESSIONS_KEY = "participant_session_ids"
# Last index a task_opened event was reported for, per session id
_OPENED_KEY = "participant_opened_index"


def _grant(request, session):
    allowed = list(request.session.get(_SESSIONS_KEY, []))
    if str(session.pk) not in allowed:
        allowed.append(str(session.pk))
        request.session[_SESSIONS_KEY] = allowed


def _can_access(request, session) -> bool:
    if str(session.pk) in request.session.get(_SESSIONS_KEY, []):
        return True
    return request.user.is_authenticated and request.user.is_staff


def _resume_or_create(request, protocol, participant=None):
    """Resume this browser's in-progress session for the protocol, or start a new one."""
    candidates = ParticipantSession.objects.filter(
        pk__in=request.session.get(_SESSIONS_KEY, []),
        protocol=protocol,
        participant=participant,
        is_preview=False,
        completion_status=ParticipantSession.CompletionStatus.IN_PROGRESS,
    ).order_by("-started_at")
    session = candidates.first()
    if session is None:
        session = create_session(protocol, participant=participant)
        logger.info("Session %s created for protocol %s", session.pk, protocol.pk)
    _grant(request, session)
    return session


class EnrollView(View):
    """Public protocol link: starts (or resumes) an anonymous run."""

    def get(self, request, access_token):
        protocol = get_object_or_404(Protocol, access_token=access_token, is_active=True, project__is_active=True)
        session = _resume_or_create(request, protocol)
        return redirect("runs:task", session_id=session.pk)


class ParticipantLinkView(View):
    """Personal participant link: starts (or resumes) that participant's run."""

    def get(self, request, access_token):
        participant = get_object_or_404(
            Participant.objects.select_related("protocol"),
            access_token=access_token,
            protocol__is_active=True,
        )
        session = _resume_or_create(request, participant.protocol, participant=participant)
        return redirect("runs:task", session_id=session.pk)


class PreviewRunView(StaffRequiredMixin, View):
    """Starts a test run of a protocol. Nothing submitted in it is stored."""

    def get(self, request, pk):
        protocol = get_object_or_404(Protocol, pk=pk, project__in=Project.objects.visible_to(request.user))
        session = create_session(protocol, is_preview=True)
        _grant(request, session)
        return redirect("runs:task", session_id=session.pk)


class TaskView(View):
    """
    Renders the current task of a session, or the completion page once all
    tasks are done.
    """

    def get(self, request, session_id):
        session = get_object_or_404(ParticipantSession.objects.select_related("protocol"), pk=session_id)
        if not _can_access(request, session):
            raise PermissionDenied

        opened = dict(request.session.get(_OPENED_KEY, {}))
        run = run_for(session, opened_index=opened.get(str(session.pk)))
        if session.is_complete or run.is_complete:
            return render(request, "runs/complete.html", {"session": session})

        run.open_current()
        opened[str(session.pk)] = run.opened_index
        request.session[_OPENED_KEY] = opened

        task = run.current_task
        variant = run.current_variant
        context = {
            "session": session,
            "task": task,
            "variant": variant,
            "progress": run.progress(),
            "task_template": f"runs/tasks/{variant.type}.html",
            "submit_url": reverse("runs:submit_result"),
            "progress_url": reverse("runs:progress"),
            "skip_url": reverse("runs:skip") if session.is_preview else None,
        }
        if variant.type == "voice":
            config = RecordingTaskConfig.from_task(variant)
            context["recording_config"] = {
                "mode": config.mode,
                "duration_ms": config.duration_ms,
                "use_vad": config.use_vad,
                "allow_pause": config.allow_pause,
                "sub_items": list(config.sub_items),
                "placeholder": config.placeholder,
                "freeze_threshold_ms": config.freeze_threshold_ms,
                "advance_threshold_ms": config.advance_threshold_ms,
                "poll_interval_ms": config.poll_interval_ms,
                "vad": dataclasses.asdict(config.vad_params),
            }
        return render(request, "runs/task.html", context)


def _parse_body(request):
    """Return ``(data, audio_file)`` from a JSON or multipart request. Raises ValueError."""
    if request.content_type.startswith("multipart/"):
        data = json.loads(request.POST.get("meta") or "{}")
        audio_file = request.FILES.get("audio")
    else:
        data = json.loads(request.body)
        audio_file = None
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object")
    return data, audio_file


def _load_session(request, session_id):
    """Return ``(session, error_response)`` for an API call on *session_id*."""
    try:
        session = ParticipantSession.objects.get(pk=session_id)
    except (ParticipantSession.DoesNotExist, ValidationError, ValueError):
        return None, JsonResponse({"error": "Session not found"}, status=404)
    if not _can_access(request, session):
        return None, JsonResponse({"error": "Forbidden"}, status=403)
    if session.is_complete:
        return None, JsonResponse({"error": "Session already complete"}, status=409)
    return session, None


class TaskResultSubmitView(View):
    """
    Receives and saves the result of the session's current task.

    Voice results are multipart (``audio`` file + ``meta`` JSON); every other
    task type posts JSON.

    Returns:
        201 {"ok": true, "next_index", "overlay", "is_complete", "progress"}
        422 on validation failure, or a current task of unsupported type
        403 session not started from this browser
        404 unknown session
        409 session complete, or task_index is not (or no longer) the current task
    """

    REQUIRED_FIELDS = frozenset({"session_id", "task_index"})

    def post(self, request):
        try:
            data, audio_file = _parse_body(request)
        except ValueError:
            return JsonResponse({"error": "Invalid JSON"}, status=422)

        missing = self.REQUIRED_FIELDS - set(data.keys())
        if missing:
            return JsonResponse({"error": f"Missing fields: {', '.join(sorted(missing))}"}, status=422)

        session, error = _load_session(request, data["session_id"])
        if error:
            return error

        try:
            with transaction.atomic():
                return self._save_current(session.pk, data, audio_file)
        except (SubmissionError, ValueError, TypeError) as exc:
            return JsonResponse({"error": str(exc)}, status=422)
        except StaleRunPositionError:
            logger.info("Concurrent submit for session %s task %s rejected", session.pk, data["task_index"])
            return JsonResponse({"error": "Task is no longer current"}, status=409)

    def _save_current(self, session_pk, data, audio_file):
        # Locked so concurrent submits for one task are applied one at a time.
        session = ParticipantSession.objects.select_for_update().get(pk=session_pk)
        if session.is_complete:
            return JsonResponse({"error": "Session already complete"}, status=409)
        if data["task_index"] != session.current_index:
            return JsonResponse({"error": "Task is no longer current"}, status=409)

        run = run_for(session)
        if run.is_complete:
            return JsonResponse({"error": "Session already complete"}, status=409)
        task = run.current_task
        try:
            variant = task_from_dict(task)
        except (UnknownTaskTypeError, TypeError) as exc:
            logger.warning("Session %s has an unusable task at index %s: %s", session.pk, run.index, exc)
            return JsonResponse({"error": f"Unsupported task: {exc}"}, status=422)
        handler = {
            VoiceTask: self._save_voice,
            QuestionnaireTask: self._save_questionnaire,
            VisionTask: self._save_vision,
            ConsentTask: self._save_consent,
            InfoTask: self._save_info,
        }[type(variant)]

        expected_index = run.index
        extra = handler(session, task, run.index + 1, data, audio_file)
        overlay = run.complete_current(**extra)
        save_run_position(session, run, expected_index=expected_index)
        return JsonResponse(
            {
                "ok": True,
                "next_index": run.index,
                "overlay": overlay,
                "is_complete": run.is_complete,
                "progress": run.progress(),
            },
            status=201,
        )

    def _save_voice(self, session, task, task_order, data, audio_file):
        if audio_file is None:
            raise SubmissionError("audio is required for voice tasks")
        elapsed_ms = int(data.get("elapsed_ms") or 0)
        segments = data.get("speech_segments") or data.get("speechSegments") or []
        result = AttemptResult(
            audio=CapturedAudio(
                blob=audio_file.read(),
                duration_ms=elapsed_ms,
                content_type=audio_file.content_type or "audio/webm",
            ),
            elapsed_ms=elapsed_ms,
            timestamp=data.get("timestamp") or timezone.now().isoformat(),
            speech_segments=parse_speech_segments(segments),
            task_category=task["category"],
            dynamic_index=int(data.get("dynamic_index") or 0),
        )
        DjangoResultSink(session, task, task_order).submit(result)
        return {"recording_duration": elapsed_ms}

    def _save_questionnaire(self, session, task, task_order, data, audio_file):
        answers = data.get("answers")
        if not isinstance(answers, dict):
            raise ValueError("answers must be an object")
        if not session.is_preview:
            save_task_response(session, task, task_order, {"answers": answers})
        return {}

    def _save_vision(self, session, task, task_order, data, audio_file):
        summary = score_d15_arrangement(data.get("result"))
        if not session.is_preview:
            save_task_response(
                session,
                task,
                task_order,
                {"summary": summary, "timestamp": data.get("timestamp") or timezone.now().isoformat()},
            )
        return {}

    def _save_consent(self, session, task, task_order, data, audio_file):
        if data.get("agreed") is not True:
            raise ValueError("Consent must be given to continue")
        if not session.is_preview:
            save_task_response(session, task, task_order, {"agreed": True})
        return {}

    def _save_info(self, session, task, task_order, data, audio_file):
        return {}


class ProgressEventView(View):
    """
    Logs one interaction event (button presses, topic changes) for the
    session's current task.

    POST body: { session_id, action, ...extra }
    Returns:   202 { ok: true }
    """

    def post(self, request):
        try:
            data, _audio = _parse_body(request)
        except ValueError:
            return JsonResponse({"error": "Invalid JSON"}, status=422)

        action = data.pop("action", None)
        session_id = data.pop("session_id", None)
        if not action or not session_id:
            return JsonResponse({"error": "session_id and action are required"}, status=422)

        session, error = _load_session(request, session_id)
        if error:
            return error

        data.pop("task_index", None)
        data.pop("protocol_task_id", None)
        run_for(session).log_interaction(str(action), **data)
        return JsonResponse({"ok": True}, status=202)


class TaskSkipView(View):
    """
    Skips the current task of a preview session.

    POST body: { session_id }
    Returns:   { ok: true, next_index, is_complete }
    """

    def post(self, request):
        try:
            data, _audio = _parse_body(request)
        except ValueError:
            return JsonResponse({"error": "Invalid JSON"}, status=422)

        session, error = _load_session(request, data.get("session_id"))
        if error:
            return error
        if not session.is_preview:
            return JsonResponse({"error": "Tasks can only be skipped in a test run"}, status=403)

        try:
            with transaction.atomic():
                session = ParticipantSession.objects.select_for_update().get(pk=session.pk)
                run = run_for(session)
                expected_index = run.index
                run.skip()
                save_run_position(session, run, expected_index=expected_index)
        except StaleRunPositionError:
            return JsonResponse({"error": "Task is no longer current"}, status=409)
        return JsonResponse({"ok": True, "next_index": run.index, "is_complete": run.is_complete})


class ParticipantCreateView(StaffRequiredMixin, View):
    """
    Registers a participant and shows their personal link.

    GET  renders the participant form.
    POST validates, saves and renders the link page.
    """

    def get(self, request):
        form = self._form()
        return render(request, "runs/participant_form.html", {"form": form})

    def post(self, request):
        form = self._form(data=request.POST)
        if not form.is_valid():
            return render(request, "runs/participant_form.html", {"form": form}, status=422)
        participant = form.save()
        link = request.build_absolute_uri(
            reverse("runs:participant_link", kwargs={"access_token": participant.access_token})
        )
        logger.info("Participant %s registered for protocol %s", participant.pk, participant.protocol_id)
        return render(request, "runs/participant_link.html", {"participant": participant, "link": link})

    def _form(self, data=None):
        form = ParticipantForm(data=data)
        projects = Project.objects.visible_to(self.request.user)
        form.fields["protocol"].queryset = Protocol.objects.filter(is_active=True, project__in=projects)
        return form


enroll_view = EnrollView.as_view()
participant_link_view = ParticipantLinkView.as_view()
preview_run_view = PreviewRunView.as_view()
task_view = TaskView.as_view()
task_result_submit_view = TaskResultSubmitView.as_view()
progress_event_view = ProgressEventView.as_view()
task_skip_view = TaskSkipView.as_view()
participant_create_view = ParticipantCreateView.as_view()
