import json
import logging

from django.contrib.auth.mixins import LoginRequiredMixin
from django.contrib.auth.mixins import UserPassesTestMixin
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.urls import reverse
from django.views import View

from taskprotocoller.protocols.helpers.preview import simulate_run
from taskprotocoller.protocols.helpers.validation import validate_protocol
from taskprotocoller.protocols.models import Project
from taskprotocoller.protocols.models import Protocol

logger = logging.getLogger(__name__)


class StaffRequiredMixin(LoginRequiredMixin, UserPassesTestMixin):
    """Allow access only to staff researchers."""

    def test_func(self):
        return self.request.user.is_staff


def _visible_protocol(request, pk):
    projects = Project.objects.visible_to(request.user)
    return get_object_or_404(Protocol, pk=pk, project__in=projects)


class ProjectListView(StaffRequiredMixin, View):
    """
    Projects visible to the current researcher with protocol counts.

    Returns:
        200 {"projects": [...]}
    """

    def get(self, request):
        projects = Project.objects.visible_to(request.user).prefetch_related("protocols")
        return JsonResponse(
            {
                "projects": [
                    {
                        "id": project.pk,
                        "name": project.name,
                        "country": project.country,
                        "is_active": project.is_active,
                        "start_date": project.start_date.isoformat() if project.start_date else None,
                        "end_date": project.end_date.isoformat() if project.end_date else None,
                        "protocol_count": len(project.protocols.all()),
                    }
                    for project in projects
                ]
            }
        )


class ProjectStatusView(StaffRequiredMixin, View):
    """
    Activates or deactivates a project.

    POST body: { is_active: bool }
    Returns:   { ok: true, is_active, end_date }
    """

    def post(self, request, pk):
        project = get_object_or_404(Project.objects.visible_to(request.user), pk=pk)
        try:
            data = json.loads(request.body)
        except (json.JSONDecodeError, ValueError):
            return JsonResponse({"error": "Invalid JSON"}, status=400)
        if not isinstance(data.get("is_active"), bool):
            return JsonResponse({"error": "is_active must be true or false"}, status=422)

        project.set_active(data["is_active"])
        logger.info("Project %s set active=%s by user=%s", project.pk, project.is_active, request.user.pk)
        return JsonResponse(
            {
                "ok": True,
                "is_active": project.is_active,
                "end_date": project.end_date.isoformat() if project.end_date else None,
            }
        )


class ProtocolPreviewView(StaffRequiredMixin, View):
    """
    Simulates a participant run of a protocol without creating a session.

    Query params:
        seed  optional; reuse a previous preview's order

    Returns:
        200 {"seed", "randomization", "order": [...], "blocks": [[...], ...]}
        422 the protocol cannot be run yet
    """

    def get(self, request, pk):
        protocol = _visible_protocol(request, pk)
        errors = validate_protocol(
            {"name": protocol.name, "language": protocol.language, "tasks": list(protocol.tasks.all())}
        )
        if errors:
            return JsonResponse({"error": "Protocol is incomplete", "fields": errors}, status=422)
        return JsonResponse(simulate_run(protocol, seed=request.GET.get("seed")))


class ProtocolEnrollmentView(StaffRequiredMixin, View):
    """Returns the public enrollment link of a protocol."""

    def get(self, request, pk):
        protocol = _visible_protocol(request, pk)
        if not protocol.is_active:
            return JsonResponse({"error": "Protocol is not active"}, status=409)
        link = request.build_absolute_uri(reverse("runs:enroll", kwargs={"access_token": protocol.access_token}))
        return JsonResponse({"protocol_id": protocol.pk, "name": protocol.name, "url": link})


project_list_view = ProjectListView.as_view()
project_status_view = ProjectStatusView.as_view()
protocol_preview_view = ProtocolPreviewView.as_view()
protocol_enrollment_view = ProtocolEnrollmentView.as_view()
