from django.contrib import admin

from .models import Participant
from .models import ParticipantSession
from .models import ProgressEvent
from .models import Recording
from .models import TaskResponse


@admin.register(Participant)
class ParticipantAdmin(admin.ModelAdmin):
    list_display = ["id", "external_id", "full_name", "protocol", "created_at"]
    list_filter = ["protocol"]
    search_fields = ["external_id", "full_name", "contact_email"]
    readonly_fields = ["access_token"]


@admin.register(ParticipantSession)
class ParticipantSessionAdmin(admin.ModelAdmin):
    list_display = ["id", "protocol", "participant", "started_at", "current_index", "completion_status", "is_preview"]
    list_filter = ["completion_status", "is_preview", "protocol"]
    search_fields = ["participant__external_id"]
    ordering = ["-started_at"]
    readonly_fields = ["random_seed", "task_order"]


@admin.register(ProgressEvent)
class ProgressEventAdmin(admin.ModelAdmin):
    list_display = ["session", "task_index", "action", "created_at"]
    list_filter = ["action"]


@admin.register(Recording)
class RecordingAdmin(admin.ModelAdmin):
    list_display = ["id", "session", "task_order", "task_category", "task_param", "repeat_index", "duration_ms"]
    list_filter = ["task_category"]


@admin.register(TaskResponse)
class TaskResponseAdmin(admin.ModelAdmin):
    list_display = ["id", "session", "task_order", "task_type", "submitted_at"]
    list_filter = ["task_type"]
