from uuid import uuid4

from django.db import models
from django.db.models import CASCADE
from django.db.models import SET_NULL
from django.db.models import BooleanField
from django.db.models import CharField
from django.db.models import DateField
from django.db.models import DateTimeField
from django.db.models import EmailField
from django.db.models import FileField
from django.db.models import JSONField
from django.db.models import Model
from django.db.models import PositiveIntegerField
from django.db.models import TextChoices
from django.db.models import UUIDField
from django.utils.translation import gettext_lazy as _

from taskprotocoller.protocols.models import Protocol


def recording_upload_to(instance, filename):
    return f"recordings/{instance.session_id}/{filename}"


class Participant(Model):
    class Sex(TextChoices):
        FEMALE = "female", _("Female")
        MALE = "male", _("Male")
        OTHER = "other", _("Other")

    protocol = models.ForeignKey(Protocol, on_delete=CASCADE, related_name="participants")
    external_id = CharField(max_length=100, blank=True)
    full_name = CharField(max_length=255, blank=True)
    birth_date = DateField(null=True, blank=True)
    sex = CharField(max_length=10, choices=Sex.choices, blank=True)
    contact_email = EmailField(blank=True)
    # Personal enrollment link token
    access_token = UUIDField(default=uuid4, unique=True, editable=False)
    created_at = DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.external_id or self.full_name or f"Participant {self.pk}"


class ParticipantSession(Model):
    class CompletionStatus(TextChoices):
        COMPLETE = "complete", "Complete"
        ABANDONED = "abandoned", "Abandoned"
        IN_PROGRESS = "in_progress", "In Progress"

    id = UUIDField(primary_key=True, default=uuid4, editable=False)
    protocol = models.ForeignKey(Protocol, on_delete=CASCADE, related_name="sessions")
    participant = models.ForeignKey(
        Participant,
        null=True,
        blank=True,
        on_delete=SET_NULL,
        related_name="sessions",
    )
    # Resolved and randomized task dicts, fixed for the lifetime of the session
    task_order = JSONField()
    random_seed = CharField(max_length=64)
    strategy = CharField(max_length=20, default="none")
    current_index = PositiveIntegerField(default=0)
    started_at = DateTimeField(null=True, blank=True)
    completed_at = DateTimeField(null=True, blank=True)
    completion_status = CharField(
        max_length=20,
        choices=CompletionStatus.choices,
        default=CompletionStatus.IN_PROGRESS,
    )
    is_preview = BooleanField(default=False)

    class Meta:
        indexes = [
            models.Index(fields=["protocol", "started_at"], name="runs_partic_protoco_3c1f0e_idx"),
            models.Index(fields=["protocol", "completion_status"], name="runs_partic_protoco_8a2d4b_idx"),
        ]

    def __str__(self) -> str:
        return f"Session {self.id} – {self.protocol}"

    @property
    def is_complete(self) -> bool:
        return self.completion_status == self.CompletionStatus.COMPLETE


class ProgressEvent(Model):
    session = models.ForeignKey(ParticipantSession, on_delete=CASCADE, related_name="events")
    protocol_task_id = PositiveIntegerField(null=True, blank=True)
    # 1-based, as shown to participants
    task_index = PositiveIntegerField()
    action = CharField(max_length=50)
    extra = JSONField(default=dict)
    created_at = DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.action} @ {self.task_index} – {self.session_id}"


class Recording(Model):
    id = UUIDField(primary_key=True, default=uuid4, editable=False)
    session = models.ForeignKey(ParticipantSession, on_delete=CASCADE, related_name="recordings")
    protocol_task_id = PositiveIntegerField(null=True, blank=True)
    task_category = CharField(max_length=50)
    # 1-based position of the task within the session's order
    task_order = PositiveIntegerField()
    audio = FileField(upload_to=recording_upload_to)
    duration_ms = PositiveIntegerField(default=0)
    task_param = CharField(max_length=100, blank=True)
    repeat_index = PositiveIntegerField(default=1)
    dynamic_index = PositiveIntegerField(default=0)
    speech_segments = JSONField(default=list)
    recorded_at = DateTimeField()

    class Meta:
        ordering = ["session", "task_order"]
        permissions = [("export_data", "Can export research data")]

    def __str__(self) -> str:
        return f"{self.task_category} #{self.task_order} – {self.session_id}"


class TaskResponse(Model):
    id = UUIDField(primary_key=True, default=uuid4, editable=False)
    session = models.ForeignKey(ParticipantSession, on_delete=CASCADE, related_name="responses")
    protocol_task_id = PositiveIntegerField(null=True, blank=True)
    task_type = CharField(max_length=20)
    task_order = PositiveIntegerField()
    payload = JSONField()
    submitted_at = DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.task_type} #{self.task_order} – {self.session_id}"
