from uuid import uuid4

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import CASCADE
from django.db.models import BooleanField
from django.db.models import CharField
from django.db.models import DateField
from django.db.models import JSONField
from django.db.models import Model
from django.db.models import PositiveIntegerField
from django.db.models import TextField
from django.db.models import UUIDField
from django.db.models.functions import Lower
from django.db.models.functions import Trim
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .helpers.randomizer import RandomizationSettings
from .helpers.validation import validate_protocol_params
from .registry import TASK_REGISTRY


def default_randomization():
    return RandomizationSettings().to_dict()


class ProjectQuerySet(models.QuerySet):
    def visible_to(self, user):
        """Masters see every project; other researchers only those they are assigned to."""
        if user.is_superuser or getattr(user, "is_master", False):
            return self
        return self.filter(researchers=user)


class Project(Model):
    name = CharField(_("Name"), max_length=255)
    description = TextField(blank=True)
    frequency = CharField(max_length=100, blank=True)
    country = CharField(max_length=100, blank=True)
    contact_person = CharField(max_length=255, blank=True)
    researchers = models.ManyToManyField(settings.AUTH_USER_MODEL, blank=True, related_name="projects")
    is_active = BooleanField(default=True)
    start_date = DateField(default=timezone.localdate)
    end_date = DateField(null=True, blank=True)

    objects = ProjectQuerySet.as_manager()

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name

    def set_active(self, is_active: bool) -> None:
        """Deactivating closes the project today; reactivating reopens it."""
        self.is_active = is_active
        self.end_date = None if is_active else timezone.localdate()
        self.save(update_fields=["is_active", "end_date"])


class Protocol(Model):
    project = models.ForeignKey(Project, on_delete=CASCADE, related_name="protocols")
    name = CharField(_("Name"), max_length=255)
    description = TextField(blank=True)
    language = CharField(max_length=10, choices=settings.LANGUAGES)
    info_text = TextField(blank=True)
    consent_text = TextField(blank=True)
    # Questionnaire definition appended as the final step of a run.
    questionnaire = JSONField(null=True, blank=True)
    randomization = JSONField(default=default_randomization)
    access_token = UUIDField(default=uuid4, unique=True, editable=False)
    is_active = BooleanField(default=True)
    version = PositiveIntegerField(default=1)

    class Meta:
        ordering = ["project", "name"]

    def __str__(self) -> str:
        return f"{self.name} v{self.version}"

    @property
    def randomization_settings(self) -> RandomizationSettings:
        return RandomizationSettings.from_dict(self.randomization)

    def clean(self):
        name = (self.name or "").strip()
        if not name:
            raise ValidationError({"name": _("A protocol name is required.")})
        clash = (
            Protocol.objects.filter(is_active=True)
            .annotate(normalised=Lower(Trim("name")))
            .filter(normalised=name.lower())
            .exclude(pk=self.pk)
        )
        if self.is_active and clash.exists():
            raise ValidationError({"name": _("An active protocol with this name already exists.")})


class ProtocolTask(Model):
    CATEGORY_CHOICES = [(key, value["label"]) for key, value in TASK_REGISTRY.items()]

    protocol = models.ForeignKey(Protocol, on_delete=CASCADE, related_name="tasks")
    position = PositiveIntegerField(default=0)
    category = CharField(max_length=50, choices=CATEGORY_CHOICES)
    params = JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["position", "id"]

    def clean(self):
        errors = validate_protocol_params(self.category, self.params)
        if errors:
            raise ValidationError({"params": errors})

    def __str__(self) -> str:
        return f"{self.protocol} #{self.position} {self.category}"
