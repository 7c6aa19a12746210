from typing import ClassVar

from django.contrib.auth.models import AbstractUser
from django.db.models import CharField
from django.db.models import EmailField
from django.db.models import TextChoices
from django.utils.translation import gettext_lazy as _

from .managers import UserManager


class User(AbstractUser):
    """
    Researcher account for taskprotocoller.

    Participants never log in; they reach their protocol through an
    enrollment link. Only researchers have User rows.
    """

    class Role(TextChoices):
        MASTER = "master", _("Master")
        ADMIN = "admin", _("Administrator")

    # First and last name do not cover name patterns around the globe
    name = CharField(_("Name of User"), blank=True, max_length=255)
    first_name = None  # type: ignore[assignment]
    last_name = None  # type: ignore[assignment]
    email = EmailField(_("email address"), unique=True)
    username = None  # type: ignore[assignment]
    role = CharField(max_length=20, choices=Role.choices, default=Role.ADMIN)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects: ClassVar[UserManager] = UserManager()

    @property
    def is_master(self) -> bool:
        """Masters see every project; other researchers only their assigned ones."""
        return self.role == self.Role.MASTER
