from io import StringIO

import pytest
from django.core.management import call_command

from taskprotocoller.users.models import User


@pytest.mark.django_db
class TestUserManager:
    def test_create_user(self):
        user = User.objects.create_user(
            email="john@example.com",
            password="something-r@nd0m!",  # noqa: S106
        )
        assert user.email == "john@example.com"
        assert not user.is_staff
        assert not user.is_superuser
        assert user.check_password("something-r@nd0m!")
        assert user.username is None
        assert user.role == User.Role.ADMIN
        assert user.is_master is False

    def test_create_superuser_is_master(self):
        user = User.objects.create_superuser(
            email="admin@example.com",
            password="something-r@nd0m!",  # noqa: S106
        )
        assert user.email == "admin@example.com"
        assert user.is_staff
        assert user.is_superuser
        assert user.is_master is True

    def test_create_user_requires_email(self):
        with pytest.raises(ValueError, match="email must be set"):
            User.objects.create_user(email="", password="x")

    def test_create_superuser_rejects_non_staff(self):
        with pytest.raises(ValueError, match="is_staff=True"):
            User.objects.create_superuser(email="a@example.com", password="x", is_staff=False)

    def test_createsuperuser_command(self):
        """Ensure createsuperuser command works with our custom manager."""
        out = StringIO()
        command_result = call_command(
            "createsuperuser",
            "--email",
            "henry@example.com",
            interactive=False,
            stdout=out,
        )

        assert command_result is None
        assert out.getvalue() == "Superuser created successfully.\n"
        user = User.objects.get(email="henry@example.com")
        assert not user.has_usable_password()
