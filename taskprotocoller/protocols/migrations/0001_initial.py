import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations
from django.db import models

import taskprotocoller.protocols.models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Project",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255, verbose_name="Name")),
                ("description", models.TextField(blank=True)),
                ("frequency", models.CharField(blank=True, max_length=100)),
                ("country", models.CharField(blank=True, max_length=100)),
                ("contact_person", models.CharField(blank=True, max_length=255)),
                ("is_active", models.BooleanField(default=True)),
                ("start_date", models.DateField(default=django.utils.timezone.localdate)),
                ("end_date", models.DateField(blank=True, null=True)),
                (
                    "researchers",
                    models.ManyToManyField(blank=True, related_name="projects", to=settings.AUTH_USER_MODEL),
                ),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Protocol",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255, verbose_name="Name")),
                ("description", models.TextField(blank=True)),
                ("language", models.CharField(choices=[("en", "English"), ("cs", "Czech")], max_length=10)),
                ("info_text", models.TextField(blank=True)),
                ("consent_text", models.TextField(blank=True)),
                ("questionnaire", models.JSONField(blank=True, null=True)),
                (
                    "randomization",
                    models.JSONField(default=taskprotocoller.protocols.models.default_randomization),
                ),
                ("access_token", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("is_active", models.BooleanField(default=True)),
                ("version", models.PositiveIntegerField(default=1)),
                (
                    "project",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="protocols",
                        to="protocols.project",
                    ),
                ),
            ],
            options={
                "ordering": ["project", "name"],
            },
        ),
        migrations.CreateModel(
            name="ProtocolTask",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("position", models.PositiveIntegerField(default=0)),
                (
                    "category",
                    models.CharField(
                        choices=[
                            ("phonation", "Sustained phonation"),
                            ("ddk", "Diadochokinesis"),
                            ("reading", "Reading passage"),
                            ("picture_description", "Picture description"),
                            ("monologue", "Monologue"),
                            ("d15", "D-15 colour arrangement"),
                        ],
                        max_length=50,
                    ),
                ),
                ("params", models.JSONField(blank=True, default=dict)),
                (
                    "protocol",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="tasks",
                        to="protocols.protocol",
                    ),
                ),
            ],
            options={
                "ordering": ["position", "id"],
            },
        ),
    ]
