import uuid

import django.db.models.deletion
from django.db import migrations
from django.db import models

import taskprotocoller.runs.models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("protocols", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Participant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("external_id", models.CharField(blank=True, max_length=100)),
                ("full_name", models.CharField(blank=True, max_length=255)),
                ("birth_date", models.DateField(blank=True, null=True)),
                (
                    "sex",
                    models.CharField(
                        blank=True,
                        choices=[("female", "Female"), ("male", "Male"), ("other", "Other")],
                        max_length=10,
                    ),
                ),
                ("contact_email", models.EmailField(blank=True, max_length=254)),
                ("access_token", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "protocol",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="participants",
                        to="protocols.protocol",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="ParticipantSession",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("task_order", models.JSONField()),
                ("random_seed", models.CharField(max_length=64)),
                ("strategy", models.CharField(default="none", max_length=20)),
                ("current_index", models.PositiveIntegerField(default=0)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "completion_status",
                    models.CharField(
                        choices=[
                            ("complete", "Complete"),
                            ("abandoned", "Abandoned"),
                            ("in_progress", "In Progress"),
                        ],
                        default="in_progress",
                        max_length=20,
                    ),
                ),
                ("is_preview", models.BooleanField(default=False)),
                (
                    "participant",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="sessions",
                        to="runs.participant",
                    ),
                ),
                (
                    "protocol",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="sessions",
                        to="protocols.protocol",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["protocol", "started_at"], name="runs_partic_protoco_3c1f0e_idx"),
                    models.Index(fields=["protocol", "completion_status"], name="runs_partic_protoco_8a2d4b_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProgressEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("protocol_task_id", models.PositiveIntegerField(blank=True, null=True)),
                ("task_index", models.PositiveIntegerField()),
                ("action", models.CharField(max_length=50)),
                ("extra", models.JSONField(default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "session",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="events",
                        to="runs.participantsession",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="Recording",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("protocol_task_id", models.PositiveIntegerField(blank=True, null=True)),
                ("task_category", models.CharField(max_length=50)),
                ("task_order", models.PositiveIntegerField()),
                ("audio", models.FileField(upload_to=taskprotocoller.runs.models.recording_upload_to)),
                ("duration_ms", models.PositiveIntegerField(default=0)),
                ("task_param", models.CharField(blank=True, max_length=100)),
                ("repeat_index", models.PositiveIntegerField(default=1)),
                ("dynamic_index", models.PositiveIntegerField(default=0)),
                ("speech_segments", models.JSONField(default=list)),
                ("recorded_at", models.DateTimeField()),
                (
                    "session",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="recordings",
                        to="runs.participantsession",
                    ),
                ),
            ],
            options={
                "ordering": ["session", "task_order"],
                "permissions": [("export_data", "Can export research data")],
            },
        ),
        migrations.CreateModel(
            name="TaskResponse",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("protocol_task_id", models.PositiveIntegerField(blank=True, null=True)),
                ("task_type", models.CharField(max_length=20)),
                ("task_order", models.PositiveIntegerField()),
                ("payload", models.JSONField()),
                ("submitted_at", models.DateTimeField(auto_now_add=True)),
                (
                    "session",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="responses",
                        to="runs.participantsession",
                    ),
                ),
            ],
        ),
    ]
