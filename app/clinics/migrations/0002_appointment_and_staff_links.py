import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    """
    Models that reference staff users.

    Split from 0001 because authentication.User itself references
    clinics.Clinic.
    """

    dependencies = [
        ("clinics", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Appointment",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True, help_text="Timestamp when this record was last modified"
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "start_time",
                    models.DateTimeField(db_index=True, help_text="Scheduled start of the visit"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("scheduled", "Scheduled"),
                            ("in_progress", "In Progress"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                            ("no_show", "No Show"),
                        ],
                        default="scheduled",
                        help_text="Current visit status",
                        max_length=20,
                    ),
                ),
                (
                    "clinic",
                    models.ForeignKey(
                        help_text="Clinic where the visit takes place",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="appointments",
                        to="clinics.clinic",
                    ),
                ),
                (
                    "doctor",
                    models.ForeignKey(
                        help_text="Doctor conducting the visit",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="appointments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "patient",
                    models.ForeignKey(
                        help_text="Patient being seen",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="appointments",
                        to="clinics.patient",
                    ),
                ),
            ],
            options={
                "ordering": ["-start_time"],
                "indexes": [
                    models.Index(fields=["clinic", "start_time"], name="clinics_app_clinic__3c9f70_idx"),
                    models.Index(fields=["patient", "start_time"], name="clinics_app_patient_a41e2d_idx"),
                ],
            },
        ),
        migrations.AddField(
            model_name="treatmentplanitem",
            name="appointment",
            field=models.ForeignKey(
                blank=True,
                help_text="Visit this item is scheduled for, if any",
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="plan_items",
                to="clinics.appointment",
            ),
        ),
        migrations.AddField(
            model_name="treatmentplanitem",
            name="completed_by",
            field=models.ForeignKey(
                blank=True,
                help_text="Doctor who completed the item",
                null=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name="completed_plan_items",
                to=settings.AUTH_USER_MODEL,
            ),
        ),
    ]
