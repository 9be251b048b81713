"""
Add celery-beat schedule for balance drift detection.

This migration creates the periodic task schedule for the
detect_balance_drift task, which runs every hour and records any
patient whose cached balance differs from the ledger.
"""

from django.db import migrations

TASK_NAME = "Detect Patient Balance Drift"


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for drift detection."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=1,
        period="hours",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "finance.tasks.detect_balance_drift",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Compares each patient's cached balance with the ledger and "
                "records drift. Nothing is repaired automatically."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("finance", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
