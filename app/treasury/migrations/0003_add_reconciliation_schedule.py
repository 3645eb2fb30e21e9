"""
Add celery-beat schedule for the nightly cashbox reconciliation.

This migration creates the periodic task schedule for the
run_scheduled_reconciliation task, which runs every night at 03:00 UTC to
replay every cashbox's log and correct drifted balances.
"""

from django.db import migrations

TASK_NAME = "Nightly Cashbox Reconciliation"


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for nightly reconciliation."""
    CrontabSchedule = apps.get_model("django_celery_beat", "CrontabSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    # Every day at 03:00
    schedule, _ = CrontabSchedule.objects.get_or_create(
        minute="0",
        hour="3",
        day_of_week="*",
        day_of_month="*",
        month_of_year="*",
        timezone="UTC",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "treasury.tasks.run_scheduled_reconciliation",
            "crontab": schedule,
            "enabled": True,
            "description": (
                "Replays every cashbox's transaction log, corrects stored "
                "balances that drifted and reports broken balance chains."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("treasury", "0002_transaction_immutability_trigger"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
