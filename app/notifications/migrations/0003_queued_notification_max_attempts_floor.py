import django.core.validators
from django.db import migrations, models

import notifications.models


class Migration(migrations.Migration):
    dependencies = [
        ("notifications", "0002_add_celery_beat_schedules"),
    ]

    operations = [
        migrations.AlterField(
            model_name="queuednotification",
            name="max_attempts",
            field=models.PositiveSmallIntegerField(
                default=notifications.models.default_max_attempts,
                help_text="Attempts allowed before the record is marked failed",
                validators=[django.core.validators.MinValueValidator(1)],
            ),
        ),
        migrations.AddConstraint(
            model_name="queuednotification",
            constraint=models.CheckConstraint(
                check=models.Q(max_attempts__gte=1),
                name="notif_queue_max_attempts_gte_1",
            ),
        ),
    ]
