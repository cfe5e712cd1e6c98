from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("campaigns", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="SmsDailyUsage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("day", models.DateField(unique=True)),
                ("sent", models.PositiveIntegerField(default=0)),
            ],
            options={
                "verbose_name_plural": "SMS daily usage",
                "ordering": ("-day",),
            },
        ),
    ]
