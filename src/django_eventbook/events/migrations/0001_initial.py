import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=200, unique=True)),
                ("category", models.CharField(blank=True, default="", max_length=100)),
                ("description", models.TextField(blank=True, default="")),
                ("organizer_id", models.CharField(blank=True, default="", max_length=100)),
                ("starts_at", models.DateTimeField()),
                ("registration_start", models.DateTimeField(blank=True, null=True)),
                ("registration_end", models.DateTimeField(blank=True, null=True)),
                (
                    "early_bird_ends_at",
                    models.DateTimeField(
                        blank=True,
                        help_text=(
                            "Explicit end of the early-bird window. "
                            "Falls back to the configured window after registration opens."
                        ),
                        null=True,
                    ),
                ),
                (
                    "early_bird_percentage",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Early-bird discount percentage. Empty means the configured default.",
                        max_digits=5,
                        null=True,
                    ),
                ),
                ("is_published", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["starts_at"],
            },
        ),
        migrations.CreateModel(
            name="TicketType",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=200)),
                ("price", models.DecimalField(decimal_places=2, max_digits=10)),
                ("is_active", models.BooleanField(default=True)),
                ("order", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="ticket_types",
                        to="eventbook_events.event",
                    ),
                ),
            ],
            options={
                "ordering": ["order", "name"],
                "unique_together": {("event", "slug")},
            },
        ),
    ]
