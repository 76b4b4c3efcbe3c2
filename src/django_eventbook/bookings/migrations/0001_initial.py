import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("eventbook_events", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "reference",
                    models.CharField(
                        help_text='Unique booking reference, e.g. "BKG-A1B2C3D4".',
                        max_length=100,
                        unique=True,
                    ),
                ),
                ("user_id", models.CharField(max_length=100)),
                ("user_email", models.EmailField(blank=True, default="", max_length=254)),
                ("event_title", models.CharField(max_length=200)),
                ("event_date", models.DateTimeField()),
                ("tickets", models.JSONField(default=dict, help_text="Ticket quantities keyed by ticket type slug.")),
                ("attendee_name", models.CharField(blank=True, default="", max_length=200)),
                ("attendee_email", models.EmailField(blank=True, default="", max_length=254)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("confirmed", "Confirmed"),
                            ("checked_in", "Checked in"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("subtotal", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("discount_amount", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("total_amount", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                (
                    "coupon_code",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Snapshot of the coupon code applied at checkout.",
                        max_length=100,
                    ),
                ),
                (
                    "referred_by",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="User id of the referrer, if the buyer arrived through a referral.",
                        max_length=100,
                    ),
                ),
                ("referral_discount", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="eventbook_events.event",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="BookingModification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "modification_type",
                    models.CharField(
                        choices=[
                            ("attendee_info", "Attendee info"),
                            ("ticket_quantity", "Ticket quantity"),
                            ("ticket_type", "Ticket type"),
                        ],
                        max_length=20,
                    ),
                ),
                ("old_value", models.JSONField(blank=True, null=True)),
                ("new_value", models.JSONField(blank=True, null=True)),
                (
                    "additional_cost",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        help_text="Signed change to the booking total.",
                        max_digits=10,
                    ),
                ),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="modifications",
                        to="eventbook_bookings.booking",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="BookingCancellation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_id", models.CharField(max_length=100)),
                ("reason", models.TextField(blank=True, default="")),
                ("refund_percentage", models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                ("processing_fee", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("refund_amount", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("points_reversed", models.PositiveIntegerField(default=0)),
                ("points_refunded", models.PositiveIntegerField(default=0)),
                ("cancelled_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "booking",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="cancellation",
                        to="eventbook_bookings.booking",
                    ),
                ),
            ],
            options={
                "ordering": ["-cancelled_at"],
            },
        ),
    ]
