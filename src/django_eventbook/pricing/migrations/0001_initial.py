import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("eventbook_events", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Coupon",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=100, unique=True)),
                ("name", models.CharField(blank=True, default="", max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "discount_type",
                    models.CharField(
                        choices=[
                            ("percentage", "Percentage discount"),
                            ("fixed_amount", "Fixed amount discount"),
                            ("buy_x_get_y", "Buy X get Y free"),
                        ],
                        default="percentage",
                        max_length=20,
                    ),
                ),
                (
                    "discount_value",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        help_text="Percentage (0-100) or fixed amount depending on discount_type.",
                        max_digits=10,
                    ),
                ),
                ("buy_quantity", models.PositiveIntegerField(default=1)),
                ("get_quantity", models.PositiveIntegerField(default=0)),
                (
                    "max_uses",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Total redemptions allowed. Empty means unlimited.",
                        null=True,
                    ),
                ),
                (
                    "max_uses_per_user",
                    models.PositiveIntegerField(
                        blank=True,
                        default=1,
                        help_text="Redemptions allowed per user. Empty means unlimited.",
                        null=True,
                    ),
                ),
                ("current_uses", models.PositiveIntegerField(default=0)),
                ("valid_from", models.DateTimeField()),
                ("valid_until", models.DateTimeField()),
                (
                    "applicable_categories",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Event categories this coupon applies to, as an alternative to specific events.",
                    ),
                ),
                (
                    "applicable_ticket_types",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Ticket type slugs this coupon applies to. Empty means all.",
                    ),
                ),
                ("minimum_order_amount", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("is_early_bird", models.BooleanField(default=False)),
                ("early_bird_end_date", models.DateTimeField(blank=True, null=True)),
                ("is_referral", models.BooleanField(default=False)),
                ("referrer_reward", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("referee_reward", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("is_active", models.BooleanField(default=True)),
                ("created_by", models.CharField(blank=True, default="", max_length=100)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "applicable_events",
                    models.ManyToManyField(
                        blank=True,
                        help_text="Events this coupon applies to. Empty (with no categories) means all.",
                        related_name="coupons",
                        to="eventbook_events.event",
                    ),
                ),
            ],
            options={
                "ordering": ["code"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("max_uses__isnull", True))
                        | models.Q(("current_uses__lte", models.F("max_uses"))),
                        name="pricing_coupon_uses_within_cap",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CouponUsage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_id", models.CharField(max_length=100)),
                ("booking_id", models.CharField(max_length=100)),
                ("discount_amount", models.DecimalField(decimal_places=2, max_digits=10)),
                ("used_at", models.DateTimeField()),
                (
                    "coupon",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="usages",
                        to="eventbook_pricing.coupon",
                    ),
                ),
            ],
            options={
                "ordering": ["used_at", "id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("coupon", "booking_id"),
                        name="pricing_couponusage_once_per_booking",
                    ),
                ],
            },
        ),
    ]
