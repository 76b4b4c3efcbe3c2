import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="LoyaltyAccount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_id", models.CharField(max_length=100, unique=True)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("balance", models.IntegerField(default=0)),
                ("lifetime_points", models.PositiveIntegerField(default=0)),
                (
                    "tier",
                    models.CharField(
                        choices=[
                            ("bronze", "Bronze"),
                            ("silver", "Silver"),
                            ("gold", "Gold"),
                            ("platinum", "Platinum"),
                        ],
                        default="bronze",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-balance", "user_id"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("balance__gte", 0)),
                        name="loyalty_account_balance_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="LoyaltyEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.IntegerField()),
                (
                    "reason",
                    models.CharField(
                        choices=[
                            ("booking_accrual", "Booking accrual"),
                            ("referral", "Referral"),
                            ("tier_bonus", "Tier upgrade bonus"),
                            ("manual", "Manual"),
                            ("redemption", "Redemption"),
                            ("expiration", "Expiration"),
                            ("reversal", "Reversal"),
                            ("redemption_refund", "Redemption refund"),
                        ],
                        max_length=20,
                    ),
                ),
                ("description", models.CharField(blank=True, default="", max_length=300)),
                ("booking_id", models.CharField(blank=True, default="", max_length=100)),
                ("event_id", models.CharField(blank=True, default="", max_length=100)),
                (
                    "source_key",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Idempotency key. A non-empty key can be used once per account.",
                        max_length=200,
                    ),
                ),
                ("awarded_at", models.DateTimeField()),
                ("expires_at", models.DateTimeField(blank=True, null=True)),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="entries",
                        to="eventbook_loyalty.loyaltyaccount",
                    ),
                ),
                (
                    "reverses",
                    models.OneToOneField(
                        blank=True,
                        help_text="The lot this expiration or reversal entry zeroes.",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="compensation",
                        to="eventbook_loyalty.loyaltyentry",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "loyalty entries",
                "ordering": ["awarded_at", "id"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("source_key", ""), _negated=True),
                        fields=("account", "source_key"),
                        name="loyalty_entry_unique_source_key",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ReferralReward",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("referrer_user_id", models.CharField(max_length=100)),
                ("referee_user_id", models.CharField(max_length=100)),
                ("booking_id", models.CharField(blank=True, default="", max_length=100)),
                ("referrer_reward", models.DecimalField(decimal_places=2, max_digits=10)),
                ("referee_reward", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("points", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "entry",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="referral_reward",
                        to="eventbook_loyalty.loyaltyentry",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("referrer_user_id", "referee_user_id"),
                        name="loyalty_referral_once_per_pair",
                    ),
                ],
            },
        ),
    ]
