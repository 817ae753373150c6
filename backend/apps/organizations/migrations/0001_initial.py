import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Organization",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("name", models.CharField(max_length=255)),
                (
                    "slug",
                    models.SlugField(
                        help_text="URL-safe identifier, e.g. 'acme-corp'",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "billing_customer_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Provider customer ID, e.g. 'cus_xxx'",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "billing_subscription_id",
                    models.CharField(
                        blank=True,
                        help_text="Provider subscription ID, e.g. 'sub_xxx'",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "subscription_status",
                    models.CharField(
                        choices=[
                            ("inactive", "Inactive"),
                            ("active", "Active"),
                            ("canceled", "Canceled"),
                            ("past_due", "Past Due"),
                            ("trialing", "Trialing"),
                        ],
                        db_index=True,
                        default="inactive",
                        max_length=20,
                    ),
                ),
                ("seats", models.PositiveIntegerField(default=1)),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("seats__gte", 1)),
                        name="organization_seats_positive",
                    )
                ],
            },
        ),
    ]
