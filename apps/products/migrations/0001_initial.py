# Generated manually for the products app - catalog and stock counters

import uuid

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Category",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=100, unique=True)),
                ("slug", models.SlugField(max_length=120, unique=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "verbose_name": "Category",
                "verbose_name_plural": "Categories",
                "db_table": "product_categories",
                "ordering": ("name",),
            },
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                ("is_deleted", models.BooleanField(db_index=True, default=False)),
                (
                    "deleted_at",
                    models.DateTimeField(blank=True, help_text="When the record was soft-deleted", null=True),
                ),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("slug", models.SlugField(help_text="URL-friendly identifier", max_length=200, unique=True)),
                ("name", models.CharField(help_text="Display name for customers", max_length=200)),
                ("description", models.TextField(blank=True)),
                (
                    "price_cents",
                    models.BigIntegerField(
                        help_text="Unit price in cents",
                        validators=[
                            django.core.validators.MinValueValidator(0),
                            django.core.validators.MaxValueValidator(10000000000),
                        ],
                    ),
                ),
                ("image_url", models.URLField(blank=True, help_text="Primary product image")),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("inactive", "Inactive"), ("draft", "Draft")],
                        db_index=True,
                        default="active",
                        max_length=20,
                    ),
                ),
                (
                    "track_quantity",
                    models.BooleanField(default=True, help_text="Whether stock is counted for this product"),
                ),
                ("quantity", models.PositiveIntegerField(default=0, help_text="Units in stock")),
                ("total_sales", models.PositiveIntegerField(default=0, help_text="Units sold")),
                ("variants", models.JSONField(blank=True, default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "category",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="products",
                        to="products.category",
                    ),
                ),
            ],
            options={
                "verbose_name": "Product",
                "verbose_name_plural": "Products",
                "db_table": "products",
                "ordering": ("name",),
                "indexes": [
                    models.Index(fields=["status", "is_deleted"], name="product_status_deleted_idx"),
                    models.Index(fields=["category", "status"], name="product_category_status_idx"),
                ],
            },
        ),
    ]
