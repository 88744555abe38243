"""
Common model building blocks - Duka
Soft-delete flag with an explicit live-only queryset view.
"""

from typing import Any

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class SoftDeleteQuerySet(models.QuerySet):
    """QuerySet exposing the non-deleted view explicitly at the call site"""

    def live(self) -> 'SoftDeleteQuerySet':
        return self.filter(is_deleted=False)

    def deleted(self) -> 'SoftDeleteQuerySet':
        return self.filter(is_deleted=True)


class SoftDeleteModel(models.Model):
    """
    Abstract base for records that are flagged rather than removed.

    The default manager returns every row; callers ask for `.live()` when
    they want deleted rows excluded.
    """

    is_deleted = models.BooleanField(default=False, db_index=True)
    deleted_at = models.DateTimeField(null=True, blank=True, help_text=_("When the record was soft-deleted"))

    objects = SoftDeleteQuerySet.as_manager()

    class Meta:
        abstract = True

    def soft_delete(self, **extra_fields: Any) -> None:
        self.is_deleted = True
        self.deleted_at = timezone.now()
        for name, value in extra_fields.items():
            setattr(self, name, value)
        self.save(update_fields=['is_deleted', 'deleted_at', *extra_fields.keys()])
