"""
Model mixins providing reusable functionality for Django models.

This module contains abstract mixin classes that can be combined with
BaseModel to add specific functionality. These are generic infrastructure
classes with no domain-specific logic.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key
    AppendOnlyMixin: Rows can be inserted but never updated or deleted

Usage:
    from core.models import BaseModel
    from core.model_mixins import AppendOnlyMixin, UUIDPrimaryKeyMixin

    class Charge(UUIDPrimaryKeyMixin, AppendOnlyMixin, models.Model):
        total = models.DecimalField(max_digits=14, decimal_places=2)

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Benefits:
        - Non-guessable IDs
        - Can be generated client-side before database insert
        - URLs don't reveal record count or order

    Fields:
        id: UUIDField as primary key (auto-generated)

    Note:
        Entries sharing a creation timestamp are ordered by this id, so
        the tie-break is stable but carries no meaning.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class ImmutableRecordError(Exception):
    """Raised when code attempts to update or delete an append-only row."""


class AppendOnlyMixin(models.Model):
    """
    Append-only records: inserted once, never modified or removed.

    save() refuses to write a row that already exists in the database and
    delete() always raises. Corrections are made by appending a new record
    (for example a refund), never by editing history.

    Bulk QuerySet.update()/delete() bypass these hooks; the finance services
    never call them on append-only models, and foreign keys pointing at
    these rows use on_delete=PROTECT.

    Usage:
        payment = Payment.objects.create(...)
        payment.notes = "changed"
        payment.save()  # raises ImmutableRecordError
    """

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        """Insert the row; refuse any update of an existing row."""
        if not self._state.adding:
            raise ImmutableRecordError(
                f"{self.__class__.__name__} {self.pk} is immutable and cannot be updated"
            )
        kwargs["force_insert"] = True
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """Append-only rows are never deleted."""
        raise ImmutableRecordError(
            f"{self.__class__.__name__} {self.pk} is immutable and cannot be deleted"
        )
