"""
DRF serializers for the finance API.

Request serializers only check shape and types. Business rules (positive
amounts, tenant membership, allocation limits) are enforced by the
services, which report them through ServiceResult.

Related files:
    - views.py: Finance API views
    - services/: PaymentProcessor, TreatmentCompletionService, ...
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from finance.models import PaymentMethod

MONEY = {"max_digits": 14, "decimal_places": 2}


class RecordPaymentSerializer(serializers.Serializer):
    """
    Request body of POST /payments/.

    The idempotency key may also be sent as the Idempotency-Key header.
    """

    patient_id = serializers.UUIDField()
    amount = serializers.DecimalField(**MONEY)
    method = serializers.ChoiceField(choices=PaymentMethod.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    idempotency_key = serializers.CharField(
        required=False, allow_null=True, allow_blank=True, max_length=255
    )
    appointment_id = serializers.UUIDField(required=False, allow_null=True)
    fiscal_check_url = serializers.URLField(
        required=False, allow_blank=True, max_length=500, default=""
    )


class RecordRefundSerializer(serializers.Serializer):
    """Request body of POST /payments/<id>/refunds/."""

    patient_id = serializers.UUIDField()
    amount = serializers.DecimalField(**MONEY)
    method = serializers.ChoiceField(choices=PaymentMethod.choices)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    idempotency_key = serializers.CharField(
        required=False, allow_null=True, allow_blank=True, max_length=255
    )


class CompleteTreatmentSerializer(serializers.Serializer):
    """
    Request body of POST /treatments/complete/.

    doctor_id defaults to the authenticated user.
    """

    appointment_id = serializers.UUIDField()
    item_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
    doctor_id = serializers.UUIDField(required=False, allow_null=True)


class PerformedServiceSerializer(serializers.Serializer):
    service_name = serializers.CharField(max_length=255)
    unit_price = serializers.DecimalField(**MONEY, min_value=Decimal("0"))
    quantity = serializers.IntegerField(min_value=1, default=1)
    discount_percent = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=Decimal("0"),
        max_value=Decimal("100"),
        default=Decimal("0"),
    )
    tooth_number = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class RecordPerformedServicesSerializer(serializers.Serializer):
    """Request body of POST /treatments/performed/."""

    appointment_id = serializers.UUIDField()
    services = PerformedServiceSerializer(many=True, allow_empty=False)
    doctor_id = serializers.UUIDField(required=False, allow_null=True)


class AllocationLineSerializer(serializers.Serializer):
    charge_id = serializers.UUIDField()
    amount = serializers.DecimalField(**MONEY)


class AllocatePaymentSerializer(serializers.Serializer):
    """Request body of POST /payments/<id>/allocations/."""

    allocations = AllocationLineSerializer(many=True, allow_empty=False)


class LedgerQuerySerializer(serializers.Serializer):
    """Query parameters of GET /patients/<id>/ledger/."""

    limit = serializers.IntegerField(required=False, default=50)
    offset = serializers.IntegerField(required=False, default=0)
