"""
DRF views for the finance app.

Each view validates the request shape, calls one service operation and
renders its ServiceResult. The HTTP status of a failure comes from the
result's error kind (validation 400, authorization 403, not found 404,
conflict 409, transient 503).

Related files:
    - services/: Business logic
    - serializers.py: Request validation
    - urls.py: URL routing

Endpoints:
    POST /api/v1/finance/payments/ - Record a payment
    POST /api/v1/finance/payments/{id}/refunds/ - Refund part of a payment
    POST /api/v1/finance/payments/{id}/allocations/ - Allocate a payment to works
    POST /api/v1/finance/treatments/complete/ - Complete treatment plan items
    POST /api/v1/finance/treatments/performed/ - Record unplanned services
    GET /api/v1/finance/patients/{id}/summary/ - Finance summary
    GET /api/v1/finance/patients/{id}/ledger/ - Running-balance ledger
    GET /api/v1/finance/patients/{id}/unpaid-works/ - Unpaid works
    GET /api/v1/finance/patients/{id}/work-status/ - Per-work payment status
    GET /api/v1/finance/patients/{id}/balance/ - Authoritative balance and drift flag

Security:
    - All endpoints require an authenticated staff member of a clinic
    - The clinic is always the authenticated user's clinic
"""

from __future__ import annotations

from drf_spectacular.utils import (
    OpenApiExample,
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.services import ServiceResult
from finance.permissions import IsClinicStaff
from finance.serializers import (
    AllocatePaymentSerializer,
    CompleteTreatmentSerializer,
    LedgerQuerySerializer,
    RecordPaymentSerializer,
    RecordPerformedServicesSerializer,
    RecordRefundSerializer,
)
from finance.services import (
    AllocationEngine,
    BalanceAggregator,
    LedgerQuery,
    PaymentProcessor,
    TreatmentCompletionService,
)
from finance.types import AllocationRequest, PerformedService

ERROR_RESPONSES = {
    400: OpenApiResponse(description="Validation failed"),
    403: OpenApiResponse(description="Resource belongs to another clinic"),
    404: OpenApiResponse(description="Resource not found"),
    409: OpenApiResponse(description="Conflict (already completed, over-allocation, refund limit)"),
    503: OpenApiResponse(description="Storage temporarily unavailable, safe to retry"),
}


def _render(data):
    if isinstance(data, list):
        return [_render(item) for item in data]
    if hasattr(data, "to_dict"):
        return data.to_dict()
    return data


class FinanceAPIView(APIView):
    """Base view: clinic staff only, renders ServiceResult."""

    permission_classes = [IsAuthenticated, IsClinicStaff]

    def respond(self, result: ServiceResult, success_status: int = status.HTTP_200_OK) -> Response:
        if result.success:
            return Response({"success": True, "data": _render(result.data)}, status=success_status)
        return Response(result.to_response(), status=result.http_status)

    def invalid(self, serializer) -> Response:
        result = ServiceResult.failure(
            "Invalid request",
            error_code="VALIDATION_ERROR",
            errors=serializer.errors,
        )
        return Response(result.to_response(), status=result.http_status)


class PaymentCreateView(FinanceAPIView):
    """
    Record a payment.

    POST /api/v1/finance/payments/

    Retrying with the same idempotency key returns the original payment
    with replayed=true and status 200 instead of 201.
    """

    @extend_schema(
        summary="Record payment",
        description=(
            "Append a payment to the patient's ledger. Send an idempotency key "
            "(body field or Idempotency-Key header) to make retries safe."
        ),
        tags=["Finance - Payments"],
        request=RecordPaymentSerializer,
        responses={201: OpenApiResponse(description="Payment recorded"), **ERROR_RESPONSES},
        examples=[
            OpenApiExample(
                "Cash payment",
                value={
                    "patient_id": "0b7a4c0e-8f0c-4a55-9d55-8d1c2d9b4e21",
                    "amount": "100000.00",
                    "method": "cash",
                    "idempotency_key": "k1",
                },
                request_only=True,
            ),
        ],
    )
    def post(self, request):
        serializer = RecordPaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return self.invalid(serializer)
        data = serializer.validated_data

        result = PaymentProcessor.record_payment(
            clinic_id=request.user.clinic_id,
            patient_id=data["patient_id"],
            amount=data["amount"],
            method=data["method"],
            processed_by=request.user,
            notes=data.get("notes"),
            idempotency_key=data.get("idempotency_key") or request.headers.get("Idempotency-Key"),
            appointment_id=data.get("appointment_id"),
            fiscal_check_url=data.get("fiscal_check_url"),
        )
        replayed = result.success and result.data.replayed
        return self.respond(result, status.HTTP_200_OK if replayed else status.HTTP_201_CREATED)


class RefundCreateView(FinanceAPIView):
    """
    Refund part or all of a payment.

    POST /api/v1/finance/payments/{payment_id}/refunds/
    """

    @extend_schema(
        summary="Refund payment",
        description="Append a negative payment referencing the original. Refunds may not exceed it.",
        tags=["Finance - Payments"],
        request=RecordRefundSerializer,
        responses={201: OpenApiResponse(description="Refund recorded"), **ERROR_RESPONSES},
    )
    def post(self, request, payment_id):
        serializer = RecordRefundSerializer(data=request.data)
        if not serializer.is_valid():
            return self.invalid(serializer)
        data = serializer.validated_data

        result = PaymentProcessor.record_refund(
            clinic_id=request.user.clinic_id,
            patient_id=data["patient_id"],
            payment_id=payment_id,
            amount=data["amount"],
            method=data["method"],
            processed_by=request.user,
            reason=data.get("reason"),
            idempotency_key=data.get("idempotency_key") or request.headers.get("Idempotency-Key"),
        )
        replayed = result.success and result.data.replayed
        return self.respond(result, status.HTTP_200_OK if replayed else status.HTTP_201_CREATED)


class AllocationCreateView(FinanceAPIView):
    """
    Allocate a payment to specific works.

    POST /api/v1/finance/payments/{payment_id}/allocations/
    """

    @extend_schema(
        summary="Allocate payment to works",
        description="All-or-nothing: any charge or the payment going over its total rejects the request.",
        tags=["Finance - Allocations"],
        request=AllocatePaymentSerializer,
        responses={201: OpenApiResponse(description="Allocations recorded"), **ERROR_RESPONSES},
    )
    def post(self, request, payment_id):
        serializer = AllocatePaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return self.invalid(serializer)

        result = AllocationEngine.allocate_payment_to_works(
            clinic_id=request.user.clinic_id,
            payment_id=payment_id,
            allocations=[
                AllocationRequest(charge_id=line["charge_id"], amount=line["amount"])
                for line in serializer.validated_data["allocations"]
            ],
            created_by=request.user,
        )
        return self.respond(result, status.HTTP_201_CREATED)


class TreatmentCompleteView(FinanceAPIView):
    """
    Complete treatment plan items and bill them.

    POST /api/v1/finance/treatments/complete/
    """

    @extend_schema(
        summary="Complete treatment items",
        description=(
            "Reject-all batch: if any item is already completed the whole batch fails "
            "with ITEMS_ALREADY_COMPLETED listing the offending ids."
        ),
        tags=["Finance - Treatments"],
        request=CompleteTreatmentSerializer,
        responses={201: OpenApiResponse(description="Items completed"), **ERROR_RESPONSES},
    )
    def post(self, request):
        serializer = CompleteTreatmentSerializer(data=request.data)
        if not serializer.is_valid():
            return self.invalid(serializer)
        data = serializer.validated_data

        result = TreatmentCompletionService.complete_treatment_services(
            appointment_id=data["appointment_id"],
            item_ids=data["item_ids"],
            doctor_id=data.get("doctor_id") or request.user.id,
            clinic_id=request.user.clinic_id,
        )
        return self.respond(result, status.HTTP_201_CREATED)


class PerformedServicesView(FinanceAPIView):
    """
    Bill services performed during a visit without a plan item.

    POST /api/v1/finance/treatments/performed/
    """

    @extend_schema(
        summary="Record performed services",
        tags=["Finance - Treatments"],
        request=RecordPerformedServicesSerializer,
        responses={201: OpenApiResponse(description="Services recorded"), **ERROR_RESPONSES},
    )
    def post(self, request):
        serializer = RecordPerformedServicesSerializer(data=request.data)
        if not serializer.is_valid():
            return self.invalid(serializer)
        data = serializer.validated_data

        result = TreatmentCompletionService.record_performed_services(
            appointment_id=data["appointment_id"],
            services=[PerformedService(**line) for line in data["services"]],
            doctor_id=data.get("doctor_id") or request.user.id,
            clinic_id=request.user.clinic_id,
        )
        return self.respond(result, status.HTTP_201_CREATED)


class PatientSummaryView(FinanceAPIView):
    """GET /api/v1/finance/patients/{patient_id}/summary/"""

    @extend_schema(
        summary="Patient finance summary",
        description="Total cost, total paid, balance, debt, advance and planned cost.",
        tags=["Finance - Patients"],
        responses={200: OpenApiResponse(description="Summary"), **ERROR_RESPONSES},
    )
    def get(self, request, patient_id):
        result = BalanceAggregator.get_finance_summary(patient_id, clinic_id=request.user.clinic_id)
        return self.respond(result)


class PatientLedgerView(FinanceAPIView):
    """GET /api/v1/finance/patients/{patient_id}/ledger/?limit=&offset="""

    @extend_schema(
        summary="Patient ledger",
        description=(
            "Charges, payments and refunds, newest first. balance_after is computed "
            "over the full history, independent of the page."
        ),
        tags=["Finance - Patients"],
        parameters=[
            OpenApiParameter(
                name="limit",
                type=int,
                location=OpenApiParameter.QUERY,
                description="Page size (1-500, default 50)",
                required=False,
            ),
            OpenApiParameter(
                name="offset",
                type=int,
                location=OpenApiParameter.QUERY,
                description="Entries to skip from the newest (default 0)",
                required=False,
            ),
        ],
        responses={200: OpenApiResponse(description="Ledger page"), **ERROR_RESPONSES},
    )
    def get(self, request, patient_id):
        serializer = LedgerQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            return self.invalid(serializer)

        result = LedgerQuery.get_ledger(
            patient_id,
            limit=serializer.validated_data["limit"],
            offset=serializer.validated_data["offset"],
            clinic_id=request.user.clinic_id,
        )
        return self.respond(result)


class UnpaidWorksView(FinanceAPIView):
    """GET /api/v1/finance/patients/{patient_id}/unpaid-works/"""

    @extend_schema(
        summary="Unpaid works",
        description="Charges with an unallocated remainder, oldest first.",
        tags=["Finance - Patients"],
        responses={200: OpenApiResponse(description="Unpaid works"), **ERROR_RESPONSES},
    )
    def get(self, request, patient_id):
        result = AllocationEngine.get_unpaid_works(patient_id, clinic_id=request.user.clinic_id)
        return self.respond(result)


class WorkPaymentStatusView(FinanceAPIView):
    """GET /api/v1/finance/patients/{patient_id}/work-status/"""

    @extend_schema(
        summary="Per-work payment status",
        tags=["Finance - Patients"],
        responses={200: OpenApiResponse(description="Status per charge"), **ERROR_RESPONSES},
    )
    def get(self, request, patient_id):
        result = AllocationEngine.get_work_payment_status(patient_id, clinic_id=request.user.clinic_id)
        return self.respond(result)


class PatientBalanceView(FinanceAPIView):
    """GET /api/v1/finance/patients/{patient_id}/balance/"""

    @extend_schema(
        summary="Authoritative patient balance",
        description=(
            "Recompute the balance from the ledger. drift_detected is true when the "
            "cached balance differs; the drift is recorded, not repaired."
        ),
        tags=["Finance - Patients"],
        responses={200: OpenApiResponse(description="Balance check"), **ERROR_RESPONSES},
    )
    def get(self, request, patient_id):
        result = BalanceAggregator.calculate_patient_balance(
            patient_id, clinic_id=request.user.clinic_id
        )
        return self.respond(result)
