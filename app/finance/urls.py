"""
URL configuration for the finance API.

Routes:
    Payments:
        /payments/                          - Record payment (POST)
        /payments/{id}/refunds/             - Refund payment (POST)
        /payments/{id}/allocations/         - Allocate payment to works (POST)

    Treatments:
        /treatments/complete/               - Complete plan items (POST)
        /treatments/performed/              - Record performed services (POST)

    Patients:
        /patients/{id}/summary/             - Finance summary (GET)
        /patients/{id}/ledger/              - Running-balance ledger (GET)
        /patients/{id}/unpaid-works/        - Unpaid works (GET)
        /patients/{id}/work-status/         - Per-work payment status (GET)
        /patients/{id}/balance/             - Authoritative balance (GET)
"""

from django.urls import path

from finance.views import (
    AllocationCreateView,
    PatientBalanceView,
    PatientLedgerView,
    PatientSummaryView,
    PaymentCreateView,
    PerformedServicesView,
    RefundCreateView,
    TreatmentCompleteView,
    UnpaidWorksView,
    WorkPaymentStatusView,
)

app_name = "finance"
urlpatterns = [
    path("payments/", PaymentCreateView.as_view(), name="payment-create"),
    path("payments/<uuid:payment_id>/refunds/", RefundCreateView.as_view(), name="refund-create"),
    path(
        "payments/<uuid:payment_id>/allocations/",
        AllocationCreateView.as_view(),
        name="allocation-create",
    ),
    path("treatments/complete/", TreatmentCompleteView.as_view(), name="treatment-complete"),
    path("treatments/performed/", PerformedServicesView.as_view(), name="treatment-performed"),
    path("patients/<uuid:patient_id>/summary/", PatientSummaryView.as_view(), name="patient-summary"),
    path("patients/<uuid:patient_id>/ledger/", PatientLedgerView.as_view(), name="patient-ledger"),
    path(
        "patients/<uuid:patient_id>/unpaid-works/",
        UnpaidWorksView.as_view(),
        name="patient-unpaid-works",
    ),
    path(
        "patients/<uuid:patient_id>/work-status/",
        WorkPaymentStatusView.as_view(),
        name="patient-work-status",
    ),
    path("patients/<uuid:patient_id>/balance/", PatientBalanceView.as_view(), name="patient-balance"),
]
