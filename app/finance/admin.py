"""
Django admin configuration for finance models.

Charges, payments, allocations and drift records are append-only: the
admin shows them but cannot add, edit or delete them. Entries are only
created through the finance services so that the cached patient balance
is refreshed in the same transaction.

Key features:
- Read-only ledger rows with useful filters and search
- Fiscal receipts can be re-queued for fiscalization
"""

from django.contrib import admin, messages

from finance.models import (
    Allocation,
    BalanceDriftRecord,
    Charge,
    FiscalReceipt,
    FiscalReceiptState,
    Payment,
)


class ReadOnlyLedgerAdmin(admin.ModelAdmin):
    """Base admin for append-only rows."""

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Charge)
class ChargeAdmin(ReadOnlyLedgerAdmin):
    list_display = [
        "created_at",
        "patient",
        "service_name",
        "tooth_number",
        "quantity",
        "unit_price",
        "discount_percent",
        "total",
        "doctor",
    ]
    list_filter = ["clinic", "created_at"]
    search_fields = ["id", "service_name", "patient__full_name"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]


@admin.register(Payment)
class PaymentAdmin(ReadOnlyLedgerAdmin):
    """
    Payments and refunds (negative amounts).

    Refunds are recorded through the refund endpoint, never by editing a
    payment here.
    """

    list_display = [
        "created_at",
        "patient",
        "amount",
        "method",
        "is_refund",
        "resulting_balance",
        "processed_by",
    ]
    list_filter = ["method", "clinic", "created_at"]
    search_fields = ["id", "idempotency_key", "patient__full_name", "notes"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    @admin.display(boolean=True, description="Refund")
    def is_refund(self, obj: Payment) -> bool:
        return obj.is_refund


@admin.register(Allocation)
class AllocationAdmin(ReadOnlyLedgerAdmin):
    list_display = ["created_at", "payment", "charge", "amount", "created_by"]
    list_filter = ["clinic"]
    search_fields = ["payment__id", "charge__id"]
    ordering = ["-created_at"]


@admin.register(BalanceDriftRecord)
class BalanceDriftRecordAdmin(ReadOnlyLedgerAdmin):
    list_display = [
        "detected_at",
        "patient",
        "cached_balance",
        "ledger_balance",
        "difference",
        "source",
    ]
    list_filter = ["source", "clinic"]
    search_fields = ["patient__full_name", "patient__id"]
    ordering = ["-detected_at"]


@admin.register(FiscalReceipt)
class FiscalReceiptAdmin(admin.ModelAdmin):
    """
    Fiscalization status per payment.

    State changes only happen through FSM transitions in the
    fiscalize_payment task; the admin can re-queue failed receipts.
    """

    list_display = ["payment", "state", "receipt_number", "attempts", "issued_at", "created_at"]
    list_filter = ["state"]
    search_fields = ["payment__id", "receipt_number"]
    readonly_fields = [
        "id",
        "payment",
        "state",
        "receipt_number",
        "check_url",
        "error_message",
        "attempts",
        "issued_at",
        "created_at",
        "updated_at",
    ]
    actions = ["requeue_fiscalization"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    @admin.action(description="Re-queue fiscalization")
    def requeue_fiscalization(self, request, queryset):
        from finance.tasks import fiscalize_payment

        queued = 0
        for receipt in queryset.exclude(state=FiscalReceiptState.ISSUED):
            fiscalize_payment.delay(str(receipt.payment_id))
            queued += 1
        self.message_user(request, f"{queued} receipt(s) queued.", messages.SUCCESS)
