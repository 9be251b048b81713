import uuid
from decimal import Decimal

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("clinics", "0002_appointment_and_staff_links"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Charge",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("service_name", models.CharField(help_text="Name of the performed service", max_length=255)),
                (
                    "tooth_number",
                    models.PositiveSmallIntegerField(
                        blank=True, help_text="FDI tooth number for tooth-specific services", null=True
                    ),
                ),
                ("quantity", models.PositiveIntegerField(default=1, help_text="Number of units")),
                (
                    "unit_price",
                    models.DecimalField(decimal_places=2, help_text="Price per unit", max_digits=14),
                ),
                (
                    "discount_percent",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        help_text="Line discount in percent (0-100)",
                        max_digits=5,
                    ),
                ),
                (
                    "total",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Charged amount after discount (fixed at creation)",
                        max_digits=14,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this charge was recorded",
                    ),
                ),
                (
                    "appointment",
                    models.ForeignKey(
                        blank=True,
                        help_text="Visit during which the work was performed",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="charges",
                        to="clinics.appointment",
                    ),
                ),
                (
                    "clinic",
                    models.ForeignKey(
                        help_text="Clinic that performed the work",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="charges",
                        to="clinics.clinic",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="Staff member who recorded the charge",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "doctor",
                    models.ForeignKey(
                        blank=True,
                        help_text="Doctor who performed the work",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="performed_charges",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "patient",
                    models.ForeignKey(
                        help_text="Patient being charged",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="charges",
                        to="clinics.patient",
                    ),
                ),
                (
                    "plan_item",
                    models.OneToOneField(
                        blank=True,
                        help_text="Plan item completed by this charge, if any",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="charge",
                        to="clinics.treatmentplanitem",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["patient", "created_at"], name="finance_cha_patient_c1f0a9_idx"),
                    models.Index(fields=["clinic", "created_at"], name="finance_cha_clinic__77d2b4_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(quantity__gte=1), name="charge_quantity_positive"),
                    models.CheckConstraint(
                        condition=models.Q(unit_price__gte=0), name="charge_unit_price_non_negative"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(discount_percent__gte=0) & models.Q(discount_percent__lte=100),
                        name="charge_discount_range",
                    ),
                    models.CheckConstraint(condition=models.Q(total__gte=0), name="charge_total_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Signed amount: positive for payments, negative for refunds",
                        max_digits=14,
                    ),
                ),
                (
                    "method",
                    models.CharField(
                        choices=[
                            ("cash", "Cash"),
                            ("card_terminal", "Card Terminal"),
                            ("uzcard", "Uzcard"),
                            ("humo", "Humo"),
                            ("visa", "Visa"),
                            ("mastercard", "Mastercard"),
                            ("click", "Click"),
                            ("payme", "Payme"),
                            ("uzum", "Uzum"),
                            ("bank_transfer", "Bank Transfer"),
                        ],
                        help_text="Payment method",
                        max_length=20,
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        blank=True,
                        help_text="Client-supplied key preventing duplicate payments",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "notes",
                    models.TextField(blank=True, default="", help_text="Free-text notes or refund reason"),
                ),
                (
                    "fiscal_check_url",
                    models.URLField(
                        blank=True,
                        default="",
                        help_text="Fiscal check URL entered at payment time",
                        max_length=500,
                    ),
                ),
                (
                    "resulting_balance",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Patient balance committed together with this payment",
                        max_digits=14,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this payment was recorded",
                    ),
                ),
                (
                    "appointment",
                    models.ForeignKey(
                        blank=True,
                        help_text="Visit the payment was taken at",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="clinics.appointment",
                    ),
                ),
                (
                    "clinic",
                    models.ForeignKey(
                        help_text="Clinic that received the payment",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="clinics.clinic",
                    ),
                ),
                (
                    "patient",
                    models.ForeignKey(
                        help_text="Patient the payment is credited to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="clinics.patient",
                    ),
                ),
                (
                    "processed_by",
                    models.ForeignKey(
                        help_text="Staff member who processed the payment",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="processed_payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "refund_of",
                    models.ForeignKey(
                        blank=True,
                        help_text="Original payment this refund returns money from",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="refunds",
                        to="finance.payment",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["patient", "created_at"], name="finance_pay_patient_9a3e51_idx"),
                    models.Index(fields=["clinic", "created_at"], name="finance_pay_clinic__2b8c06_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=~models.Q(amount=0), name="payment_amount_non_zero"),
                    models.CheckConstraint(
                        condition=(
                            models.Q(amount__gt=0, refund_of__isnull=True)
                            | models.Q(amount__lt=0, refund_of__isnull=False)
                        ),
                        name="payment_refund_shape",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(idempotency_key__isnull=False),
                        fields=("clinic", "idempotency_key"),
                        name="unique_payment_idempotency_key_per_clinic",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Allocation",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(decimal_places=2, help_text="Allocated amount (positive)", max_digits=14),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this allocation was recorded",
                    ),
                ),
                (
                    "charge",
                    models.ForeignKey(
                        help_text="Charge the money settles",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                        to="finance.charge",
                    ),
                ),
                (
                    "clinic",
                    models.ForeignKey(
                        help_text="Clinic owning the payment and charge",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                        to="clinics.clinic",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="Staff member who made the allocation",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "payment",
                    models.ForeignKey(
                        help_text="Payment the money comes from",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                        to="finance.payment",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(amount__gt=0), name="allocation_amount_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BalanceDriftRecord",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "cached_balance",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Cached Patient.balance when the drift was detected",
                        max_digits=14,
                    ),
                ),
                (
                    "ledger_balance",
                    models.DecimalField(
                        decimal_places=2, help_text="Balance recomputed from the ledger", max_digits=14
                    ),
                ),
                (
                    "difference",
                    models.DecimalField(
                        decimal_places=2, help_text="cached_balance minus ledger_balance", max_digits=14
                    ),
                ),
                (
                    "source",
                    models.CharField(
                        choices=[("on_demand", "On Demand"), ("periodic", "Periodic Check")],
                        default="on_demand",
                        help_text="How the drift was detected",
                        max_length=20,
                    ),
                ),
                (
                    "detected_at",
                    models.DateTimeField(
                        auto_now_add=True, db_index=True, help_text="When the drift was detected"
                    ),
                ),
                (
                    "clinic",
                    models.ForeignKey(
                        help_text="Clinic of the affected patient",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="balance_drift_records",
                        to="clinics.clinic",
                    ),
                ),
                (
                    "patient",
                    models.ForeignKey(
                        help_text="Patient whose cached balance drifted",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="balance_drift_records",
                        to="clinics.patient",
                    ),
                ),
            ],
            options={
                "ordering": ["-detected_at"],
            },
        ),
        migrations.CreateModel(
            name="FiscalReceipt",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True, help_text="Timestamp when this record was last modified"
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "state",
                    django_fsm.FSMField(
                        choices=[("pending", "Pending"), ("issued", "Issued"), ("failed", "Failed")],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the receipt (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "receipt_number",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Receipt number assigned by the fiscal provider",
                        max_length=100,
                    ),
                ),
                (
                    "check_url",
                    models.URLField(
                        blank=True, default="", help_text="Public URL of the fiscal check", max_length=500
                    ),
                ),
                (
                    "error_message",
                    models.TextField(blank=True, default="", help_text="Reason for the last failed attempt"),
                ),
                ("attempts", models.PositiveIntegerField(default=0, help_text="Number of issuance attempts")),
                (
                    "issued_at",
                    models.DateTimeField(blank=True, help_text="When the receipt was issued", null=True),
                ),
                (
                    "payment",
                    models.OneToOneField(
                        help_text="Payment this receipt was issued for",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="fiscal_receipt",
                        to="finance.payment",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["state", "created_at"], name="finance_fis_state_4d12c8_idx"),
                ],
            },
        ),
    ]
