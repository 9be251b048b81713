"""
Django admin configuration for clinic models.

Patient.balance is read-only here: it is a cache maintained by the
finance ledger and must never be edited by hand.
"""

from django.contrib import admin

from clinics.models import Appointment, Clinic, Patient, TreatmentPlanItem


@admin.register(Clinic)
class ClinicAdmin(admin.ModelAdmin):
    list_display = ["name", "subdomain", "is_active", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["name", "subdomain"]
    readonly_fields = ["id", "created_at", "updated_at"]


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    """Patients with their cached ledger balance."""

    list_display = ["full_name", "phone", "clinic", "balance", "created_at"]
    list_filter = ["clinic"]
    search_fields = ["full_name", "phone"]
    readonly_fields = ["id", "balance", "created_at", "updated_at"]
    raw_id_fields = ["clinic"]


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ["patient", "doctor", "start_time", "status", "clinic"]
    list_filter = ["status", "clinic"]
    search_fields = ["patient__full_name", "doctor__email"]
    raw_id_fields = ["clinic", "patient", "doctor"]
    date_hierarchy = "start_time"


@admin.register(TreatmentPlanItem)
class TreatmentPlanItemAdmin(admin.ModelAdmin):
    """
    Plan items can be planned and edited here, but completion only happens
    through the treatment completion service so that the charge is created
    in the same transaction.
    """

    list_display = [
        "service_name",
        "patient",
        "tooth_number",
        "quantity",
        "total_price",
        "status",
        "completed_at",
    ]
    list_filter = ["status", "clinic"]
    search_fields = ["service_name", "patient__full_name"]
    raw_id_fields = ["clinic", "patient", "appointment", "completed_by"]
    readonly_fields = ["id", "status", "completed_at", "completed_by", "created_at", "updated_at"]
