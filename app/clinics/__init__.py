"""
Clinics application.

Tenancy and the clinical records the finance engine reads from:
clinics, patients, appointments and treatment plan items.

Usage:
    from clinics.models import Clinic, Patient, Appointment, TreatmentPlanItem
"""
