"""SQLAlchemy models for the patient records API."""

from medrec.models.clinical_document import ClinicalDocument
from medrec.models.contact_info import ContactInfo
from medrec.models.medical_history import MedicalHistory
from medrec.models.patient import Patient
from medrec.models.visit import Visit
from medrec.models.vitals import Vitals

__all__ = [
    "ClinicalDocument",
    "ContactInfo",
    "MedicalHistory",
    "Patient",
    "Visit",
    "Vitals",
]
