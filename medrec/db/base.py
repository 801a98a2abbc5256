"""Import SQLAlchemy models so ``Base.metadata`` knows every table."""

from medrec.models.base import Base
from medrec.models import (  # noqa: F401
    ClinicalDocument,
    ContactInfo,
    MedicalHistory,
    Patient,
    Visit,
    Vitals,
)

__all__ = [
    "Base",
    "ClinicalDocument",
    "ContactInfo",
    "MedicalHistory",
    "Patient",
    "Visit",
    "Vitals",
]
