from __future__ import annotations

from datetime import date

from sqlalchemy import Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from medrec.models.base import Base, TimestampMixin


class Patient(Base, TimestampMixin):
    """Patient identity and demographics."""

    __tablename__ = "patients"

    patient_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    gender: Mapped[str | None] = mapped_column(String(32), nullable=True)
    national_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    nationality: Mapped[str | None] = mapped_column(String(128), nullable=True)
    language_spoken: Mapped[str | None] = mapped_column(String(128), nullable=True)
    blood_type: Mapped[str | None] = mapped_column(String(8), nullable=True)
    profile_photo_path: Mapped[str | None] = mapped_column(String(512), nullable=True)
