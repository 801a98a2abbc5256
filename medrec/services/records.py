"""Record store gateway: one parameter-bound statement per operation."""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from sqlalchemy import ColumnElement, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import InstrumentedAttribute, Session, sessionmaker

from medrec.db.session import session_scope
from medrec.errors import StoreError
from medrec.models import (
    ClinicalDocument,
    ContactInfo,
    MedicalHistory,
    Patient,
    Visit,
    Vitals,
)
from medrec.models.base import Base

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class Entity(str, enum.Enum):
    """Tables the gateway reads and writes."""

    PATIENTS = "patients"
    CONTACT_INFO = "contact_info"
    MEDICAL_HISTORY = "medical_history"
    VISITS = "visits"
    VITALS = "vitals"
    CLINICAL_DOCUMENTS = "clinical_documents"


@dataclass(frozen=True)
class EntityMapping:
    """Model plus the columns used for "newest first" ordering."""

    model: type[Base]
    key: InstrumentedAttribute
    recency: InstrumentedAttribute


ENTITY_MAPPINGS: dict[Entity, EntityMapping] = {
    Entity.PATIENTS: EntityMapping(Patient, Patient.patient_id, Patient.created_at),
    Entity.CONTACT_INFO: EntityMapping(
        ContactInfo, ContactInfo.contact_id, ContactInfo.created_at
    ),
    Entity.MEDICAL_HISTORY: EntityMapping(
        MedicalHistory, MedicalHistory.history_id, MedicalHistory.created_at
    ),
    Entity.VISITS: EntityMapping(Visit, Visit.visit_id, Visit.visit_date),
    Entity.VITALS: EntityMapping(Vitals, Vitals.vitals_id, Vitals.recorded_at),
    Entity.CLINICAL_DOCUMENTS: EntityMapping(
        ClinicalDocument, ClinicalDocument.document_id, ClinicalDocument.upload_date
    ),
}


def serialize_row(instance: Base) -> Row:
    """Map an ORM instance to ``{column: value}`` in table column order."""

    mapper = inspect(instance).mapper
    return {attr.key: getattr(instance, attr.key) for attr in mapper.column_attrs}


class RecordStore:
    """Gateway over the six record tables.

    Every call opens its own session from ``session_factory`` so concurrent
    callers get independent pooled connections. Missing rows come back as
    ``None`` or an empty list; only database failures raise, as
    :class:`~medrec.errors.StoreError`.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    @contextmanager
    def _session(self, action: str, entity: Entity) -> Iterator[Session]:
        try:
            with session_scope(self.session_factory) as db:
                yield db
        except SQLAlchemyError as exc:
            logger.warning(
                "store operation failed",
                extra={"action": action, "entity": entity.value, "error": type(exc).__name__},
            )
            raise StoreError(f"{action} on {entity.value} failed") from exc

    def insert(self, entity: Entity, fields: Mapping[str, Any]) -> Row:
        mapping = ENTITY_MAPPINGS[entity]
        with self._session("insert", entity) as db:
            instance = mapping.model(**fields)
            db.add(instance)
            db.flush()
            db.refresh(instance)
            row = serialize_row(instance)
        return row

    def update(self, entity: Entity, record_id: int, fields: Mapping[str, Any]) -> Row | None:
        """Apply ``fields`` to one row; ``None`` when the row does not exist."""

        mapping = ENTITY_MAPPINGS[entity]
        with self._session("update", entity) as db:
            instance = db.get(mapping.model, record_id)
            if instance is None:
                return None
            for name, value in fields.items():
                setattr(instance, name, value)
            db.flush()
            row = serialize_row(instance)
        return row

    def get_all(self, entity: Entity) -> list[Row]:
        mapping = ENTITY_MAPPINGS[entity]
        stmt = select(mapping.model).order_by(mapping.key)
        with self._session("get_all", entity) as db:
            return [serialize_row(item) for item in db.execute(stmt).scalars().all()]

    def get_by_id(self, entity: Entity, record_id: int) -> Row | None:
        mapping = ENTITY_MAPPINGS[entity]
        with self._session("get_by_id", entity) as db:
            instance = db.get(mapping.model, record_id)
            return serialize_row(instance) if instance is not None else None

    def get_latest(self, entity: Entity, patient_id: int) -> Row | None:
        """Return the newest row for the patient, highest key on timestamp ties."""

        mapping = ENTITY_MAPPINGS[entity]
        stmt = (
            select(mapping.model)
            .where(mapping.model.patient_id == patient_id)
            .order_by(mapping.recency.desc(), mapping.key.desc())
            .limit(1)
        )
        with self._session("get_latest", entity) as db:
            instance = db.execute(stmt).scalars().first()
            return serialize_row(instance) if instance is not None else None

    def get_all_for_patient(
        self,
        entity: Entity,
        patient_id: int,
        order_by: ColumnElement[Any] | None = None,
    ) -> list[Row]:
        """Return every row for the patient, newest first unless ``order_by`` is given."""

        mapping = ENTITY_MAPPINGS[entity]
        ordering = (
            (order_by,)
            if order_by is not None
            else (mapping.recency.desc(), mapping.key.desc())
        )
        stmt = (
            select(mapping.model)
            .where(mapping.model.patient_id == patient_id)
            .order_by(*ordering)
        )
        with self._session("get_all_for_patient", entity) as db:
            return [serialize_row(item) for item in db.execute(stmt).scalars().all()]

    def referenced_upload_paths(self) -> set[str]:
        """Every upload path a patient or clinical document row points at."""

        photos = select(Patient.profile_photo_path).where(
            Patient.profile_photo_path.is_not(None)
        )
        documents = select(ClinicalDocument.file_path)
        with self._session("referenced_upload_paths", Entity.CLINICAL_DOCUMENTS) as db:
            paths = set(db.execute(photos).scalars().all())
            paths.update(db.execute(documents).scalars().all())
        return paths
