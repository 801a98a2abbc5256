"""Full patient profile assembled from concurrent per-table reads."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from starlette.concurrency import run_in_threadpool

from medrec.errors import PatientNotFound, StoreError
from medrec.services.records import Entity, RecordStore

logger = logging.getLogger(__name__)


class ProfileAggregator:
    """Build the composite ``/patients/{id}/full`` payload.

    The patient lookup completes before any sub-query starts. The five
    sub-queries touch disjoint tables and run concurrently on worker threads,
    each with its own session. The first failure fails the whole profile.
    """

    def __init__(self, store: RecordStore, timeout: float | None = None) -> None:
        self.store = store
        self.timeout = timeout

    async def get_full_profile(self, patient_id: int) -> dict[str, Any]:
        patient = await run_in_threadpool(self.store.get_by_id, Entity.PATIENTS, patient_id)
        if patient is None:
            raise PatientNotFound(patient_id)

        fan_out = asyncio.gather(
            run_in_threadpool(self.store.get_latest, Entity.CONTACT_INFO, patient_id),
            run_in_threadpool(
                self.store.get_all_for_patient, Entity.CLINICAL_DOCUMENTS, patient_id
            ),
            run_in_threadpool(
                self.store.get_all_for_patient, Entity.MEDICAL_HISTORY, patient_id
            ),
            run_in_threadpool(self.store.get_all_for_patient, Entity.VISITS, patient_id),
            run_in_threadpool(self.store.get_all_for_patient, Entity.VITALS, patient_id),
        )
        try:
            contact_info, documents, history, visits, vitals = await asyncio.wait_for(
                fan_out, timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            logger.warning(
                "profile lookup timed out",
                extra={"timeout_seconds": self.timeout},
            )
            raise StoreError(f"profile for patient {patient_id} timed out") from exc

        return {
            "patient": patient,
            "contact_info": contact_info,
            "clinical_documents": documents,
            "medical_history": history,
            "visits": visits,
            "vitals": vitals[0] if vitals else None,
        }
