from __future__ import annotations

import time
from functools import lru_cache
from typing import Any

from celery.utils.log import get_task_logger

from medrec.db.session import build_engine, build_session_factory
from medrec.services.records import RecordStore
from medrec.services.storage import UploadIngestor
from medrec_jobs.celery_app import celery_app
from medrec_jobs.config import settings

logger = get_task_logger(__name__)


@lru_cache(maxsize=1)
def _default_store() -> RecordStore:
    return RecordStore(build_session_factory(build_engine(settings.database_url)))


def remove_orphans(
    store: RecordStore,
    ingestor: UploadIngestor,
    *,
    grace_seconds: int,
    now: float | None = None,
) -> dict[str, Any]:
    """Delete stored uploads no row references, once older than the grace period.

    The grace period protects files written by requests whose insert has not
    committed yet.
    """

    current = time.time() if now is None else now
    referenced = store.referenced_upload_paths()
    removed: list[str] = []
    kept = 0

    for relative_path, path in ingestor.iter_stored_files():
        if relative_path in referenced:
            kept += 1
            continue
        age = current - path.stat().st_mtime
        if age < grace_seconds:
            kept += 1
            continue
        path.unlink(missing_ok=True)
        removed.append(relative_path)
        logger.info("Removed orphaned upload %s (age %.0fs)", relative_path, age)

    return {"removed": removed, "kept": kept}


@celery_app.task(name="jobs.sweep_orphaned_uploads")
def sweep_orphaned_uploads(grace_seconds: int | None = None) -> dict[str, Any]:
    """Remove upload files left behind by failed inserts."""

    grace = settings.orphan_grace_seconds if grace_seconds is None else grace_seconds
    result = remove_orphans(
        _default_store(),
        UploadIngestor(settings.upload_root),
        grace_seconds=grace,
    )
    if result["removed"]:
        logger.warning(
            "Swept %d orphaned upload(s); %d kept", len(result["removed"]), result["kept"]
        )
    return result
