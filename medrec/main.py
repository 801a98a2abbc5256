from __future__ import annotations

import logging
import time
import uuid
from datetime import date, datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile as StarletteUploadFile
from starlette.middleware.base import BaseHTTPMiddleware

from medrec.core.config import settings
from medrec.db.base import Base
from medrec.db.session import SessionLocal, engine
from medrec.errors import MissingUpload, NotFound, StoreError, ValidationError
from medrec.logging_utils import (
    _patient_id_ctx_var,
    _request_id_ctx_var,
    configure_logging,
    set_patient_context,
)
from medrec.services import (
    Entity,
    ProfileAggregator,
    RecordStore,
    UploadIngestor,
    get_lan_ip,
)
from medrec.services.storage import DOCUMENTS_DIRNAME, PHOTOS_DIRNAME

configure_logging(settings.log_level)

app = FastAPI(title=settings.app_name, version="0.1.0")

logger = logging.getLogger(__name__)

REQUEST_COUNTER = Counter(
    "medrec_api_requests_total",
    "Total number of processed HTTP requests.",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "medrec_api_request_duration_seconds",
    "HTTP request latency in seconds.",
    ["method", "path"],
)


def _route_path(request: Request) -> str:
    """Route template when matched, so metrics are not labelled per patient."""

    route = request.scope.get("route")
    template = getattr(route, "path", None)
    if template:
        return template
    return request.scope.get("root_path", "") + request.scope.get("path", request.url.path)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Populate request context for logging."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        request.state.request_id = request_id
        request_id_token = _request_id_ctx_var.set(request_id)
        patient_token = _patient_id_ctx_var.set(None)

        try:
            response = await call_next(request)
        finally:
            _request_id_ctx_var.reset(request_id_token)
            _patient_id_ctx_var.reset(patient_token)

        response.headers["X-Request-ID"] = request_id
        return response


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Emit structured access logs and feed metrics."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        start_time = time.perf_counter()
        method = request.method

        try:
            response = await call_next(request)
        except Exception:
            elapsed = time.perf_counter() - start_time
            path = _route_path(request)
            REQUEST_COUNTER.labels(method=method, path=path, status="500").inc()
            REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)
            logger.exception(
                "request failed",
                extra={
                    "method": method,
                    "path": path,
                    "duration_ms": round(elapsed * 1000, 2),
                },
            )
            raise

        elapsed = time.perf_counter() - start_time
        path = _route_path(request)
        status_code = response.status_code

        REQUEST_COUNTER.labels(method=method, path=path, status=str(status_code)).inc()
        REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)

        logger.info(
            "request completed",
            extra={
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": round(elapsed * 1000, 2),
            },
        )

        return response


app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type"],
)
app.add_middleware(AccessLogMiddleware)

ingestor = UploadIngestor(settings.upload_root)

app.mount(
    "/uploads",
    StaticFiles(directory=ingestor.root, check_dir=False),
    name="uploads",
)
app.mount(
    f"/{DOCUMENTS_DIRNAME}",
    StaticFiles(directory=ingestor.documents_dir, check_dir=False),
    name=DOCUMENTS_DIRNAME,
)
app.mount(
    f"/{PHOTOS_DIRNAME}",
    StaticFiles(directory=ingestor.photos_dir, check_dir=False),
    name=PHOTOS_DIRNAME,
)


@app.on_event("startup")
def startup() -> None:
    ingestor.ensure_directories()
    if settings.create_tables_on_startup:
        Base.metadata.create_all(bind=engine)
    logger.info(
        "api started",
        extra={"upload_root": str(ingestor.root), "tables": sorted(Base.metadata.tables)},
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": str(exc)})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error(
        "store failure",
        exc_info=exc,
        extra={"method": request.method, "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal Server Error"},
    )


def get_store() -> RecordStore:
    """Gateway bound to the application's pooled session factory."""

    return RecordStore(SessionLocal)


def get_ingestor() -> UploadIngestor:
    return ingestor


def get_aggregator(store: RecordStore = Depends(get_store)) -> ProfileAggregator:
    return ProfileAggregator(store, timeout=settings.profile_timeout_seconds)


class PatientCreate(BaseModel):
    full_name: str | None = None
    birth_date: date | None = None
    gender: str | None = None
    national_id: str | None = None
    nationality: str | None = None
    language_spoken: str | None = None
    blood_type: str | None = None


class VitalsCreate(BaseModel):
    temperature: float | None = None
    blood_pressure: str | None = None
    heart_rate: int | None = None
    height_cm: float | None = None
    weight_kg: float | None = None
    notes: str | None = None


class MedicalHistoryCreate(BaseModel):
    allergies: str | None = None
    current_medications: str | None = None
    past_medical_history: str | None = None
    surgical_history: str | None = None
    family_history: str | None = None
    immunization_records: str | None = None
    chronic_conditions: str | None = None
    mental_health_conditions: str | None = None


class ContactInfoCreate(BaseModel):
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    emergency_name: str | None = None
    emergency_relation: str | None = None
    emergency_phone: str | None = None


class VisitCreate(BaseModel):
    visit_date: date | None = None
    doctor_name: str | None = None
    reason: str | None = None
    diagnosis: str | None = None
    treatment: str | None = None


def _or_empty(row: dict[str, Any] | None) -> dict[str, Any]:
    """Single-resource endpoints answer ``{}`` when nothing is stored yet."""

    return row if row is not None else {}


@app.get("/metrics")
def metrics() -> Response:
    """Expose Prometheus metrics for scraping."""

    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
def health() -> dict[str, str]:
    """Health check endpoint used by infrastructure probes."""

    return {"status": "ok"}


@app.get("/server-info")
def server_info() -> dict[str, Any]:
    """Tell LAN clients where the API and the web app listen."""

    return {
        "host": get_lan_ip(),
        "apiPort": settings.api_port,
        "appPort": settings.app_port,
    }


@app.post("/patients", status_code=status.HTTP_201_CREATED)
async def create_patient(
    request: Request,
    store: RecordStore = Depends(get_store),
    uploads: UploadIngestor = Depends(get_ingestor),
) -> dict[str, Any]:
    """Register a patient from a JSON body or a multipart form.

    A form may carry a ``profile_photo``; it is stored before the row.
    """

    profile_photo = None
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            body = await request.json()
        except ValueError as exc:
            raise RequestValidationError(
                [{"type": "json_invalid", "loc": ("body",), "msg": "JSON decode error"}]
            ) from exc
    else:
        form = await request.form()
        body = {
            name: value
            for name, value in form.items()
            if name in PatientCreate.model_fields and isinstance(value, str) and value != ""
        }
        photo_field = form.get("profile_photo")
        if isinstance(photo_field, StarletteUploadFile) and photo_field.filename:
            profile_photo = photo_field

    try:
        payload = PatientCreate.model_validate(body)
    except PydanticValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False)) from exc

    profile_photo_path = None
    if profile_photo is not None:
        # the identifier is assigned by the insert below
        stored = await run_in_threadpool(uploads.ingest_profile_photo, profile_photo, "new")
        profile_photo_path = stored.relative_path

    patient = await run_in_threadpool(
        store.insert,
        Entity.PATIENTS,
        {**payload.model_dump(), "profile_photo_path": profile_photo_path},
    )
    set_patient_context(patient["patient_id"])
    logger.info("patient created", extra={"has_photo": profile_photo_path is not None})
    return patient


@app.post("/patients/{patient_id}/photo")
def update_patient_photo(
    patient_id: int,
    photo: UploadFile | None = File(default=None),
    store: RecordStore = Depends(get_store),
    uploads: UploadIngestor = Depends(get_ingestor),
) -> dict[str, Any]:
    """Replace the profile photo path; the old file is left on disk."""

    set_patient_context(patient_id)
    if photo is None or not photo.filename:
        raise MissingUpload("photo")

    stored = uploads.ingest_profile_photo(photo, owner=patient_id)
    updated = store.update(
        Entity.PATIENTS, patient_id, {"profile_photo_path": stored.relative_path}
    )
    if updated is None:
        logger.warning(
            "profile photo stored for unknown patient",
            extra={"stored_as": stored.relative_path},
        )
    return {"success": True, "profile_photo_path": stored.relative_path}


@app.get("/patients")
def list_patients(store: RecordStore = Depends(get_store)) -> list[dict[str, Any]]:
    return store.get_all(Entity.PATIENTS)


@app.get("/patients/{patient_id}")
def get_patient(patient_id: int, store: RecordStore = Depends(get_store)) -> dict[str, Any]:
    set_patient_context(patient_id)
    return _or_empty(store.get_by_id(Entity.PATIENTS, patient_id))


@app.get("/patients/{patient_id}/full")
async def get_full_profile(
    patient_id: int,
    aggregator: ProfileAggregator = Depends(get_aggregator),
) -> dict[str, Any]:
    """Patient plus every related record; 404 when the patient is unknown."""

    set_patient_context(patient_id)
    return await aggregator.get_full_profile(patient_id)


@app.get("/patients/{patient_id}/vitals")
def get_latest_vitals(patient_id: int, store: RecordStore = Depends(get_store)) -> dict[str, Any]:
    set_patient_context(patient_id)
    return _or_empty(store.get_latest(Entity.VITALS, patient_id))


@app.put("/patients/{patient_id}/vitals")
def record_vitals(
    patient_id: int,
    payload: VitalsCreate,
    store: RecordStore = Depends(get_store),
) -> dict[str, Any]:
    """Append a vitals snapshot stamped with the server clock."""

    set_patient_context(patient_id)
    return store.insert(
        Entity.VITALS,
        {
            "patient_id": patient_id,
            "recorded_at": datetime.now(timezone.utc),
            **payload.model_dump(),
        },
    )


@app.get("/patients/{patient_id}/medical_history")
def get_medical_history(
    patient_id: int, store: RecordStore = Depends(get_store)
) -> dict[str, Any]:
    set_patient_context(patient_id)
    return _or_empty(store.get_latest(Entity.MEDICAL_HISTORY, patient_id))


@app.put("/patients/{patient_id}/medical_history")
def add_medical_history(
    patient_id: int,
    payload: MedicalHistoryCreate,
    store: RecordStore = Depends(get_store),
) -> dict[str, Any]:
    set_patient_context(patient_id)
    return store.insert(
        Entity.MEDICAL_HISTORY, {"patient_id": patient_id, **payload.model_dump()}
    )


@app.get("/patients/{patient_id}/clinical_documents")
def list_clinical_documents(
    patient_id: int, store: RecordStore = Depends(get_store)
) -> list[dict[str, Any]]:
    set_patient_context(patient_id)
    return store.get_all_for_patient(Entity.CLINICAL_DOCUMENTS, patient_id)


@app.post("/patients/{patient_id}/clinical_documents", status_code=status.HTTP_201_CREATED)
def upload_clinical_document(
    patient_id: int,
    file: UploadFile | None = File(default=None),
    document_name: str | None = Form(default=None),
    store: RecordStore = Depends(get_store),
    uploads: UploadIngestor = Depends(get_ingestor),
) -> dict[str, Any]:
    """Write the document to disk, then record its metadata."""

    set_patient_context(patient_id)
    if file is None or not file.filename:
        raise MissingUpload("file")

    stored = uploads.ingest_clinical_document(file)
    return store.insert(
        Entity.CLINICAL_DOCUMENTS,
        {
            "patient_id": patient_id,
            "document_name": document_name,
            "upload_date": datetime.now(timezone.utc),
            "file_type": stored.content_type,
            "file_path": stored.relative_path,
        },
    )


@app.get("/patients/{patient_id}/contact_info")
def get_contact_info(patient_id: int, store: RecordStore = Depends(get_store)) -> dict[str, Any]:
    set_patient_context(patient_id)
    return _or_empty(store.get_latest(Entity.CONTACT_INFO, patient_id))


@app.put("/patients/{patient_id}/contact_info")
def add_contact_info(
    patient_id: int,
    payload: ContactInfoCreate,
    store: RecordStore = Depends(get_store),
) -> dict[str, Any]:
    set_patient_context(patient_id)
    return store.insert(Entity.CONTACT_INFO, {"patient_id": patient_id, **payload.model_dump()})


@app.get("/patients/{patient_id}/visits")
def list_visits(patient_id: int, store: RecordStore = Depends(get_store)) -> list[dict[str, Any]]:
    set_patient_context(patient_id)
    return store.get_all_for_patient(Entity.VISITS, patient_id)


@app.put("/patients/{patient_id}/visits")
def add_visit(
    patient_id: int,
    payload: VisitCreate,
    store: RecordStore = Depends(get_store),
) -> dict[str, Any]:
    set_patient_context(patient_id)
    return store.insert(Entity.VISITS, {"patient_id": patient_id, **payload.model_dump()})
