"""Service layer for the patient records API."""

from medrec.services.network import get_lan_ip
from medrec.services.profile import ProfileAggregator
from medrec.services.records import Entity, RecordStore, serialize_row
from medrec.services.storage import StoredFile, UploadIngestor

__all__ = [
    "Entity",
    "ProfileAggregator",
    "RecordStore",
    "StoredFile",
    "UploadIngestor",
    "get_lan_ip",
    "serialize_row",
]
