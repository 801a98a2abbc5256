"""Local disk storage for profile photos and clinical documents."""

from __future__ import annotations

import itertools
import logging
import os
import shutil
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Final, Protocol

from medrec.errors import InvalidFileType

logger = logging.getLogger(__name__)

ALLOWED_PHOTO_TYPES: Final[frozenset[str]] = frozenset(
    {"image/jpeg", "image/png", "image/jpg", "image/webp"}
)
PHOTOS_DIRNAME: Final[str] = "profilephotos"
DOCUMENTS_DIRNAME: Final[str] = "clinicaldocs"


class Upload(Protocol):
    """The parts of an uploaded multipart file the ingestor reads."""

    filename: str | None
    content_type: str | None
    file: BinaryIO


@dataclass(frozen=True)
class StoredFile:
    """A file written to disk and the path persisted alongside its row."""

    filename: str
    relative_path: str
    content_type: str | None
    path: Path


class UploadIngestor:
    """Validate uploads, name them, and write them under ``root``."""

    def __init__(self, root: Path | str, clock: Callable[[], float] = time.time) -> None:
        self.root = Path(root)
        self.photos_dir = self.root / PHOTOS_DIRNAME
        self.documents_dir = self.root / DOCUMENTS_DIRNAME
        self._clock = clock

    def ensure_directories(self) -> None:
        """Create both upload directories if they are missing."""

        for directory in (self.photos_dir, self.documents_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def ingest_profile_photo(self, upload: Upload, owner: int | str) -> StoredFile:
        """Store a profile photo named after its patient.

        Raises ``InvalidFileType`` before anything is written when the
        declared MIME type is not an accepted image type.
        """

        if upload.content_type not in ALLOWED_PHOTO_TYPES:
            logger.info(
                "rejected profile photo",
                extra={"content_type": upload.content_type, "owner": str(owner)},
            )
            raise InvalidFileType(upload.content_type)

        path = self._write(
            upload,
            self.photos_dir,
            f"patient_{owner}_{self._millis()}{_extension(upload.filename)}",
        )
        filename = path.name
        return StoredFile(
            filename=filename,
            relative_path=photo_relative_path(filename),
            content_type=upload.content_type,
            path=path,
        )

    def ingest_clinical_document(self, upload: Upload) -> StoredFile:
        """Store a clinical document; any MIME type is accepted."""

        path = self._write(
            upload, self.documents_dir, f"{self._millis()}{_extension(upload.filename)}"
        )
        filename = path.name
        return StoredFile(
            filename=filename,
            relative_path=document_relative_path(filename),
            content_type=upload.content_type,
            path=path,
        )

    def iter_stored_files(self) -> Iterator[tuple[str, Path]]:
        """Yield ``(relative_path, absolute_path)`` for every stored upload."""

        for directory, to_relative in (
            (self.photos_dir, photo_relative_path),
            (self.documents_dir, document_relative_path),
        ):
            if not directory.is_dir():
                continue
            for entry in sorted(directory.iterdir()):
                if entry.is_file():
                    yield to_relative(entry.name), entry

    def _millis(self) -> int:
        return int(self._clock() * 1000)

    def _write(self, upload: Upload, directory: Path, filename: str) -> Path:
        """Create ``filename`` exclusively, adding ``_1``, ``_2``... on collision."""

        directory.mkdir(parents=True, exist_ok=True)
        stem, ext = os.path.splitext(filename)
        for attempt in itertools.count():
            candidate = filename if attempt == 0 else f"{stem}_{attempt}{ext}"
            path = directory / candidate
            try:
                handle = open(path, "xb")
            except FileExistsError:
                continue
            with handle:
                shutil.copyfileobj(upload.file, handle)
                handle.flush()
                os.fsync(handle.fileno())
            break
        logger.info(
            "stored upload",
            extra={"stored_as": str(path), "content_type": upload.content_type},
        )
        return path


def photo_relative_path(filename: str) -> str:
    return f"/uploads/{PHOTOS_DIRNAME}/{filename}"


def document_relative_path(filename: str) -> str:
    # no leading slash, unlike photo paths
    return f"uploads/{DOCUMENTS_DIRNAME}/{filename}"


def _extension(filename: str | None) -> str:
    return os.path.splitext(filename or "")[1]
