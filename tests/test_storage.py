import io
from types import SimpleNamespace

import pytest

from medrec.errors import InvalidFileType
from medrec.services.storage import ALLOWED_PHOTO_TYPES, UploadIngestor


def make_upload(filename, content_type, payload=b"\x89PNG fake"):
    return SimpleNamespace(filename=filename, content_type=content_type, file=io.BytesIO(payload))


@pytest.fixture
def fixed_ingestor(tmp_path):
    uploads = UploadIngestor(tmp_path / "uploads", clock=lambda: 1_700_000_000.5)
    uploads.ensure_directories()
    return uploads


def test_ensure_directories_is_idempotent(tmp_path):
    uploads = UploadIngestor(tmp_path / "nested" / "uploads")
    uploads.ensure_directories()
    uploads.ensure_directories()
    assert uploads.photos_dir.is_dir()
    assert uploads.documents_dir.is_dir()


def test_profile_photo_is_named_after_patient(fixed_ingestor):
    stored = fixed_ingestor.ingest_profile_photo(make_upload("face.png", "image/png"), owner=7)

    assert stored.filename == "patient_7_1700000000500.png"
    assert stored.relative_path == "/uploads/profilephotos/patient_7_1700000000500.png"
    assert stored.path == fixed_ingestor.photos_dir / stored.filename
    assert stored.path.read_bytes() == b"\x89PNG fake"


@pytest.mark.parametrize("content_type", sorted(ALLOWED_PHOTO_TYPES))
def test_profile_photo_accepts_image_types(fixed_ingestor, content_type):
    stored = fixed_ingestor.ingest_profile_photo(make_upload("face.img", content_type), owner=1)
    assert stored.path.exists()
    assert stored.content_type == content_type


@pytest.mark.parametrize("content_type", ["application/pdf", "image/gif", "text/plain", None])
def test_profile_photo_rejects_other_types_without_writing(fixed_ingestor, content_type):
    with pytest.raises(InvalidFileType) as excinfo:
        fixed_ingestor.ingest_profile_photo(make_upload("face.pdf", content_type), owner=1)

    assert excinfo.value.content_type == content_type
    assert list(fixed_ingestor.photos_dir.iterdir()) == []


def test_clinical_document_accepts_any_type(fixed_ingestor):
    stored = fixed_ingestor.ingest_clinical_document(
        make_upload("labs.pdf", "application/pdf", b"%PDF-1.7")
    )

    assert stored.filename == "1700000000500.pdf"
    assert stored.relative_path == "uploads/clinicaldocs/1700000000500.pdf"
    assert stored.path.read_bytes() == b"%PDF-1.7"


def test_clinical_document_without_extension(fixed_ingestor):
    stored = fixed_ingestor.ingest_clinical_document(make_upload("README", None))
    assert stored.filename == "1700000000500"


def test_iter_stored_files_lists_both_directories(ingestor):
    photo = ingestor.ingest_profile_photo(make_upload("a.jpg", "image/jpeg"), owner=3)
    document = ingestor.ingest_clinical_document(make_upload("b.txt", "text/plain"))

    listed = dict(ingestor.iter_stored_files())

    assert listed == {
        photo.relative_path: photo.path,
        document.relative_path: document.path,
    }


def test_iter_stored_files_tolerates_missing_directories(tmp_path):
    assert list(UploadIngestor(tmp_path / "absent").iter_stored_files()) == []


def test_same_millisecond_documents_do_not_overwrite(fixed_ingestor):
    first = fixed_ingestor.ingest_clinical_document(
        make_upload("labs.pdf", "application/pdf", b"first")
    )
    second = fixed_ingestor.ingest_clinical_document(
        make_upload("labs.pdf", "application/pdf", b"second")
    )

    assert first.filename == "1700000000500.pdf"
    assert second.filename == "1700000000500_1.pdf"
    assert second.relative_path == "uploads/clinicaldocs/1700000000500_1.pdf"
    assert first.path.read_bytes() == b"first"
    assert second.path.read_bytes() == b"second"


def test_same_millisecond_photos_get_increasing_suffixes(fixed_ingestor):
    names = [
        fixed_ingestor.ingest_profile_photo(make_upload("face.png", "image/png"), owner="new").filename
        for _ in range(3)
    ]

    assert names == [
        "patient_new_1700000000500.png",
        "patient_new_1700000000500_1.png",
        "patient_new_1700000000500_2.png",
    ]
