"""
Files use cases: subject PDF upload and signed URL exchange.
"""
from __future__ import annotations

import pytest

from internships.errors import DomainValidationError, Forbidden
from internships.repo_memory import MemoryInternshipsRepo
from internships.services.files import FilesService
from internships.storage import NullStorageAdapter

from utils.builders import make_user
from utils.fakes import FakeStorageAdapter


PDF = b"%PDF-1.7\n%test\n"


@pytest.fixture
def repo():
    return MemoryInternshipsRepo()


@pytest.fixture
def storage():
    return FakeStorageAdapter()


@pytest.fixture
def svc(storage):
    return FilesService(storage=storage, clock_ms=lambda: 1700000000123)


def test_upload_stores_under_owner_and_timestamp(svc, storage, repo):
    sup = make_user(repo, "supervisor")

    res = svc.upload_subject_pdf(sup, filename="Sujet Stage.PDF", content_type="application/pdf", data=PDF)

    assert res["bucket"] == "subject-pdfs"
    assert res["key"] == f"{sup.user_id}/1700000000123.pdf"
    assert res["path"] == f"subject-pdfs/{sup.user_id}/1700000000123.pdf"
    assert res["size_bytes"] == len(PDF)
    stored = storage.objects[("subject-pdfs", res["key"])]
    assert stored["upsert"] is False
    assert stored["content_type"] == "application/pdf"


def test_upload_accepts_pdf_extension_with_generic_type(svc, repo):
    admin = make_user(repo, "admin")
    res = svc.upload_subject_pdf(admin, filename="topic.pdf", content_type="application/octet-stream", data=PDF)
    assert res["key"].endswith(".pdf")


def test_upload_never_overwrites(storage, repo):
    sup = make_user(repo, "supervisor")
    svc = FilesService(storage=storage, clock_ms=lambda: 42)
    svc.upload_subject_pdf(sup, filename="a.pdf", content_type="application/pdf", data=PDF)
    with pytest.raises(RuntimeError):
        svc.upload_subject_pdf(sup, filename="a.pdf", content_type="application/pdf", data=PDF)


@pytest.mark.parametrize(
    "filename,ctype,data,code",
    [
        ("notes.docx", "application/msword", PDF, "invalid_file_type"),
        ("empty.pdf", "application/pdf", b"", "empty_file"),
        ("renamed.pdf", "application/pdf", b"PK\x03\x04 not a pdf", "invalid_file_type"),
    ],
)
def test_upload_validation(svc, repo, filename, ctype, data, code):
    sup = make_user(repo, "supervisor")
    with pytest.raises(DomainValidationError) as exc:
        svc.upload_subject_pdf(sup, filename=filename, content_type=ctype, data=data)
    assert exc.value.code == code


def test_upload_size_cap_from_env(svc, repo, monkeypatch):
    monkeypatch.setenv("SUBJECT_PDF_MAX_UPLOAD_BYTES", "8")
    sup = make_user(repo, "supervisor")
    with pytest.raises(DomainValidationError) as exc:
        svc.upload_subject_pdf(sup, filename="big.pdf", content_type="application/pdf", data=b"x" * 9)
    assert exc.value.code == "file_too_large"


@pytest.mark.parametrize("role", ["student", "observer"])
def test_upload_forbidden_for_readers(svc, repo, role):
    ctx = make_user(repo, role)
    with pytest.raises(Forbidden):
        svc.upload_subject_pdf(ctx, filename="a.pdf", content_type="application/pdf", data=PDF)


def test_upload_without_storage_is_internal(repo):
    sup = make_user(repo, "supervisor")
    with pytest.raises(RuntimeError):
        FilesService(storage=NullStorageAdapter()).upload_subject_pdf(
            sup, filename="a.pdf", content_type="application/pdf", data=PDF
        )


def test_signed_url_defaults_and_clamps_ttl(svc, storage, repo):
    student = make_user(repo, "student")

    default = svc.signed_url(student, path="subject-pdfs/owner/1.pdf")
    assert default["expires_in"] == 300
    assert default["url"].startswith("http://storage.test/subject-pdfs/owner/1.pdf")
    assert default["expires_at"]

    assert svc.signed_url(student, path="subject-pdfs/owner/1.pdf", expires_in="999999")["expires_in"] == 3600
    assert svc.signed_url(student, path="subject-pdfs/owner/1.pdf", expires_in=-5)["expires_in"] == 1
    assert storage.presigned[-1] == ("subject-pdfs", "owner/1.pdf", 1)


def test_signed_url_passes_through_provider_expiry(repo):
    student = make_user(repo, "student")
    svc = FilesService(storage=FakeStorageAdapter(expires_at="2030-01-01T00:00:00+00:00"))
    assert svc.signed_url(student, path="subject-pdfs/o/1.pdf")["expires_at"] == "2030-01-01T00:00:00+00:00"


@pytest.mark.parametrize("path", ["subject-pdfs", "subject-pdfs/../secret.pdf", "subject-pdfs//x.pdf", "a\\b"])
def test_signed_url_rejects_bad_paths(svc, repo, path):
    student = make_user(repo, "student")
    with pytest.raises(DomainValidationError) as exc:
        svc.signed_url(student, path=path)
    assert exc.value.code == "invalid_path"


def test_signed_url_rejects_other_buckets_and_bad_ttl(svc, repo):
    student = make_user(repo, "student")
    with pytest.raises(Forbidden) as exc:
        svc.signed_url(student, path="private-bucket/o/1.pdf")
    assert exc.value.code == "bucket_not_allowed"
    with pytest.raises(DomainValidationError) as exc2:
        svc.signed_url(student, path="subject-pdfs/o/1.pdf", expires_in="soon")
    assert exc2.value.code == "invalid_expires_in"
