import re

import pytest
import requests

from app.services.blob_storage import BlobStorage, suffixed_key
from app.services.documents import DocumentLoader, summarize_document
from persona_engine.exceptions import ConfigurationError


class FakeResponse:
    def __init__(self, status_code=200, content=b"", content_type="text/plain"):
        self.status_code = status_code
        self.content = content
        self.headers = {"Content-Type": content_type}


class FakeSession:
    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        outcome = self.responses[url]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeS3:
    def __init__(self):
        self.objects = []

    def put_object(self, **kwargs):
        self.objects.append(kwargs)
        return {"ETag": "etag"}


def test_text_documents_are_truncated():
    body = ("a" * 2500).encode()
    summary = summarize_document("notes.txt", "text/plain", body)
    assert summary["summary"] == "a" * 2000 + "..."
    assert summary["size"] == 2500


def test_binary_documents_are_described():
    summary = summarize_document("complaint.pdf", "application/pdf", b"%PDF-1.7 ...")
    assert summary["summary"] == "complaint.pdf: application/pdf document, 12 bytes"


def test_load_all_skips_failures():
    session = FakeSession({
        "https://files.example.com/docs/Complaint%20Final.txt": FakeResponse(
            content=b"The plaintiff alleges...", content_type="text/plain; charset=utf-8"
        ),
        "https://files.example.com/research": FakeResponse(status_code=404),
    })
    loader = DocumentLoader(timeout=7, session=session)

    documents = loader.load_all(
        "https://files.example.com/docs/Complaint%20Final.txt",
        "https://files.example.com/research",
    )

    assert documents == [{
        "filename": "Complaint Final.txt",
        "content_type": "text/plain",
        "size": 24,
        "summary": "The plaintiff alleges...",
    }]
    assert session.calls[0][1] == 7


def test_network_error_yields_none():
    session = FakeSession({"https://x.example.com/": requests.ConnectionError("down")})
    loader = DocumentLoader(session=session)
    assert loader.load("https://x.example.com/", "complaint") is None
    assert loader.load_all(None, None) == []


def test_suffixed_key_keeps_extension():
    assert re.fullmatch(r"report-[0-9a-f]{8}\.pdf", suffixed_key("dir/report.pdf"))


def test_blob_put_stores_object_and_returns_url():
    s3 = FakeS3()
    storage = BlobStorage(s3, "persona-docs", region="us-east-1")

    stored = storage.put("complaint.pdf", b"12345", "application/pdf")

    key = stored["filename"]
    assert key.startswith("complaint-") and key.endswith(".pdf")
    assert stored["size"] == 5
    assert stored["url"] == f"https://persona-docs.s3.us-east-1.amazonaws.com/{key}"
    assert s3.objects == [{"Bucket": "persona-docs", "Key": key, "Body": b"12345", "ContentType": "application/pdf"}]


def test_blob_public_base_url():
    storage = BlobStorage(FakeS3(), "bucket", public_base_url="https://cdn.example.com/")
    assert storage.url_for("a.txt") == "https://cdn.example.com/a.txt"


def test_blob_requires_bucket():
    with pytest.raises(ConfigurationError):
        BlobStorage(FakeS3(), None).put("a.txt", b"x")
