import os

import pytest

from app.core.config import settings
from app.core.errors import InvalidArgument, NotAuthorized
from app.services import storage


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    return tmp_path


def _token(url):
    return url.split("token=", 1)[1]


def test_upload_then_download(db, intern, as_actor, upload_dir):
    upload_url = storage.generate_upload_url(as_actor(intern))
    assert upload_url.startswith("/api/v1/storage/upload?token=")

    stored = storage.save_upload(db, _token(upload_url), "notes.pdf", "application/pdf", b"%PDF-1.4")
    assert stored.uploaded_by == intern.id
    assert stored.path.endswith(".pdf")
    assert os.path.dirname(stored.path) == str(upload_dir)

    download_url = storage.get_signed_url(db, stored.id)
    found = storage.resolve_download(db, stored.id, _token(download_url))
    with open(found.path, "rb") as f:
        assert f.read() == b"%PDF-1.4"


def test_tokens_are_not_interchangeable(db, intern, as_actor):
    upload_token = _token(storage.generate_upload_url(as_actor(intern)))
    stored = storage.save_upload(db, upload_token, "a.txt", "text/plain", b"a")
    other = storage.save_upload(db, upload_token, "b.txt", "text/plain", b"b")

    with pytest.raises(NotAuthorized):
        storage.resolve_download(db, stored.id, upload_token)

    download_token = _token(storage.get_signed_url(db, other.id))
    with pytest.raises(NotAuthorized):
        storage.resolve_download(db, stored.id, download_token)
    with pytest.raises(NotAuthorized):
        storage.save_upload(db, download_token, "c.txt", "text/plain", b"c")


def test_garbage_token(db):
    with pytest.raises(NotAuthorized):
        storage.save_upload(db, "not-a-jwt", "x.txt", "text/plain", b"x")


def test_empty_upload(db, intern, as_actor, upload_dir):
    token = _token(storage.generate_upload_url(as_actor(intern)))
    with pytest.raises(InvalidArgument):
        storage.save_upload(db, token, "empty.txt", "text/plain", b"")
    assert os.listdir(upload_dir) == []
