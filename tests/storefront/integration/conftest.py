import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean import current_domain
from protean.integrations.fastapi import register_exception_handlers

from storefront.api import checkout_router, download_router, notification_router, order_router, payment_router
from storefront.download.registration import RegisterDigitalFile


@pytest.fixture()
def client():
    app = FastAPI()
    register_exception_handlers(app)
    for router in (checkout_router, order_router, payment_router, download_router, notification_router):
        app.include_router(router)
    return TestClient(app, follow_redirects=False)


@pytest.fixture()
def stored_file(tmp_path, monkeypatch):
    """A DigitalFile stored under a temporary DOWNLOAD_ROOT, by relative path."""
    monkeypatch.setenv("DOWNLOAD_ROOT", str(tmp_path))
    (tmp_path / "themes").mkdir()
    (tmp_path / "themes" / "agency.zip").write_bytes(b"PK\x03\x04agency-theme")
    return current_domain.process(
        RegisterDigitalFile(file_name="agency.zip", file_path="themes/agency.zip", mime_type="application/zip"),
        asynchronous=False,
    )
