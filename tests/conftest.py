# tests/conftest.py
import os
import sys
import io
from PIL import Image

import pytest
from fastapi.testclient import TestClient

# ensure project root is importable
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from swatch_catalog.database import db as file_db  # noqa: E402
from swatch_catalog.storage import storage as file_storage  # noqa: E402
from swatch_catalog.main import app  # noqa: E402


@pytest.fixture(autouse=True)
def temp_data_dir(tmp_path):
    """
    Point the file-backed DB and the object storage at an isolated temp
    directory for each test, restoring the originals afterwards.
    """
    orig_data_dir, orig_root = file_db.data_dir, file_storage.root
    orig_base_url = file_storage.public_base_url
    file_db.data_dir = tmp_path / "data"
    file_storage.root = tmp_path / "storage"
    file_storage.public_base_url = "http://testserver"
    try:
        yield tmp_path
    finally:
        file_db.data_dir = orig_data_dir
        file_storage.root = orig_root
        file_storage.public_base_url = orig_base_url


@pytest.fixture
def db():
    return file_db


@pytest.fixture
def storage():
    return file_storage


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_sample_jpeg_bytes():
    """
    Return a callable that generates JPEG bytes for tests that need image uploads.
    Usage: jpg = make_sample_jpeg_bytes(size=(200,200))
    """
    def _fn(size=(200, 200), color=(180, 120, 60)):
        bio = io.BytesIO()
        im = Image.new("RGB", size, color)
        im.save(bio, format="JPEG", quality=85)
        bio.seek(0)
        return bio.read()
    return _fn


@pytest.fixture
def seed_product(db):
    """
    Insert a product row directly into the store (no image upload).
    Rows are written in call order, so later calls are "newer".
    Usage: row = seed_product(name="Rayon suit", design_no="820", product_rate_inr=1295)
    """
    counter = {"n": 0}

    def _fn(**fields):
        counter["n"] += 1
        n = counter["n"]
        row = {
            "name": f"Product {n}",
            "design_no": str(100 + n),
            "fabric_supplier": "",
            "fabric_name": "",
            "product_rate_inr": 100.0,
            "image_path": f"{100 + n}/main.webp",
            "tags": [],
            "category": "",
            "created_at": f"2024-01-01T00:00:{n:02d}+00:00",
            "updated_at": f"2024-01-01T00:00:{n:02d}+00:00",
        }
        row.update(fields)
        return db.create_record("products", row, id_field="id")
    return _fn
