# tests/test_catalog_service.py
import pytest

from swatch_catalog.core.errors import ImageUploadError, ProductNotFound, StorageError, StoreError
from swatch_catalog.core.query import QueryState
from swatch_catalog.schemas.product import ProductForm
from swatch_catalog.services import catalog


def _form(**overrides):
    fields = {"name": "Jakit suit", "design_no": "820", "product_rate_inr": 1295}
    fields.update(overrides)
    return ProductForm.parse(**fields)


def test_add_product_writes_image_then_record(db, storage, make_sample_jpeg_bytes):
    product = catalog.add_product(db, storage, _form(tags="party, rayon"), make_sample_jpeg_bytes())
    assert product.image_path == "820/main.webp"
    assert product.tags == ["party", "rayon"]
    assert storage.exists("820/main.webp")
    assert catalog.get_product_by_design_no(db, "820").id == product.id


def test_failed_record_write_removes_uploaded_image(db, storage, make_sample_jpeg_bytes, monkeypatch):
    def broken_create(*args, **kwargs):
        raise StoreError("disk full")

    monkeypatch.setattr(db, "create_record", broken_create)
    with pytest.raises(StoreError):
        catalog.add_product(db, storage, _form(), make_sample_jpeg_bytes())
    assert not storage.exists("820/main.webp")


def test_failed_upload_writes_no_record(db, storage, make_sample_jpeg_bytes, monkeypatch):
    def broken_upload(*args, **kwargs):
        raise StorageError("bucket unavailable")

    monkeypatch.setattr(storage, "upload", broken_upload)
    with pytest.raises(ImageUploadError):
        catalog.add_product(db, storage, _form(), make_sample_jpeg_bytes())
    assert db.list_records("products") == []


def test_failed_update_restores_previous_image(db, storage, make_sample_jpeg_bytes, monkeypatch):
    catalog.add_product(db, storage, _form(), make_sample_jpeg_bytes())
    original = storage.download("820/main.webp")

    def broken_update(*args, **kwargs):
        raise StoreError("disk full")

    monkeypatch.setattr(db, "update_record", broken_update)
    with pytest.raises(StoreError):
        catalog.update_product(db, storage, "820", _form(name="v2"), make_sample_jpeg_bytes(color=(0, 0, 255)))
    assert storage.download("820/main.webp") == original
    assert catalog.get_product_by_design_no(db, "820").name == "Jakit suit"


def test_delete_ignores_storage_failure(db, storage, make_sample_jpeg_bytes, monkeypatch):
    catalog.add_product(db, storage, _form(), make_sample_jpeg_bytes())

    def broken_remove(keys):
        raise StorageError("bucket unavailable")

    monkeypatch.setattr(storage, "remove", broken_remove)
    deleted = catalog.delete_product(db, storage, "820")
    assert deleted.design_no == "820"
    with pytest.raises(ProductNotFound):
        catalog.get_product_by_design_no(db, "820")
    page = catalog.search(db, QueryState(q="820"))
    assert page.total == 0
    assert page.items == []
    assert catalog.search(db, QueryState()).total == 0


def test_delete_leaves_external_images_alone(db, storage, seed_product, monkeypatch):
    seed_product(design_no="77", image_path="https://img.example.com/77.png")
    removed = []
    monkeypatch.setattr(storage, "remove", lambda keys: removed.extend(keys))
    catalog.delete_product(db, storage, "77")
    assert removed == []


def test_delete_strips_bucket_prefix(db, storage, seed_product):
    seed_product(design_no="78", image_path="product-images/78/main.webp")
    storage.upload("78/main.webp", b"data")
    catalog.delete_product(db, storage, "78")
    assert not storage.exists("78/main.webp")


def test_update_writes_numbers_as_text(db, storage, make_sample_jpeg_bytes):
    catalog.add_product(db, storage, _form(panno_inch="38"), make_sample_jpeg_bytes())
    updated = catalog.update_product(db, storage, "820", _form(product_rate_inr=1400, panno_inch=None))
    assert updated.product_rate_inr == 1400.0
    assert updated.panno_inch is None
    row = db.get_record("products", "design_no", "820")
    assert row["product_rate_inr"] == "1400.0"
    assert row["panno_inch"] == ""


def test_rename_without_image_moves_object(db, storage, make_sample_jpeg_bytes):
    catalog.add_product(db, storage, _form(), make_sample_jpeg_bytes())
    original = storage.download("820/main.webp")
    renamed = catalog.update_product(db, storage, "820", _form(design_no="821"))
    assert renamed.image_path == "821/main.webp"
    assert storage.download("821/main.webp") == original
    assert not storage.exists("820/main.webp")


def test_failed_rename_removes_moved_copy(db, storage, make_sample_jpeg_bytes, monkeypatch):
    catalog.add_product(db, storage, _form(), make_sample_jpeg_bytes())

    def broken_update(*args, **kwargs):
        raise StoreError("disk full")

    monkeypatch.setattr(db, "update_record", broken_update)
    with pytest.raises(StoreError):
        catalog.update_product(db, storage, "820", _form(design_no="821"))
    assert storage.exists("820/main.webp")
    assert not storage.exists("821/main.webp")
    assert catalog.get_product_by_design_no(db, "820").image_path == "820/main.webp"


def test_rename_keeps_external_image_url(db, storage, seed_product):
    seed_product(design_no="77", image_path="https://img.example.com/77.png")
    renamed = catalog.update_product(db, storage, "77", _form(design_no="78"))
    assert renamed.image_path == "https://img.example.com/77.png"
    assert not storage.exists("78/main.webp")
