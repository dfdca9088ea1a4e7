"""
Catalog operations used by the API: lookups, facets and the add / edit /
delete flows.

Add and edit write to two collaborators (object storage, then the products
table). They are not atomic, so each write of the record is paired with a
compensating storage action that runs when the record write fails.
"""
import logging
from typing import List, Optional

from swatch_catalog.config import settings
from swatch_catalog.core.errors import (
    DuplicateDesignNo,
    ImageUploadError,
    ProductNotFound,
    StorageError,
    StoreError,
)
from swatch_catalog.core.images import image_key_for_design, resolve_image_url, storage_key_for
from swatch_catalog.core.query import PRODUCTS_TABLE, CatalogPage, QueryState, search_products
from swatch_catalog.database import ORDER_TEXT, DuplicateKeyError, FileBackedDB
from swatch_catalog.models.product import Product
from swatch_catalog.schemas.product import ProductForm
from swatch_catalog.storage import ObjectStorage
from swatch_catalog.utils.images import WEBP_CONTENT_TYPE, to_webp

logger = logging.getLogger(__name__)

RELATED_LIMIT = 8


def image_url_for(product: Product, storage: ObjectStorage) -> str:
    return resolve_image_url(product.image_path, storage.bucket, storage.public_base_url)


def search(db: FileBackedDB, state: QueryState) -> CatalogPage:
    return search_products(db, state)


def get_product_by_design_no(db: FileBackedDB, design_no: str) -> Product:
    row = db.get_record(PRODUCTS_TABLE, "design_no", design_no)
    if not row:
        raise ProductNotFound(f"Product {design_no!r} not found")
    return Product.from_dict(row)


def get_suppliers(db: FileBackedDB) -> List[str]:
    return db.distinct_values(PRODUCTS_TABLE, "fabric_supplier")


def get_tags(db: FileBackedDB) -> List[str]:
    return db.distinct_values(PRODUCTS_TABLE, "tags", as_list=True)


def get_categories() -> List[str]:
    return list(settings.CATEGORIES)


def get_related_by_supplier(db: FileBackedDB, supplier: str, exclude_design_no: Optional[str] = None,
                            limit: int = RELATED_LIMIT) -> List[Product]:
    """Newest products from the same fabric supplier."""
    if not supplier:
        return []
    rows, _ = db.query_records(
        PRODUCTS_TABLE,
        equals={"fabric_supplier": supplier},
        not_equals={"design_no": exclude_design_no} if exclude_design_no else None,
        order_by="created_at",
        order_as=ORDER_TEXT,
        descending=True,
        limit=limit,
    )
    return [Product.from_dict(r) for r in rows]


def list_all_products(db: FileBackedDB) -> List[Product]:
    rows, _ = db.query_records(PRODUCTS_TABLE, order_by="created_at", order_as=ORDER_TEXT, descending=True)
    return [Product.from_dict(r) for r in rows]


def _upload_image(storage: ObjectStorage, design_no: str, image_bytes: bytes) -> str:
    key = image_key_for_design(design_no)
    try:
        data = to_webp(image_bytes)
        storage.upload(key, data, content_type=WEBP_CONTENT_TYPE, upsert=True)
    except (StorageError, OSError, ValueError) as e:
        logger.error("Image upload for design %s failed: %s", design_no, e)
        raise ImageUploadError(f"Failed to upload image for design {design_no}") from e
    return key


def _copy_image(storage: ObjectStorage, src: str, dst: str) -> str:
    """Copy a stored object to a new key. A missing source leaves nothing to copy."""
    try:
        if storage.exists(src):
            storage.upload(dst, storage.download(src), content_type=WEBP_CONTENT_TYPE, upsert=True)
        else:
            logger.warning("Image %s/%s missing, nothing to move to %s", storage.bucket, src, dst)
    except StorageError as e:
        logger.error("Moving image %s to %s failed: %s", src, dst, e)
        raise ImageUploadError(f"Failed to move image to {dst}") from e
    return dst


def _restore_image(storage: ObjectStorage, key: str, previous: Optional[bytes]) -> None:
    """Undo an upload: put the previous bytes back, or remove the new object."""
    try:
        if previous is not None:
            storage.upload(key, previous, content_type=WEBP_CONTENT_TYPE, upsert=True)
        else:
            storage.remove([key])
    except StorageError as e:
        logger.warning("Could not roll back image %s/%s: %s", storage.bucket, key, e)


def add_product(db: FileBackedDB, storage: ObjectStorage, form: ProductForm, image_bytes: bytes) -> Product:
    """
    Upload the image under <design_no>/main.webp, then insert the record.
    If the insert fails, the uploaded image is removed again.
    """
    if db.get_record(PRODUCTS_TABLE, "design_no", form.design_no):
        raise DuplicateDesignNo(f"Design {form.design_no} already exists")

    key = _upload_image(storage, form.design_no, image_bytes)
    record = Product(image_path=key, **form.model_dump()).to_record()
    try:
        saved = db.create_record(PRODUCTS_TABLE, record, id_field="id", unique=("design_no",), timestamps=True)
    except DuplicateKeyError as e:
        _restore_image(storage, key, None)
        raise DuplicateDesignNo(f"Design {form.design_no} already exists") from e
    except StoreError:
        _restore_image(storage, key, None)
        raise
    logger.info("Created product %s (%s)", form.design_no, saved.get("id"))
    return Product.from_dict(saved)


def update_product(db: FileBackedDB, storage: ObjectStorage, design_no: str, form: ProductForm,
                   image_bytes: Optional[bytes] = None) -> Product:
    """
    Update the product currently known as `design_no`. A new image replaces the
    object at <new design_no>/main.webp. Renaming without a new image moves the
    stored object to the new design's key, so the old key is free for reuse.
    If the record write then fails, the previous bytes at the new key are put back.
    """
    current = get_product_by_design_no(db, design_no)
    renamed = form.design_no != current.design_no
    if renamed and db.get_record(PRODUCTS_TABLE, "design_no", form.design_no):
        raise DuplicateDesignNo(f"Design {form.design_no} already exists")

    updates = form.model_dump()
    updates["image_path"] = current.image_path
    old_key = storage_key_for(current.image_path, storage.bucket)
    new_key = image_key_for_design(form.design_no)
    uploaded_key = None
    previous = None
    if image_bytes is not None or (renamed and old_key and old_key != new_key):
        uploaded_key = new_key
        if storage.exists(new_key):
            previous = storage.download(new_key)
        if image_bytes is not None:
            updates["image_path"] = _upload_image(storage, form.design_no, image_bytes)
        else:
            updates["image_path"] = _copy_image(storage, old_key, new_key)

    try:
        updated = db.update_record(PRODUCTS_TABLE, "id", current.id, updates, unique=("design_no",), timestamps=True)
    except DuplicateKeyError as e:
        if uploaded_key:
            _restore_image(storage, uploaded_key, previous)
        raise DuplicateDesignNo(f"Design {form.design_no} already exists") from e
    except StoreError:
        if uploaded_key:
            _restore_image(storage, uploaded_key, previous)
        raise
    if updated is None:
        # deleted underneath us
        if uploaded_key:
            _restore_image(storage, uploaded_key, previous)
        raise ProductNotFound(f"Product {design_no!r} not found")

    if uploaded_key and old_key and old_key != uploaded_key:
        try:
            storage.remove([old_key])
        except StorageError as e:
            logger.warning("Failed to delete replaced image %s: %s", old_key, e)
    logger.info("Updated product %s -> %s", design_no, form.design_no)
    return Product.from_dict(updated)


def delete_product(db: FileBackedDB, storage: ObjectStorage, design_no: str) -> Product:
    """
    Delete the record, then try to delete its stored image. Image cleanup is
    best-effort: a failure there is logged and the delete still succeeds.
    """
    product = get_product_by_design_no(db, design_no)
    if not db.delete_record(PRODUCTS_TABLE, "id", product.id):
        raise ProductNotFound(f"Product {design_no!r} not found")

    key = storage_key_for(product.image_path, storage.bucket)
    if key:
        try:
            storage.remove([key])
        except StorageError as e:
            logger.warning("Failed to delete image %s for product %s: %s", key, design_no, e)
    logger.info("Deleted product %s", design_no)
    return product
