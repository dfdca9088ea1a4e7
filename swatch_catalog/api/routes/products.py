# swatch_catalog/api/routes/products.py
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import RedirectResponse

from swatch_catalog.api.deps import get_db, get_query_state, get_storage
from swatch_catalog.config import settings
from swatch_catalog.core.errors import ProductValidationError
from swatch_catalog.core.images import storage_key_for
from swatch_catalog.core.query import QueryState
from swatch_catalog.database import FileBackedDB
from swatch_catalog.models.product import Product
from swatch_catalog.schemas.product import ProductForm, ProductOut, ProductPage
from swatch_catalog.services import catalog
from swatch_catalog.storage import ObjectStorage
from swatch_catalog.utils.images import read_image_upload

router = APIRouter(prefix="/api/products", tags=["products"])


def _product_out(p: Product, storage: ObjectStorage) -> ProductOut:
    d = p.to_dict()
    d["tags"] = p.tags or []
    d["image_url"] = catalog.image_url_for(p, storage)
    return ProductOut(**d)


def _form_fields(
    name: str = Form(...),
    design_no: str = Form(...),
    product_rate_inr: str = Form(...),
    fabric_supplier: Optional[str] = Form(None),
    fabric_name: Optional[str] = Form(None),
    fabric_rate_inr: Optional[str] = Form(None),
    panno_inch: Optional[str] = Form(None),
    matching: Optional[str] = Form(None),
    matching_fabric_rate_inr: Optional[str] = Form(None),
    matching_fabric_panno_inch: Optional[str] = Form(None),
    tags: Optional[str] = Form(None, description="comma separated"),
    category: Optional[str] = Form(None),
) -> ProductForm:
    # numbers arrive as text so blank inputs mean "absent" instead of a parse error
    return ProductForm.parse(
        name=name,
        design_no=design_no,
        product_rate_inr=product_rate_inr,
        fabric_supplier=fabric_supplier,
        fabric_name=fabric_name,
        fabric_rate_inr=fabric_rate_inr,
        panno_inch=panno_inch,
        matching=matching,
        matching_fabric_rate_inr=matching_fabric_rate_inr,
        matching_fabric_panno_inch=matching_fabric_panno_inch,
        tags=tags,
        category=category,
    )


@router.get("/", response_model=ProductPage)
def list_products(
    state: QueryState = Depends(get_query_state),
    db: FileBackedDB = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    """
    Search / filter / sort / paginate the catalog. `total` counts all matches
    for the active filters; pages past the end are empty, not errors.
    """
    result = catalog.search(db, state)
    return ProductPage(
        items=[_product_out(p, storage) for p in result.items],
        total=result.total,
        page=state.page,
        page_size=state.page_size,
        total_pages=result.total_pages,
        query=state.to_query_string(),
    )


@router.get("/suppliers", response_model=List[str])
def list_suppliers(db: FileBackedDB = Depends(get_db)):
    return catalog.get_suppliers(db)


@router.get("/categories", response_model=List[str])
def list_categories():
    return catalog.get_categories()


@router.get("/tags", response_model=List[str])
def list_tags(db: FileBackedDB = Depends(get_db)):
    return catalog.get_tags(db)


@router.get("/{design_no}", response_model=ProductOut)
def get_product(design_no: str, db: FileBackedDB = Depends(get_db), storage: ObjectStorage = Depends(get_storage)):
    return _product_out(catalog.get_product_by_design_no(db, design_no), storage)


@router.get("/{design_no}/related", response_model=List[ProductOut])
def related_products(design_no: str, limit: int = 8, db: FileBackedDB = Depends(get_db),
                     storage: ObjectStorage = Depends(get_storage)):
    """Other products from the same fabric supplier, newest first."""
    product = catalog.get_product_by_design_no(db, design_no)
    related = catalog.get_related_by_supplier(db, product.fabric_supplier, product.design_no, limit=limit)
    return [_product_out(p, storage) for p in related]


@router.get("/{design_no}/image", include_in_schema=False)
def product_image(design_no: str, db: FileBackedDB = Depends(get_db), storage: ObjectStorage = Depends(get_storage)):
    """
    Redirect to the product's image, or to the placeholder when the stored
    object is missing.
    """
    product = catalog.get_product_by_design_no(db, design_no)
    key = storage_key_for(product.image_path, storage.bucket)
    if key is not None and not storage.exists(key):
        return RedirectResponse(settings.PLACEHOLDER_IMAGE_URL, status_code=307)
    return RedirectResponse(catalog.image_url_for(product, storage), status_code=307)


@router.post("/", response_model=ProductOut, status_code=201)
async def create_product(
    form: ProductForm = Depends(_form_fields),
    image: Optional[UploadFile] = File(None),
    db: FileBackedDB = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    """
    Manual add: the image is required. It is stored as <design_no>/main.webp
    before the record is written.
    """
    if image is None or not image.filename:
        raise ProductValidationError({"image": "an image file is required"})
    contents = await read_image_upload(image, settings.MAX_IMAGE_BYTES)
    product = catalog.add_product(db, storage, form, contents)
    return _product_out(product, storage)


@router.put("/{current_design_no}", response_model=ProductOut)
async def update_product(
    current_design_no: str,
    form: ProductForm = Depends(_form_fields),
    image: Optional[UploadFile] = File(None),
    db: FileBackedDB = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    """Edit a product; sending an image replaces the stored one."""
    contents = None
    if image is not None and image.filename:
        contents = await read_image_upload(image, settings.MAX_IMAGE_BYTES)
    product = catalog.update_product(db, storage, current_design_no, form, contents)
    return _product_out(product, storage)


@router.delete("/{design_no}")
def delete_product(design_no: str, db: FileBackedDB = Depends(get_db), storage: ObjectStorage = Depends(get_storage)):
    product = catalog.delete_product(db, storage, design_no)
    return {"ok": True, "design_no": product.design_no}
