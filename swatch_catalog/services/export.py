"""
Catalog export to CSV and XLSX.

Every export reads the full product list, builds the file in memory and only
returns it once complete, so a failure never yields a partial download.
Image URLs always go through the same resolver as the API.
"""
import io
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd
import requests
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.drawing.image import Image as XLImage
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import IllegalCharacterError
from PIL import UnidentifiedImageError

from swatch_catalog.config import settings
from swatch_catalog.core.errors import ExportError, StorageError, StoreError
from swatch_catalog.core.images import storage_key_for
from swatch_catalog.database import FileBackedDB
from swatch_catalog.models.product import PRODUCT_COLUMNS, Product
from swatch_catalog.services.catalog import image_url_for, list_all_products
from swatch_catalog.storage import ObjectStorage
from swatch_catalog.utils.images import to_png_thumbnail

logger = logging.getLogger(__name__)

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

IMAGE_MODES = ("plain", "urls", "formula", "embedded")

# (caption, width in characters)
BASE_COLUMNS: List[Tuple[str, int]] = [
    ("ID", 36),
    ("Name", 30),
    ("Design No.", 15),
    ("Fabric Supplier", 20),
    ("Fabric Name", 25),
    ("Fabric Rate (₹)", 15),
    ("Panno (inch)", 15),
    ("Matching", 20),
    ("Matching Fabric Rate (₹)", 20),
    ("Matching Fabric Panno (inch)", 20),
    ("Product Rate (₹)", 15),
    ("Tags", 30),
    ("Category", 15),
    ("Created At", 15),
    ("Updated At", 15),
]

IMAGE_ROW_HEIGHT = 120
HEADER_ROW_HEIGHT = 25


@dataclass
class ExportFile:
    content: bytes
    media_type: str
    filename: str


def _date(value) -> str:
    return value.date().isoformat() if value else ""


def _base_row(p: Product) -> Dict[str, object]:
    return {
        "ID": p.id or "",
        "Name": p.name,
        "Design No.": p.design_no,
        "Fabric Supplier": p.fabric_supplier or "",
        "Fabric Name": p.fabric_name or "",
        "Fabric Rate (₹)": p.fabric_rate_inr or 0,
        "Panno (inch)": p.panno_inch or 0,
        "Matching": p.matching or "",
        "Matching Fabric Rate (₹)": p.matching_fabric_rate_inr or 0,
        "Matching Fabric Panno (inch)": p.matching_fabric_panno_inch or 0,
        "Product Rate (₹)": p.product_rate_inr,
        "Tags": ", ".join(p.tags or []),
        "Category": p.category or "",
        "Created At": _date(p.created_at),
        "Updated At": _date(p.updated_at),
    }


def _fetch_products(db: FileBackedDB) -> List[Product]:
    try:
        return list_all_products(db)
    except StoreError as e:
        raise ExportError(f"Failed to export products: {e.message}") from e


def export_csv(db: FileBackedDB, storage: ObjectStorage) -> ExportFile:
    """All product columns plus the resolved image URL."""
    products = _fetch_products(db)
    rows = []
    for p in products:
        d = p.to_dict()
        d["tags"] = ", ".join(p.tags or [])
        d["image_url"] = image_url_for(p, storage)
        rows.append(d)
    df = pd.DataFrame(rows, columns=PRODUCT_COLUMNS + ["image_url"])
    content = df.to_csv(index=False).encode("utf-8")
    return ExportFile(content=content, media_type=CSV_MEDIA_TYPE, filename="products.csv")


def fetch_image_bytes(product: Product, storage: ObjectStorage,
                      session: Optional[requests.Session] = None) -> bytes:
    """Image bytes from the bucket, or over HTTP for external URLs."""
    key = storage_key_for(product.image_path, storage.bucket)
    if key:
        return storage.download(key)
    http = session or requests
    resp = http.get(product.image_path, timeout=settings.EXPORT_IMAGE_TIMEOUT)
    resp.raise_for_status()
    return resp.content


def _cell_text(value):
    # control characters are not allowed in xlsx cells
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def _image_formula(url: str) -> str:
    return '=IMAGE("{}")'.format(url.replace('"', '""'))


def _keep_as_text(ws, formula_col: Optional[int] = None) -> None:
    """
    openpyxl stores any string starting with "=" as a formula. Only the
    generated formula column may hold formulas; user text stays text.
    """
    for row in ws.iter_rows():
        for cell in row:
            if cell.data_type == "f" and cell.column != formula_col:
                cell.data_type = "s"


def _set_widths(ws, widths: List[int]) -> None:
    for i, w in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = w


def export_xlsx(db: FileBackedDB, storage: ObjectStorage, images: str = "plain",
                fetch: Optional[Callable[[Product], bytes]] = None) -> ExportFile:
    """
    Workbook with a "Products" sheet. `images` selects how images appear:
      plain    - raw "Image Path" column
      urls     - "Image URL" column and an "Image Gallery" sheet
      formula  - "Image URL" and an =IMAGE() formula column
      embedded - thumbnails anchored in a "Product Image" column
    """
    if images not in IMAGE_MODES:
        raise ValueError(f"images must be one of {', '.join(IMAGE_MODES)}")
    products = _fetch_products(db)
    columns = list(BASE_COLUMNS)
    rows = []
    for p in products:
        row = _base_row(p)
        url = image_url_for(p, storage) if p.image_path else ""
        if images == "plain":
            row["Image Path"] = p.image_path
        elif images in ("urls", "formula"):
            row["Image URL"] = url or "No image available"
            if images == "formula":
                row["Image Formula"] = _image_formula(url) if url else "No image available"
        else:
            row["Product Image"] = ""
        rows.append({k: _cell_text(v) for k, v in row.items()})

    if images == "plain":
        columns.append(("Image Path", 40))
    elif images in ("urls", "formula"):
        columns.append(("Image URL", 60))
        if images == "formula":
            columns.append(("Image Formula", 80))
    else:
        columns.append(("Product Image", 25))

    captions = [c for c, _ in columns]
    df = pd.DataFrame(rows, columns=captions)
    buf = io.BytesIO()
    try:
        with pd.ExcelWriter(buf, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="Products", index=False)
            ws = writer.sheets["Products"]
            formula_col = captions.index("Image Formula") + 1 if images == "formula" else None
            _keep_as_text(ws, formula_col)
            _set_widths(ws, [w for _, w in columns])

            if images == "urls":
                gallery = pd.DataFrame(
                    [[_cell_text(v) for v in (p.design_no, p.name,
                                              image_url_for(p, storage) if p.image_path else "No image")]
                     for p in products],
                    columns=["Design No.", "Product Name", "Image URL"],
                )
                # title row above the table
                gallery.to_excel(writer, sheet_name="Image Gallery", index=False, startrow=1)
                gws = writer.sheets["Image Gallery"]
                _keep_as_text(gws)
                gws["A1"] = "Product Images Gallery"
                _set_widths(gws, [20, 40, 80])
            elif images == "embedded":
                _embed_images(ws, products, storage, len(captions), fetch)
    except (ValueError, OSError, IllegalCharacterError) as e:
        logger.exception("XLSX export failed")
        raise ExportError(f"Failed to export products to XLSX: {e}") from e
    return ExportFile(content=buf.getvalue(), media_type=XLSX_MEDIA_TYPE, filename="products.xlsx")


def _embed_images(ws, products: List[Product], storage: ObjectStorage, col_index: int,
                  fetch: Optional[Callable[[Product], bytes]]) -> None:
    """One thumbnail per row; per-image failures only mark the cell."""
    col = get_column_letter(col_index)
    ws.row_dimensions[1].height = HEADER_ROW_HEIGHT
    session = requests.Session() if fetch is None else None
    fetch = fetch or (lambda p: fetch_image_bytes(p, storage, session))
    ok = failed = 0
    try:
        for i, p in enumerate(products, start=2):
            ws.row_dimensions[i].height = IMAGE_ROW_HEIGHT
            cell = f"{col}{i}"
            if not p.image_path:
                ws[cell] = "No image"
                continue
            try:
                png = to_png_thumbnail(fetch(p))
            except (StorageError, requests.RequestException, UnidentifiedImageError, OSError) as e:
                logger.warning("Image for %s not embedded: %s", p.design_no, e)
                ws[cell] = "Image not available"
                failed += 1
                continue
            img = XLImage(io.BytesIO(png))
            img.anchor = cell
            ws.add_image(img)
            ws[cell] = _cell_text(f"Image: {p.design_no}")
            ok += 1
    finally:
        if session is not None:
            session.close()
    logger.info("Embedded %d images (%d failed)", ok, failed)
