# tests/test_export.py
import io

import pandas as pd
import pytest
from openpyxl import load_workbook

from swatch_catalog.core.errors import ExportError, StorageError
from swatch_catalog.services.export import export_csv, export_xlsx

PUBLIC = "http://testserver/storage/v1/object/public/product-images"


@pytest.fixture
def catalog_rows(seed_product, storage, make_sample_jpeg_bytes):
    seed_product(name="Jakit suit", design_no="820", product_rate_inr=1295, tags=["party", "rayon"],
                 image_path="product-images/820/main.webp", fabric_supplier="M Mahindra Kumar")
    seed_product(name="Remote", design_no="900", product_rate_inr=500, image_path="https://img.example.com/900.png")
    storage.upload("820/main.webp", make_sample_jpeg_bytes())


def test_csv_export(client, catalog_rows):
    resp = client.get("/api/export/csv")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert 'filename="products.csv"' in resp.headers["content-disposition"]
    df = pd.read_csv(io.BytesIO(resp.content), dtype=str).fillna("")
    # newest first
    assert list(df["design_no"]) == ["900", "820"]
    row = df[df["design_no"] == "820"].iloc[0]
    assert row["tags"] == "party, rayon"
    assert row["image_url"] == f"{PUBLIC}/820/main.webp"
    assert df[df["design_no"] == "900"].iloc[0]["image_url"] == "https://img.example.com/900.png"


def test_xlsx_plain(client, catalog_rows):
    resp = client.get("/api/export/xlsx")
    assert resp.status_code == 200
    wb = load_workbook(io.BytesIO(resp.content))
    ws = wb["Products"]
    header = [c.value for c in ws[1]]
    assert header[:3] == ["ID", "Name", "Design No."]
    assert header[-1] == "Image Path"
    assert ws.column_dimensions["A"].width == 36


def test_xlsx_urls_adds_gallery(db, storage, catalog_rows):
    wb = load_workbook(io.BytesIO(export_xlsx(db, storage, images="urls").content))
    header = [c.value for c in wb["Products"][1]]
    assert header[-1] == "Image URL"
    gallery = wb["Image Gallery"]
    assert gallery["A1"].value == "Product Images Gallery"
    assert [c.value for c in gallery[2]] == ["Design No.", "Product Name", "Image URL"]
    urls = {gallery.cell(row=r, column=1).value: gallery.cell(row=r, column=3).value for r in (3, 4)}
    assert urls["820"] == f"{PUBLIC}/820/main.webp"


def test_xlsx_formula(db, storage, catalog_rows):
    wb = load_workbook(io.BytesIO(export_xlsx(db, storage, images="formula").content))
    ws = wb["Products"]
    header = [c.value for c in ws[1]]
    col = header.index("Image Formula") + 1
    formulas = [ws.cell(row=r, column=col).value for r in (2, 3)]
    assert f'=IMAGE("{PUBLIC}/820/main.webp")' in formulas


def test_xlsx_embedded_marks_missing_images(db, storage, catalog_rows):
    def fetch(product):
        if product.design_no == "900":
            raise StorageError("unreachable")
        return storage.download("820/main.webp")

    wb = load_workbook(io.BytesIO(export_xlsx(db, storage, images="embedded", fetch=fetch).content))
    ws = wb["Products"]
    header = [c.value for c in ws[1]]
    col = header.index("Product Image") + 1
    cells = {ws.cell(row=r, column=3).value: ws.cell(row=r, column=col).value for r in (2, 3)}
    assert cells == {"820": "Image: 820", "900": "Image not available"}
    assert len(ws._images) == 1


def test_xlsx_rejects_unknown_mode(client):
    assert client.get("/api/export/xlsx", params={"images": "gif"}).status_code == 422


def test_export_failure_is_reported(client, db):
    db._file_path("products").mkdir(parents=True)
    resp = client.get("/api/export/csv")
    assert resp.status_code == 500
    assert "export" in resp.json()["detail"].lower()
    with pytest.raises(ExportError):
        export_xlsx(db, None)


def test_xlsx_keeps_formula_like_text_as_text(db, storage, seed_product):
    seed_product(name="=HYPERLINK(\"http://evil.example\",\"x\")", design_no="901",
                 image_path="https://img.example.com/a\"b.png")
    wb = load_workbook(io.BytesIO(export_xlsx(db, storage, images="formula").content))
    ws = wb["Products"]
    header = [c.value for c in ws[1]]
    name = ws.cell(row=2, column=header.index("Name") + 1)
    assert name.data_type == "s"
    assert name.value == "=HYPERLINK(\"http://evil.example\",\"x\")"
    formula = ws.cell(row=2, column=header.index("Image Formula") + 1)
    assert formula.data_type == "f"
    assert formula.value == '=IMAGE("https://img.example.com/a""b.png")'


def test_xlsx_gallery_keeps_formula_like_text_as_text(db, storage, seed_product):
    seed_product(name="=1+1", design_no="902")
    wb = load_workbook(io.BytesIO(export_xlsx(db, storage, images="urls").content))
    cell = wb["Image Gallery"].cell(row=3, column=2)
    assert cell.data_type == "s"
    assert cell.value == "=1+1"


def test_xlsx_strips_control_characters(client, seed_product):
    seed_product(name="Bell\x07 suit", design_no="903", fabric_supplier="Acme\x1b")
    resp = client.get("/api/export/xlsx")
    assert resp.status_code == 200, resp.text
    ws = load_workbook(io.BytesIO(resp.content))["Products"]
    header = [c.value for c in ws[1]]
    assert ws.cell(row=2, column=header.index("Name") + 1).value == "Bell suit"
    assert ws.cell(row=2, column=header.index("Fabric Supplier") + 1).value == "Acme"
