# swatch_catalog/api/routes/export.py
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from swatch_catalog.api.deps import get_db, get_storage
from swatch_catalog.database import FileBackedDB
from swatch_catalog.services.export import ExportFile, export_csv, export_xlsx
from swatch_catalog.storage import ObjectStorage

router = APIRouter(prefix="/api/export", tags=["export"])


def _download(f: ExportFile) -> Response:
    return Response(
        content=f.content,
        media_type=f.media_type,
        headers={"Content-Disposition": f'attachment; filename="{f.filename}"'},
    )


@router.get("/csv")
def download_csv(db: FileBackedDB = Depends(get_db), storage: ObjectStorage = Depends(get_storage)):
    return _download(export_csv(db, storage))


@router.get("/xlsx")
def download_xlsx(
    images: str = Query("plain", pattern="^(plain|urls|formula|embedded)$"),
    db: FileBackedDB = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    """Excel workbook; `images` picks plain paths, URLs, IMAGE() formulas or embedded thumbnails."""
    return _download(export_xlsx(db, storage, images=images))
