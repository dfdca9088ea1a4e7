# swatch_catalog/api/routes/storage.py
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from swatch_catalog.api.deps import get_storage
from swatch_catalog.core.errors import StorageError
from swatch_catalog.core.images import PUBLIC_OBJECT_PREFIX
from swatch_catalog.storage import ObjectStorage

router = APIRouter(prefix=f"/{PUBLIC_OBJECT_PREFIX}", tags=["storage"])


@router.get("/{bucket}/{key:path}")
def public_object(bucket: str, key: str, storage: ObjectStorage = Depends(get_storage)):
    """Serve a stored object at its public URL."""
    if bucket != storage.bucket:
        raise HTTPException(status_code=404, detail="Bucket not found")
    try:
        path = storage.local_path(key)
    except StorageError:
        raise HTTPException(status_code=404, detail="Object not found")
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Object not found")
    return FileResponse(path, headers={"Cache-Control": "max-age=3600"})
