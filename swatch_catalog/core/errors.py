from __future__ import annotations
from typing import Dict, Optional


class CatalogError(Exception):
    """Base class for catalog domain errors."""
    status_code = 500
    message = "Catalog error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class StoreError(CatalogError):
    """The record store could not be read or written."""
    status_code = 503
    message = "Failed to fetch products"


class ProductNotFound(CatalogError):
    status_code = 404
    message = "Product not found"


class DuplicateDesignNo(CatalogError):
    status_code = 409
    message = "Design number already exists"


class ProductValidationError(CatalogError):
    """Field-level validation failure; `errors` maps field name -> message."""
    status_code = 422
    message = "Invalid product"

    def __init__(self, errors: Dict[str, str]):
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))
        self.errors = dict(errors)


class StorageError(CatalogError):
    status_code = 502
    message = "Storage operation failed"


class ImageUploadError(StorageError):
    message = "Failed to upload image"


class ExportError(CatalogError):
    status_code = 500
    message = "Failed to export products"
