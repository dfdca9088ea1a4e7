# swatch_catalog/schemas/product.py
from pydantic import BaseModel, Field, ValidationError, field_validator
from typing import Dict, List, Optional

from swatch_catalog.config import settings
from swatch_catalog.core.errors import ProductValidationError

DESIGN_NO_FORBIDDEN = set("/\\?#")


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


class ProductForm(BaseModel):
    """Fields accepted by manual add / edit (system-assigned ones excluded)."""
    name: str = Field(..., min_length=1)
    design_no: str = Field(..., min_length=1)
    product_rate_inr: float = Field(..., ge=0)
    fabric_supplier: Optional[str] = None
    fabric_name: Optional[str] = None
    fabric_rate_inr: Optional[float] = Field(None, ge=0)
    panno_inch: Optional[float] = Field(None, ge=0)
    matching: Optional[str] = None
    matching_fabric_rate_inr: Optional[float] = Field(None, ge=0)
    matching_fabric_panno_inch: Optional[float] = Field(None, ge=0)
    tags: List[str] = Field(default_factory=list)
    category: Optional[str] = None

    @field_validator("name", "design_no", mode="before")
    @classmethod
    def _strip_required(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("design_no")
    @classmethod
    def _path_safe(cls, v):
        # used as a URL path segment and as the image folder name
        if v in (".", "..") or any(ch in DESIGN_NO_FORBIDDEN for ch in v):
            raise ValueError("must not contain / \\ ? # or be '.' / '..'")
        return v

    @field_validator(
        "fabric_supplier", "fabric_name", "matching", "category",
        "fabric_rate_inr", "panno_inch", "matching_fabric_rate_inr", "matching_fabric_panno_inch",
        mode="before",
    )
    @classmethod
    def _optional(cls, v):
        v = _blank_to_none(v)
        return v.strip() if isinstance(v, str) else v

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, v):
        # comma separated text from the form, or an already split list
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        return [str(t).strip() for t in v if str(t).strip()]

    @field_validator("category")
    @classmethod
    def _known_category(cls, v):
        if v is not None and v not in settings.CATEGORIES:
            raise ValueError(f"must be one of: {', '.join(settings.CATEGORIES)}")
        return v

    @classmethod
    def parse(cls, **fields) -> "ProductForm":
        """Validate, converting pydantic errors into field -> message pairs."""
        try:
            return cls(**fields)
        except ValidationError as e:
            errors: Dict[str, str] = {}
            for err in e.errors():
                loc = ".".join(str(p) for p in err.get("loc", ())) or "form"
                errors.setdefault(loc, err.get("msg", "invalid value"))
            raise ProductValidationError(errors) from e


class ProductOut(BaseModel):
    id: Optional[str] = None
    name: str
    design_no: str
    fabric_supplier: Optional[str] = None
    fabric_name: Optional[str] = None
    fabric_rate_inr: Optional[float] = None
    panno_inch: Optional[float] = None
    matching: Optional[str] = None
    matching_fabric_rate_inr: Optional[float] = None
    matching_fabric_panno_inch: Optional[float] = None
    product_rate_inr: float
    image_path: str
    image_url: str
    tags: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ProductPage(BaseModel):
    items: List[ProductOut]
    total: int
    page: int
    page_size: int
    total_pages: int
    query: str = Field("", description="canonical query string reproducing this page")
