# swatch_catalog/models/product.py
from __future__ import annotations
from dataclasses import dataclass, asdict, field
from typing import Optional, Dict, Any, List
from datetime import datetime
import json

# column order of the products table (and of the CSV export)
PRODUCT_COLUMNS = [
    "id",
    "name",
    "design_no",
    "fabric_supplier",
    "fabric_name",
    "fabric_rate_inr",
    "panno_inch",
    "matching",
    "matching_fabric_rate_inr",
    "matching_fabric_panno_inch",
    "product_rate_inr",
    "image_path",
    "tags",
    "category",
    "created_at",
    "updated_at",
]

OPTIONAL_NUMBER_FIELDS = (
    "fabric_rate_inr",
    "panno_inch",
    "matching_fabric_rate_inr",
    "matching_fabric_panno_inch",
)
OPTIONAL_TEXT_FIELDS = ("fabric_supplier", "fabric_name", "matching", "category")


def _opt_text(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    s = str(raw).strip()
    return s or None


def _opt_float(raw: Any) -> Optional[float]:
    if raw in (None, ""):
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def _parse_tags(raw: Any) -> Optional[List[str]]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, (list, tuple)):
        vals = raw
    else:
        try:
            vals = json.loads(raw)
        except (TypeError, ValueError):
            # tolerate hand-edited files with comma separated tags
            vals = str(raw).split(",")
        if not isinstance(vals, list):
            vals = [vals]
    tags = [str(t).strip() for t in vals if str(t).strip()]
    return tags


def _parse_dt(raw: Any) -> Optional[datetime]:
    if not raw:
        return None
    if isinstance(raw, datetime):
        return raw
    try:
        return datetime.fromisoformat(str(raw))
    except ValueError:
        try:
            # pandas Timestamp prints like '2023-01-01 00:00:00'
            return datetime.strptime(str(raw), "%Y-%m-%d %H:%M:%S")
        except ValueError:
            return None


@dataclass
class Product:
    """
    Catalog product. The file-backed store keeps everything as strings,
    so these helpers convert to proper types and back.
    """
    name: str = ""
    design_no: str = ""
    product_rate_inr: float = 0.0
    image_path: str = ""
    id: Optional[str] = None
    fabric_supplier: Optional[str] = None
    fabric_name: Optional[str] = None
    fabric_rate_inr: Optional[float] = None
    panno_inch: Optional[float] = None
    matching: Optional[str] = None
    matching_fabric_rate_inr: Optional[float] = None
    matching_fabric_panno_inch: Optional[float] = None
    tags: Optional[List[str]] = field(default=None)
    category: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Product":
        if d is None:
            raise ValueError("Cannot construct Product from None")
        rate = _opt_float(d.get("product_rate_inr"))
        kwargs: Dict[str, Any] = dict(
            id=_opt_text(d.get("id")),
            name=str(d.get("name") or ""),
            design_no=str(d.get("design_no") or ""),
            product_rate_inr=rate if rate is not None else 0.0,
            image_path=str(d.get("image_path") or ""),
            tags=_parse_tags(d.get("tags")),
            created_at=_parse_dt(d.get("created_at")),
            updated_at=_parse_dt(d.get("updated_at")),
        )
        for f in OPTIONAL_TEXT_FIELDS:
            kwargs[f] = _opt_text(d.get(f))
        for f in OPTIONAL_NUMBER_FIELDS:
            kwargs[f] = _opt_float(d.get(f))
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict with datetimes as ISO strings (tags stay a list)."""
        out = asdict(self)
        for k in ("created_at", "updated_at"):
            v = getattr(self, k)
            out[k] = v.isoformat() if isinstance(v, datetime) else None
        out["product_rate_inr"] = float(self.product_rate_inr or 0.0)
        return out

    def to_record(self) -> Dict[str, Any]:
        """
        Dict suitable for writing to the products table: fixed column order,
        tags JSON-encoded, system-assigned fields left out when unset.
        """
        out = self.to_dict()
        out["tags"] = json.dumps(self.tags or [])
        return {k: out[k] for k in PRODUCT_COLUMNS if not (k in ("id", "created_at", "updated_at") and out[k] is None)}
