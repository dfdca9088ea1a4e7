"""
Image path resolution.

Products store `image_path` either as an absolute URL or as a key inside the
storage bucket, sometimes (older rows) prefixed with the bucket name itself.
Every view that shows an image (API payloads, the image redirect, exports)
resolves it through `resolve_image_url` so they always agree.
"""
from typing import Optional
from urllib.parse import quote

ABSOLUTE_SCHEMES = ("http://", "https://")
PUBLIC_OBJECT_PREFIX = "storage/v1/object/public"


def is_absolute_url(image_path: str) -> bool:
    return (image_path or "").strip().lower().startswith(ABSOLUTE_SCHEMES)


def strip_bucket_prefix(image_path: str, bucket: str) -> str:
    """'product-images/42/main.webp' -> '42/main.webp'; idempotent."""
    path = (image_path or "").strip().lstrip("/")
    prefix = f"{bucket.strip('/')}/"
    while prefix != "/" and path.startswith(prefix):
        path = path[len(prefix):].lstrip("/")
    return path


def storage_key_for(image_path: str, bucket: str) -> Optional[str]:
    """Bucket-relative key for a stored image, or None for external URLs / empty paths."""
    if not image_path or is_absolute_url(image_path):
        return None
    return strip_bucket_prefix(image_path, bucket) or None


def public_object_url(key: str, bucket: str, public_base_url: str) -> str:
    base = (public_base_url or "").rstrip("/")
    return f"{base}/{PUBLIC_OBJECT_PREFIX}/{quote(bucket)}/{quote(key)}"


def resolve_image_url(image_path: str, bucket: str, public_base_url: str) -> str:
    """
    Absolute http(s) URLs pass through unchanged; anything else is treated as a
    key in `bucket` (optional leading "<bucket>/" removed) and turned into the
    bucket's public URL.
    """
    if is_absolute_url(image_path):
        return image_path
    return public_object_url(strip_bucket_prefix(image_path, bucket), bucket, public_base_url)


def image_key_for_design(design_no: str) -> str:
    """Deterministic storage key for a product's main image (re-uploads replace it)."""
    return f"{design_no.strip()}/main.webp"
