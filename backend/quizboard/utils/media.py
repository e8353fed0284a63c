"""Local image storage for question pictures.

Uploads are sniffed with Pillow, written under `settings.MEDIA_DIR` with
a random file name and exposed through the app's `/media` static mount.
"""

from __future__ import annotations

import io
from pathlib import Path
from uuid import uuid4

from PIL import Image, UnidentifiedImageError

from ..config import settings
from ..errors import ValidationError

ALLOWED_FORMATS = {"JPEG": ".jpg", "PNG": ".png"}


def get_media_root() -> Path:
    root = settings.MEDIA_DIR
    root.mkdir(parents=True, exist_ok=True)
    return root


def sniff_image_format(payload: bytes) -> str:
    """Return the Pillow format name, rejecting anything but JPEG/PNG."""
    try:
        with Image.open(io.BytesIO(payload)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError) as exc:
        raise ValidationError("Please upload a valid JPEG, JPG, or PNG image") from exc
    if fmt not in ALLOWED_FORMATS:
        raise ValidationError("Please upload a valid JPEG, JPG, or PNG image")
    return fmt


def save_question_image(payload: bytes) -> dict:
    """Store an image and return its file name and public URL."""
    if not payload:
        raise ValidationError("No file selected")
    if len(payload) > settings.MAX_UPLOAD_BYTES:
        raise ValidationError("file too large")
    fmt = sniff_image_format(payload)
    name = f"{uuid4().hex}{ALLOWED_FORMATS[fmt]}"
    path = get_media_root() / name
    path.write_bytes(payload)
    return {"file_name": name, "url": f"{settings.MEDIA_URL_PREFIX}/{name}"}
