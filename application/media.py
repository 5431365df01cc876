from __future__ import annotations

from typing import Optional

from domain.gateways import SUPPORTED_IMAGE_TYPES

_EXTENSIONS = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


def determine_media_type(ref: str, content_type: Optional[str] = None) -> Optional[str]:
    """
    Normalise an attachment's image type.

    The declared content type wins when it names a supported image
    ("image/JPG" -> "image/jpeg"); otherwise the extension of `ref` is
    used. Returns None for anything the model cannot take.
    """

    if content_type:
        normalized = content_type.lower()
        if "jpeg" in normalized or "jpg" in normalized:
            return "image/jpeg"
        for mime_type in SUPPORTED_IMAGE_TYPES:
            if mime_type.split("/")[1] in normalized:
                return mime_type

    path = ref.split("?", 1)[0]
    if "." not in path.rsplit("/", 1)[-1]:
        return None
    extension = path.rsplit(".", 1)[-1].lower()
    return _EXTENSIONS.get(extension)


def is_pdf(content_type: Optional[str], file_name: Optional[str] = None) -> bool:
    if content_type:
        return content_type.lower().split(";")[0].strip() == "application/pdf"
    return bool(file_name) and file_name.lower().endswith(".pdf")
