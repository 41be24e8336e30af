import io
import re
import base64
import binascii
import logging
from typing import NamedTuple, Optional

from PIL import Image, UnidentifiedImageError

from app.config import MAX_IMAGE_BYTES

logger = logging.getLogger(__name__)

# data:<mimetype>[;param=value]*;base64,<payload>
_DATA_URI_RE = re.compile(
    r"^data:(?P<mime>[A-Za-z0-9.+-]+/[A-Za-z0-9.+-]+)"
    r"(?:;[A-Za-z0-9._-]+=[^;,]*)*"
    r";base64,(?P<payload>[A-Za-z0-9+/]*={0,2})$"
)


class DataUri(NamedTuple):
    mime_type: str
    data: bytes


class ImageReadError(Exception):
    """Raised when an uploaded file cannot be read as an image"""


def parse_data_uri(value: str) -> Optional[DataUri]:
    """Parse an embedded image reference, returning None when it is malformed.

    Only ``image/*`` MIME types with a non-empty base64 payload are accepted.
    """
    if not isinstance(value, str):
        return None

    match = _DATA_URI_RE.match(value.strip())
    if not match:
        return None

    mime_type = match.group("mime").lower()
    if not mime_type.startswith("image/"):
        return None

    try:
        data = base64.b64decode(match.group("payload"), validate=True)
    except (binascii.Error, ValueError):
        return None

    if not data:
        return None
    return DataUri(mime_type, data)


def build_data_uri(mime_type: str, image_bytes: bytes) -> str:
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def read_image_as_data_uri(image_bytes: bytes, content_type: Optional[str] = None) -> str:
    """Turn raw upload bytes into a data URI after checking they decode as an image.

    The MIME type comes from the decoded format; the declared content type is
    only used when Pillow has no mapping for that format.
    """
    if not image_bytes:
        raise ImageReadError("The selected file is empty.")

    if len(image_bytes) > MAX_IMAGE_BYTES:
        logger.warning(
            f"Image is {len(image_bytes)} bytes, above the advised {MAX_IMAGE_BYTES} bytes"
        )

    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            image_format = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        logger.warning(f"Failed to decode uploaded image: {e}")
        raise ImageReadError("Could not read the image file.") from e

    mime_type = Image.MIME.get(image_format or "") or content_type
    if not mime_type or not mime_type.startswith("image/"):
        raise ImageReadError("Unsupported image format.")

    return build_data_uri(mime_type, image_bytes)
