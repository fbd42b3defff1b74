"""Image references passed between the graph, the asset store and the compiler.

An :class:`ImageRef` is the only image representation the core knows about:
base64 payload plus mime type.  Pixels are never decoded here except to sniff
the format of raw uploads.
"""

from __future__ import annotations

import base64
import io
import logging

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class ImageRef(BaseModel):
    """Immutable reference to an encoded image.

    Attributes:
        data: Base64-encoded image bytes (no ``data:`` URL prefix).
        mime_type: MIME type of the encoded bytes, e.g. ``image/png``.
    """

    model_config = ConfigDict(frozen=True)

    data: str = Field(..., description="Base64-encoded image bytes.")
    mime_type: str = Field(default="image/png", description="MIME type of the image.")

    @classmethod
    def from_bytes(cls, raw: bytes) -> ImageRef:
        """Build a reference from raw image bytes, detecting the mime type.

        Args:
            raw: Encoded image file contents.

        Returns:
            ImageRef carrying the base64 payload and detected mime type.

        Raises:
            ValueError: If Pillow cannot identify the bytes as an image.
        """
        try:
            with Image.open(io.BytesIO(raw)) as img:
                image_format = img.format
        except UnidentifiedImageError as e:
            raise ValueError("Data is not a recognised image") from e

        mime_type = Image.MIME.get(image_format or "", "application/octet-stream")
        logger.debug(f"Detected {mime_type} for {len(raw)} byte upload")
        return cls(data=base64.b64encode(raw).decode("ascii"), mime_type=mime_type)

    @classmethod
    def from_data_url(cls, url: str) -> ImageRef:
        """Parse a ``data:<mime>;base64,<payload>`` URL.

        Args:
            url: Data URL as produced by browser file readers.

        Returns:
            ImageRef for the embedded payload.

        Raises:
            ValueError: If the URL is not a base64 data URL.
        """
        if not url.startswith("data:") or ";base64," not in url:
            raise ValueError("Expected a base64 data URL")
        header, payload = url.split(",", 1)
        mime_type = header[len("data:") : -len(";base64")]
        return cls(data=payload, mime_type=mime_type or "image/png")

    def to_bytes(self) -> bytes:
        """Decode the payload back into raw bytes."""
        return base64.b64decode(self.data)

    def to_data_url(self) -> str:
        """Render the reference as a ``data:`` URL."""
        return f"data:{self.mime_type};base64,{self.data}"
