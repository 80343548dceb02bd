"""Image acquisition adapter.

Normalizes camera frames and uploaded files into a single CapturedImage.
The real format is sniffed from the bytes with Pillow; declared content
types and file extensions are only used to reject early.
"""

import asyncio
import io
import os
from pathlib import Path
from typing import Optional, Protocol, Union

import structlog
from PIL import Image, UnidentifiedImageError

from foodfresh.domain.freshness.models import ALLOWED_MIME_TYPES, CapturedImage
from foodfresh.domain.shared.errors import ImageTooLargeError, UnsupportedFormatError
from foodfresh.infrastructure.config import get_max_image_bytes, get_normalize_to_jpeg

logger = structlog.get_logger(__name__)

# Allowed file extensions
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}

JPEG_QUALITY = 85

# Pillow formats that are served under another MIME type.
# MPO (multi-picture, written by many phone cameras) is a JPEG stream.
_FORMAT_ALIASES = {"MPO": "image/jpeg"}


class UploadedFile(Protocol):
    """Structural type of an uploaded file (matches Starlette's UploadFile)."""

    filename: Optional[str]
    content_type: Optional[str]

    async def read(self) -> bytes: ...


def sniff_mime_type(data: bytes) -> str:
    """
    Detect the MIME type of encoded image bytes.

    Raises:
        UnsupportedFormatError: If the bytes are not a decodable image
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise UnsupportedFormatError("Invalid image format or corrupted file") from e
    mime = _FORMAT_ALIASES.get(fmt or "") or Image.MIME.get(fmt or "")
    if mime is None:
        raise UnsupportedFormatError(f"Unrecognized image format: {fmt}")
    return mime


def convert_to_jpeg(image_data: bytes) -> bytes:
    """Convert any image format to JPEG."""
    try:
        img: Image.Image = Image.open(io.BytesIO(image_data))

        # Convert to RGB if necessary (PNG with transparency, etc.)
        rgb_img: Image.Image
        if img.mode in ("RGBA", "LA", "P"):
            background = Image.new("RGB", img.size, (255, 255, 255))
            if img.mode == "P":
                img = img.convert("RGBA")
            has_alpha = img.mode in ("RGBA", "LA")
            mask = img.split()[-1] if has_alpha else None
            background.paste(img, mask=mask)
            rgb_img = background
        elif img.mode != "RGB":
            rgb_img = img.convert("RGB")
        else:
            rgb_img = img

        output = io.BytesIO()
        rgb_img.save(output, format="JPEG", quality=JPEG_QUALITY, optimize=True)
        return output.getvalue()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.error("Error converting image to JPEG", error=str(e))
        raise UnsupportedFormatError("Invalid image format or corrupted file") from e


class ImageAcquisitionAdapter:
    """
    Converts camera frames and files into CapturedImage.

    Example:
        >>> adapter = ImageAcquisitionAdapter()
        >>> image = adapter.from_camera_frame("data:image/jpeg;base64,/9j/4AAQ...")
        >>> image.mime_type
        'image/jpeg'
    """

    def __init__(
        self,
        max_bytes: Optional[int] = None,
        normalize_to_jpeg: Optional[bool] = None,
    ) -> None:
        """
        Initialize adapter.

        Args:
            max_bytes: Size limit (default FOODFRESH_MAX_IMAGE_BYTES)
            normalize_to_jpeg: Re-encode as JPEG (default FOODFRESH_NORMALIZE_JPEG)
        """
        self.max_bytes = max_bytes if max_bytes is not None else get_max_image_bytes()
        self.normalize_to_jpeg = (
            normalize_to_jpeg if normalize_to_jpeg is not None else get_normalize_to_jpeg()
        )

    def _check_declared_type(self, content_type: Optional[str]) -> None:
        if not content_type:
            return
        declared = content_type.split(";")[0].strip().lower()
        if declared == "image/jpg":
            declared = "image/jpeg"
        if declared not in ALLOWED_MIME_TYPES:
            allowed = ", ".join(sorted(ALLOWED_MIME_TYPES))
            raise UnsupportedFormatError(f"Invalid file type {content_type}. Allowed: {allowed}")

    def _check_extension(self, filename: Optional[str]) -> None:
        if not filename:
            return
        ext = os.path.splitext(filename)[1].lower()
        if ext and ext not in ALLOWED_EXTENSIONS:
            allowed_ext = ", ".join(sorted(ALLOWED_EXTENSIONS))
            raise UnsupportedFormatError(f"Invalid file extension. Allowed: {allowed_ext}")

    def from_bytes(self, data: bytes, *, declared_type: Optional[str] = None) -> CapturedImage:
        """
        Validate raw bytes and wrap them as a CapturedImage.

        Raises:
            ImageTooLargeError: If data exceeds max_bytes
            UnsupportedFormatError: If data is empty or not an allowed image
        """
        self._check_declared_type(declared_type)
        if not data:
            raise UnsupportedFormatError("Empty image data")
        if len(data) > self.max_bytes:
            max_mb = self.max_bytes / 1024 / 1024
            raise ImageTooLargeError(f"Image too large. Maximum size: {max_mb:.1f}MB")

        mime_type = sniff_mime_type(data)
        if mime_type not in ALLOWED_MIME_TYPES:
            raise UnsupportedFormatError(f"Unsupported image type: {mime_type}")

        if self.normalize_to_jpeg and mime_type != "image/jpeg":
            data = convert_to_jpeg(data)
            mime_type = "image/jpeg"

        logger.debug("Image acquired", mime_type=mime_type, size=len(data))
        return CapturedImage(data=data, mime_type=mime_type)

    def from_camera_frame(self, frame: Union[bytes, str]) -> CapturedImage:
        """
        Accept a camera snapshot as raw bytes or a data URI.

        Raises:
            UnsupportedFormatError: If the frame is not an allowed image
        """
        if isinstance(frame, str):
            declared, data = CapturedImage.parse_data_uri(frame)
            return self.from_bytes(data, declared_type=declared)
        return self.from_bytes(frame)

    async def from_upload(self, upload: UploadedFile) -> CapturedImage:
        """
        Read an uploaded file fully and validate it.

        Raises:
            UnsupportedFormatError: If type, extension or content is not allowed
        """
        logger.info(
            "Image upload received",
            file_name=upload.filename,
            content_type=upload.content_type,
        )
        self._check_declared_type(upload.content_type)
        self._check_extension(upload.filename)
        content = await upload.read()
        return self.from_bytes(content)

    async def from_path(self, path: Union[str, Path]) -> CapturedImage:
        """
        Read a local image file off the event loop.

        Raises:
            UnsupportedFormatError: If extension or content is not allowed
            FileNotFoundError: If path does not exist
        """
        file_path = Path(path)
        self._check_extension(file_path.name)
        loop = asyncio.get_running_loop()
        content = await loop.run_in_executor(None, file_path.read_bytes)
        return self.from_bytes(content)
