from .acquisition import (
    ALLOWED_EXTENSIONS,
    ImageAcquisitionAdapter,
    convert_to_jpeg,
    sniff_mime_type,
)
from .sources import CameraFrameSource, FileImageSource, UploadImageSource

__all__ = [
    "ALLOWED_EXTENSIONS",
    "ImageAcquisitionAdapter",
    "convert_to_jpeg",
    "sniff_mime_type",
    "CameraFrameSource",
    "FileImageSource",
    "UploadImageSource",
]
