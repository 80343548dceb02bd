"""ImageSource implementations for the capture and upload paths."""

from pathlib import Path
from typing import Optional, Union

from foodfresh.domain.freshness.models import CapturedImage
from foodfresh.infrastructure.imaging.acquisition import ImageAcquisitionAdapter, UploadedFile


class CameraFrameSource:
    """Snapshot handed over by the camera widget (bytes or data URI)."""

    def __init__(
        self, frame: Union[bytes, str], adapter: Optional[ImageAcquisitionAdapter] = None
    ) -> None:
        self.frame = frame
        self.adapter = adapter or ImageAcquisitionAdapter()

    async def acquire(self) -> CapturedImage:
        return self.adapter.from_camera_frame(self.frame)


class UploadImageSource:
    """File picked by the user."""

    def __init__(
        self, upload: UploadedFile, adapter: Optional[ImageAcquisitionAdapter] = None
    ) -> None:
        self.upload = upload
        self.adapter = adapter or ImageAcquisitionAdapter()

    async def acquire(self) -> CapturedImage:
        return await self.adapter.from_upload(self.upload)


class FileImageSource:
    """Image file on local disk."""

    def __init__(
        self, path: Union[str, Path], adapter: Optional[ImageAcquisitionAdapter] = None
    ) -> None:
        self.path = Path(path)
        self.adapter = adapter or ImageAcquisitionAdapter()

    async def acquire(self) -> CapturedImage:
        return await self.adapter.from_path(self.path)
