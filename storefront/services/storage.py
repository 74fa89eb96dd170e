"""Evidence image upload to Cloudinary."""
import logging
from dataclasses import dataclass

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from storefront.core.errors import StorageError

log = logging.getLogger("storefront.storage")


@dataclass(frozen=True)
class UploadResult:
    secure_url: str
    public_id: str


class CloudinaryStorage:
    def __init__(self, cloud_name: str, api_key: str, api_secret: str, timeout: int = 30):
        self.configured = bool(cloud_name and api_key and api_secret)
        self.timeout = timeout
        if self.configured:
            cloudinary.config(
                cloud_name=cloud_name,
                api_key=api_key,
                api_secret=api_secret,
                secure=True,
            )

    @classmethod
    def from_settings(cls, settings) -> "CloudinaryStorage":
        return cls(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            timeout=settings.upload_timeout_seconds,
        )

    def upload(self, data: bytes, folder: str, filename: str | None = None) -> UploadResult:
        if not self.configured:
            raise StorageError("Image uploads are not configured.")
        try:
            result = cloudinary.uploader.upload(
                data,
                folder=folder,
                resource_type="image",
                filename_override=filename,
                timeout=self.timeout,
            )
        except CloudinaryError as e:
            log.error("Cloudinary upload failed: folder=%s error=%s", folder, e)
            raise StorageError("Image upload failed, please retry.") from e
        return UploadResult(secure_url=result["secure_url"], public_id=result["public_id"])
