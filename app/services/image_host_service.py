"""Image host client for listing and profile photos"""
import httpx
import logging
from typing import Optional

from app.config import settings
from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


class ImageHostError(Exception):
    """The image host rejected an upload or could not be reached"""


class ImageHostService:
    """Service for uploading listing and profile images to external storage"""

    def __init__(self):
        self.base_url = settings.IMAGE_HOST_BASE_URL
        self.api_key = settings.IMAGE_HOST_API_KEY
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=60.0,
                headers={
                    "X-API-Key": self.api_key,
                }
            )
        return self._client

    async def close(self):
        """Close the HTTP client"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def validate_image(self, filename: str, size: int) -> str:
        """
        Check extension and size before uploading

        Returns:
            Lowercased file extension
        """
        extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if extension not in settings.ALLOWED_IMAGE_EXTENSIONS:
            raise ValidationError.for_field(
                "images",
                f"File type not allowed. Allowed: {', '.join(settings.ALLOWED_IMAGE_EXTENSIONS)}"
            )
        if size > settings.IMAGE_MAX_FILE_SIZE:
            raise ValidationError.for_field(
                "images",
                f"File too large. Max size: {settings.IMAGE_MAX_FILE_SIZE / 1024 / 1024:.1f}MB"
            )
        return extension

    async def upload_image(
        self,
        content: bytes,
        filename: str,
        content_type: Optional[str] = None,
        folder: str = "listings"
    ) -> str:
        """
        Upload one image

        Args:
            content: Binary image content
            filename: Original filename
            content_type: MIME type (derived from the extension if omitted)
            folder: Host folder (listings or profiles)

        Returns:
            Durable URL of the stored image
        """
        extension = self.validate_image(filename, len(content))
        content_type = content_type or CONTENT_TYPES.get(extension, "application/octet-stream")

        try:
            client = await self._get_client()

            response = await client.post(
                "/api/upload",
                files={"file": (filename, content, content_type)},
                data={"folder_path": folder}
            )

            if response.status_code != 200:
                logger.error(f"Image upload failed: {response.status_code} - {response.text}")
                raise ImageHostError(f"Image upload failed: {response.text}")

            result = response.json()

        except httpx.RequestError as e:
            logger.error(f"Image host request error: {str(e)}")
            raise ImageHostError(f"Failed to connect to image host: {str(e)}")

        url = self.get_public_url(result.get("url") or result.get("download_url", ""))
        logger.info(f"Image uploaded to image host: {url}")
        return url

    def get_public_url(self, url: str) -> str:
        """Resolve a relative URL from the upload response against the host"""
        if not url:
            raise ImageHostError("Image host returned no URL")
        if url.startswith("http"):
            return url
        return f"{self.base_url}{url}"


# Global service instance
image_host_service = ImageHostService()
