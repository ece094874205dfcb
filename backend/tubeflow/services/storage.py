"""Asset storage over the S3 client.

Generated thumbnails and audio are stored under `thumbnails/` or `audio/`
with a millisecond timestamp prefix and served from their public URL.
Uploads propagate failures as StorageError; deletes never raise.
"""

import time

from tubeflow.core.logging import get_logger
from tubeflow.integrations.s3 import S3Client, S3Error
from tubeflow.services.errors import StorageError

logger = get_logger(__name__)


def object_key(name: str, content_type: str, now_ms: int | None = None) -> str:
    """Key for a new asset: audio/<ts>_<name> or thumbnails/<ts>_<name>."""
    folder = "audio" if content_type.startswith("audio/") else "thumbnails"
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{folder}/{ts}_{name}"


class AssetStorage:
    """Stores generated assets and returns public URLs."""

    def __init__(self, s3_client: S3Client) -> None:
        self._s3 = s3_client

    async def store(self, data: bytes, name: str, content_type: str = "image/png") -> str:
        """Upload `data` and return its public URL.

        Raises:
            StorageError: If storage is not configured or the upload fails
        """
        if not self._s3.available:
            raise StorageError("Object storage is not configured")

        key = object_key(name, content_type)
        try:
            await self._s3.put_object(key, data, content_type)
        except S3Error as e:
            raise StorageError(f"Failed to upload file to storage: {e}") from e

        url = self._s3.public_url(key)
        logger.info(
            "Asset stored",
            extra={"s3_key": key, "content_type": content_type, "size_bytes": len(data)},
        )
        return url

    async def delete(self, url: str | None) -> None:
        """Best-effort removal of a stored asset; failures are only logged."""
        if not url or not self._s3.available:
            return
        key = self._s3.key_from_url(url)
        if not key:
            logger.warning("Could not derive storage key from URL", extra={"url": url})
            return
        try:
            await self._s3.delete_object(key)
            logger.info("Asset deleted", extra={"s3_key": key})
        except S3Error as e:
            logger.warning(
                "Asset delete failed",
                extra={
                    "s3_key": key,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
            )
