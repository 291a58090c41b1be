"""
Storage for report evidence photos
"""
import asyncio
import io
import logging
import os
import secrets
import time
from dataclasses import dataclass
from typing import Optional

from PIL import Image

from migralert.core.config import settings
from migralert.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class PhotoUpload:
    filename: str
    content_type: Optional[str]
    content: bytes


class ImageStorage:
    """Local-disk blob store served under UPLOAD_URL_PREFIX"""

    ALLOWED_EXTENSIONS = {'jpg', 'jpeg', 'png', 'gif', 'webp', 'heic'}

    def __init__(
        self,
        upload_dir: Optional[str] = None,
        url_prefix: Optional[str] = None,
        max_file_size: Optional[int] = None,
    ):
        self.upload_dir = upload_dir or settings.UPLOAD_FOLDER
        self.url_prefix = (url_prefix or settings.UPLOAD_URL_PREFIX).rstrip("/")
        self.max_file_size = max_file_size or settings.MAX_UPLOAD_SIZE
        os.makedirs(self.upload_dir, exist_ok=True)

    def validate(self, photo: PhotoUpload) -> None:
        """Rejects non-images, empty and oversized files"""
        if not photo.filename:
            raise ValidationError("Invalid file name")

        extension = photo.filename.rsplit('.', 1)[-1].lower() if '.' in photo.filename else ''
        if extension not in self.ALLOWED_EXTENSIONS:
            raise ValidationError(
                f"File type not allowed. Use: {', '.join(sorted(self.ALLOWED_EXTENSIONS))}"
            )

        if not photo.content_type or not photo.content_type.startswith('image/'):
            raise ValidationError("The file must be an image")

        if not photo.content:
            raise ValidationError("Empty file")

        if len(photo.content) > self.max_file_size:
            raise ValidationError(
                f"File too large. Maximum: {self.max_file_size / (1024 * 1024):.0f}MB"
            )

    def _compress(self, content: bytes) -> bytes:
        image = Image.open(io.BytesIO(content))

        # Flatten transparency onto white (JPEG has no alpha)
        if image.mode in ('RGBA', 'LA', 'P'):
            background = Image.new('RGB', image.size, (255, 255, 255))
            if image.mode == 'P':
                image = image.convert('RGBA')
            background.paste(image, mask=image.split()[-1] if image.mode in ('RGBA', 'LA') else None)
            image = background
        elif image.mode != 'RGB':
            image = image.convert('RGB')

        if image.width > settings.IMAGE_MAX_WIDTH:
            height = round(image.height * settings.IMAGE_MAX_WIDTH / image.width)
            image = image.resize((settings.IMAGE_MAX_WIDTH, height), Image.Resampling.LANCZOS)

        output = io.BytesIO()
        image.save(output, format='JPEG', quality=settings.IMAGE_QUALITY, optimize=True)
        return output.getvalue()

    async def compress(self, content: bytes) -> bytes:
        """
        Resize to IMAGE_MAX_WIDTH and re-encode as JPEG.

        Bounded by IMAGE_COMPRESS_TIMEOUT_SECONDS; on timeout or decode error
        the original bytes are returned so submission is never blocked.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._compress, content),
                timeout=settings.IMAGE_COMPRESS_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            logger.warning("[Storage] Compression timed out, uploading original")
        except Exception as e:
            logger.warning(f"[Storage] Compression failed ({e}), uploading original")
        return content

    def _file_name(self) -> str:
        return f"{int(time.time() * 1000)}-{secrets.token_hex(3)}.jpg"

    async def upload(self, content: bytes) -> str:
        """Stores the bytes and returns their public URL"""
        filename = self._file_name()
        filepath = os.path.join(self.upload_dir, filename)

        await asyncio.to_thread(self._write, filepath, content)

        logger.info(f"[Storage] Stored {filename} ({len(content)} bytes)")
        return f"{self.url_prefix}/{filename}"

    @staticmethod
    def _write(filepath: str, content: bytes) -> None:
        with open(filepath, 'wb') as f:
            f.write(content)

    def path_for(self, url: str) -> Optional[str]:
        prefix = f"{self.url_prefix}/"
        if not url or not url.startswith(prefix):
            return None
        filename = url[len(prefix):]
        # No directory traversal out of the upload folder
        if not filename or "/" in filename or "\\" in filename or filename.startswith("."):
            return None
        return os.path.join(self.upload_dir, filename)

    def delete(self, url: str) -> bool:
        """
        Best-effort removal (cleanup after a failed insert).
        Failures are logged, never raised.
        """
        filepath = self.path_for(url)
        if filepath is None:
            logger.warning(f"[Storage] Could not extract file path from URL: {url}")
            return False
        try:
            if os.path.exists(filepath):
                os.remove(filepath)
                logger.info(f"[Storage] Deleted {filepath}")
                return True
            return False
        except OSError as e:
            logger.error(f"[Storage] Error deleting {filepath}: {e}")
            return False


_storage: Optional[ImageStorage] = None


def get_image_storage() -> ImageStorage:
    global _storage
    if _storage is None:
        _storage = ImageStorage()
    return _storage
