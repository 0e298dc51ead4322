# images.py
# Image storage for recipe photos and profile pictures.

import logging
import os
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Callable, List, Optional, Protocol

from PIL import Image, UnidentifiedImageError

from recipe_catalog.core.config import settings
from recipe_catalog.exceptions import ImageStorageError

logger = logging.getLogger(__name__)

# Allowed image formats (PIL format names)
ALLOWED_FORMATS = {'JPEG', 'PNG', 'GIF', 'WEBP'}

# Storage calls run here so a hung backend cannot stall a request forever.
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="image-storage")


@dataclass(frozen=True)
class StoredImage:
    storage_id: str
    url: str


class ImageStorage(Protocol):
    def upload(self, content: bytes) -> StoredImage:
        ...

    def delete(self, storage_id: str) -> None:
        ...


def call_with_timeout(
        func: Callable[..., Any],
        *args: Any,
        timeout: Optional[float] = None,
        on_late: Optional[Callable[[Any], None]] = None,
) -> Any:
    """
    Run a storage call with a deadline. Any failure, the deadline included,
    comes back as ImageStorageError.

    A call that is already running cannot be stopped. When it completes after
    the deadline, on_late receives its result.
    """
    if timeout is None:
        timeout = settings.IMAGE_STORAGE_TIMEOUT_SECONDS
    future = _executor.submit(func, *args)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        if not future.cancel() and on_late is not None:
            future.add_done_callback(lambda f: _handle_late_result(f, on_late))
        raise ImageStorageError(f"Image storage did not answer within {timeout} seconds")
    except ImageStorageError:
        raise
    except Exception as e:
        raise ImageStorageError(f"Image storage failed: {e}") from e


def _handle_late_result(future: Future, on_late: Callable[[Any], None]) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    try:
        on_late(future.result())
    except Exception as e:
        logger.error(f"Cleanup after a late storage call failed: {e}")


def upload_with_timeout(storage: ImageStorage, content: bytes, timeout: Optional[float] = None) -> StoredImage:
    """
    Upload one picture with a deadline. A picture that lands after the
    deadline is deleted again, since nobody holds its id.
    """
    def discard_late(stored: StoredImage) -> None:
        logger.warning(f"Image {stored.storage_id} was stored after the deadline, removing it")
        storage.delete(stored.storage_id)

    return call_with_timeout(storage.upload, content, timeout=timeout, on_late=discard_late)


def upload_all(storage: ImageStorage, contents: List[bytes]) -> List[StoredImage]:
    """
    Upload every picture or none: on the first failure the pictures already
    stored are discarded and the error is re-raised.
    """
    stored: List[StoredImage] = []
    try:
        for content in contents:
            stored.append(upload_with_timeout(storage, content))
    except ImageStorageError as e:
        logger.error(f"Image upload failed after {len(stored)} of {len(contents)} images: {e.detail}")
        discard_images(storage, [s.storage_id for s in stored])
        raise
    return stored


def discard_images(storage: ImageStorage, storage_ids: List[str]) -> None:
    """
    Best-effort removal from image storage. Failures are logged, never raised.
    """
    for storage_id in storage_ids:
        try:
            call_with_timeout(storage.delete, storage_id)
        except ImageStorageError as e:
            logger.error(f"Failed to delete image {storage_id} from storage: {e.detail}")


class LocalImageStorage:
    """
    Stores validated pictures as JPEG files below a media directory.

    Every upload is decoded and re-encoded through Pillow, which strips
    anything that is not pixel data.
    """

    def __init__(
            self,
            root: str = settings.MEDIA_ROOT,
            base_url: str = settings.MEDIA_URL,
            max_width: int = settings.IMAGE_MAX_WIDTH,
            max_height: int = settings.IMAGE_MAX_HEIGHT,
            max_bytes: int = settings.IMAGE_MAX_BYTES,
    ):
        self.root = root
        self.base_url = base_url.rstrip("/")
        self.max_width = max_width
        self.max_height = max_height
        self.max_bytes = max_bytes

    def _path(self, storage_id: str) -> str:
        return os.path.join(self.root, f"{storage_id}.jpg")

    def _decode(self, content: bytes) -> Image.Image:
        if len(content) > self.max_bytes:
            raise ImageStorageError(f"Image too large: {len(content)} bytes (max {self.max_bytes})")
        try:
            img = Image.open(BytesIO(content))
            img.verify()
            # verify() leaves the image unusable, so open it again
            img = Image.open(BytesIO(content))
        except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
            raise ImageStorageError(f"Invalid or corrupted image: {e}") from e

        if img.format not in ALLOWED_FORMATS:
            raise ImageStorageError(
                f"Invalid image format: {img.format}. Allowed formats: {', '.join(sorted(ALLOWED_FORMATS))}"
            )
        return img

    def upload(self, content: bytes) -> StoredImage:
        img = self._decode(content)

        width, height = img.size
        if width > self.max_width or height > self.max_height:
            img.thumbnail((self.max_width, self.max_height), Image.Resampling.LANCZOS)

        if img.mode != "RGB":
            img = img.convert("RGB")

        storage_id = uuid.uuid4().hex
        os.makedirs(self.root, exist_ok=True)
        img.save(self._path(storage_id), "JPEG", quality=85, optimize=True)
        logger.debug(f"Stored image {storage_id}")
        return StoredImage(storage_id=storage_id, url=f"{self.base_url}/{storage_id}.jpg")

    def delete(self, storage_id: str) -> None:
        path = self._path(storage_id)
        if not os.path.exists(path):
            raise ImageStorageError(f"Image {storage_id} does not exist")
        os.remove(path)
        logger.debug(f"Removed image {storage_id}")


_storage = LocalImageStorage()


def get_image_storage() -> ImageStorage:
    """
    Dependency returning the configured image storage.
    """
    return _storage
