# krishirakshak/decoder.py
import asyncio
import io
import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from krishirakshak.errors import DecodeError

logger = logging.getLogger(__name__)

PREVIEW_SIZE = (256, 256)


@dataclass(frozen=True)
class ImageFile:
    """A user-selected file, before any decoding."""

    name: str
    data: bytes

    @classmethod
    def from_upload(cls, uploaded_file):
        """Wrap a Streamlit UploadedFile (or any object with .name and .getvalue())."""
        return cls(name=getattr(uploaded_file, "name", "upload.jpg"), data=uploaded_file.getvalue())


class PreviewHandle:
    """
    Display thumbnail for one file.

    The handle keeps the file bytes alive until released. The owner calls
    `release()` once the entry showing it is gone or replaced.
    """

    def __init__(self, name, data, owner=None):
        self.name = name
        self._data = data
        self._owner = owner
        self._thumbnail = None

    @property
    def released(self) -> bool:
        return self._data is None

    def image(self) -> Optional[Image.Image]:
        if self.released:
            return None
        if self._thumbnail is None:
            try:
                img = load_image_with_orientation(io.BytesIO(self._data))
            except DecodeError:
                return None
            img.thumbnail(PREVIEW_SIZE)
            self._thumbnail = img
        return self._thumbnail

    def release(self):
        if self.released:
            return
        if self._thumbnail is not None:
            self._thumbnail.close()
            self._thumbnail = None
        self._data = None
        if self._owner is not None:
            self._owner._forget(self)


@dataclass(frozen=True)
class ImageRef:
    name: str
    preview: Optional[PreviewHandle] = None


@dataclass(frozen=True)
class DecodedImage:
    name: str
    image: Image.Image
    preview: PreviewHandle

    @property
    def size(self):
        return self.image.size


def load_image_with_orientation(fp) -> Image.Image:
    """Load and auto-rotate mobile/desktop images."""
    try:
        img = Image.open(fp)
        img.load()
        img = ImageOps.exif_transpose(img)
        return img.convert("RGB")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeError(f"Unreadable image: {e}") from e


def resize_for_mobile(img, max_pixels=1024):
    """Downscale large images for mobile to prevent memory issues."""
    w, h = img.size
    max_dim = max(w, h)
    if max_dim > max_pixels:
        scale = max_pixels / max_dim
        new_size = (max(1, int(w * scale)), max(1, int(h * scale)))
        img = img.resize(new_size)
    return img


class ImageDecoder:
    def __init__(self, max_pixels=1024):
        self.max_pixels = max_pixels
        self._live = set()

    @property
    def live_previews(self) -> int:
        return len(self._live)

    def open_preview(self, file: ImageFile) -> PreviewHandle:
        handle = PreviewHandle(file.name, file.data, owner=self)
        self._live.add(handle)
        return handle

    def _forget(self, handle):
        self._live.discard(handle)

    def _decode_sync(self, file: ImageFile) -> Image.Image:
        if not file.data:
            raise DecodeError(f"{file.name} is empty")
        img = load_image_with_orientation(io.BytesIO(file.data))
        return resize_for_mobile(img, self.max_pixels)

    async def decode(self, file: ImageFile) -> DecodedImage:
        preview = self.open_preview(file)
        try:
            img = await asyncio.to_thread(self._decode_sync, file)
        except DecodeError:
            preview.release()
            logger.warning("Could not decode %s", file.name)
            raise
        except BaseException:
            preview.release()
            raise
        return DecodedImage(name=file.name, image=img, preview=preview)
