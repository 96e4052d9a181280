"""Root window capture and PNG encoding"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from PIL import Image
from Xlib import X

from x11mcp.common.errors import CaptureFailed, UnsupportedPixelDepth
from x11mcp.x11.session import DisplaySession

logger = logging.getLogger(__name__)

SUPPORTED_DEPTHS: tuple[int, ...] = (24, 32)


@dataclass(frozen=True)
class RawImage:
    """ZPixmap dump of the root window"""
    width: int
    height: int
    depth: int
    data: bytes


class ScreenCapture:
    """Captures the root window and encodes it as PNG"""

    def __init__(self, session: DisplaySession) -> None:
        """
        Initialize screen capture

        Args:
            session: Display session to capture from
        """
        self._session: DisplaySession = session

    def capture(self) -> RawImage:
        """
        Dump the root window at its current geometry

        Returns:
            Raw pixel buffer with geometry and depth
        """
        root = self._session.root_get()

        def _dump(display):
            geometry = root.get_geometry()
            reply = root.get_image(0, 0, geometry.width, geometry.height, X.ZPixmap, 0xFFFFFFFF)
            return RawImage(
                width=geometry.width,
                height=geometry.height,
                depth=reply.depth,
                data=bytes(reply.data),
            )

        raw = self._session.request_run(_dump)
        logger.debug(f"Captured {raw.width}x{raw.height} depth {raw.depth} ({len(raw.data)} bytes)")
        return raw

    def png_capture(self) -> bytes:
        """Capture the root window and return PNG bytes"""
        return png_encode(self.capture())


def image_convert(raw: RawImage) -> Image.Image:
    """
    Convert a raw ZPixmap buffer into an RGBA image

    Buffers holding 4 bytes per pixel are BGRA (alpha kept at depth 32, the
    fourth byte is padding at depth 24); buffers holding 3 bytes per pixel
    are BGR. Missing alpha is fully opaque.

    Args:
        raw: Raw capture

    Returns:
        RGBA image of the same geometry

    Raises:
        UnsupportedPixelDepth: If depth is not 24 or 32
        CaptureFailed: If the buffer is too short for the geometry
    """
    if raw.depth not in SUPPORTED_DEPTHS:
        raise UnsupportedPixelDepth(f"Unsupported image depth: {raw.depth}")

    size = (raw.width, raw.height)
    pixels = raw.width * raw.height
    if len(raw.data) >= pixels * 4:
        stride = raw.width * 4
        if raw.depth == 32:
            return Image.frombuffer("RGBA", size, raw.data, "raw", "BGRA", stride, 1)
        return Image.frombuffer("RGB", size, raw.data, "raw", "BGRX", stride, 1).convert("RGBA")
    if len(raw.data) >= pixels * 3:
        stride = raw.width * 3
        return Image.frombuffer("RGB", size, raw.data, "raw", "BGR", stride, 1).convert("RGBA")

    raise CaptureFailed(
        f"Image buffer of {len(raw.data)} bytes too short for {raw.width}x{raw.height}"
    )


def png_encode(raw: RawImage) -> bytes:
    """Encode a raw capture as PNG bytes"""
    buffer = io.BytesIO()
    image_convert(raw).save(buffer, format="PNG")
    return buffer.getvalue()


def file_save(data: bytes, path: Union[str, Path]) -> Path:
    """
    Write encoded image bytes to a file, creating parent directories

    Args:
        data: Encoded image
        path: Destination path

    Returns:
        Resolved destination path
    """
    destination = Path(path).expanduser()
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(data)
    logger.info(f"Saved screenshot to {destination}")
    return destination.resolve()
