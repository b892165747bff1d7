"""Program image loading.

Image format: a big-endian 16-bit origin followed by big-endian 16-bit
words placed contiguously from that origin. There is no header, magic
number or length field.
"""

import logging
import struct
from pathlib import Path
from typing import BinaryIO, Tuple, Union

from .errors import ImageLoadError
from .memory import Memory
from .state import MEMORY_SIZE


logger = logging.getLogger(__name__)


def load_image_bytes(memory: Memory, data: bytes, strict: bool = False) -> Tuple[int, int]:
    """Place an in-memory image into `memory`.

    Args:
        memory: Destination address space
        data: Raw image bytes
        strict: Raise instead of truncating when the image runs past xFFFF

    Returns:
        Tuple of (origin, words_loaded)

    Raises:
        ImageLoadError: If the origin is missing, or on overflow in strict mode
    """
    if len(data) < 2:
        raise ImageLoadError("image too short: missing origin word")

    (origin,) = struct.unpack(">H", data[:2])
    body = data[2:]
    if len(body) % 2:
        logger.debug("ignoring trailing odd byte in image")
        body = body[:-1]

    n_words = len(body) // 2
    room = MEMORY_SIZE - origin
    if n_words > room:
        if strict:
            raise ImageLoadError(
                f"image of {n_words} words at x{origin:04X} overflows memory "
                f"({room} words available)"
            )
        logger.warning(
            "image at x%04X truncated from %d to %d words", origin, n_words, room
        )
        n_words = room

    words = struct.unpack(f">{n_words}H", body[: n_words * 2])
    loaded = memory.load_words(origin, words)
    logger.debug("loaded %d words at x%04X", loaded, origin)
    return origin, loaded


def read_image_file(memory: Memory, stream: BinaryIO, strict: bool = False) -> Tuple[int, int]:
    """Load an image from an open binary stream."""
    return load_image_bytes(memory, stream.read(), strict=strict)


def read_image(memory: Memory, path: Union[str, Path], strict: bool = False) -> Tuple[int, int]:
    """Load an image file.

    Raises:
        ImageLoadError: If the file cannot be opened or read
    """
    try:
        with open(path, "rb") as fp:
            return read_image_file(memory, fp, strict=strict)
    except OSError as e:
        raise ImageLoadError(f"failed to load image: {path} ({e.strerror})") from e
