"""
Image Processing Primitives

Pixel-level building blocks for the catalog variant pipeline:
1. Decoding uploads into BGRA rasters
2. Near-white pixel classification
3. Alpha keying (white -> transparent cut-out)
4. Product bounding box detection
5. Drawing surfaces shared by the compositing steps

All rasters are numpy uint8 arrays in OpenCV channel order (BGR / BGRA).

Environment Variables:
    DEBUG_VARIANTS: Set to "1" to enable debug output
"""

import cv2
import numpy as np
import os
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import SurfaceAcquisitionFailed

# =============================================================================
# Configuration
# =============================================================================

# A pixel is background only if ALL of R, G, B are strictly above this value.
# The background-removal model returns the product on pure white.
WHITE_THRESHOLD = 245

# Magic bytes for image type detection
IMAGE_MAGIC_BYTES = {
    b'\xff\xd8\xff': 'image/jpeg',
    b'\x89PNG\r\n\x1a\n': 'image/png',
    b'RIFF': 'image/webp',  # WebP starts with RIFF....WEBP
    b'GIF87a': 'image/gif',
    b'GIF89a': 'image/gif',
    b'BM': 'image/bmp',
}

DEBUG_ENABLED = os.getenv("DEBUG_VARIANTS", "0") == "1"


@dataclass(frozen=True)
class BoundingBox:
    """Tightest axis-aligned box around non-background pixels (inclusive edges)."""
    x: int
    y: int
    w: int
    h: int


# =============================================================================
# Decoding / Encoding
# =============================================================================

def detect_image_type(content: bytes) -> Optional[str]:
    """
    Detect image MIME type from magic bytes.

    Returns:
        MIME type string, or None if the content is not a recognised image
    """
    if not content or len(content) < 8:
        return None

    for magic, mime_type in IMAGE_MAGIC_BYTES.items():
        if content[:len(magic)] == magic:
            # RIFF is also used by WAV/AVI
            if mime_type == "image/webp" and b"WEBP" not in content[:12]:
                return None
            return mime_type

    return None


def to_bgra(image: np.ndarray) -> np.ndarray:
    """Normalise a decoded raster (gray, BGR, BGRA, 16-bit) to 8-bit BGRA."""
    if image.dtype == np.uint16:
        image = (image >> 8).astype(np.uint8)
    elif image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGRA)
    if image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2BGRA)
    if image.shape[2] == 4:
        return np.ascontiguousarray(image.copy())

    raise ValueError(f"Unsupported channel count: {image.shape[2]}")


def load_image(image_bytes: bytes) -> np.ndarray:
    """
    Decode encoded image bytes into a BGRA raster.

    Raises:
        ValueError: If bytes are empty or cannot be decoded
    """
    if not image_bytes:
        raise ValueError("Empty image bytes provided")

    nparr = np.frombuffer(image_bytes, np.uint8)
    image = cv2.imdecode(nparr, cv2.IMREAD_UNCHANGED)

    if image is None:
        raise ValueError("Could not decode image")

    return to_bgra(image)


def encode_png(image: np.ndarray) -> bytes:
    """Encode a raster as PNG (keeps alpha)."""
    ok, buffer = cv2.imencode('.png', image)
    if not ok:
        raise RuntimeError("PNG encoding failed")
    return buffer.tobytes()


def parse_hex_color(color: str) -> Tuple[int, int, int]:
    """
    Parse "#rrggbb" / "#rgb" (with or without #) into an (R, G, B) tuple.

    Raises:
        ValueError: If the value is not a hex color
    """
    if not isinstance(color, str):
        raise ValueError(f"Invalid color: {color!r}")

    value = color.strip().lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)

    if len(value) != 6:
        raise ValueError(f"Invalid color: {color!r}")

    try:
        return (int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))
    except ValueError:
        raise ValueError(f"Invalid color: {color!r}")


def hex_to_bgr(color: str) -> Tuple[int, int, int]:
    """Hex color to OpenCV BGR order."""
    r, g, b = parse_hex_color(color)
    return (b, g, r)


# =============================================================================
# Pixel Classification
# =============================================================================

def is_background_pixel(r: int, g: int, b: int, a: int = 255) -> bool:
    """
    Classify one pixel as near-white background.

    Alpha is ignored: transparent or near-black pixels are NOT background.
    """
    return r > WHITE_THRESHOLD and g > WHITE_THRESHOLD and b > WHITE_THRESHOLD


def background_mask(image: np.ndarray) -> np.ndarray:
    """
    Vectorised classifier over a whole raster.

    Args:
        image: BGR or BGRA uint8 raster (channel order does not matter,
               all three color channels must pass)

    Returns:
        Boolean mask (H, W), True where the pixel is background
    """
    if image.ndim != 3 or image.shape[2] < 3:
        raise ValueError(f"Expected a color raster, got shape {image.shape}")

    return np.all(image[:, :, :3] > WHITE_THRESHOLD, axis=2)


# =============================================================================
# Drawing Surface
# =============================================================================

class DrawingSurface:
    """
    Owned pixel buffer that compositing steps draw into.

    Single writer: a surface is handed from step to step in a sequential
    pipeline and must not be shared between concurrent runs.
    """

    def __init__(self, width: int, height: int, channels: int = 4):
        self.width = width
        self.height = height
        self.channels = channels
        self.pixels = np.zeros((height, width, channels), dtype=np.uint8)

    @property
    def shape(self) -> Tuple[int, int, int]:
        return (self.height, self.width, self.channels)

    def fits(self, width: int, height: int, channels: int) -> bool:
        return self.shape == (height, width, channels)

    def fill(self, color) -> None:
        """Fill the whole surface with one color (tuple matching channel count)."""
        self.pixels[:, :] = color

    def load(self, image: np.ndarray) -> None:
        """Copy a raster of identical shape into the surface."""
        if image.shape != self.pixels.shape:
            raise ValueError(f"Shape mismatch: {image.shape} vs surface {self.pixels.shape}")
        np.copyto(self.pixels, image)


def acquire_surface(width: int, height: int, channels: int = 4) -> DrawingSurface:
    """
    Allocate a drawing surface.

    Raises:
        SurfaceAcquisitionFailed: If the size is invalid or memory is exhausted
    """
    if width <= 0 or height <= 0:
        raise SurfaceAcquisitionFailed(f"Invalid surface size {width}x{height}")
    if channels not in (3, 4):
        raise SurfaceAcquisitionFailed(f"Invalid surface channel count {channels}")

    try:
        return DrawingSurface(width, height, channels)
    except MemoryError as e:
        raise SurfaceAcquisitionFailed(f"Could not allocate {width}x{height} surface: {e}")


# =============================================================================
# Alpha Keying
# =============================================================================

def remove_white_background(image: np.ndarray) -> np.ndarray:
    """
    Make near-white pixels fully transparent.

    The input is expected to show the product isolated on white (the output
    of the background-removal model). Background pixels get alpha 0; every
    other pixel keeps its color and original alpha. No resize, no crop.

    If no drawing surface can be acquired the original image is returned
    unchanged instead of raising.

    Args:
        image: BGR or BGRA uint8 raster

    Returns:
        New BGRA raster of identical dimensions
    """
    height, width = image.shape[:2]

    try:
        surface = acquire_surface(width, height, 4)
    except SurfaceAcquisitionFailed as e:
        print(f"  ⚠️ [Keyer] Surface unavailable, returning original: {e}")
        return image

    has_alpha = image.ndim == 3 and image.shape[2] == 4
    surface.load(image if has_alpha else to_bgra(image))

    mask = background_mask(surface.pixels)
    surface.pixels[mask, 3] = 0

    if DEBUG_ENABLED:
        keyed = np.sum(mask) / mask.size * 100
        print(f"  [Keyer] {width}x{height}, keyed {keyed:.1f}% of pixels")

    return surface.pixels


def remove_white_background_bytes(image_bytes: bytes) -> bytes:
    """
    Bytes-level keyer: decode, key white to transparent, re-encode as PNG.

    Raises:
        ValueError: If the bytes cannot be decoded
    """
    image = load_image(image_bytes)
    return encode_png(remove_white_background(image))


# =============================================================================
# Bounding Box
# =============================================================================

def get_product_bounding_box(image: np.ndarray) -> Optional[BoundingBox]:
    """
    Tightest box containing every non-background pixel.

    Full-resolution scan, no downsampling. Zero-width/height boxes are valid
    (a single product pixel at (5, 5) gives BoundingBox(5, 5, 0, 0)).

    Returns:
        BoundingBox, or None if the whole image is background
    """
    product = ~background_mask(image)

    rows = np.flatnonzero(product.any(axis=1))
    if rows.size == 0:
        return None
    cols = np.flatnonzero(product.any(axis=0))

    min_y, max_y = int(rows[0]), int(rows[-1])
    min_x, max_x = int(cols[0]), int(cols[-1])

    return BoundingBox(x=min_x, y=min_y, w=max_x - min_x, h=max_y - min_y)
