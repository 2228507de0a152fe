"""
Variant Generator

Drives N (compose -> encode) passes over one cut-out product, pairing
shuffled background and border colors, and returns the finished variants
in generation order.

Runs strictly sequentially on a single drawing surface. Any failure aborts
the whole batch; a partial list is never returned.
"""

import base64
import itertools
import numpy as np
import random
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .constants import (
    ALLOWED_VARIANT_COUNTS,
    BACKGROUND_COLORS,
    BORDER_COLORS,
    CANVAS_SIZE,
    PRODUCT_SCALE,
    BORDER_THICKNESS_PERCENT,
    MAX_FILE_SIZE_KB,
    VARIANT_MIME_TYPE,
)
from .exporter import variant_filename
from .image_processing import DrawingSurface, acquire_surface
from .variant_composer import compose_variant, encode_jpeg_under_budget

# Process-wide run counter, keeps variant ids unique even within one millisecond
_run_counter = itertools.count(1)


@dataclass(frozen=True)
class Variant:
    """One finished catalog image."""
    id: str
    index: int
    image_bytes: bytes
    bg_color: str
    border_color: str
    quality: float
    within_budget: bool = True
    mime_type: str = VARIANT_MIME_TYPE

    @property
    def size_bytes(self) -> int:
        return len(self.image_bytes)

    @property
    def data_url(self) -> str:
        encoded = base64.b64encode(self.image_bytes).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    @property
    def filename(self) -> str:
        return variant_filename(self.index)

    def to_dict(self, include_data: bool = True) -> dict:
        result = {
            "id": self.id,
            "index": self.index,
            "bg_color": self.bg_color,
            "border_color": self.border_color,
            "quality": self.quality,
            "size_bytes": self.size_bytes,
            "within_budget": self.within_budget,
            "filename": self.filename,
        }
        if include_data:
            result["data_url"] = self.data_url
        return result


def shuffle_palette(palette: Sequence[str], rng: Optional[random.Random] = None) -> List[str]:
    """Uniform random permutation (Fisher-Yates) of a copy of the palette."""
    shuffled = list(palette)
    (rng or random.Random()).shuffle(shuffled)
    return shuffled


def make_variant_id(run_number: int, index: int, timestamp_ms: int) -> str:
    return f"v-{run_number}-{index}-{timestamp_ms}"


def generate_variants(
    product: np.ndarray,
    count: int,
    *,
    bg_palette: Sequence[str] = BACKGROUND_COLORS,
    border_palette: Sequence[str] = BORDER_COLORS,
    rng: Optional[random.Random] = None,
    surface: Optional[DrawingSurface] = None,
    canvas_size: int = CANVAS_SIZE,
    product_scale: float = PRODUCT_SCALE,
    border_thickness_percent: float = BORDER_THICKNESS_PERCENT,
    max_size_kb: float = MAX_FILE_SIZE_KB,
    allowed_counts: Sequence[int] = ALLOWED_VARIANT_COUNTS
) -> List[Variant]:
    """
    Generate `count` styled variants of one product.

    Each palette is shuffled independently; variant i uses
    bg[i % len(bg)] and border[i % len(border)], so colors repeat once
    count exceeds a palette's size.

    Args:
        product: Cut-out product raster (BGRA)
        count: Number of variants, one of allowed_counts
        bg_palette: Background colors (non-empty)
        border_palette: Border colors (non-empty)
        rng: Random source for shuffling (seed it for reproducible output)
        surface: Drawing surface to reuse; allocated once if omitted

    Returns:
        Variants in generation order (index 0..count-1)

    Raises:
        ValueError: Invalid count, empty palette or empty product
        SurfaceAcquisitionFailed: Canvas could not be allocated
    """
    if product is None or product.size == 0:
        raise ValueError("Product image is empty")
    if count not in allowed_counts:
        raise ValueError(f"Variant count must be one of {list(allowed_counts)}, got {count}")
    if not bg_palette:
        raise ValueError("Background palette is empty")
    if not border_palette:
        raise ValueError("Border palette is empty")

    rng = rng or random.Random()
    shuffled_backgrounds = shuffle_palette(bg_palette, rng)
    shuffled_borders = shuffle_palette(border_palette, rng)

    if surface is None or not surface.fits(canvas_size, canvas_size, 3):
        surface = acquire_surface(canvas_size, canvas_size, 3)

    run_number = next(_run_counter)
    timestamp_ms = int(time.time() * 1000)
    start_time = time.time()

    print(f"🔵 [Variants] Run {run_number}: generating {count} variant(s) "
          f"from {product.shape[1]}x{product.shape[0]} product")

    variants: List[Variant] = []

    for i in range(count):
        bg_color = shuffled_backgrounds[i % len(shuffled_backgrounds)]
        border_color = shuffled_borders[i % len(shuffled_borders)]

        canvas = compose_variant(
            product,
            bg_color,
            border_color,
            canvas_size=canvas_size,
            product_scale=product_scale,
            border_thickness_percent=border_thickness_percent,
            surface=surface,
        )
        encoded = encode_jpeg_under_budget(canvas, max_size_kb=max_size_kb)

        variants.append(Variant(
            id=make_variant_id(run_number, i, timestamp_ms),
            index=i,
            image_bytes=encoded.data,
            bg_color=bg_color,
            border_color=border_color,
            quality=encoded.quality,
            within_budget=encoded.within_budget,
        ))

    elapsed = time.time() - start_time
    total_kb = sum(v.size_bytes for v in variants) / 1024
    print(f"✅ [Variants] Run {run_number}: {count} variant(s), {total_kb:.0f}KB total "
          f"in {elapsed * 1000:.0f}ms")

    return variants
