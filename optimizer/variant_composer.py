"""
Variant Composer - Framed Catalog Canvas + Size-Constrained JPEG

Turns a cut-out product (BGRA, transparent background) into one finished
catalog image:
1. Solid background fill (opaque)
2. Proportional border stroke touching the canvas edge
3. Product scaled to fit a fixed fraction of the canvas, centered
4. JPEG encoding, lowering quality until the payload fits the size budget

Environment Variables:
    DEBUG_VARIANTS: Set to "1" to enable debug output
"""

import cv2
import numpy as np
import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .constants import (
    CANVAS_SIZE,
    PRODUCT_SCALE,
    BORDER_THICKNESS_PERCENT,
    MAX_FILE_SIZE_KB,
    JPEG_INITIAL_QUALITY,
    JPEG_MIN_QUALITY,
    JPEG_QUALITY_STEP,
    BASE64_EXPANSION,
)
from .image_processing import DrawingSurface, acquire_surface, hex_to_bgr

DEBUG_ENABLED = os.getenv("DEBUG_VARIANTS", "0") == "1"


@dataclass(frozen=True)
class ProductFit:
    """Exact (unrounded) placement of the product on the canvas."""
    scale: float
    draw_width: float
    draw_height: float
    x: float
    y: float


@dataclass(frozen=True)
class BorderGeometry:
    """Stroke rectangle: inset, side length and line width, plus the pixel band it covers."""
    inset: float
    rect_size: float
    line_width: float
    band_px: int


@dataclass
class EncodeResult:
    data: bytes
    quality: float
    within_budget: bool
    attempts: List[Tuple[float, int]] = field(default_factory=list)

    @property
    def size_bytes(self) -> int:
        return len(self.data)


# =============================================================================
# Geometry
# =============================================================================

def compute_product_fit(
    product_width: int,
    product_height: int,
    canvas_size: int = CANVAS_SIZE,
    product_scale: float = PRODUCT_SCALE
) -> ProductFit:
    """
    Uniform scale that fits the product inside a (canvas_size * product_scale)
    square, centered on the canvas.

    Example: 500x300 on 1000px at 0.68 -> scale 1.36, 680x408 at (160, 296)
    """
    if product_width <= 0 or product_height <= 0:
        raise ValueError(f"Invalid product size {product_width}x{product_height}")

    inner_area = canvas_size * product_scale
    scale = min(inner_area / product_width, inner_area / product_height)

    draw_width = product_width * scale
    draw_height = product_height * scale

    return ProductFit(
        scale=scale,
        draw_width=draw_width,
        draw_height=draw_height,
        x=(canvas_size - draw_width) / 2,
        y=(canvas_size - draw_height) / 2,
    )


def compute_border_geometry(
    canvas_size: int = CANVAS_SIZE,
    border_thickness_percent: float = BORDER_THICKNESS_PERCENT
) -> BorderGeometry:
    """
    The border is a rectangle at inset t/2 of side (L - t), stroked with
    width t, so its outer edge lies exactly on the canvas boundary.
    """
    thickness = canvas_size * border_thickness_percent
    band_px = min(int(round(thickness)), canvas_size // 2)

    return BorderGeometry(
        inset=thickness / 2,
        rect_size=canvas_size - thickness,
        line_width=thickness,
        band_px=band_px,
    )


# =============================================================================
# Drawing
# =============================================================================

def _draw_border(canvas: np.ndarray, band_px: int, color_bgr: Tuple[int, int, int]) -> None:
    if band_px <= 0:
        return
    canvas[:band_px, :] = color_bgr
    canvas[-band_px:, :] = color_bgr
    canvas[:, :band_px] = color_bgr
    canvas[:, -band_px:] = color_bgr


def _draw_product(canvas: np.ndarray, product: np.ndarray, fit: ProductFit) -> Tuple[int, int, int, int]:
    """
    Alpha-blend the scaled product onto the canvas.

    Color is premultiplied before resizing so transparent (white-keyed)
    pixels do not bleed a light fringe into the product edge.

    Returns:
        (x, y, width, height) of the drawn region in pixels
    """
    canvas_h, canvas_w = canvas.shape[:2]
    src_h, src_w = product.shape[:2]

    draw_w = min(canvas_w, max(1, int(round(fit.draw_width))))
    draw_h = min(canvas_h, max(1, int(round(fit.draw_height))))
    x = (canvas_w - draw_w) // 2
    y = (canvas_h - draw_h) // 2

    shrinking = draw_w < src_w or draw_h < src_h
    interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_LINEAR

    if product.ndim == 3 and product.shape[2] == 4:
        alpha = product[:, :, 3].astype(np.float32) / 255.0
        premultiplied = product[:, :, :3].astype(np.float32) * alpha[:, :, np.newaxis]

        premultiplied = cv2.resize(premultiplied, (draw_w, draw_h), interpolation=interpolation)
        alpha = cv2.resize(alpha, (draw_w, draw_h), interpolation=interpolation)
        alpha = np.clip(alpha, 0.0, 1.0)
        if alpha.ndim == 2:
            alpha = alpha[:, :, np.newaxis]

        region = canvas[y:y + draw_h, x:x + draw_w].astype(np.float32)
        blended = premultiplied.reshape(draw_h, draw_w, 3) + region * (1.0 - alpha)
        canvas[y:y + draw_h, x:x + draw_w] = np.clip(np.round(blended), 0, 255).astype(np.uint8)
    else:
        opaque = product if product.ndim == 3 else cv2.cvtColor(product, cv2.COLOR_GRAY2BGR)
        canvas[y:y + draw_h, x:x + draw_w] = cv2.resize(
            opaque[:, :, :3], (draw_w, draw_h), interpolation=interpolation
        )

    return x, y, draw_w, draw_h


def compose_variant(
    product: np.ndarray,
    bg_color: str,
    border_color: str,
    *,
    canvas_size: int = CANVAS_SIZE,
    product_scale: float = PRODUCT_SCALE,
    border_thickness_percent: float = BORDER_THICKNESS_PERCENT,
    surface: Optional[DrawingSurface] = None
) -> np.ndarray:
    """
    Compose one framed catalog image.

    Args:
        product: Cut-out product, BGRA (transparent background) or BGR
        bg_color: Background hex color
        border_color: Border hex color
        canvas_size: Output edge length
        product_scale: Fraction of the edge bounding the product's longest side
        border_thickness_percent: Fraction of the edge used as stroke width
        surface: Reusable 3-channel surface of canvas_size x canvas_size.
                 When given, the returned array IS the surface buffer and is
                 overwritten by the next composition.

    Returns:
        BGR uint8 canvas of exactly canvas_size x canvas_size, fully opaque

    Raises:
        ValueError: Empty product or invalid color
        SurfaceAcquisitionFailed: No surface could be allocated
    """
    if product is None or product.size == 0:
        raise ValueError("Product image is empty")

    bg_bgr = hex_to_bgr(bg_color)
    border_bgr = hex_to_bgr(border_color)

    if surface is None or not surface.fits(canvas_size, canvas_size, 3):
        surface = acquire_surface(canvas_size, canvas_size, 3)

    canvas = surface.pixels

    # 1. Solid background
    surface.fill(bg_bgr)

    # 2. Border
    border = compute_border_geometry(canvas_size, border_thickness_percent)
    _draw_border(canvas, border.band_px, border_bgr)

    # 3 + 4. Product
    fit = compute_product_fit(product.shape[1], product.shape[0], canvas_size, product_scale)
    drawn = _draw_product(canvas, product, fit)

    if DEBUG_ENABLED:
        print(f"  [Composer] bg={bg_color} border={border_color} band={border.band_px}px")
        print(f"  [Composer] scale={fit.scale:.3f} drawn={drawn}")

    return canvas


# =============================================================================
# Size-Constrained Encoding
# =============================================================================

def estimate_encoded_size(byte_count: int) -> int:
    """Length of the base64 text for a payload of byte_count bytes."""
    return 4 * ((byte_count + 2) // 3)


def _encode_jpeg(canvas: np.ndarray, quality_percent: int) -> bytes:
    ok, buffer = cv2.imencode('.jpg', canvas, [cv2.IMWRITE_JPEG_QUALITY, int(quality_percent)])
    if not ok:
        raise RuntimeError(f"JPEG encoding failed at quality {quality_percent}")
    return buffer.tobytes()


def encode_jpeg_under_budget(
    canvas: np.ndarray,
    *,
    max_size_kb: float = MAX_FILE_SIZE_KB,
    initial_quality: float = JPEG_INITIAL_QUALITY,
    min_quality: float = JPEG_MIN_QUALITY,
    quality_step: float = JPEG_QUALITY_STEP
) -> EncodeResult:
    """
    Encode as JPEG, stepping quality down until the base64 payload fits.

    Greedy and monotonic: start at initial_quality, subtract quality_step
    (never going below min_quality) while the estimate is over
    max_size_kb * 1024 * 4/3. Hitting the floor while still over budget is
    accepted; the result is flagged within_budget=False.

    Returns:
        EncodeResult with the final bytes, quality and every attempt made
    """
    if canvas.ndim == 3 and canvas.shape[2] == 4:
        canvas = cv2.cvtColor(canvas, cv2.COLOR_BGRA2BGR)

    # Integer percent avoids float drift (0.92 - 9 * 0.1 != 0.02)
    quality = int(round(initial_quality * 100))
    floor = int(round(min_quality * 100))
    step = max(1, int(round(quality_step * 100)))
    limit = max_size_kb * 1024 * BASE64_EXPANSION

    data = _encode_jpeg(canvas, quality)
    estimate = estimate_encoded_size(len(data))
    attempts = [(quality / 100, estimate)]

    while estimate > limit and quality > floor:
        quality = max(quality - step, floor)
        data = _encode_jpeg(canvas, quality)
        estimate = estimate_encoded_size(len(data))
        attempts.append((quality / 100, estimate))

    within_budget = estimate <= limit

    if not within_budget:
        print(f"  ⚠️ [Encoder] Quality floor {floor / 100:.2f} reached, "
              f"{len(data) / 1024:.0f}KB still over {max_size_kb}KB budget")
    elif DEBUG_ENABLED:
        print(f"  [Encoder] {len(data) / 1024:.0f}KB at quality {quality / 100:.2f} "
              f"after {len(attempts)} attempt(s)")

    return EncodeResult(
        data=data,
        quality=quality / 100,
        within_budget=within_budget,
        attempts=attempts,
    )
