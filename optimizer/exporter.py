"""
Variant export: one file per variant, named meesho_variant_<n>.jpg (1-based).
"""

import io
import zipfile
from pathlib import Path
from typing import List, Sequence

from .constants import VARIANT_FILENAME_PATTERN


def variant_filename(index: int) -> str:
    """File name for the variant at 0-based position `index`."""
    if index < 0:
        raise ValueError(f"Variant index must be >= 0, got {index}")
    return VARIANT_FILENAME_PATTERN.format(number=index + 1)


def build_variants_zip(variants: Sequence) -> bytes:
    """
    Bundle variants into a ZIP archive, in presentation order.

    JPEG data is already compressed, so entries are stored without deflate.
    """
    if not variants:
        raise ValueError("No variants to export")

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_STORED) as archive:
        for position, variant in enumerate(variants):
            archive.writestr(variant_filename(position), variant.image_bytes)

    return buffer.getvalue()


def save_variants(variants: Sequence, output_dir) -> List[Path]:
    """
    Write each variant to output_dir (created if missing).

    Returns:
        Written paths, in presentation order
    """
    if not variants:
        raise ValueError("No variants to export")

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for position, variant in enumerate(variants):
        path = output_dir / variant_filename(position)
        path.write_bytes(variant.image_bytes)
        paths.append(path)

    print(f"✅ [Export] Wrote {len(paths)} variant(s) to {output_dir}")
    return paths
