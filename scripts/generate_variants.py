#!/usr/bin/env python3
"""
Generate catalog variants from one product photo.

Environment variables:
    GEMINI_API_KEY: Required unless --skip-removal is given

Usage:
    python3 scripts/generate_variants.py product.jpg
    python3 scripts/generate_variants.py product.jpg --count 10 --out variants/
    python3 scripts/generate_variants.py on_white.png --skip-removal --seed 7
"""

import argparse
import random
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

from optimizer.constants import ALLOWED_VARIANT_COUNTS, DEFAULT_VARIANT_COUNT
from optimizer.errors import OptimizerError
from optimizer.exporter import save_variants
from optimizer.session import StudioSession


def _passthrough_remover(image_bytes: bytes):
    """Treat the input as already isolated on white."""
    return image_bytes, {"processing_time_ms": 0.0}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Generate catalog-ready product variants")
    parser.add_argument("input", type=Path, help="Product photo (JPG/PNG/WebP)")
    parser.add_argument(
        "--count", type=int, default=DEFAULT_VARIANT_COUNT, choices=ALLOWED_VARIANT_COUNTS,
        help=f"Number of variants (default: {DEFAULT_VARIANT_COUNT})"
    )
    parser.add_argument("--out", type=Path, default=Path("variants"), help="Output directory")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible colors")
    parser.add_argument(
        "--skip-removal", action="store_true",
        help="Skip background removal (input is already on white)"
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    if not args.input.is_file():
        print(f"❌ Input not found: {args.input}")
        return 1

    session = StudioSession(
        remover=_passthrough_remover if args.skip_removal else None,
        rng=random.Random(args.seed) if args.seed is not None else None
    )

    try:
        if not session.load_source(args.input.read_bytes()):
            print(f"❌ Input is empty: {args.input}")
            return 1
        run = session.generate(args.count)
    except (OptimizerError, ValueError) as e:
        print(f"❌ Generation failed: {e}")
        return 1

    save_variants(run.variants, args.out)

    print()
    for variant in run.variants:
        budget = "" if variant.within_budget else "  (over budget)"
        print(f"   {variant.filename}: bg {variant.bg_color}, border {variant.border_color}, "
              f"{variant.size_bytes / 1024:.0f}KB @ q{variant.quality:.2f}{budget}")

    return 0


if __name__ == "__main__":
    print("=" * 60)
    print("🛍️  Catalog Variant Generator")
    print("=" * 60)
    print()

    sys.exit(main())
