"""
Catalog Variant Constants

Fixed design parameters for the variant pipeline. These are tunables of the
core, not environment-driven settings (see env_config.py for those).
"""

# =============================================================================
# Canvas Geometry
# =============================================================================

CANVAS_SIZE = 1000                 # Output edge length (px), always square
PRODUCT_SCALE = 0.68               # Product fits inside 68% of the canvas edge
BORDER_THICKNESS_PERCENT = 0.07    # Border stroke = 7% of the canvas edge

# =============================================================================
# Encoding
# =============================================================================

MAX_FILE_SIZE_KB = 200             # Target size per variant
JPEG_INITIAL_QUALITY = 0.92
JPEG_MIN_QUALITY = 0.10
JPEG_QUALITY_STEP = 0.10

# base64 expands binary data by 4/3
BASE64_EXPANSION = 4 / 3

# =============================================================================
# Variants
# =============================================================================

ALLOWED_VARIANT_COUNTS = (1, 3, 5, 10)
DEFAULT_VARIANT_COUNT = 3

VARIANT_MIME_TYPE = "image/jpeg"
VARIANT_FILENAME_PATTERN = "meesho_variant_{number}.jpg"

# Upload limit shown to users (advisory)
MAX_UPLOAD_MB = 5

# =============================================================================
# Palettes
# =============================================================================

BACKGROUND_COLORS = [
    "#ff477e", "#ff5c8a", "#ff7096", "#ff85a1", "#ff99ac", "#f9bcad",
    "#f8ad9d", "#f4978e", "#f08080", "#ee6055", "#606c38", "#283618",
    "#dda15e", "#bc6c25", "#003049", "#d62828", "#f77f00", "#fcbf49",
    "#eae2b7", "#2a9d8f", "#e9c46a", "#f4a261", "#e76f51", "#264653",
]

BORDER_COLORS = [
    "#ffffff", "#000000", "#ffeb3b", "#ff5722", "#4caf50", "#2196f3",
    "#9c27b0", "#795548", "#607d8b", "#e91e63",
]
