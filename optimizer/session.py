"""
Studio Session - Source Photo, Cut-out and Generation Runs

Holds the state of one user working on one product photo:
- the uploaded source image
- the cut-out product (computed once per source, reused by later runs)
- the latest generation run

Loading a new source invalidates everything derived from the old one and
advances the generation epoch. A run captures the epoch when it starts and
its result is discarded if the epoch has moved on by the time it finishes.
"""

import random
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

import numpy as np

from .constants import CANVAS_SIZE
from .errors import GenerationInProgress, NoSourceImage, StaleGenerationError
from .gemini_client import remove_background_gemini
from .image_processing import (
    DrawingSurface,
    acquire_surface,
    encode_png,
    load_image,
    remove_white_background,
)
from .variant_generator import Variant, generate_variants

# (image_bytes) -> (image_bytes_on_white, metadata)
BackgroundRemover = Callable[[bytes], Tuple[bytes, dict]]


@dataclass
class GenerationRun:
    """One end-to-end execution producing a fixed-count batch of variants."""
    epoch: int
    count: int
    variants: List[Variant]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    elapsed_ms: float = 0.0

    def to_dict(self, include_data: bool = True) -> dict:
        return {
            "epoch": self.epoch,
            "count": self.count,
            "created_at": self.created_at.isoformat(),
            "elapsed_ms": self.elapsed_ms,
            "variants": [v.to_dict(include_data=include_data) for v in self.variants],
        }


class StudioSession:
    """
    Single-user working state for the variant pipeline.

    Thread-safe: state changes happen under a lock, the slow pipeline work
    (background removal, composition) runs outside it so a new upload can
    land while a run is in flight.
    """

    def __init__(
        self,
        remover: Optional[BackgroundRemover] = None,
        rng: Optional[random.Random] = None
    ):
        self._remover = remover or remove_background_gemini
        self._rng = rng or random.Random()
        self._lock = threading.Lock()

        self._epoch = 0
        self._source_bytes: Optional[bytes] = None
        self._source_size: Optional[Tuple[int, int]] = None
        self._cutout: Optional[np.ndarray] = None
        self._cutout_png: Optional[bytes] = None
        self._run: Optional[GenerationRun] = None
        self._generating = False
        self._surface: Optional[DrawingSurface] = None
        self.last_error: Optional[str] = None

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def has_source(self) -> bool:
        return self._source_bytes is not None

    @property
    def source_size(self) -> Optional[Tuple[int, int]]:
        return self._source_size

    @property
    def is_generating(self) -> bool:
        return self._generating

    @property
    def cutout_png(self) -> Optional[bytes]:
        return self._cutout_png

    @property
    def current_run(self) -> Optional[GenerationRun]:
        return self._run

    @property
    def variants(self) -> List[Variant]:
        run = self._run
        return list(run.variants) if run else []

    def find_variant(self, variant_id: str) -> Optional[Variant]:
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None

    def status(self) -> dict:
        return {
            "epoch": self._epoch,
            "has_source": self.has_source,
            "source_size": list(self._source_size) if self._source_size else None,
            "has_cutout": self._cutout is not None,
            "is_generating": self._generating,
            "variant_count": len(self.variants),
            "error": self.last_error,
        }

    # -------------------------------------------------------------------------
    # Source
    # -------------------------------------------------------------------------

    def load_source(self, image_bytes: Optional[bytes]) -> bool:
        """
        Replace the source photo.

        Empty input is a no-op. Otherwise the cut-out and all variants are
        dropped and the epoch advances, so any run still in flight will be
        discarded when it completes.

        Returns:
            True if a new source was loaded

        Raises:
            ValueError: If the bytes are not a decodable image
        """
        if not image_bytes:
            return False

        image = load_image(image_bytes)
        height, width = image.shape[:2]

        with self._lock:
            self._epoch += 1
            self._source_bytes = image_bytes
            self._source_size = (width, height)
            self._cutout = None
            self._cutout_png = None
            self._run = None
            self.last_error = None
            epoch = self._epoch

        print(f"✅ [Session] Source loaded: {width}x{height}, epoch {epoch}")
        return True

    def clear(self) -> None:
        """Forget the source and everything derived from it."""
        with self._lock:
            self._epoch += 1
            self._source_bytes = None
            self._source_size = None
            self._cutout = None
            self._cutout_png = None
            self._run = None
            self.last_error = None

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def _extract_cutout(self, source_bytes: bytes) -> np.ndarray:
        """Background removal (external model) followed by white keying."""
        print("🔵 [Session] Removing background...")
        on_white_bytes, metadata = self._remover(source_bytes)
        print(f"🔵 [Session] Background removed in {metadata.get('processing_time_ms', '?')}ms")

        return remove_white_background(load_image(on_white_bytes))

    def _ensure_surface(self) -> DrawingSurface:
        if self._surface is None:
            self._surface = acquire_surface(CANVAS_SIZE, CANVAS_SIZE, 3)
        return self._surface

    def generate(self, count: int, rng: Optional[random.Random] = None) -> GenerationRun:
        """
        Run the full pipeline for the current source.

        Args:
            count: Number of variants (one of ALLOWED_VARIANT_COUNTS)
            rng: Random source for color shuffling (defaults to the session's)

        Returns:
            The completed GenerationRun, which becomes the current run

        Raises:
            NoSourceImage: Nothing loaded yet
            GenerationInProgress: Another run is active
            StaleGenerationError: The source changed while this run was working
            CollaboratorUnavailable / ExtractionFailed: Background removal failed
            SurfaceAcquisitionFailed: Canvas could not be allocated
            ValueError: Invalid count
        """
        with self._lock:
            if self._source_bytes is None:
                raise NoSourceImage("Upload a product photo first")
            if self._generating:
                raise GenerationInProgress("A generation run is already in progress")
            self._generating = True
            epoch = self._epoch
            source_bytes = self._source_bytes
            cutout = self._cutout

        start_time = time.time()

        try:
            if cutout is None:
                cutout = self._extract_cutout(source_bytes)
                with self._lock:
                    if self._epoch != epoch:
                        raise StaleGenerationError(epoch, self._epoch)
                    self._cutout = cutout
                    self._cutout_png = encode_png(cutout)
            else:
                print("🔵 [Session] Reusing cached cut-out")

            variants = generate_variants(
                cutout,
                count,
                rng=rng or self._rng,
                surface=self._ensure_surface(),
            )

            run = GenerationRun(
                epoch=epoch,
                count=count,
                variants=variants,
                elapsed_ms=round((time.time() - start_time) * 1000, 1),
            )

            with self._lock:
                if self._epoch != epoch:
                    raise StaleGenerationError(epoch, self._epoch)
                self._run = run
                self.last_error = None

            return run

        except StaleGenerationError as e:
            print(f"⚠️ [Session] {e}")
            raise
        except Exception as e:
            with self._lock:
                if self._epoch == epoch:
                    self.last_error = str(e) or e.__class__.__name__
            print(f"❌ [Session] Generation failed: {e}")
            raise
        finally:
            with self._lock:
                self._generating = False
