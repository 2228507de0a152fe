"""
Tests for Variant Generator (batch orchestration and color pairing)

Run with:
    pytest tests/test_variant_generator.py -v
"""

import random
import pytest
import numpy as np
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from optimizer import variant_generator
from optimizer.constants import BACKGROUND_COLORS, BORDER_COLORS, VARIANT_MIME_TYPE
from optimizer.errors import SurfaceAcquisitionFailed
from optimizer.variant_generator import (
    Variant,
    generate_variants,
    make_variant_id,
    shuffle_palette,
)


class TestShufflePalette:
    """Test palette permutation"""

    def test_is_permutation(self):
        shuffled = shuffle_palette(BACKGROUND_COLORS, random.Random(1))
        assert sorted(shuffled) == sorted(BACKGROUND_COLORS)
        assert len(shuffled) == len(BACKGROUND_COLORS)

    def test_source_not_mutated(self):
        palette = ["#111111", "#222222", "#333333"]
        shuffle_palette(palette, random.Random(5))
        assert palette == ["#111111", "#222222", "#333333"]

    def test_seeded_reproducible(self):
        a = shuffle_palette(BORDER_COLORS, random.Random(9))
        b = shuffle_palette(BORDER_COLORS, random.Random(9))
        assert a == b


class TestGenerateVariants:
    """Test the N-variant batch"""

    def test_five_variants_in_order(self, cutout):
        variants = generate_variants(cutout, 5, rng=random.Random(0))

        assert len(variants) == 5
        assert [v.index for v in variants] == [0, 1, 2, 3, 4]
        assert len({v.id for v in variants}) == 5
        for v in variants:
            assert v.mime_type == VARIANT_MIME_TYPE
            assert v.image_bytes[:3] == b"\xff\xd8\xff"
            assert v.bg_color in BACKGROUND_COLORS
            assert v.border_color in BORDER_COLORS

    def test_ten_variants_unique_colors(self, cutout):
        """10 <= both palette sizes, so no color repeats within the batch"""
        variants = generate_variants(cutout, 10, rng=random.Random(0))

        assert len(variants) == 10
        assert len({v.bg_color for v in variants}) == 10
        assert len({v.border_color for v in variants}) == 10

    def test_palette_reused_modulo(self, cutout):
        variants = generate_variants(
            cutout, 5,
            bg_palette=["#ff0000", "#00ff00"],
            border_palette=["#0000ff"],
            rng=random.Random(3)
        )

        bgs = [v.bg_color for v in variants]
        assert bgs[0] == bgs[2] == bgs[4]
        assert bgs[1] == bgs[3]
        assert bgs[0] != bgs[1]
        assert all(v.border_color == "#0000ff" for v in variants)

    def test_same_pair_allowed(self, cutout):
        variants = generate_variants(
            cutout, 1, bg_palette=["#ffffff"], border_palette=["#ffffff"], rng=random.Random(0)
        )
        assert variants[0].bg_color == variants[0].border_color == "#ffffff"

    def test_seed_reproduces_colors_and_bytes(self, cutout):
        a = generate_variants(cutout, 3, rng=random.Random(42))
        b = generate_variants(cutout, 3, rng=random.Random(42))

        assert [(v.bg_color, v.border_color) for v in a] == [(v.bg_color, v.border_color) for v in b]
        assert [v.image_bytes for v in a] == [v.image_bytes for v in b]

    def test_ids_unique_across_runs(self, cutout):
        a = generate_variants(cutout, 1, rng=random.Random(0))
        b = generate_variants(cutout, 1, rng=random.Random(0))
        assert a[0].id != b[0].id

    @pytest.mark.parametrize("count", [0, 2, 4, 11, -1])
    def test_invalid_count(self, cutout, count):
        with pytest.raises(ValueError):
            generate_variants(cutout, count)

    def test_empty_palette(self, cutout):
        with pytest.raises(ValueError):
            generate_variants(cutout, 1, bg_palette=[])
        with pytest.raises(ValueError):
            generate_variants(cutout, 1, border_palette=[])

    def test_empty_product(self):
        with pytest.raises(ValueError):
            generate_variants(np.zeros((0, 0, 4), dtype=np.uint8), 1)

    def test_failure_aborts_batch(self, cutout, monkeypatch):
        """A failing pass raises; no partial list comes back"""
        real_compose = variant_generator.compose_variant
        calls = {"n": 0}

        def flaky_compose(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 3:
                raise SurfaceAcquisitionFailed("surface lost")
            return real_compose(*args, **kwargs)

        monkeypatch.setattr(variant_generator, "compose_variant", flaky_compose)
        with pytest.raises(SurfaceAcquisitionFailed):
            generate_variants(cutout, 5, rng=random.Random(0))


class TestVariant:
    """Test Variant helpers"""

    def test_id_format(self):
        assert make_variant_id(7, 2, 1700000000000) == "v-7-2-1700000000000"

    def test_serialization(self):
        variant = Variant(
            id="v-1-0-1", index=0, image_bytes=b"\xff\xd8\xffabc",
            bg_color="#ff477e", border_color="#ffeb3b", quality=0.92
        )
        data = variant.to_dict()

        assert data["filename"] == "meesho_variant_1.jpg"
        assert data["size_bytes"] == 6
        assert data["data_url"].startswith("data:image/jpeg;base64,")
        assert "data_url" not in variant.to_dict(include_data=False)
