"""
Tests for variant export (file naming, ZIP bundle, disk output)
"""

import io
import zipfile
import pytest
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from optimizer.exporter import build_variants_zip, save_variants, variant_filename
from optimizer.variant_generator import Variant


def make_variants(n):
    return [
        Variant(
            id=f"v-1-{i}-0", index=i, image_bytes=f"jpeg-{i}".encode(),
            bg_color="#ffffff", border_color="#000000", quality=0.92
        )
        for i in range(n)
    ]


class TestFilenames:

    def test_one_based(self):
        assert variant_filename(0) == "meesho_variant_1.jpg"
        assert variant_filename(9) == "meesho_variant_10.jpg"

    def test_negative_index(self):
        with pytest.raises(ValueError):
            variant_filename(-1)


class TestZip:

    def test_entries_in_order(self):
        archive = zipfile.ZipFile(io.BytesIO(build_variants_zip(make_variants(3))))

        assert archive.namelist() == [
            "meesho_variant_1.jpg", "meesho_variant_2.jpg", "meesho_variant_3.jpg"
        ]
        assert archive.read("meesho_variant_2.jpg") == b"jpeg-1"

    def test_empty(self):
        with pytest.raises(ValueError):
            build_variants_zip([])


class TestSave:

    def test_writes_files(self, tmp_path):
        out = tmp_path / "nested" / "variants"
        paths = save_variants(make_variants(2), out)

        assert [p.name for p in paths] == ["meesho_variant_1.jpg", "meesho_variant_2.jpg"]
        assert (out / "meesho_variant_1.jpg").read_bytes() == b"jpeg-0"
