"""
Tests for the Recall Store CLI.
"""

from pathlib import Path

from src.recall.cli import RecallCLI


def test_hash_command(tmp_path: Path, png_a):
    path = tmp_path / "a.png"
    path.write_bytes(png_a)

    result = RecallCLI().hash(str(path))

    assert len(result["fingerprint"]) == 49


def test_compare_command(tmp_path: Path, png_a, png_b):
    a = tmp_path / "a.png"
    b = tmp_path / "b.png"
    a.write_bytes(png_a)
    b.write_bytes(png_b)

    same = RecallCLI().compare(str(a), str(a))
    different = RecallCLI().compare(str(a), str(b))

    assert same["hamming_distance"] == 0
    assert same["is_duplicate"] is True
    assert different["is_duplicate"] is False
