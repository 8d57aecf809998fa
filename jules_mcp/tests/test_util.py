"""Tests for small helpers in jules_mcp.util."""

from __future__ import annotations

from pathlib import Path

from jules_mcp.util.env_file import EnvFile
from jules_mcp.util.text import smart_truncate


class TestSmartTruncate:
    def test_short_text_unchanged(self) -> None:
        assert smart_truncate("hello", 10) == "hello"

    def test_exact_length_unchanged(self) -> None:
        assert smart_truncate("a" * 10, 10) == "a" * 10

    def test_breaks_at_late_word_boundary(self) -> None:
        text = "the quick brown fox jumps over"
        # limit 20 -> "the quick brown fox " ; last space at 19 > 16
        assert smart_truncate(text, 20) == "the quick brown fox..."

    def test_hard_cut_when_boundary_too_early(self) -> None:
        text = "ab " + "c" * 30
        assert smart_truncate(text, 10) == "ab ccccccc..."

    def test_no_spaces(self) -> None:
        assert smart_truncate("x" * 50, 8) == "xxxxxxxx..."


class TestEnvFile:
    def test_missing_file(self, tmp_path: Path) -> None:
        env = EnvFile(tmp_path / "nope.env")
        assert env.read_all() == {}
        assert env.read("ANY") == ""

    def test_parsing(self, tmp_path: Path) -> None:
        path = tmp_path / ".env"
        path.write_text(
            "# header\n"
            "\n"
            "A=1\n"
            "export B='two'\n"
            'C="three = 3"\n'
            "garbage line\n"
        )
        assert EnvFile(path).read_all() == {"A": "1", "B": "two", "C": "three = 3"}
