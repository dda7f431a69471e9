"""Tests for dcsmax.host.toggles."""

from __future__ import annotations

from pathlib import Path

from dcsmax.host.toggles import (
    CATEGORY_TOGGLES,
    FILE_HEADER,
    ToggleFile,
    apply_toggles,
    new_toggle_file,
    parse_toggles,
)

ALL_CATEGORIES = "".join(f"{cat}\t+\t# {desc}\n" for cat, desc in CATEGORY_TOGGLES.items())


class TestParse:
    """Tests for reading toggle states."""

    def test_single_toggle(self) -> None:
        assert parse_toggles("R001\t+\t# comment\n") == {"R001": True}

    def test_disabled_and_spaces(self) -> None:
        text = "S004 - # Stop Xbox services\nT_12\t+\t# task\n"
        assert parse_toggles(text) == {"S004": False, "T_12": True}

    def test_non_matching_lines_ignored(self) -> None:
        text = (
            "# header\n"
            "\n"
            "R001 +\n"  # no comment
            "r002\t+\t# lowercase id\n"
            "R003\t*\t# bad sign\n"
            "R004\t+\t# ok\n"
        )
        assert parse_toggles(text) == {"R004": True}


class TestApply:
    """Rewrites flip signs in place and keep every other byte."""

    def test_flip_single_line(self) -> None:
        out = apply_toggles("R001\t+\t# comment\n" + ALL_CATEGORIES, {"R001": False})
        assert out == "R001\t-\t# comment\n" + ALL_CATEGORIES

    def test_other_lines_byte_identical(self) -> None:
        original = (
            "# DCS-Max config\r\n"
            "R001\t+\t# Disable Game DVR\r\n"
            "  free text ; stays\r\n"
            "S004    -   # keep spacing\r\n"
        ) + ALL_CATEGORIES.replace("\n", "\r\n")
        out = apply_toggles(original, {"R001": False, "S004": True})

        assert out == original.replace("R001\t+", "R001\t-").replace("S004    -", "S004    +")

    def test_ids_not_in_config_unchanged(self) -> None:
        text = "R001\t+\t# a\nR002\t-\t# b\n" + ALL_CATEGORIES
        assert apply_toggles(text, {}) == text

    def test_missing_categories_appended(self) -> None:
        out = apply_toggles("R001\t+\t# a\n", {"CACHE_CLEANUP": False})
        lines = out.splitlines()
        assert lines[0] == "R001\t+\t# a"
        assert [line.split("\t")[0] for line in lines[1:]] == list(CATEGORY_TOGGLES)
        assert "CACHE_CLEANUP\t-\t# " in out

    def test_appends_after_unterminated_last_line(self) -> None:
        out = apply_toggles("R001\t+\t# a", {})
        assert out.startswith("R001\t+\t# a\n")

    def test_appended_lines_follow_crlf(self) -> None:
        out = apply_toggles("R001\t+\t# a\r\n", {})
        assert out.count("\r\n") == 1 + len(CATEGORY_TOGGLES)


class TestToggleFile:
    """Tests for the file wrapper."""

    def test_missing_file_reads_empty(self, tmp_path: Path) -> None:
        toggles = ToggleFile(tmp_path / "optimization-config.txt")
        assert toggles.exists is False
        assert toggles.read() == {}

    def test_write_creates_file(self, tmp_path: Path) -> None:
        toggles = ToggleFile(tmp_path / "optimization-config.txt")
        toggles.write({"R001": False})

        text = toggles.path.read_text(encoding="utf-8")
        assert text.startswith(FILE_HEADER)
        assert toggles.read()["R001"] is False
        assert all(toggles.read()[cat] for cat in CATEGORY_TOGGLES)

    def test_new_file_honours_category_states(self) -> None:
        text = new_toggle_file({"TASKS_OPTIMIZATION": False})
        assert parse_toggles(text)["TASKS_OPTIMIZATION"] is False

    def test_write_preserves_existing_bytes(self, tmp_path: Path) -> None:
        path = tmp_path / "optimization-config.txt"
        original = "# keep me\nR001\t+\t# comment\n" + ALL_CATEGORIES
        path.write_bytes(original.encode("utf-8"))

        ToggleFile(path).write({"R001": False})

        assert path.read_bytes() == original.replace("R001\t+", "R001\t-").encode("utf-8")
