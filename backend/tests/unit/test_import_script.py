"""Unit tests for the translation import script."""

import json
from pathlib import Path

import pytest

from sitecms.scripts.import_translations import load_items


@pytest.mark.unit
class TestLoadItems:
    """Tests for reading the import file."""

    def test_reads_array(self, tmp_path: Path) -> None:
        path = tmp_path / "translations.json"
        items = [{"content": "Hello", "content_element": "a", "language": "b"}]
        path.write_text(json.dumps(items), encoding="utf-8")

        assert load_items(path) == items

    def test_rejects_object(self, tmp_path: Path) -> None:
        path = tmp_path / "translations.json"
        path.write_text(json.dumps({"content": "Hello"}), encoding="utf-8")

        with pytest.raises(ValueError, match="JSON array"):
            load_items(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            load_items(tmp_path / "missing.json")
