"""
Unit tests for data package loading.
"""
import json

import pytest

from discord_purge.data_package import find_index_file, load_channel_ids
from discord_purge.exceptions import DataPackageError


@pytest.fixture
def package_dir(tmp_path):
    messages = tmp_path / "messages"
    messages.mkdir()
    (messages / "index.json").write_text(
        json.dumps({"100": "Direct Message with someone#0", "200": None, "300": "general in Server"}),
        encoding='utf-8'
    )
    return tmp_path


class TestLoadChannelIds:
    """Test load_channel_ids."""

    def test_from_directory(self, package_dir):
        assert load_channel_ids(str(package_dir)) == ["100", "200", "300"]

    def test_from_index_file(self, package_dir):
        index = package_dir / "messages" / "index.json"
        assert load_channel_ids(str(index)) == ["100", "200", "300"]

    def test_missing_path(self, tmp_path):
        with pytest.raises(DataPackageError):
            load_channel_ids(str(tmp_path / "nope"))

    def test_directory_without_index(self, tmp_path):
        with pytest.raises(DataPackageError):
            find_index_file(str(tmp_path))

    def test_invalid_json(self, tmp_path):
        index = tmp_path / "index.json"
        index.write_text("{not json", encoding='utf-8')
        with pytest.raises(DataPackageError):
            load_channel_ids(str(index))

    def test_not_an_object(self, tmp_path):
        index = tmp_path / "index.json"
        index.write_text('["100", "200"]', encoding='utf-8')
        with pytest.raises(DataPackageError):
            load_channel_ids(str(index))
