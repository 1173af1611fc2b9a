"""
Tests for the release index client.
"""

import json
from unittest.mock import patch

import pytest
import requests

from nodespark.core.remote_fetcher import (
    DEFAULT_TIMEOUT,
    FetchError,
    NotFoundError,
    ParseError,
    RemoteFetcher,
    USER_AGENT,
    parse_index,
)


@pytest.fixture
def fetcher():
    return RemoteFetcher("https://example.test/dist/")


@pytest.fixture
def mock_get():
    with patch("nodespark.core.remote_fetcher.requests.get") as mocked:
        yield mocked


class TestParseIndex:
    """Tests for parse_index."""

    def test_strict_decode(self, sample_index):
        releases = parse_index(json.dumps(sample_index).encode())
        assert [r.version for r in releases] == ["v21.6.1", "v20.11.0", "v18.19.0"]
        assert releases[1].lts.codename == "Iron"
        assert releases[0].modules == "120"

    def test_lenient_fallback_keeps_usable_entries(self):
        body = json.dumps([
            {"version": "v1.0.0", "files": "not-a-list", "lts": False},
            {"version": "v2.0.0", "npm": 7, "files": ["linux-x64", 5]},
            {"no_version": True},
        ]).encode()
        releases = parse_index(body)
        assert [r.version for r in releases] == ["v1.0.0", "v2.0.0"]
        assert releases[0].files == ()
        assert releases[1].files == ("linux-x64",)
        assert releases[1].npm == "7"

    def test_empty_body(self):
        with pytest.raises(ParseError):
            parse_index(b"")

    def test_invalid_json(self, tmp_path, monkeypatch):
        monkeypatch.setattr("tempfile.tempdir", str(tmp_path))
        with pytest.raises(ParseError):
            parse_index(b"<html>not json</html>")
        assert (tmp_path / "node_versions_response.json").exists()

    def test_top_level_must_be_array(self, tmp_path, monkeypatch):
        monkeypatch.setattr("tempfile.tempdir", str(tmp_path))
        with pytest.raises(ParseError):
            parse_index(b'{"version": "v1.0.0"}')

    def test_no_usable_entries(self, tmp_path, monkeypatch):
        monkeypatch.setattr("tempfile.tempdir", str(tmp_path))
        with pytest.raises(ParseError):
            parse_index(b'[{"version": 1}, "x"]')

    def test_empty_array(self):
        assert parse_index(b"[]") == []


class TestFetchReleases:
    """Tests for RemoteFetcher.fetch_releases."""

    def test_request_parameters(self, fetcher, mock_get, sample_index, response_factory):
        mock_get.return_value = response_factory(content=json.dumps(sample_index).encode())
        fetcher.fetch_releases()
        mock_get.assert_called_once_with(
            "https://example.test/dist/index.json",
            headers={"User-Agent": USER_AGENT},
            timeout=DEFAULT_TIMEOUT,
        )

    def test_sorted_newest_first(self, fetcher, mock_get, response_factory):
        body = json.dumps([{"version": v} for v in ("v9.0.0", "v10.0.0", "v0.12.18")]).encode()
        mock_get.return_value = response_factory(content=body)
        assert [r.version for r in fetcher.fetch_releases()] == ["v10.0.0", "v9.0.0", "v0.12.18"]

    def test_memory_cache(self, fetcher, mock_get, sample_index, response_factory):
        mock_get.return_value = response_factory(content=json.dumps(sample_index).encode())
        fetcher.fetch_releases()
        fetcher.fetch_releases()
        assert mock_get.call_count == 1
        fetcher.fetch_releases(use_cache=False)
        assert mock_get.call_count == 2

    def test_non_200_is_fetch_error(self, fetcher, mock_get, response_factory):
        mock_get.return_value = response_factory(status_code=503)
        with pytest.raises(FetchError, match="503"):
            fetcher.fetch_releases()

    def test_network_error_is_fetch_error(self, fetcher, mock_get):
        mock_get.side_effect = requests.ConnectionError("unreachable")
        with pytest.raises(FetchError):
            fetcher.fetch_releases()

    def test_timeout_is_fetch_error(self, fetcher, mock_get):
        mock_get.side_effect = requests.Timeout("slow")
        with pytest.raises(FetchError):
            fetcher.fetch_releases()


class TestResolve:
    """Tests for RemoteFetcher.resolve."""

    @pytest.fixture(autouse=True)
    def index(self, mock_get, sample_index, response_factory):
        mock_get.return_value = response_factory(content=json.dumps(sample_index).encode())

    def test_latest(self, fetcher):
        assert fetcher.resolve("latest").version == "v21.6.1"

    def test_lts_is_newest_lts(self, fetcher):
        assert fetcher.resolve("lts").version == "v20.11.0"

    def test_keywords_are_case_insensitive(self, fetcher):
        assert fetcher.resolve("LTS").version == "v20.11.0"

    def test_exact_with_and_without_prefix(self, fetcher):
        assert fetcher.resolve("18.19.0").version == "v18.19.0"
        assert fetcher.resolve("v18.19.0").version == "v18.19.0"

    def test_unknown_version(self, fetcher):
        with pytest.raises(NotFoundError):
            fetcher.resolve("99.0.0")

    def test_partial_version_is_not_matched(self, fetcher):
        with pytest.raises(NotFoundError):
            fetcher.resolve("20")

    def test_lts_without_lts_entries(self, mock_get, response_factory):
        mock_get.return_value = response_factory(content=b'[{"version": "v1.0.0", "lts": false}]')
        with pytest.raises(NotFoundError):
            RemoteFetcher().resolve("lts")

    def test_latest_on_empty_index(self, mock_get, response_factory):
        mock_get.return_value = response_factory(content=b"[]")
        with pytest.raises(NotFoundError):
            RemoteFetcher().resolve("latest")

    def test_list_versions_lts_only(self, fetcher):
        assert [r.version for r in fetcher.list_versions(lts_only=True)] == ["v20.11.0", "v18.19.0"]
