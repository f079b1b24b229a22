"""Tests for petmatch/store/es_client.py."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from petmatch.store.es_client import (
    MATCH_INDEX_MAPPING,
    REPORT_INDEX_MAPPING,
    create_es_client,
    ensure_indices,
    wait_for_elasticsearch,
)


class TestIndexMappings:
    """Tests for index mapping definitions."""

    def test_report_location_is_geo_point(self) -> None:
        """Report locations support geo_distance queries."""
        props = REPORT_INDEX_MAPPING["mappings"]["properties"]
        assert props["location"]["type"] == "geo_point"
        assert props["kind"]["type"] == "keyword"

    def test_match_keys_are_keywords(self) -> None:
        """Match filters use exact keyword fields."""
        props = MATCH_INDEX_MAPPING["mappings"]["properties"]
        for field in ("match_id", "owner_id", "status", "spotted_report_id", "lost_pet_id"):
            assert props[field]["type"] == "keyword"


class TestEnsureIndices:
    """Tests for idempotent index creation."""

    def test_creates_missing(self, mock_es_client) -> None:
        """Both indices are created when missing."""
        ensure_indices(mock_es_client, "r", "m")
        created = [c.kwargs["index"] for c in mock_es_client.indices.create.call_args_list]
        assert created == ["r", "m"]

    def test_keeps_existing(self, mock_es_client) -> None:
        """Existing indices are never dropped or recreated."""
        mock_es_client.indices.exists.return_value = True
        ensure_indices(mock_es_client, "r", "m")
        mock_es_client.indices.create.assert_not_called()
        mock_es_client.indices.delete.assert_not_called()


class TestClient:
    """Tests for connection helpers."""

    @patch("petmatch.store.es_client.Elasticsearch")
    def test_create_client(self, mock_cls: MagicMock) -> None:
        """A reachable cluster yields a client."""
        mock_cls.return_value.ping.return_value = True
        assert create_es_client("http://es:9200") is mock_cls.return_value

    @patch("petmatch.store.es_client.Elasticsearch")
    def test_create_client_unreachable(self, mock_cls: MagicMock) -> None:
        """An unreachable cluster raises ConnectionError."""
        mock_cls.return_value.ping.return_value = False
        with pytest.raises(ConnectionError):
            create_es_client("http://es:9200")

    @patch("petmatch.store.es_client.time.sleep")
    @patch("petmatch.store.es_client.Elasticsearch")
    def test_wait_retries(self, mock_cls: MagicMock, mock_sleep: MagicMock) -> None:
        """Pings are retried until the cluster answers."""
        mock_cls.return_value.ping.side_effect = [Exception("refused"), False, True]
        assert wait_for_elasticsearch("http://es:9200", timeout=60, interval=0.1)
        assert mock_sleep.call_count == 2
