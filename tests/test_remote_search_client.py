# tests/test_remote_search_client.py

"""Tests for the remote search bridge client."""

import json
import unittest
from typing import Any
from unittest.mock import MagicMock, patch

from curl_cffi.requests import RequestsError

from src.services.exceptions import RemoteError, RemoteUnavailable
from src.services.remote_search_client import (
    RemoteSearchClient,
    SearchOptions,
)


def _response(status: int, body: Any = None, text: str = "") -> MagicMock:
    """Build a fake curl_cffi response."""
    resp = MagicMock()
    resp.status_code = status
    if body is None:
        resp.json.side_effect = json.JSONDecodeError("bad", text, 0)
    else:
        resp.json.return_value = body
    resp.text = text or json.dumps(body)
    return resp


class TestSearchOptions(unittest.TestCase):
    """SearchOptions validation and payload building."""

    def test_payload_maps_identity_field(self) -> None:
        """The canonical id is requested from the index as _id."""
        options = SearchOptions(
            limit=20,
            fields_to_return=["id", "name", "sku"],
            fields_to_highlight=["name", "sku"],
        )
        payload = options.to_payload("amox")
        self.assertEqual(payload["q"], "amox")
        self.assertEqual(payload["limit"], 20)
        self.assertEqual(
            payload["attributesToRetrieve"], ["_id", "name", "sku"]
        )
        self.assertEqual(payload["attributesToHighlight"], ["name", "sku"])

    def test_minimal_payload(self) -> None:
        """Without field lists only q and limit are sent."""
        payload = SearchOptions(limit=1).to_payload("")
        self.assertEqual(payload, {"q": "", "limit": 1})

    def test_invalid_limit_rejected(self) -> None:
        """A non-positive or non-int limit is a programmer error."""
        for limit in (0, -3, True, "20"):
            with self.subTest(limit=limit):
                with self.assertRaises(ValueError):
                    SearchOptions(limit=limit)  # type: ignore[arg-type]


class TestRemoteSearchClient(unittest.TestCase):
    """RemoteSearchClient.query error classification."""

    def setUp(self) -> None:
        self.client = RemoteSearchClient(
            base_url="http://bridge.local/",
            api_key="secret",
            timeout=1.0,
        )
        self.client.session = MagicMock()
        self.options = SearchOptions(limit=20)

    def test_posts_to_index_endpoint(self) -> None:
        """The request targets the index search URL with auth."""
        self.client.session.post.return_value = _response(
            200, {"hits": [{"_id": "1"}]},
        )
        hits = self.client.query("amox", self.options)

        self.assertEqual(hits, [{"_id": "1"}])
        args, kwargs = self.client.session.post.call_args
        self.assertEqual(
            args[0], "http://bridge.local/indexes/products/search"
        )
        self.assertEqual(
            kwargs["headers"]["Authorization"], "Bearer secret"
        )
        self.assertEqual(kwargs["json"]["q"], "amox")
        self.assertEqual(kwargs["timeout"], 1.0)

    def test_list_body_accepted(self) -> None:
        """A bare list body is treated as the hit list."""
        self.client.session.post.return_value = _response(
            200, [{"_id": "1"}, "junk", {"_id": "2"}],
        )
        hits = self.client.query("", self.options)
        self.assertEqual([h["_id"] for h in hits], ["1", "2"])

    def test_session_has_no_browser_fingerprint(self) -> None:
        """The bridge session is a plain JSON client."""
        with patch(
            "src.services.remote_search_client.curl_requests.Session"
        ) as mock_session:
            RemoteSearchClient(base_url="http://bridge.local")
        mock_session.assert_called_once_with()

    def test_no_bridge_configured(self) -> None:
        """An empty base URL means the bridge is unavailable."""
        client = RemoteSearchClient(base_url="")
        with self.assertRaises(RemoteUnavailable):
            client.query("amox", self.options)

    def test_transport_error_is_unavailable(self) -> None:
        """Connection failures raise RemoteUnavailable."""
        self.client.session.post.side_effect = RequestsError(
            "Failed to connect",
        )
        with self.assertRaises(RemoteUnavailable):
            self.client.query("amox", self.options)

    def test_gateway_status_is_unavailable(self) -> None:
        """502/503/504 mean the bridge cannot reach the index."""
        for status in (502, 503, 504):
            with self.subTest(status=status):
                self.client.session.post.return_value = _response(
                    status, {"message": "upstream down"},
                )
                with self.assertRaises(RemoteUnavailable):
                    self.client.query("amox", self.options)

    def test_client_error_is_remote_error(self) -> None:
        """Other non-2xx answers raise RemoteError with the status."""
        self.client.session.post.return_value = _response(
            400, {"message": "Invalid filter"},
        )
        with self.assertRaises(RemoteError) as ctx:
            self.client.query("amox", self.options)
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertIn("Invalid filter", str(ctx.exception))

    def test_malformed_json_is_remote_error(self) -> None:
        """A 200 with an unparseable body is a RemoteError."""
        self.client.session.post.return_value = _response(
            200, None, text="<html>",
        )
        with self.assertRaises(RemoteError):
            self.client.query("amox", self.options)

    def test_error_payload_is_remote_error(self) -> None:
        """A 200 carrying an error object is a RemoteError."""
        self.client.session.post.return_value = _response(
            200, {"error": "index_not_found"},
        )
        with self.assertRaises(RemoteError):
            self.client.query("amox", self.options)

    def test_empty_term_allowed(self) -> None:
        """An empty term is a valid health-check query."""
        self.client.session.post.return_value = _response(
            200, {"hits": []},
        )
        self.assertEqual(
            self.client.query("", SearchOptions(limit=1)), []
        )


if __name__ == "__main__":
    unittest.main()
