import unittest
from unittest.mock import MagicMock, patch

import requests

from config import Configuration
from models import Coordinate
from services.places_provider import GooglePlacesClient, PlacesProviderError


ORIGIN = Coordinate(lat=42.4304, lng=19.2594)


def _response(payload=None, status_code=200, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 400
    resp.text = text
    resp.json.return_value = payload
    return resp


class TestGooglePlacesClient(unittest.TestCase):
    def setUp(self):
        self.cfg = Configuration(places_api_key="test-key", places_base_url="https://places.example.com/api/place/")
        self.session = MagicMock()
        self.client = GooglePlacesClient(self.cfg, session=self.session)

    def test_ok_status_returns_results_and_sends_params(self):
        self.session.get.return_value = _response({"status": "OK", "results": [{"place_id": "a"}]})

        results = self.client.search(ORIGIN, 5000, "en", "museum", "castle")

        self.assertEqual(results, [{"place_id": "a"}])
        args, kwargs = self.session.get.call_args
        self.assertEqual(args[0], "https://places.example.com/api/place/nearbysearch/json")
        params = kwargs["params"]
        self.assertEqual(params["location"], "42.4304,19.2594")
        self.assertEqual(params["radius"], 5000)
        self.assertEqual(params["type"], "museum")
        self.assertEqual(params["language"], "en")
        self.assertEqual(params["keyword"], "castle")
        self.assertEqual(params["key"], "test-key")

    def test_keyword_is_omitted_when_empty(self):
        self.session.get.return_value = _response({"status": "OK", "results": []})
        self.client.search(ORIGIN, 5000, "en", "park")
        params = self.session.get.call_args.kwargs["params"]
        self.assertNotIn("keyword", params)

    def test_zero_results_is_empty_list(self):
        self.session.get.return_value = _response({"status": "ZERO_RESULTS", "results": []})
        self.assertEqual(self.client.search(ORIGIN, 5000, "en", "zoo"), [])

    def test_error_status_raises_with_status(self):
        self.session.get.return_value = _response({"status": "REQUEST_DENIED", "error_message": "bad key"})
        with self.assertRaises(PlacesProviderError) as ctx:
            self.client.search(ORIGIN, 5000, "en", "museum")
        self.assertEqual(ctx.exception.status, "REQUEST_DENIED")
        self.assertIn("bad key", str(ctx.exception))

    @patch("services.places_provider.time.sleep")
    def test_server_errors_are_retried_then_raised(self, mock_sleep):
        self.session.get.return_value = _response(status_code=503, text="unavailable")
        with self.assertRaises(PlacesProviderError):
            self.client.search(ORIGIN, 5000, "en", "museum")
        self.assertEqual(self.session.get.call_count, 4)
        self.assertEqual(mock_sleep.call_count, 3)

    @patch("services.places_provider.time.sleep")
    def test_network_error_recovers_on_retry(self, mock_sleep):
        self.session.get.side_effect = [
            requests.ConnectionError("reset"),
            _response({"status": "OK", "results": [{"place_id": "b"}]}),
        ]
        self.assertEqual(self.client.search(ORIGIN, 5000, "en", "park"), [{"place_id": "b"}])
        mock_sleep.assert_called_once()

    def test_client_error_is_not_retried(self):
        self.session.get.return_value = _response(status_code=400, text="bad request")
        with self.assertRaises(PlacesProviderError):
            self.client.search(ORIGIN, 5000, "en", "park")
        self.assertEqual(self.session.get.call_count, 1)

    def test_invalid_json_raises(self):
        resp = _response(status_code=200)
        resp.json.side_effect = ValueError("no json")
        self.session.get.return_value = resp
        with self.assertRaises(PlacesProviderError):
            self.client.search(ORIGIN, 5000, "en", "park")


if __name__ == "__main__":
    unittest.main()
