import json
import unittest

import requests

from skycache.errors import ErrorKind
from skycache.fetch_client import FetchClient, RequestDescriptor, RequestMethod, join_url


class FakeResponse:
    def __init__(self, status_code, payload=None, text=None, url="https://api.test/data/2.5/weather"):
        self.status_code = status_code
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text
        self.url = url


class FakeSession:
    """Replays scripted outcomes; an Exception instance is raised, anything else returned."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def request(self, method, url, params=None, headers=None, data=None, timeout=None):
        self.calls.append(
            {"method": method, "url": url, "params": params, "headers": headers, "data": data, "timeout": timeout}
        )
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_client(*outcomes, **kwargs):
    session = FakeSession(*outcomes)
    kwargs.setdefault("api_key", "secret-key")
    client = FetchClient("https://api.test/data/2.5/", session=session, **kwargs)
    return client, session


def weather_lookup(city="Paris", **kwargs):
    kwargs.setdefault("query_parameters", {"q": city})
    return RequestDescriptor(endpoint="weather", resource_identifier=city, **kwargs)


class TestJoinUrl(unittest.TestCase):
    def test_exactly_one_slash(self):
        self.assertEqual(join_url("https://a/b/", "/weather"), "https://a/b/weather")
        self.assertEqual(join_url("https://a/b", "weather"), "https://a/b/weather")

    def test_empty_parts(self):
        self.assertEqual(join_url("https://a/b", ""), "https://a/b")
        self.assertEqual(join_url("", "weather"), "weather")


class TestRequestBuilding(unittest.TestCase):
    def test_implicit_params_and_caller_override(self):
        client, session = make_client(FakeResponse(200, {"name": "Paris"}))
        client.request(weather_lookup(query_parameters={"q": "Paris", "units": "imperial"}))
        call = session.calls[0]
        self.assertEqual(call["method"], "GET")
        self.assertEqual(call["url"], "https://api.test/data/2.5/weather")
        self.assertEqual(call["params"], {"appid": "secret-key", "units": "imperial", "q": "Paris"})
        self.assertEqual(call["headers"]["Content-Type"], "application/json")
        self.assertIsNone(call["data"])
        self.assertEqual(call["timeout"], 15.0)

    def test_no_auth_params_when_disabled(self):
        client, session = make_client(FakeResponse(200, {}))
        client.request(RequestDescriptor(endpoint="status", include_auth=False))
        self.assertEqual(session.calls[0]["params"], {})

    def test_write_methods_send_json_body(self):
        client, session = make_client(FakeResponse(200, {"ok": True}))
        client.request(
            RequestDescriptor(
                endpoint="alerts", method=RequestMethod.POST, body={"city": "Paris"},
                headers={"X-Trace": "1"}, timeout=2.5, base_url="https://other.test",
            )
        )
        call = session.calls[0]
        self.assertEqual(call["url"], "https://other.test/alerts")
        self.assertEqual(json.loads(call["data"]), {"city": "Paris"})
        self.assertEqual(call["headers"]["X-Trace"], "1")
        self.assertEqual(call["timeout"], 2.5)

    def test_next_attempt_clones_descriptor(self):
        original = weather_lookup()
        retry = original.next_attempt()
        self.assertEqual(original.attempt, 0)
        self.assertEqual(retry.attempt, 1)
        self.assertEqual(retry.query_parameters, original.query_parameters)


class TestRetryPolicy(unittest.TestCase):
    def test_success_decodes_payload(self):
        client, _ = make_client(FakeResponse(200, {"name": "Paris"}))
        result = client.request(weather_lookup(), decoder=lambda data: data["name"])
        self.assertTrue(result.ok)
        self.assertEqual(result.value, "Paris")

    def test_empty_body_decodes_as_empty_object(self):
        client, _ = make_client(FakeResponse(204, text=""))
        result = client.request(weather_lookup())
        self.assertEqual(result.value, {})

    def test_timeouts_are_retried_then_reported_as_network(self):
        client, session = make_client(requests.Timeout("slow"), max_retries=2)
        result = client.request(weather_lookup())
        self.assertEqual(len(session.calls), 3)
        self.assertEqual(result.error.kind, ErrorKind.NETWORK)
        self.assertIn("timed out", result.error.message)

    def test_timeout_then_success(self):
        client, session = make_client(requests.Timeout("slow"), FakeResponse(200, {"name": "Paris"}))
        result = client.request(weather_lookup())
        self.assertTrue(result.ok)
        self.assertEqual(len(session.calls), 2)

    def test_server_errors_are_retried(self):
        client, session = make_client(FakeResponse(503, text="busy"), max_retries=1)
        result = client.request(weather_lookup())
        self.assertEqual(len(session.calls), 2)
        self.assertEqual(result.error.kind, ErrorKind.SERVER)
        self.assertEqual(result.error.status_code, 503)

    def test_descriptor_max_retries_overrides_client(self):
        client, session = make_client(FakeResponse(500), max_retries=5)
        client.request(weather_lookup(max_retries=0))
        self.assertEqual(len(session.calls), 1)

    def test_unexpected_exception_is_retried_as_server(self):
        client, session = make_client(RuntimeError("boom"), max_retries=1)
        result = client.request(weather_lookup())
        self.assertEqual(len(session.calls), 2)
        self.assertEqual(result.error.kind, ErrorKind.SERVER)
        self.assertIn("boom", result.error.message)

    def test_connection_error_is_not_retried(self):
        client, session = make_client(requests.ConnectionError("dns failure"), max_retries=3)
        result = client.request(weather_lookup())
        self.assertEqual(len(session.calls), 1)
        self.assertEqual(result.error.kind, ErrorKind.NETWORK)

    def test_not_found_with_identifier(self):
        client, session = make_client(FakeResponse(404, {"message": "city not found"}), max_retries=3)
        result = client.request(weather_lookup("Atlantis"))
        self.assertEqual(len(session.calls), 1)
        self.assertEqual(result.error.kind, ErrorKind.NOT_FOUND)
        self.assertEqual(result.error.identifier, "Atlantis")

    def test_not_found_without_identifier_is_server(self):
        client, _ = make_client(FakeResponse(404))
        result = client.request(RequestDescriptor(endpoint="air_pollution"))
        self.assertEqual(result.error.kind, ErrorKind.SERVER)
        self.assertEqual(result.error.status_code, 404)

    def test_unauthorized(self):
        client, session = make_client(FakeResponse(401, {"cod": 401}), max_retries=3)
        result = client.request(weather_lookup())
        self.assertEqual(len(session.calls), 1)
        self.assertEqual(result.error.kind, ErrorKind.AUTHORIZATION)

    def test_other_client_errors_are_server(self):
        client, session = make_client(FakeResponse(429, text="slow down"), max_retries=3)
        result = client.request(weather_lookup())
        self.assertEqual(len(session.calls), 1)
        self.assertEqual(result.error.kind, ErrorKind.SERVER)
        self.assertEqual(result.error.status_code, 429)

    def test_decoder_failure_is_server_and_not_retried(self):
        client, session = make_client(FakeResponse(200, {"unexpected": True}), max_retries=3)
        result = client.request(weather_lookup(), decoder=lambda data: data["name"])
        self.assertEqual(len(session.calls), 1)
        self.assertEqual(result.error.kind, ErrorKind.SERVER)
        self.assertIsInstance(result.error.cause, KeyError)

    def test_malformed_json_is_server(self):
        client, _ = make_client(FakeResponse(200, text="<html>"))
        result = client.request(weather_lookup())
        self.assertEqual(result.error.kind, ErrorKind.SERVER)


class TestFromSettings(unittest.TestCase):
    def test_reads_client_settings(self):
        class S:
            base_url = "https://api.test"
            api_key = "k"
            units = "imperial"
            request_timeout_seconds = 3.0
            max_retries = 4

        session = FakeSession(FakeResponse(200, {}))
        client = FetchClient.from_settings(S(), session=session)
        self.assertEqual(client.timeout, 3.0)
        self.assertEqual(client.max_retries, 4)
        self.assertIs(client.session, session)
        self.assertEqual(client.build_params(RequestDescriptor(endpoint="x"))["units"], "imperial")


if __name__ == "__main__":
    unittest.main()
