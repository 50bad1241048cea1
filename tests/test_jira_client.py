import json
import logging
import unittest
from unittest.mock import Mock

import requests

from app.schemas import JiraConfig
from app.services.errors import CredentialsRejected, UpstreamUnavailable

logging.disable(logging.CRITICAL)


def _response(status_code=200, payload=None, text=None):
    resp = Mock()
    resp.status_code = status_code
    resp.text = text if text is not None else ("" if payload is None else json.dumps(payload))
    if payload is not None:
        resp.json = Mock(return_value=payload)
    else:
        resp.json = Mock(side_effect=ValueError("no json"))
    return resp


def _client(*responses, **kwargs):
    from app.services.jira_client import JiraClient

    session = Mock()
    session.headers = {}
    session.request = Mock(side_effect=list(responses))
    client = JiraClient(
        "https://example.atlassian.net/",
        "me@example.com",
        "token",
        timeout=5,
        page_size=2,
        session=session,
        **kwargs,
    )
    return client, session


def _all_issues(client, jql="x"):
    return [issue for batch in client.iter_issue_batches(jql) for issue in batch]


class JiraClientInitTests(unittest.TestCase):
    def test_configures_basic_auth_and_headers(self):
        client, session = _client()

        self.assertEqual(client.base_url, "https://example.atlassian.net")
        self.assertIsInstance(session.auth, requests.auth.HTTPBasicAuth)
        self.assertEqual(session.auth.username, "me@example.com")
        self.assertEqual(session.auth.password, "token")
        self.assertEqual(session.headers["Accept"], "application/json")

    def test_from_config(self):
        from app.services.jira_client import JiraClient

        config = JiraConfig(
            base_url="https://example.atlassian.net",
            email="me@example.com",
            api_token="token",
            project_key="PROJ",
        )
        client = JiraClient.from_config(config, session=Mock(headers={}))
        self.assertEqual(client.base_url, "https://example.atlassian.net")


class JiraClientSearchTests(unittest.TestCase):
    def test_follows_next_page_token_until_last_page(self):
        client, session = _client(
            _response(payload={"issues": [{"id": "1"}, {"id": "2"}], "nextPageToken": "t1", "isLast": False}),
            _response(payload={"issues": [{"id": "3"}], "isLast": True}),
        )

        batches = list(client.iter_issue_batches('project = "PROJ"'))

        self.assertEqual(batches, [[{"id": "1"}, {"id": "2"}], [{"id": "3"}]])
        self.assertEqual(session.request.call_count, 2)

        method, url = session.request.call_args_list[0].args
        first_kwargs = session.request.call_args_list[0].kwargs
        self.assertEqual(method, "POST")
        self.assertEqual(url, "https://example.atlassian.net/rest/api/3/search/jql")
        self.assertEqual(first_kwargs["timeout"], 5)
        self.assertEqual(
            first_kwargs["json"],
            {"jql": 'project = "PROJ"', "maxResults": 2, "fields": ["*all"]},
        )
        second_body = session.request.call_args_list[1].kwargs["json"]
        self.assertEqual(second_body["nextPageToken"], "t1")

    def test_stops_without_token(self):
        client, session = _client(_response(payload={"issues": [{"id": "1"}]}))

        self.assertEqual(_all_issues(client), [{"id": "1"}])
        self.assertEqual(session.request.call_count, 1)

    def test_empty_page_does_not_end_search(self):
        client, session = _client(
            _response(payload={"issues": [], "nextPageToken": "t1", "isLast": False}),
            _response(payload={"issues": [{"id": "9"}], "isLast": True}),
        )

        self.assertEqual(list(client.iter_issue_batches("x")), [[{"id": "9"}]])
        self.assertEqual(session.request.call_count, 2)
        self.assertEqual(session.request.call_args_list[1].kwargs["json"]["nextPageToken"], "t1")

    def test_empty_last_page(self):
        client, session = _client(_response(payload={"issues": [], "isLast": True}))

        self.assertEqual(_all_issues(client), [])
        self.assertEqual(session.request.call_count, 1)

    def test_stops_when_token_repeats(self):
        client, session = _client(
            _response(payload={"issues": [{"id": "1"}], "nextPageToken": "t", "isLast": False}),
            _response(payload={"issues": [{"id": "2"}], "nextPageToken": "t", "isLast": False}),
        )

        self.assertEqual(_all_issues(client), [{"id": "1"}, {"id": "2"}])
        self.assertEqual(session.request.call_count, 2)

    def test_failure_on_later_page_raises_after_earlier_batches(self):
        client, _ = _client(
            _response(payload={"issues": [{"id": "1"}], "nextPageToken": "t1", "isLast": False}),
            _response(status_code=503, text="maintenance"),
        )

        batches = client.iter_issue_batches("x")
        self.assertEqual(next(batches), [{"id": "1"}])
        with self.assertRaises(UpstreamUnavailable) as ctx:
            next(batches)
        self.assertEqual(ctx.exception.status, 503)


class JiraClientErrorTests(unittest.TestCase):
    def test_unauthorized_is_credentials_rejected(self):
        for status in (401, 403):
            with self.subTest(status=status):
                client, _ = _client(_response(status_code=status, text="denied"))
                with self.assertRaises(CredentialsRejected) as ctx:
                    client.get_fields()
                self.assertEqual(ctx.exception.reason, "credentials_rejected")
                self.assertEqual(ctx.exception.status, status)

    def test_server_error_is_upstream_unavailable(self):
        client, _ = _client(_response(status_code=500, text="boom"))
        with self.assertRaises(UpstreamUnavailable) as ctx:
            _all_issues(client)
        self.assertNotIsInstance(ctx.exception, CredentialsRejected)
        self.assertEqual(ctx.exception.reason, "upstream_unavailable")

    def test_timeout_is_upstream_unavailable(self):
        client, _ = _client(requests.Timeout("slow"))
        with self.assertRaises(UpstreamUnavailable) as ctx:
            _all_issues(client)
        self.assertIn("timed out", str(ctx.exception))

    def test_connection_error_is_upstream_unavailable(self):
        client, _ = _client(requests.ConnectionError("refused"))
        with self.assertRaises(UpstreamUnavailable):
            client.get_fields()

    def test_non_json_body_is_upstream_unavailable(self):
        client, _ = _client(_response(status_code=200, text="<html>login</html>"))
        with self.assertRaises(UpstreamUnavailable):
            client.get_fields()


class JiraClientMiscTests(unittest.TestCase):
    def test_get_fields(self):
        fields = [{"id": "summary", "name": "Summary"}, {"id": "customfield_1", "name": "Points"}]
        client, session = _client(_response(payload=fields))

        self.assertEqual(client.get_fields(), fields)
        method, url = session.request.call_args.args
        self.assertEqual((method, url), ("GET", "https://example.atlassian.net/rest/api/3/field"))

    def test_test_connection(self):
        client, _ = _client(_response(payload={"accountId": "a1"}))
        self.assertTrue(client.test_connection())

        client, _ = _client(_response(status_code=401, text="nope"))
        self.assertFalse(client.test_connection())


if __name__ == "__main__":
    unittest.main()
