import logging
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.models.base import get_db, init_db
from app.schemas import JIRA_CONFIG_KEY
from app.services.errors import CredentialsRejected
from app.services.issue_store import IssueStore
from app.services.normalizer import NormalizedIssue

logging.disable(logging.CRITICAL)

JIRA_SETTINGS = {
    "base_url": "https://example.atlassian.net",
    "email": "me@example.com",
    "api_token": "secret-token",
    "project_key": "PROJ",
}


class _RejectingClient:
    def iter_issue_batches(self, jql):
        raise CredentialsRejected("Jira rejected the configured credentials (401)", status=401)
        yield  # pragma: no cover


class _FieldsClient:
    def get_fields(self):
        return [{"id": "summary", "name": "Summary"}, {"id": "customfield_1", "name": "Points"}]


class ApiTests(unittest.TestCase):
    def setUp(self):
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        init_db(bind=engine)
        self.Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        def _override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _override_get_db
        # No `with` block: the lifespan (scheduler, real database) is not started.
        self.client = TestClient(app)

        db = self.Session()
        try:
            store = IssueStore(db)
            store.upsert(NormalizedIssue(id="A", key="P-1", summary="Alpha", updated="2024-01-01", status="Open"))
            store.upsert(
                NormalizedIssue(
                    id="B",
                    key="P-2",
                    summary="Beta",
                    updated="2024-02-01",
                    status="Done",
                    extra_fields={"customfield_1": 8},
                )
            )
        finally:
            db.close()

    def tearDown(self):
        app.dependency_overrides.clear()

    def _store(self):
        return IssueStore(self.Session())

    # ---- issues -------------------------------------------------------

    def test_list_issues(self):
        resp = self.client.get("/api/issues")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual([i["id"] for i in body["issues"]], ["B", "A"])
        self.assertEqual(body["total"], 2)
        self.assertEqual(body["issues"][0]["extraFields"], {"customfield_1": 8})

    def test_list_issues_with_filter_and_search(self):
        resp = self.client.get("/api/issues", params={"status": "Open"})
        self.assertEqual([i["id"] for i in resp.json()["issues"]], ["A"])
        self.assertEqual(resp.json()["total"], 1)

        resp = self.client.get("/api/issues", params={"search": "beta", "limit": 1})
        self.assertEqual([i["id"] for i in resp.json()["issues"]], ["B"])

    def test_list_issues_rejects_bad_arguments(self):
        for params in ({"limit": 0}, {"page": 0}, {"labels": "x"}):
            with self.subTest(params=params):
                resp = self.client.get("/api/issues", params=params)
                self.assertEqual(resp.status_code, 400)
                self.assertEqual(resp.json()["detail"]["reason"], "invalid_argument")

    def test_page_past_end(self):
        body = self.client.get("/api/issues", params={"page": 9}).json()
        self.assertEqual(body["issues"], [])
        self.assertEqual(body["total"], 2)

    def test_get_issue_by_id_or_key(self):
        self.assertEqual(self.client.get("/api/issues/A").json()["key"], "P-1")
        self.assertEqual(self.client.get("/api/issues/P-2").json()["id"], "B")

        resp = self.client.get("/api/issues/nonexistent")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["detail"]["reason"], "not_found")

    def test_issue_view_uses_field_mappings(self):
        self.client.put(
            "/api/config/field-mappings",
            json=[
                {"original_name": "summary", "display_name": "Title", "visible": True},
                {"original_name": "customfield_1", "display_name": "Points", "visible": True},
                {"original_name": "status", "display_name": "Status", "visible": False},
            ],
        )

        body = self.client.get("/api/issues/view").json()

        self.assertEqual(
            body["columns"],
            [{"field": "summary", "label": "Title"}, {"field": "customfield_1", "label": "Points"}],
        )
        self.assertEqual(
            body["rows"][0], {"id": "B", "key": "P-2", "summary": "Beta", "customfield_1": 8}
        )
        self.assertEqual(body["total"], 2)

    # ---- sync ---------------------------------------------------------

    def test_sync_not_configured(self):
        resp = self.client.post("/api/issues/sync")
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["detail"]["reason"], "not_configured")

    def test_sync_credentials_rejected(self):
        self._store().set_config_value(JIRA_CONFIG_KEY, JIRA_SETTINGS)

        with patch("app.services.sync_service.JiraClient.from_config", return_value=_RejectingClient()):
            resp = self.client.post("/api/issues/sync")

        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.json()["detail"]["reason"], "credentials_rejected")

    # ---- config -------------------------------------------------------

    def test_config_defaults(self):
        body = self.client.get("/api/config").json()
        self.assertIsNone(body["jira"])
        self.assertEqual(body["field_mappings"][0]["original_name"], "summary")
        self.assertIsNone(body["last_sync_time"])

    def test_jira_config_token_is_redacted_and_preserved(self):
        resp = self.client.put("/api/config/jira", json=JIRA_SETTINGS)
        self.assertEqual(resp.json(), {"success": True})

        jira = self.client.get("/api/config").json()["jira"]
        self.assertEqual(jira["api_token"], "********")
        self.assertEqual(jira["base_url"], "https://example.atlassian.net")

        # Saving the redacted form back keeps the real token.
        self.client.put("/api/config/jira", json=dict(jira, project_key="OTHER"))
        saved = self._store().get_config_value(JIRA_CONFIG_KEY)
        self.assertEqual(saved["api_token"], "secret-token")
        self.assertEqual(saved["project_key"], "OTHER")

    def test_jira_config_validation(self):
        resp = self.client.put("/api/config/jira", json=dict(JIRA_SETTINGS, base_url="example.com"))
        self.assertEqual(resp.status_code, 422)

        resp = self.client.put("/api/config/jira", json=dict(JIRA_SETTINGS, project_key=""))
        self.assertEqual(resp.status_code, 422)

    def test_sync_interval(self):
        resp = self.client.put("/api/config/sync-interval", json={"interval": 15})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.get("/api/config").json()["sync_interval"], 15)

        resp = self.client.put("/api/config/sync-interval", json={"interval": 0})
        self.assertEqual(resp.status_code, 422)

    def test_jira_fields_and_suggestions(self):
        self._store().set_config_value(JIRA_CONFIG_KEY, JIRA_SETTINGS)

        with patch("app.api.config.JiraClient.from_config", return_value=_FieldsClient()):
            fields = self.client.get("/api/config/jira-fields").json()
            suggested = self.client.get("/api/config/field-mappings/suggested").json()

        self.assertEqual(fields[1]["id"], "customfield_1")
        self.assertEqual(
            suggested[-1], {"original_name": "customfield_1", "display_name": "Points", "visible": False}
        )

    def test_test_connection_not_configured(self):
        resp = self.client.post("/api/config/test-connection")
        self.assertEqual(resp.status_code, 409)

    def test_health(self):
        self.assertEqual(self.client.get("/health").json()["status"], "healthy")


if __name__ == "__main__":
    unittest.main()
