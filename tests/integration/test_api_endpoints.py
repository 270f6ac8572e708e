"""
End-to-end tests for health, commit source proxy, AI generation and demo endpoints.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime

from coderecall.llm.base import AIParseError, AITimeoutError, GeneratedItem, StructuredItems


def _file(name, patch="@@ -1 +1 @@\n-a\n+b"):
    return {"filename": name, "status": "modified", "additions": 1, "deletions": 1, "patch": patch}


class TestHealth:
    def test_health(self, api_client):
        data = api_client.get("/health").json()

        assert data["status"] == "healthy"
        assert "ready" in data["ai"]

    def test_database_health(self, api_client):
        data = api_client.get("/health/db").json()

        assert data["status"] == "healthy"
        assert data["pool"]["pool_size"] == 2


class TestGitHubProxy:
    def test_commits_require_auth(self, api_client):
        assert api_client.get("/api/github/commits", params={"repo": "octo/notes"}).status_code == 401

    def test_list_commits(self, api_client, auth_headers, github_stub):
        github_stub.add_commit("octo/notes", "abc1234", "Fix", datetime(2025, 3, 9, tzinfo=UTC))

        response = api_client.get("/api/github/commits", params={"repo": "octo/notes"}, headers=auth_headers)

        assert response.status_code == 200
        assert [c["sha"] for c in response.json()] == ["abc1234"]

    def test_commit_detail(self, api_client, auth_headers, github_stub):
        github_stub.add_commit("octo/notes", "abc1234", "Fix", datetime(2025, 3, 9, tzinfo=UTC),
                               files=[_file("src/a.py")])

        response = api_client.get(
            "/api/github/commit", params={"repo": "octo/notes", "sha": "abc1234"}, headers=auth_headers
        )

        assert response.json()["files"][0]["filename"] == "src/a.py"

    def test_upstream_status_is_echoed(self, api_client, auth_headers):
        response = api_client.get(
            "/api/github/commit", params={"repo": "octo/notes", "sha": "deadbeef"}, headers=auth_headers
        )
        assert response.status_code == 404

    def test_non_hex_sha_rejected(self, api_client, auth_headers):
        response = api_client.get(
            "/api/github/commit", params={"repo": "octo/notes", "sha": "../../x"}, headers=auth_headers
        )
        assert response.status_code == 400

    def test_file_by_path_without_auth(self, api_client, github_stub):
        github_stub.add_file("octo/notes", "README.md", "# Notes")

        response = api_client.get("/api/github/file", params={"repo": "octo/notes", "filename": "README.md"})

        assert response.json() == {"content": "# Notes"}

    def test_file_by_raw_url(self, api_client, github_stub):
        url = "https://raw.githubusercontent.com/octo/notes/abc1234/README.md"
        github_stub.raw_files[url] = "# Raw"

        assert api_client.get("/api/github/file", params={"raw_url": url}).json() == {"content": "# Raw"}

    def test_raw_url_host_not_allowed(self, api_client):
        response = api_client.get("/api/github/file", params={"raw_url": "https://evil.example/secret"})
        assert response.status_code == 400

    def test_file_needs_location(self, api_client):
        assert api_client.get("/api/github/file", params={"repo": "octo/notes"}).status_code == 400


class TestAIGenerate:
    def test_envelope_from_question_list(self, api_client, generator):
        response = api_client.post("/api/ai/generate", json={"text": "# Notes\nWAL mode", "contentType": "markdown"})

        content = json.loads(response.json()["result"]["message"]["content"])
        assert [i["question"] for i in content["items"]] == ["What does this change do?", "Why was it needed?"]
        assert all(i["answer"] == "# Notes\nWAL mode" for i in content["items"])

    def test_envelope_from_structured_items(self, api_client, generator):
        generator.result = StructuredItems([GeneratedItem("Q?", "A.", ["WAL", "nope"])])

        response = api_client.post("/api/ai/generate", json={"text": "WAL mode"})

        content = json.loads(response.json()["result"]["message"]["content"])
        assert content == {"items": [{"question": "Q?", "answer": "A.", "highlights": ["WAL"]}]}

    def test_content_type_inferred(self, api_client, generator):
        api_client.post("/api/ai/generate", json={"text": "diff --git a/x b/x\n@@ -1 +1 @@\n-a\n+b"})
        assert generator.calls[0][1].value == "code-diff"

    def test_timeout_and_parse_failures(self, api_client, generator):
        generator.failures["slow"] = AITimeoutError("slow")
        generator.failures["garbage"] = AIParseError("garbage")

        assert api_client.post("/api/ai/generate", json={"text": "slow"}).json()["code"] == "AI_TIMEOUT"
        assert api_client.post("/api/ai/generate", json={"text": "garbage"}).json()["code"] == "AI_FAILED"

    def test_empty_text_rejected(self, api_client):
        assert api_client.post("/api/ai/generate", json={"text": ""}).status_code == 400


class TestDemo:
    def test_demo_cards(self, api_client, github_stub):
        github_stub.add_commit("octo/public", "abc1234", "Add feature", datetime(2025, 3, 9, tzinfo=UTC),
                               files=[_file("src/feature.py")])

        response = api_client.post("/api/demo/flashcards", json={"repoUrl": "https://github.com/octo/public"})

        data = response.json()
        assert data["repository"] == {"fullName": "octo/public"}
        assert data["cards"][0]["metadata"]["commitMessage"] == "Add feature"

    def test_demo_does_not_store(self, api_client, github_stub, services):
        github_stub.add_commit("octo/public", "abc1234", "Add feature", datetime(2025, 3, 9, tzinfo=UTC))
        api_client.post("/api/demo/flashcards", json={"repoUrl": "octo/public"})

        with services.pool.connection() as conn:
            assert conn.execute("SELECT COUNT(*) FROM daily_flashcards").fetchone()[0] == 0

    def test_invalid_url(self, api_client):
        assert api_client.post("/api/demo/flashcards", json={"repoUrl": "not a url"}).status_code == 400

    def test_missing_repository(self, api_client, github_stub):
        github_stub.status_overrides["/repos/octo/private/commits"] = 404

        response = api_client.post("/api/demo/flashcards", json={"repoUrl": "octo/private"})

        assert response.status_code == 404
        assert "public" in response.json()["detail"]

    def test_upstream_failure(self, api_client, github_stub):
        github_stub.status_overrides["/repos/octo/public/commits"] = 500
        assert api_client.post("/api/demo/flashcards", json={"repoUrl": "octo/public"}).status_code == 502

    def test_empty_repository(self, api_client):
        assert api_client.post("/api/demo/flashcards", json={"repoUrl": "octo/empty"}).status_code == 404
