"""
Tests for the prompt service client.

Requests are answered by an in-memory service behind ``httpx.MockTransport``.
"""

import asyncio
import json

import allure
import httpx
import pytest

from teleprompter.exceptions import ServiceError
from teleprompter.service import PromptServiceClient


BASE_URL = "https://tp.example.com"


class FakeService:
    """In-memory prompt service recording every request."""

    def __init__(self, prompts=None):
        self.prompts = {p["id"]: p for p in (prompts or [])}
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "GET" and path == "/prompts":
            return httpx.Response(200, json=list(self.prompts.values()))

        if request.method == "POST" and path == "/prompts":
            body = json.loads(request.content)
            if body["id"] == "broken":
                return httpx.Response(500, json={"error": "boom"})
            current = self.prompts.get(body["id"], {"version": 0})
            self.prompts[body["id"]] = {**body, "version": current["version"] + 1}
            return httpx.Response(201, json=self.prompts[body["id"]])

        if request.method == "GET" and path.startswith("/prompts/"):
            prompt_id = path[len("/prompts/"):]
            if prompt_id.endswith("/versions"):
                return httpx.Response(200, json=[
                    {"id": "x", "namespace": "n", "version": 2, "created_at": "2024-01-02T00:00:00Z"},
                    {"id": "x", "namespace": "n", "version": 1},
                ])
            if prompt_id in self.prompts:
                return httpx.Response(200, json=self.prompts[prompt_id])
            return httpx.Response(404, text="not found")

        if request.method == "POST" and "/versions/" in path:
            return httpx.Response(204)

        return httpx.Response(405)

    def client(self, token: str = "token-123") -> PromptServiceClient:
        return PromptServiceClient(BASE_URL, token, transport=httpx.MockTransport(self.handler))


PROMPTS = [
    {"id": "chat:SystemPrompt", "namespace": "chat", "version": 3, "prompt": "You are {{role}}"},
    {"id": "chat:Greeting", "namespace": "chat", "version": 1, "prompt": "Hello"},
    {"id": "email:Welcome", "namespace": "email", "version": 2, "prompt": "Welcome {{name}}"},
]


@allure.feature("Prompt Service")
@allure.story("Authentication headers")
@allure.severity(allure.severity_level.CRITICAL)
def test_requests_carry_token_headers():
    """Every request sends the token as bearer and cf-access-token."""
    service = FakeService(PROMPTS)

    prompts = asyncio.run(service.client("secret").list_prompts())

    assert [p.id for p in prompts] == [p["id"] for p in PROMPTS]
    request = service.requests[0]
    assert request.headers["Authorization"] == "Bearer secret"
    assert request.headers["cf-access-token"] == "secret"


@allure.feature("Prompt Service")
@allure.story("Fetch prompt")
@allure.severity(allure.severity_level.NORMAL)
def test_get_prompt_keeps_colon_in_path():
    """Prompt IDs are placed in the path with their colon intact."""
    service = FakeService(PROMPTS)

    prompt = asyncio.run(service.client().get_prompt("chat:SystemPrompt"))

    assert prompt.prompt == "You are {{role}}"
    assert prompt.version == 3
    assert service.requests[0].url.raw_path == b"/prompts/chat:SystemPrompt"


@allure.feature("Prompt Service")
@allure.story("Service errors")
@allure.severity(allure.severity_level.CRITICAL)
def test_error_status_raises_service_error():
    """An error status raises ServiceError with the status and body."""
    service = FakeService(PROMPTS)

    with pytest.raises(ServiceError) as exc_info:
        asyncio.run(service.client().get_prompt("missing"))

    assert exc_info.value.status_code == 404
    assert exc_info.value.body == "not found"


@allure.feature("Prompt Service")
@allure.story("Versions")
@allure.severity(allure.severity_level.NORMAL)
def test_list_versions():
    """Versions are returned in service order."""
    versions = asyncio.run(FakeService(PROMPTS).client().list_versions("x"))

    assert [v.version for v in versions] == [2, 1]
    assert versions[0].created_at == "2024-01-02T00:00:00Z"


@allure.feature("Prompt Service")
@allure.story("Malformed list entries")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.parametrize("path", ["/prompts", "/prompts/x/versions"])
def test_list_skips_malformed_entries(path):
    """List entries without an ID or with a bad version are skipped."""
    body = [
        {"namespace": "x"},
        "chat:Loose",
        None,
        {"id": "bad", "namespace": "n", "version": "two"},
        {"id": "ok", "namespace": "n", "version": 1},
    ]
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
    client = PromptServiceClient(BASE_URL, "t", transport=transport)

    if path == "/prompts":
        prompts = asyncio.run(client.list_prompts())
    else:
        prompts = asyncio.run(client.list_versions("x"))

    assert [(p.id, p.version) for p in prompts] == [("ok", 1)]


@allure.feature("Prompt Service")
@allure.story("Create version")
@allure.severity(allure.severity_level.NORMAL)
def test_put_prompt_posts_payload():
    """put_prompt posts id, namespace and text."""
    service = FakeService()

    stored = asyncio.run(service.client().put_prompt("new:One", "new", "text"))

    assert json.loads(service.requests[0].content) == {"id": "new:One", "namespace": "new", "prompt": "text"}
    assert stored.version == 1


@allure.feature("Prompt Service")
@allure.story("Rollback")
@allure.severity(allure.severity_level.NORMAL)
def test_rollback_posts_to_version():
    """Rollback posts an empty object to the version path."""
    service = FakeService()

    asyncio.run(service.client().rollback("chat:Greeting", 4))

    request = service.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/prompts/chat:Greeting/versions/4"
    assert json.loads(request.content) == {}


@allure.feature("Prompt Service")
@allure.story("Export")
@allure.severity(allure.severity_level.CRITICAL)
def test_export_matching_prompts(tmp_path):
    """Prompts matching the wildcard are written as snake_case JSON files."""
    service = FakeService(PROMPTS)

    written = asyncio.run(service.client().export_prompts("chat:*", tmp_path / "out"))

    assert sorted(p.name for p in written) == ["chat__greeting.json", "chat__system_prompt.json"]
    data = json.loads((tmp_path / "out" / "chat__system_prompt.json").read_text(encoding="utf-8"))
    assert data == {"id": "chat:SystemPrompt", "namespace": "chat", "prompt": "You are {{role}}"}


@allure.feature("Prompt Service")
@allure.story("Export")
@allure.severity(allure.severity_level.NORMAL)
def test_export_pattern_is_literal_outside_wildcards(tmp_path):
    """Only '*' is a wildcard; other characters match themselves."""
    service = FakeService(PROMPTS)

    assert asyncio.run(service.client().export_prompts("chat.*", tmp_path)) == []
    assert asyncio.run(service.client().export_prompts("email:Welcome", tmp_path)) == [
        tmp_path / "email__welcome.json"
    ]


@allure.feature("Prompt Service")
@allure.story("Import")
@allure.severity(allure.severity_level.CRITICAL)
def test_import_reports_outcomes(tmp_path):
    """Import posts valid prompts and reports skipped and failed entries."""
    single = tmp_path / "single.json"
    single.write_text(json.dumps({"id": "a:One", "namespace": "a", "prompt": "1"}), encoding="utf-8")
    many = tmp_path / "many.json"
    many.write_text(json.dumps([
        {"id": "a:Two", "namespace": "a", "prompt": "2"},
        {"id": "a:Three", "namespace": "a"},
        {"id": "broken", "namespace": "a", "prompt": "x"},
    ]), encoding="utf-8")
    invalid = tmp_path / "invalid.json"
    invalid.write_text("{nope", encoding="utf-8")
    service = FakeService()

    report = asyncio.run(service.client().import_prompts([single, many, invalid, tmp_path / "absent.json"]))

    assert report.imported == ["a:One", "a:Two"]
    assert report.skipped == [str(many)]
    assert report.failed == ["broken", str(invalid), str(tmp_path / "absent.json")]
    assert not report.ok
    assert set(service.prompts) == {"a:One", "a:Two"}


@allure.feature("Prompt Service")
@allure.story("Import")
@allure.severity(allure.severity_level.NORMAL)
def test_import_reports_undecodable_file(tmp_path):
    """A file that is not UTF-8 is reported as failed and later files still import."""
    latin = tmp_path / "latin.json"
    latin.write_bytes(b'\xff\xfe{"id": "a:Caf\xe9", "namespace": "a", "prompt": "x"}')
    good = tmp_path / "good.json"
    good.write_text(json.dumps({"id": "a:Good", "namespace": "a", "prompt": "g"}), encoding="utf-8")
    service = FakeService()

    report = asyncio.run(service.client().import_prompts([latin, good]))

    assert report.failed == [str(latin)]
    assert report.imported == ["a:Good"]
