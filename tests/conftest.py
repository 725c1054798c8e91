import json
import os

import httpx
import pytest
from loguru import logger

from pipeliner_asana.settings import AppSettings, AsanaSettings
from pipeliner_asana.settings.base import BaseSettings
from pipeliner_asana.sync import AsanaClient, MemoryMappingStore, WebhookDispatcher
from pipeliner_asana.sync.templates import INDUSTRIAL_AUTOMATION

SETTINGS_VARS = ("APP_NAME", "DEBUG", "HOST", "PORT", "DATA_DIR", "LOG_JSON", "LOG_TO_FILE")
SETTINGS_PREFIXES = ("ASANA_", "PIPELINER_", "MAPPING_", "SENTRY_")


class FakeAsanaAPI:
    """In-memory stand-in for the Asana endpoints used by the client."""

    PREFIX = "/api/1.0"

    def __init__(self):
        self.requests = []
        self.projects = {}
        self.sections = {}
        self.tasks = []
        self.fail_names = set()
        self.fail_list_sections = False
        self.fail_update = False
        self._next_gid = 1000

    def _gid(self) -> str:
        self._next_gid += 1
        return str(self._next_gid)

    def calls(self, method: str, path: str) -> list:
        return [
            r
            for r in self.requests
            if r.method == method and r.url.path == self.PREFIX + path
        ]

    def count(self, method: str, suffix: str) -> int:
        return sum(
            1
            for r in self.requests
            if r.method == method and r.url.path.endswith(suffix)
        )

    @staticmethod
    def _error(status: int, message: str) -> httpx.Response:
        return httpx.Response(status, json={"errors": [{"message": message}]})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len(self.PREFIX):]
        parts = [p for p in path.split("/") if p]
        data = json.loads(request.content).get("data", {}) if request.content else {}

        if data.get("name") in self.fail_names:
            return self._error(400, f"boom: {data['name']}")

        if request.method == "POST" and parts == ["projects"]:
            gid = self._gid()
            self.projects[gid] = data
            self.sections[gid] = []
            return httpx.Response(201, json={"data": {"gid": gid, **data}})

        if parts[:1] == ["projects"] and parts[2:] == ["sections"]:
            project_gid = parts[1]
            if request.method == "POST":
                section = {"gid": self._gid(), "name": data["name"]}
                self.sections.setdefault(project_gid, []).append(section)
                return httpx.Response(201, json={"data": section})
            if self.fail_list_sections:
                return self._error(500, "sections unavailable")
            return httpx.Response(200, json={"data": self.sections.get(project_gid, [])})

        if request.method == "PUT" and parts[:1] == ["projects"] and len(parts) == 2:
            if self.fail_update:
                return self._error(404, "project not found")
            self.projects.setdefault(parts[1], {}).update(data)
            return httpx.Response(200, json={"data": {"gid": parts[1], **data}})

        if request.method == "POST" and parts == ["tasks"]:
            task = {"gid": self._gid(), **data}
            self.tasks.append(task)
            return httpx.Response(201, json={"data": task})

        return self._error(404, f"unknown route {request.method} {path}")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Isolate every test from the developer's environment and .env file."""
    monkeypatch.setattr(BaseSettings, "_dotenv_loaded", True)
    for name in list(os.environ):
        if name in SETTINGS_VARS or name.startswith(SETTINGS_PREFIXES):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def app_settings(monkeypatch, tmp_path):
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.setenv("MAPPING_DB_PATH", "memory")
    return AppSettings()


@pytest.fixture
def asana_settings(monkeypatch):
    monkeypatch.setenv("ASANA_ACCESS_TOKEN", "test-token")
    monkeypatch.setenv("ASANA_WORKSPACE_ID", "ws-1")
    monkeypatch.setenv("ASANA_TEAM_ID", "team-1")
    return AsanaSettings()


@pytest.fixture
def fake_asana():
    return FakeAsanaAPI()


@pytest.fixture
def asana_client(asana_settings, fake_asana):
    return AsanaClient(asana_settings, transport=httpx.MockTransport(fake_asana.handler))


@pytest.fixture
def store():
    return MemoryMappingStore()


@pytest.fixture
def dispatcher(asana_client, store, app_settings):
    return WebhookDispatcher(
        asana=asana_client,
        store=store,
        template=INDUSTRIAL_AUTOMATION,
        app_settings=app_settings,
    )


@pytest.fixture
def log_messages():
    """Collect Loguru messages emitted during a test."""
    messages = []
    handler_id = logger.add(
        lambda message: messages.append(message.record["message"]), level="DEBUG"
    )
    yield messages
    logger.remove(handler_id)
