"""Shared fixtures: runbook payload builders and an in-memory RBA API."""

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from rbasync.rba.client import RbaClient
from rbasync.settings import SyncSettings


def runbook_payload(
    runbook_id: str,
    name: Optional[str] = None,
    steps: Optional[List[Dict[str, Any]]] = None,
    automations: Optional[Dict[str, Any]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    payload = {
        "_runbookId": runbook_id,
        "name": name or f"Runbook {runbook_id}",
        "description": f"Runbook {runbook_id} description",
        "steps": steps if steps is not None else [{"number": 1, "description": "<p>check disk</p>"}],
        "automations": automations or {},
        "parameters": [],
        "tags": [],
    }
    payload.update(extra)
    return payload


class FakeRba:
    """Serves the runbook endpoints from lists of payload dicts and records every request."""

    def __init__(
        self,
        export: Optional[List[Dict[str, Any]]] = None,
        standard: Optional[List[Dict[str, Any]]] = None,
        fail_patch: Optional[Dict[str, str]] = None,
        fail_create: bool = False,
    ) -> None:
        self.export = export if export is not None else []
        self.standard = standard if standard is not None else []
        self.fail_patch = fail_patch or {}
        self.fail_create = fail_create
        self.requests: List[httpx.Request] = []
        self.created: List[Dict[str, Any]] = []
        self.patched: Dict[str, Dict[str, Any]] = {}

    def requests_for(self, method: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        base = "/api/v1/rba/runbooks"

        if request.method == "GET" and path == base:
            if request.url.params.get("exportFormat") == "keepId":
                return httpx.Response(200, json=self.export)
            return httpx.Response(200, json=self.standard)

        if request.method == "GET" and path.startswith(base + "/"):
            rid = path.rsplit("/", 1)[1]
            found = [rb for rb in self.standard if rb["_runbookId"] == rid]
            if not found:
                return httpx.Response(404, text=f"runbook {rid} not found")
            return httpx.Response(200, json=found)

        if request.method == "POST" and path == base + "/import":
            if self.fail_create:
                return httpx.Response(400, text="invalid runbook payload")
            body = json.loads(request.content)
            self.created.extend(body)
            return httpx.Response(200, json=[{"_runbookId": rb["_runbookId"], "result": "created"} for rb in body])

        if request.method == "PATCH" and path.startswith(base + "/"):
            rid = path.rsplit("/", 1)[1]
            if rid in self.fail_patch:
                return httpx.Response(400, text=self.fail_patch[rid])
            self.patched[rid] = json.loads(request.content)
            return httpx.Response(200, json={})

        return httpx.Response(404, text="unknown endpoint")


@pytest.fixture
def settings() -> SyncSettings:
    return SyncSettings(host="noi.example.com:443", user="apikey-user", password="apikey-pw")


@pytest.fixture
def make_client(settings):
    def _make(fake: FakeRba) -> RbaClient:
        return RbaClient(settings, transport=httpx.MockTransport(fake.handler))

    return _make
