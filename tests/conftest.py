"""Shared fixtures: a fake engine REST API served through httpx.MockTransport."""

from __future__ import annotations

import json
from typing import Dict, List, Optional, Set, Tuple

import httpx
import pytest

from fluxcdc.engine import EngineClient
from fluxcdc.timefmt import parse_engine_time

BASE_URL = "http://engine.test/engine-rest"


def process(
    pid: str,
    start: str,
    state: str = "ACTIVE",
    end: Optional[str] = None,
    duration: Optional[int] = None,
    key: str = "support-ticket",
    business_key: Optional[str] = None,
) -> dict:
    return {
        "id": pid,
        "businessKey": business_key,
        "processDefinitionId": f"{key}:1:abc",
        "processDefinitionKey": key,
        "startTime": start,
        "endTime": end,
        "durationInMillis": duration,
        "state": state,
    }


def activity(
    aid: str,
    pid: str,
    start: str,
    activity_id: str = "analyze",
    activity_type: str = "serviceTask",
    end: Optional[str] = None,
) -> dict:
    return {
        "id": aid,
        "activityId": activity_id,
        "activityName": activity_id.title(),
        "activityType": activity_type,
        "processInstanceId": pid,
        "executionId": f"exec-{pid}",
        "startTime": start,
        "endTime": end,
        "durationInMillis": 5 if end else None,
        "canceled": False,
    }


def variable(name: str, value, pid: str, var_type: str = "String") -> dict:
    return {
        "id": f"var-{pid}-{name}",
        "name": name,
        "type": var_type,
        "value": value,
        "processInstanceId": pid,
    }


def external_task(
    task_id: str, topic: str, variables: Optional[dict] = None, pid: str = "P1"
) -> dict:
    return {
        "id": task_id,
        "topicName": topic,
        "processInstanceId": pid,
        "processDefinitionId": "support-ticket:1:abc",
        "activityId": topic,
        "activityInstanceId": f"{topic}:{task_id}",
        "executionId": f"exec-{task_id}",
        "priority": 0,
        "variables": variables or {},
    }


class FakeEngine:
    """In-memory stand-in for the engine REST API.

    ``startedAfter`` is treated as inclusive, so instances on the watermark
    boundary are returned again, as the real engine may do.
    """

    def __init__(self) -> None:
        self.processes: List[dict] = []
        self.activities: Dict[str, List[dict]] = {}
        self.variables: Dict[str, List[dict]] = {}
        self.details: Dict[str, List[dict]] = {}
        self.tasks: List[dict] = []
        self.locks: Dict[str, str] = {}
        self.completed: Dict[str, dict] = {}
        self.failures: Dict[str, dict] = {}
        self.requests: List[httpx.Request] = []
        self.down = False
        self._broken: Set[Tuple[str, Optional[str]]] = set()
        self._garbled: Dict[Tuple[str, Optional[str]], bytes] = {}

    def break_path(self, path: str, process_instance_id: Optional[str] = None) -> None:
        """Answer ``path`` (optionally for one instance) with HTTP 500."""
        self._broken.add((path, process_instance_id))

    def garble_path(
        self,
        path: str,
        process_instance_id: Optional[str] = None,
        body: bytes = b"<html>not json</html>",
    ) -> None:
        """Answer ``path`` with a body that is not JSON."""
        self._garbled[(path, process_instance_id)] = body

    def calls(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/engine-rest" + path]

    # ------------------------------------------------------------------
    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.down:
            raise httpx.ConnectError("engine down", request=request)

        path = request.url.path[len("/engine-rest"):]
        pid = request.url.params.get("processInstanceId")
        if (path, pid) in self._broken or (path, None) in self._broken:
            return httpx.Response(500, text="internal error")
        for garbled_key in ((path, pid), (path, None)):
            if garbled_key in self._garbled:
                return httpx.Response(200, content=self._garbled[garbled_key])

        if path == "/engine":
            return httpx.Response(200, json=[{"name": "default"}])
        if path == "/history/process-instance":
            return httpx.Response(200, json=self._process_instances(request))
        if path == "/history/activity-instance":
            return httpx.Response(200, json=self.activities.get(pid, []))
        if path == "/history/variable-instance":
            return httpx.Response(200, json=self.variables.get(pid, []))
        if path == "/history/detail":
            return httpx.Response(200, json=self.details.get(pid, []))
        if path == "/external-task/fetchAndLock":
            return httpx.Response(200, json=self._fetch_and_lock(json.loads(request.content)))
        if path.startswith("/external-task/") and path.endswith("/complete"):
            task_id = path.split("/")[2]
            self.completed[task_id] = json.loads(request.content)
            return httpx.Response(204)
        if path.startswith("/external-task/") and path.endswith("/failure"):
            task_id = path.split("/")[2]
            self.failures[task_id] = json.loads(request.content)
            return httpx.Response(204)
        return httpx.Response(404, text=f"unknown path {path}")

    def _process_instances(self, request: httpx.Request) -> List[dict]:
        params = request.url.params
        rows = sorted(self.processes, key=lambda p: parse_engine_time(p["startTime"]))
        started_after = params.get("startedAfter")
        if started_after:
            bound = parse_engine_time(started_after)
            rows = [p for p in rows if parse_engine_time(p["startTime"]) >= bound]
        return rows[: int(params.get("maxResults", len(rows)))]

    def _fetch_and_lock(self, body: dict) -> List[dict]:
        topics = {t["topicName"] for t in body["topics"]}
        leased = []
        for task in self.tasks:
            if task["topicName"] not in topics or task["id"] in self.locks:
                continue
            if task["id"] in self.completed or task["id"] in self.failures:
                continue
            self.locks[task["id"]] = body["workerId"]
            leased.append(dict(task, workerId=body["workerId"]))
            if len(leased) >= body["maxTasks"]:
                break
        return leased


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def engine_client(fake_engine: FakeEngine) -> EngineClient:
    return EngineClient(
        base_url=BASE_URL, http_transport=httpx.MockTransport(fake_engine.handler)
    )
