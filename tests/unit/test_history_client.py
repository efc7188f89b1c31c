from datetime import datetime, timezone

import httpx
import pytest

from conftest import BASE_URL, activity, process, variable
from fluxcdc.config import EngineConfig
from fluxcdc.engine import EngineClient, HistoryClient
from fluxcdc.errors import DecodeError, TransportError


@pytest.mark.asyncio
async def test_process_instances_decode_engine_payload(fake_engine, engine_client):
    fake_engine.processes = [
        process("P1", "2024-05-01T10:00:00.000+0000", business_key="T-100")
    ]
    history = HistoryClient(engine_client)

    started_after = datetime(2024, 5, 1, 9, 59, 59, 500000, tzinfo=timezone.utc)
    (instance,) = await history.process_instances(started_after, max_results=10)

    assert instance.id == "P1"
    assert instance.business_key == "T-100"
    assert instance.process_definition_key == "support-ticket"
    assert instance.start_time == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
    request = fake_engine.calls("/history/process-instance")[0]
    assert request.url.params["startedAfter"] == "2024-05-01T09:59:59.500+0000"
    assert request.url.params["maxResults"] == "10"


@pytest.mark.asyncio
async def test_sub_queries_are_scoped_to_one_instance(fake_engine, engine_client):
    fake_engine.activities = {"P1": [activity("A1", "P1", "2024-05-01T10:00:00.000+0000")]}
    fake_engine.variables = {"P1": [variable("attempts", 2, "P1", var_type="Integer")]}
    fake_engine.details = {
        "P1": [
            {
                "id": "D1",
                "type": "variableUpdate",
                "processInstanceId": "P1",
                "time": "2024-05-01T10:00:01.000+0000",
                "variableName": "attempts",
                "value": 2,
            }
        ]
    }
    history = HistoryClient(engine_client)

    activities = await history.activity_instances("P1")
    variables = await history.variable_instances("P1")
    details = await history.details("P1")

    assert activities[0].activity_type == "serviceTask"
    assert variables[0].value == 2
    assert details[0].variable_name == "attempts"
    detail_request = fake_engine.calls("/history/detail")[0]
    assert detail_request.url.params["processInstanceId"] == "P1"
    assert detail_request.url.params["sortBy"] == "time"


@pytest.mark.asyncio
async def test_non_success_status_maps_to_transport_error(fake_engine, engine_client):
    fake_engine.break_path("/history/activity-instance")
    with pytest.raises(TransportError) as exc_info:
        await HistoryClient(engine_client).activity_instances("P1")
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_wrong_shape_maps_to_decode_error(fake_engine, engine_client):
    fake_engine.variables = {"P1": [{"unexpected": True}]}
    with pytest.raises(DecodeError):
        await HistoryClient(engine_client).variable_instances("P1")


@pytest.mark.asyncio
async def test_basic_auth_is_sent():
    seen = []

    def handler(request):
        seen.append(request.headers.get("Authorization"))
        return httpx.Response(200, json=[])

    config = EngineConfig(base_url=BASE_URL, username="demo", password="demo")
    async with EngineClient.from_config(config, http_transport=httpx.MockTransport(handler)) as client:
        await client.ping()

    assert seen == ["Basic ZGVtbzpkZW1v"]
