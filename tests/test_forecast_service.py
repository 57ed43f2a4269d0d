import asyncio
import logging
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from datastore.chart_slot import ChartOrdering, ChartSlot
from models.records import DangerRange
from services.classifier import ForecastClassifier
from services.exceptions import ForecastConnectionError, MalformedForecastError
from services.forecast import CheckOutcome, ForecastService
from services.forecast_client import ForecastClient

NOW = datetime(2024, 6, 1, 0, 10, tzinfo=timezone.utc)
DANGER = DangerRange(min=400.0, max=600.0)
URL_TEMPLATE = "https://forecast.test/api/{site_id}"


def _payload(median) -> dict:
    return {
        "datetime": [
            (NOW + timedelta(hours=hour)).strftime("%Y-%m-%dT%H:00:00Z")
            for hour in range(len(median))
        ],
        "flow_median": median,
        "flow_uncertainty_upper": [value * 1.1 for value in median],
        "flow_uncertainty_lower": [value * 0.9 for value in median],
    }


def _site(request: httpx.Request) -> str:
    return request.url.path.rsplit("/", 1)[-1]


def _service(handler, ordering: ChartOrdering = ChartOrdering.request) -> ForecastService:
    client = ForecastClient(url_template=URL_TEMPLATE, transport=httpx.MockTransport(handler))
    return ForecastService(
        client=client,
        classifier=ForecastClassifier(zone=timezone.utc),
        slot=ChartSlot(ordering=ordering),
        clock=lambda: NOW,
    )


def test_client_formats_url_and_returns_json() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        assert request.headers["accept"] == "application/json"
        return httpx.Response(200, json={"flow_median": [1]})

    async def scenario():
        async with ForecastClient(URL_TEMPLATE, transport=httpx.MockTransport(handler)) as client:
            return await client.fetch_forecast("760021611")

    assert asyncio.run(scenario()) == {"flow_median": [1]}
    assert seen == ["https://forecast.test/api/760021611"]


@pytest.mark.parametrize(
    "response, error",
    [
        (httpx.Response(500), ForecastConnectionError),
        (httpx.Response(404), ForecastConnectionError),
        (httpx.Response(429), ForecastConnectionError),
        (httpx.Response(200, text="<html>not json</html>"), MalformedForecastError),
        (httpx.Response(200, content=b'{"flow_median": [\xff\xfe]}'), MalformedForecastError),
    ],
)
def test_client_maps_failures(response: httpx.Response, error) -> None:
    async def scenario():
        client = ForecastClient(URL_TEMPLATE, transport=httpx.MockTransport(lambda _r: response))
        try:
            await client.fetch_forecast("1")
        finally:
            await client.aclose()

    with pytest.raises(error):
        asyncio.run(scenario())


def test_client_maps_timeouts() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    async def scenario():
        client = ForecastClient(URL_TEMPLATE, timeout=5, transport=httpx.MockTransport(handler))
        try:
            await client.fetch_forecast("1")
        finally:
            await client.aclose()

    with pytest.raises(ForecastConnectionError, match="timeout"):
        asyncio.run(scenario())


def test_check_safety_success_displays_series() -> None:
    async def scenario():
        service = _service(lambda _r: httpx.Response(200, json=_payload([10, 12, 15])))
        result = await service.check_safety("760021611", DANGER, "Main St Dam")
        await service.aclose()
        return result, service.slot.current()

    result, displayed = asyncio.run(scenario())

    assert result.outcome is CheckOutcome.success
    assert result.displayed is True
    assert result.series is not None
    assert result.series.site_name == "Main St Dam"
    assert result.series.verdict.dangerous is True
    assert result.series.timestamps[0] == datetime(2024, 6, 1, 0, tzinfo=timezone.utc)
    assert displayed is not None and displayed.site_id == "760021611"


def test_empty_median_is_no_data_and_leaves_chart() -> None:
    async def scenario():
        service = _service(
            lambda _r: httpx.Response(200, json={"datetime": [], "flow_median": []})
        )
        result = await service.check_safety("1", DANGER, "Dam")
        await service.aclose()
        return result, service.slot.current()

    result, displayed = asyncio.run(scenario())

    assert result.outcome is CheckOutcome.no_data
    assert result.series is None
    assert "no flow data" in result.message
    assert displayed is None


def test_network_failure_keeps_previous_chart(caplog) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if _site(request) == "down":
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=_payload([10, 12, 15]))

    async def scenario():
        service = _service(handler)
        first = await service.check_safety("up", DANGER, "Up Dam")
        second = await service.check_safety("down", DANGER, "Down Dam")
        await service.aclose()
        return first, second, service.slot.current()

    with caplog.at_level(logging.ERROR):
        first, second, displayed = asyncio.run(scenario())

    assert first.outcome is CheckOutcome.success
    assert second.outcome is CheckOutcome.connection_error
    assert second.series is None
    assert displayed is not None and displayed.site_id == "up"
    records = [record for record in caplog.records if record.name == "services.forecast"]
    assert any(getattr(record, "site_id", None) == "down" for record in records)


def test_malformed_response_is_connection_error() -> None:
    async def scenario():
        service = _service(
            lambda _r: httpx.Response(200, json={"datetime": ["x"], "flow_median": [1, 2]})
        )
        result = await service.check_safety("1", DANGER)
        await service.aclose()
        return result

    result = asyncio.run(scenario())

    assert result.outcome is CheckOutcome.connection_error
    assert "malformed" in result.message


def test_undecodable_response_is_connection_error() -> None:
    async def scenario():
        service = _service(
            lambda _r: httpx.Response(200, content=b'{"flow_median": [\xff\xfe]}')
        )
        result = await service.check_safety("1", DANGER)
        await service.aclose()
        return result

    result = asyncio.run(scenario())

    assert result.outcome is CheckOutcome.connection_error
    assert "malformed" in result.message


def test_oversized_flow_value_is_connection_error() -> None:
    async def scenario():
        service = _service(
            lambda _r: httpx.Response(
                200,
                content=b'{"datetime": ["2024-06-01T00:00:00Z"], "flow_median": [1' + b"0" * 400 + b"]}",
            )
        )
        result = await service.check_safety("1", DANGER)
        await service.aclose()
        return result

    result = asyncio.run(scenario())

    assert result.outcome is CheckOutcome.connection_error


def _out_of_order(ordering: ChartOrdering):
    async def scenario():
        gates = {"early": asyncio.Event(), "late": asyncio.Event()}

        async def handler(request: httpx.Request) -> httpx.Response:
            await gates[_site(request)].wait()
            return httpx.Response(200, json=_payload([10, 12, 15]))

        service = _service(handler, ordering=ordering)
        early = asyncio.create_task(service.check_safety("early", DANGER, "Early"))
        await asyncio.sleep(0)
        late = asyncio.create_task(service.check_safety("late", DANGER, "Late"))
        await asyncio.sleep(0)

        gates["late"].set()
        late_result = await late
        gates["early"].set()
        early_result = await early
        await service.aclose()
        return early_result, late_result, service.slot.current()

    return asyncio.run(scenario())


def test_concurrent_checks_last_request_wins() -> None:
    early, late, displayed = _out_of_order(ChartOrdering.request)

    assert early.sequence < late.sequence
    assert late.displayed is True
    assert early.displayed is False
    assert displayed is not None and displayed.site_id == "late"


def test_concurrent_checks_last_response_wins_with_arrival_ordering() -> None:
    early, late, displayed = _out_of_order(ChartOrdering.arrival)

    assert early.displayed is True
    assert late.displayed is True
    assert displayed is not None and displayed.site_id == "early"
