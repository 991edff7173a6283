"""Tests for the per-device poller."""

from __future__ import annotations

import asyncio

from rrfbridge.config import PollingConfig
from rrfbridge.core import DeviceClient, DevicePoller, MockRRFDevice
from rrfbridge.models import OFFLINE, ONLINE, OutboundMessage

# 15 fixed fields + x/y/z + e0 + bed + one unnamed heater
MOCK_VARIABLES = 21


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _drain(queue: asyncio.Queue[OutboundMessage]) -> list[OutboundMessage]:
    messages = []
    while not queue.empty():
        messages.append(queue.get_nowait())
    return messages


def _make_poller(host, queue, clock, discovery_interval=3600.0):
    return DevicePoller(
        DeviceClient(host, "reprap"),
        queue,
        PollingConfig(interval=60, discovery_interval=discovery_interval),
        "rrf-bridge",
        "homeassistant",
        clock=clock,
    )


def _discovery(messages):
    return [m for m in messages if m.topic.startswith("homeassistant/")]


def _states(messages):
    return [m for m in messages if m.topic.endswith("/state")]


def test_first_tick_publishes_everything(serve_app):
    device = MockRRFDevice()
    clock = FakeClock()

    async def scenario():
        queue: asyncio.Queue[OutboundMessage] = asyncio.Queue()
        async with serve_app(device.build_app()) as host:
            poller = _make_poller(host, queue, clock)
            try:
                await poller.tick()
            finally:
                await poller.client.close()
        return poller, _drain(queue)

    poller, messages = asyncio.run(scenario())

    assert messages[0].topic == poller.availability_topic
    assert messages[0].payload == ONLINE
    assert messages[0].retain
    assert len(_discovery(messages)) == MOCK_VARIABLES
    assert messages[-1].topic == "rrf-bridge/mockrrf/state"
    assert len(messages) == MOCK_VARIABLES + 2
    assert poller.availability == ONLINE


def test_availability_and_discovery_only_when_needed(serve_app):
    device = MockRRFDevice()
    clock = FakeClock()

    async def scenario():
        queue: asyncio.Queue[OutboundMessage] = asyncio.Queue()
        batches = []
        async with serve_app(device.build_app()) as host:
            poller = _make_poller(host, queue, clock, discovery_interval=300)
            try:
                for step in (0, 60, 240):
                    clock.now += step
                    await poller.tick()
                    batches.append(_drain(queue))
            finally:
                await poller.client.close()
        return batches

    first, second, third = asyncio.run(scenario())

    assert len(_discovery(first)) == MOCK_VARIABLES
    # second tick: no availability change, discovery not due
    assert len(second) == 1
    assert _states(second) == second
    # 300s after the first discovery it is due again
    assert len(_discovery(third)) == MOCK_VARIABLES
    assert not [m for m in third if m.topic.endswith("/availability")]
    # rr_connect once, config twice, two status requests per tick
    assert device.requests == 1 + 2 + 6


def test_failed_status_marks_device_offline(serve_app):
    # requests: 0 rr_connect, 1 rr_config, 2 status type 2
    device = MockRRFDevice(fail_requests={2})
    clock = FakeClock()

    async def scenario():
        queue: asyncio.Queue[OutboundMessage] = asyncio.Queue()
        batches = []
        async with serve_app(device.build_app()) as host:
            poller = _make_poller(host, queue, clock)
            try:
                for _ in range(2):
                    clock.now += 60
                    batches.append((await poller.tick(), _drain(queue)))
            finally:
                await poller.client.close()
        return poller, batches

    poller, ((failed, first), (recovered, second)) = asyncio.run(scenario())

    assert failed is None
    assert len(first) == 1
    assert first[0].topic == poller.availability_topic
    assert first[0].payload == OFFLINE

    # discovery never succeeded, so the next good tick registers the sensors
    assert recovered is not None
    assert second[0].payload == ONLINE
    assert len(_discovery(second)) == MOCK_VARIABLES
    assert len(_states(second)) == 1


def test_repeated_failures_publish_offline_once():
    clock = FakeClock()

    async def scenario():
        queue: asyncio.Queue[OutboundMessage] = asyncio.Queue()
        poller = _make_poller("127.0.0.1:1", queue, clock)
        try:
            for _ in range(3):
                await poller.tick()
        finally:
            await poller.client.close()
        return poller, _drain(queue)

    poller, messages = asyncio.run(scenario())

    assert poller.availability_topic == "rrf-bridge/127.0.0.1_1/availability"
    assert [m.payload for m in messages] == [OFFLINE]


def test_discovery_due():
    clock = FakeClock()
    queue: asyncio.Queue[OutboundMessage] = asyncio.Queue()
    poller = _make_poller("printer", queue, clock, discovery_interval=100)

    assert poller.discovery_due(0)
    poller._last_discovery = 50.0
    assert not poller.discovery_due(149)
    assert poller.discovery_due(150)


def test_run_stops_when_event_set(serve_app):
    device = MockRRFDevice()

    async def scenario():
        queue: asyncio.Queue[OutboundMessage] = asyncio.Queue()
        stop = asyncio.Event()
        async with serve_app(device.build_app()) as host:
            poller = DevicePoller(
                DeviceClient(host, "reprap"),
                queue,
                PollingConfig(interval=0.05),
                "rrf-bridge",
                "homeassistant",
            )
            task = asyncio.create_task(poller.run(stop))
            await asyncio.sleep(0.3)
            stop.set()
            await asyncio.wait_for(task, timeout=2)
            await poller.client.close()
        return _drain(queue)

    messages = asyncio.run(scenario())
    assert len(_states(messages)) >= 2
    assert len(_discovery(messages)) == MOCK_VARIABLES


def test_run_survives_unexpected_tick_errors(caplog):
    calls = []

    async def scenario():
        queue: asyncio.Queue[OutboundMessage] = asyncio.Queue()
        stop = asyncio.Event()
        poller = DevicePoller(
            DeviceClient("printer", "reprap"),
            queue,
            PollingConfig(interval=0.02),
            "rrf-bridge",
            "homeassistant",
        )

        async def broken_tick():
            calls.append(1)
            if len(calls) >= 3:
                stop.set()
            raise RuntimeError("bad firmware reply")

        poller.tick = broken_tick  # type: ignore[method-assign]
        await asyncio.wait_for(poller.run(stop), timeout=2)
        await poller.client.close()

    asyncio.run(scenario())

    assert len(calls) == 3
    assert "Tick for printer failed" in caplog.text
