"""
Geolocation sampler and device position source tests.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from ridesafe.app.core.exceptions import CapabilityError, PermissionOrTimeoutError
from ridesafe.app.tracking.position import (
    PositionError, PositionErrorCode, PositionOptions, PositionSample
)
from ridesafe.app.tracking.position_source import DevicePositionSource
from ridesafe.app.tracking.sampler import GeolocationSampler, UNSUPPORTED_MESSAGE


class FakePositionSource:
    """Synchronous stand-in for a device position API."""

    def __init__(self, supported=True):
        self.supported = supported
        self.watches = {}
        self.cleared = []
        self._next = 1

    def watch_position(self, on_fix, on_error, options):
        watch_id = self._next
        self._next += 1
        self.watches[watch_id] = (on_fix, on_error, options)
        return watch_id

    def clear_watch(self, watch_id):
        self.cleared.append(watch_id)
        self.watches.pop(watch_id, None)

    def emit(self, sample):
        for on_fix, _, _ in list(self.watches.values()):
            on_fix(sample)

    def fail(self, code, message):
        for _, on_error, _ in list(self.watches.values()):
            on_error(PositionError(code, message))


def fix(lat=28.6139, lng=77.2090, heading=None, speed=None, when=None):
    return PositionSample(
        lat=lat, lng=lng, heading=heading, speed=speed, accuracy=8.0,
        timestamp=when or datetime.now(timezone.utc)
    )


def test_unsupported_source_fails_immediately():
    sampler = GeolocationSampler(FakePositionSource(supported=False))

    with pytest.raises(CapabilityError):
        sampler.start_tracking()

    assert sampler.is_tracking is False
    assert sampler.error == UNSUPPORTED_MESSAGE


def test_default_options_request_fresh_high_accuracy_fix():
    source = FakePositionSource()
    GeolocationSampler(source).start_tracking()

    (_, _, options), = source.watches.values()
    assert options == PositionOptions(high_accuracy=True, timeout_ms=5000, maximum_age_ms=0)


def test_fix_updates_location_and_listeners():
    source = FakePositionSource()
    sampler = GeolocationSampler(source)
    received = []
    sampler.on_sample(received.append)

    sampler.start_tracking()
    stationary = fix(heading=None, speed=None)
    source.emit(stationary)

    assert sampler.is_tracking is True
    assert sampler.location == stationary
    assert sampler.location.heading is None and sampler.location.speed is None
    assert received == [stationary]


def test_only_one_watch_per_sampler():
    source = FakePositionSource()
    sampler = GeolocationSampler(source)

    sampler.start_tracking()
    sampler.start_tracking()

    assert len(source.watches) == 1
    assert source.cleared == [1]


def test_error_is_terminal_until_restarted():
    source = FakePositionSource()
    sampler = GeolocationSampler(source)
    errors = []
    sampler.on_error(errors.append)

    sampler.start_tracking()
    source.fail(PositionErrorCode.PERMISSION_DENIED, "User denied Geolocation")

    assert sampler.is_tracking is False
    assert sampler.error == "User denied Geolocation"
    assert source.watches == {}
    assert isinstance(errors[0], PermissionOrTimeoutError)
    assert errors[0].details["reason"] == "PERMISSION_DENIED"

    # a fresh call restarts cleanly
    sampler.start_tracking()
    assert sampler.is_tracking is True
    assert sampler.error is None
    assert len(source.watches) == 1


def test_cancellation_handle_clears_watch():
    source = FakePositionSource()
    sampler = GeolocationSampler(source)

    stop = sampler.start_tracking()
    stop()

    assert source.watches == {}
    assert sampler.is_tracking is False


def test_stale_handle_does_not_cancel_newer_watch():
    source = FakePositionSource()
    sampler = GeolocationSampler(source)

    old_stop = sampler.start_tracking()
    sampler.start_tracking()
    old_stop()

    assert sampler.is_tracking is True
    assert len(source.watches) == 1


def test_failing_listener_does_not_break_sampling():
    source = FakePositionSource()
    sampler = GeolocationSampler(source)
    received = []

    def broken(sample):
        raise RuntimeError("boom")

    sampler.on_sample(broken)
    sampler.on_sample(received.append)
    sampler.start_tracking()
    source.emit(fix())

    assert len(received) == 1


# DevicePositionSource

@pytest.mark.asyncio
async def test_device_source_delivers_pushed_fixes():
    source = DevicePositionSource()
    sampler = GeolocationSampler(source)
    sampler.start_tracking()

    reached = await source.push(fix(lat=1.0, lng=2.0))

    assert reached == 1
    assert (sampler.location.lat, sampler.location.lng) == (1.0, 2.0)


@pytest.mark.asyncio
async def test_device_source_times_out_without_fix():
    source = DevicePositionSource()
    sampler = GeolocationSampler(source, PositionOptions(timeout_ms=20))
    errors = []
    sampler.on_error(errors.append)

    sampler.start_tracking()
    await asyncio.sleep(0.1)

    assert sampler.is_tracking is False
    assert sampler.error == "Timeout expired"
    assert errors[0].details["reason"] == "TIMEOUT"
    assert source.active_watches == 0


@pytest.mark.asyncio
async def test_device_source_reports_device_error():
    source = DevicePositionSource()
    sampler = GeolocationSampler(source)
    sampler.start_tracking()

    await source.report_error(PositionErrorCode.POSITION_UNAVAILABLE, "Position unavailable")

    assert sampler.is_tracking is False
    assert sampler.error == "Position unavailable"
    assert source.active_watches == 0


@pytest.mark.asyncio
async def test_device_source_never_reuses_stale_fix():
    source = DevicePositionSource()
    sampler = GeolocationSampler(source)
    sampler.start_tracking()

    await source.push(fix(when=datetime.now(timezone.utc) - timedelta(minutes=5)))
    assert sampler.location is None

    await source.push(fix())
    assert sampler.location is not None


@pytest.mark.asyncio
async def test_device_source_clear_watch_stops_delivery():
    source = DevicePositionSource()
    sampler = GeolocationSampler(source)

    stop = sampler.start_tracking()
    stop()
    await asyncio.sleep(0)

    assert source.active_watches == 0
    assert await source.push(fix()) == 0


def test_unsupported_device_source():
    sampler = GeolocationSampler(DevicePositionSource(supported=False))

    with pytest.raises(CapabilityError):
        sampler.start_tracking()
