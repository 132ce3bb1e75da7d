"""
Counterpart location sync tests.
"""

from datetime import datetime, timezone

import pytest

from ridesafe.app.core.exceptions import PersistenceError
from ridesafe.app.models.enums import UserType
from ridesafe.app.realtime.change_feed import channel_for
from ridesafe.app.schemas.realtime import LocationChangeEvent, RideLocationPayload
from ridesafe.app.tracking.counterpart_sync import CounterpartLocationSync

PASSENGER_ID = 1
DRIVER_ID = 2

_ids = iter(range(1, 10_000))


def location_event(ride_id="ride-1", user_id=DRIVER_ID, lat=28.6139, lng=77.2090, **overrides):
    record = dict(
        id=next(_ids),
        ride_id=ride_id,
        user_id=user_id,
        user_type=UserType.DRIVER if user_id == DRIVER_ID else UserType.PASSENGER,
        lat=lat,
        lng=lng,
        heading=90.0,
        speed=11.0,
        accuracy=6.0,
        timestamp=datetime.now(timezone.utc),
    )
    record.update(overrides)
    return LocationChangeEvent(record=RideLocationPayload(**record))


def test_own_events_are_ignored_for_any_payload(feed):
    sync = CounterpartLocationSync(feed, PASSENGER_ID)
    sync.ride_id = "ride-1"

    assert sync.handle_event(location_event(user_id=PASSENGER_ID)) is False
    assert sync.handle_event(location_event(user_id=PASSENGER_ID, lat=-33.0, lng=151.0)) is False
    assert sync.other_user_location is None


def test_events_for_other_rides_are_ignored(feed):
    sync = CounterpartLocationSync(feed, PASSENGER_ID)
    sync.ride_id = "ride-1"

    assert sync.handle_event(location_event(ride_id="ride-2")) is False
    assert sync.other_user_location is None


def test_last_write_wins(feed):
    sync = CounterpartLocationSync(feed, PASSENGER_ID)
    sync.ride_id = "ride-1"

    sync.handle_event(location_event(lat=1.0, lng=1.0))
    sync.handle_event(location_event(lat=2.0, lng=2.0))

    assert (sync.other_user_location.lat, sync.other_user_location.lng) == (2.0, 2.0)
    assert sync.other_user_location.heading == 90.0
    assert sync.other_user_id == DRIVER_ID


def test_missing_accuracy_defaults_to_zero(feed):
    sync = CounterpartLocationSync(feed, PASSENGER_ID)
    sync.ride_id = "ride-1"

    sync.handle_event(location_event(accuracy=None))

    assert sync.other_user_location.accuracy == 0.0


@pytest.mark.asyncio
async def test_feed_events_reach_counterpart(feed, wait_until):
    sync = CounterpartLocationSync(feed, PASSENGER_ID)
    await sync.watch("ride-1")

    await feed.publish(location_event(user_id=PASSENGER_ID, lat=5.0, lng=5.0))
    await feed.publish(location_event(lat=12.97, lng=77.59))
    await wait_until(lambda: sync.other_user_location is not None)

    assert (sync.other_user_location.lat, sync.other_user_location.lng) == (12.97, 77.59)

    await sync.close()


@pytest.mark.asyncio
async def test_malformed_messages_are_skipped(feed, mock_redis, wait_until):
    sync = CounterpartLocationSync(feed, PASSENGER_ID)
    await sync.watch("ride-1")

    await mock_redis.publish(channel_for("ride-1"), "{not json")
    await mock_redis.publish(channel_for("ride-1"), '{"event": "UPDATE"}')
    await feed.publish(location_event(lat=3.0, lng=4.0))
    await wait_until(lambda: sync.other_user_location is not None)

    assert sync.other_user_location.lat == 3.0

    await sync.close()


@pytest.mark.asyncio
async def test_switching_rides_releases_previous_subscription(feed, mock_redis):
    sync = CounterpartLocationSync(feed, PASSENGER_ID)

    await sync.watch("ride-1")
    await sync.watch("ride-1")
    assert mock_redis.subscriber_count(channel_for("ride-1")) == 1

    await sync.watch("ride-2")
    assert mock_redis.subscriber_count(channel_for("ride-1")) == 0
    assert mock_redis.subscriber_count(channel_for("ride-2")) == 1
    assert sync.ride_id == "ride-2"

    await sync.close()
    assert mock_redis.subscriber_count(channel_for("ride-2")) == 0
    assert sync.is_subscribed is False


@pytest.mark.asyncio
async def test_switching_rides_clears_previous_counterpart(feed):
    sync = CounterpartLocationSync(feed, PASSENGER_ID)
    await sync.watch("ride-1")
    sync.handle_event(location_event())

    await sync.watch("ride-2")

    assert sync.other_user_location is None
    assert sync.other_user_id is None

    await sync.close()


@pytest.mark.asyncio
async def test_subscribe_failure_raises_persistence_error(feed, mock_redis):
    mock_redis.fail_subscribe = True
    sync = CounterpartLocationSync(feed, PASSENGER_ID)

    with pytest.raises(PersistenceError):
        await sync.watch("ride-1")

    assert sync.is_subscribed is False


@pytest.mark.asyncio
async def test_close_without_subscription_is_noop(feed):
    sync = CounterpartLocationSync(feed, PASSENGER_ID)

    await sync.close()

    assert sync.is_subscribed is False
