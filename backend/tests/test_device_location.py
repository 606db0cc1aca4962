from domain.models import Coordinate, LocationErrorReason
from services.device_location import PushLocationProvider


def test_push_reaches_every_subscriber_until_unsubscribed():
    provider = PushLocationProvider()
    seen_a, seen_b = [], []
    handle_a = provider.subscribe(seen_a.append, lambda *a: None)
    provider.subscribe(seen_b.append, lambda *a: None)

    provider.push(Coordinate(27.7, 85.3))
    provider.unsubscribe(handle_a)
    provider.push(Coordinate(27.8, 85.4))

    assert seen_a == [Coordinate(27.7, 85.3)]
    assert seen_b == [Coordinate(27.7, 85.3), Coordinate(27.8, 85.4)]
    assert provider.subscriber_count == 1
    assert provider.last_coordinate == Coordinate(27.8, 85.4)


def test_fail_reports_reason_and_detail():
    provider = PushLocationProvider()
    errors = []
    provider.subscribe(lambda c: None, lambda reason, detail: errors.append((reason, detail)))

    provider.fail(LocationErrorReason.PERMISSION_DENIED, "User denied Geolocation")

    assert errors == [(LocationErrorReason.PERMISSION_DENIED, "User denied Geolocation")]


def test_handles_are_unique_and_unsubscribe_is_idempotent():
    provider = PushLocationProvider()
    h1 = provider.subscribe(lambda c: None, lambda *a: None)
    h2 = provider.subscribe(lambda c: None, lambda *a: None)

    provider.unsubscribe(h1)
    provider.unsubscribe(h1)

    assert h1 != h2
    assert provider.subscriber_count == 1
