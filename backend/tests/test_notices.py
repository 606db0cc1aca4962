import pytest

from domain.errors import ResolutionFailure, UpstreamFailure
from domain.models import LocationErrorReason, NoticeKind
from services import notices


@pytest.mark.parametrize(
    "reason,kind",
    [
        (LocationErrorReason.PERMISSION_DENIED, NoticeKind.PERMISSION_DENIED),
        (LocationErrorReason.UNSUPPORTED, NoticeKind.LOCATION_UNSUPPORTED),
        (LocationErrorReason.UNAVAILABLE, NoticeKind.LOCATION_UNAVAILABLE),
        (LocationErrorReason.TIMEOUT, NoticeKind.LOCATION_TIMEOUT),
    ],
)
def test_device_notices_are_distinct_per_reason(reason, kind):
    notice = notices.device_location_notice(reason, None, "Kathmandu")
    assert notice.kind == kind
    assert notice.message.endswith("Defaulting to Kathmandu.")


def test_device_notice_keeps_last_fix_wording():
    notice = notices.device_location_notice(LocationErrorReason.UNAVAILABLE, "signal lost", None)
    assert notice.message == "Location unavailable: signal lost. Using your last known location."


def test_rate_limited_failures_get_their_own_notice():
    exc = UpstreamFailure("overpass", "HTTP 429", status_code=429)
    assert notices.search_failed_notice(exc).kind == NoticeKind.RATE_LIMITED
    assert "restaurant search" in notices.search_failed_notice(exc).message

    geo_exc = ResolutionFailure("nominatim", "HTTP 429", status_code=429)
    assert notices.geocoding_failed_notice("Pokhara", geo_exc).kind == NoticeKind.RATE_LIMITED


def test_failure_and_not_found_notices_differ():
    exc = ResolutionFailure("nominatim", "request failed: timeout")
    failed = notices.geocoding_failed_notice("Narnia", exc)
    missing = notices.location_not_found_notice("Narnia")

    assert failed.kind == NoticeKind.GEOCODING_FAILED
    assert missing.kind == NoticeKind.LOCATION_NOT_FOUND
    assert "timeout" in failed.message
    assert 'Could not find "Narnia"' in missing.message
