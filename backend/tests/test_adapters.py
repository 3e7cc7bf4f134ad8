import json
from datetime import date, time
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
from twilio.base.exceptions import TwilioRestException

from fieldroute.adapters.calendar import CalendarCredentials, GoogleCalendarAdapter
from fieldroute.adapters.geocode import MapboxGeocoder
from fieldroute.adapters.notifications import LogOnlyNotifier, TwilioSmsNotifier, get_notifier
from fieldroute.database import async_session_maker
from fieldroute.exceptions import ValidationFailed
from fieldroute.models.appointment import Appointment, AppointmentStatus
from fieldroute.services.calendar_sync import CalendarSyncService
from fieldroute.utils.utils import clean_us_number

from helpers import make_appointment, make_customer, make_user


def _twilio(create=None):
    client = MagicMock()
    client.messages.create.side_effect = create or (lambda **kwargs: SimpleNamespace(sid="SM123"))
    return client


def test_clean_us_number():
    assert clean_us_number("(602) 555-0101") == "+16025550101"
    assert clean_us_number("+1 602 555 0101") == "+16025550101"
    with pytest.raises(ValueError):
        clean_us_number("555-0101")


def test_notifier_is_log_only_without_credentials():
    assert isinstance(get_notifier(), LogOnlyNotifier)


@pytest.mark.asyncio
async def test_sms_is_sent_to_normalized_number():
    client = _twilio()
    notifier = TwilioSmsNotifier("AC1", "token", "+15550000000", client=client)

    result = await notifier.notify("602.555.0101", "On the way")

    assert result.sent
    assert result.message_id == "SM123"
    client.messages.create.assert_called_once_with(
        to="+16025550101", from_="+15550000000", body="On the way"
    )


@pytest.mark.asyncio
async def test_sms_failures_are_reported_not_raised():
    def reject(**kwargs):
        raise TwilioRestException(400, "/Messages.json", msg="Invalid 'To' number", code=21211)

    notifier = TwilioSmsNotifier("AC1", "token", "+15550000000", client=_twilio(reject))

    failed = await notifier.notify("602-555-0101", "On the way")
    assert not failed.sent
    assert "Invalid" in failed.error

    assert not (await notifier.notify("12", "hi")).sent
    assert not (await notifier.notify("dana@example.com", "hi")).sent


@pytest.mark.asyncio
async def test_geocoder_reads_first_feature():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"features": [{"center": [-112.07, 33.45]}]})

    geocoder = MapboxGeocoder(token="pk.test", base_url="http://mapbox.test", transport=httpx.MockTransport(handler))
    coords = await geocoder.resolve("9 Oak Ave, Phoenix, AZ")

    assert (coords.lat, coords.lng) == (33.45, -112.07)
    assert seen[0].url.params["access_token"] == "pk.test"
    assert "Oak" in seen[0].url.path


@pytest.mark.asyncio
async def test_geocoder_returns_none_on_miss_or_error():
    empty = MapboxGeocoder(
        token="pk.test",
        base_url="http://mapbox.test",
        transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"features": []})),
    )
    broken = MapboxGeocoder(
        token="pk.test",
        base_url="http://mapbox.test",
        transport=httpx.MockTransport(lambda r: httpx.Response(401, json={"message": "Not Authorized"})),
    )
    assert await empty.resolve("nowhere") is None
    assert await broken.resolve("9 Oak Ave") is None
    assert await MapboxGeocoder(token="").resolve("9 Oak Ave") is None


@pytest.mark.asyncio
async def test_geocoder_returns_none_on_unreadable_body():
    html = MapboxGeocoder(
        token="pk.test",
        base_url="http://mapbox.test",
        transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>maintenance</html>")),
    )
    odd_shape = MapboxGeocoder(
        token="pk.test",
        base_url="http://mapbox.test",
        transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"features": [{"id": "x"}]})),
    )
    assert await html.resolve("9 Oak Ave") is None
    assert await odd_shape.resolve("9 Oak Ave") is None


class CalendarBackend:
    def __init__(self):
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = json.loads(request.content)
        if body["summary"] == "Broken":
            return httpx.Response(500)
        if request.method == "PUT":
            return httpx.Response(200, json={"id": request.url.path.rsplit("/", 1)[-1]})
        return httpx.Response(200, json={"id": f"evt-{body['extendedProperties']['private']['appointment_id']}"})


@pytest.mark.asyncio
async def test_calendar_sync_creates_updates_and_reports_per_item():
    backend = CalendarBackend()
    adapter = GoogleCalendarAdapter(base_url="http://calendar.test", transport=httpx.MockTransport(backend))

    async with async_session_maker() as db:
        office = await make_user(db, "office@example.com")
        customer = await make_customer(db)
        new = await make_appointment(db, customer, date(2024, 6, 3), at_time=time(9, 0), owner=office)
        known = await make_appointment(
            db, customer, date(2024, 6, 4), owner=office, external_event_id="evt-existing"
        )
        broken = await make_appointment(db, customer, date(2024, 6, 5), owner=office, service_type="Broken")
        await make_appointment(db, customer, date(2024, 6, 6), owner=office, status=AppointmentStatus.CANCELLED)
        await make_appointment(db, customer, date(2024, 5, 1), owner=office)

        report = await CalendarSyncService(db, adapter).sync_for_user(
            office.id, CalendarCredentials(provider="google", access_token="ya29"), date(2024, 6, 1)
        )
        await db.commit()

        assert (report.synced, report.failed) == (2, 1)
        assert [r.method for r in backend.requests] == ["POST", "PUT", "POST"]
        assert backend.requests[0].headers["Authorization"] == "Bearer ya29"

        stored_new = await db.get(Appointment, new.id)
        assert stored_new.external_event_id == f"evt-{new.id}"
        assert stored_new.last_synced_at is not None
        stored_broken = await db.get(Appointment, broken.id)
        assert stored_broken.external_event_id is None
        assert (await db.get(Appointment, known.id)).external_event_id == "evt-existing"


@pytest.mark.asyncio
async def test_calendar_sync_rejects_unknown_provider():
    async with async_session_maker() as db:
        with pytest.raises(ValidationFailed):
            await CalendarSyncService(db).sync_for_user(
                1, CalendarCredentials(provider="outlook", access_token="x"), date(2024, 6, 1)
            )
