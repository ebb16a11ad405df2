"""Tests for family_app.adapters.rest_source — RestDataSource over a mock transport."""

import json

import httpx
import pytest

from family_app.adapters.rest_source import RestDataSource
from family_app.data.models import EventResponse, TaskDraft
from family_app.ports.data_port import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    TransportError,
)

BASE = "https://family.test/api"

USER_ROW = {"id": "1", "telegram_id": 123456789, "first_name": "Иван", "username": "ivan_ivanov"}
TASK_ROW = {
    "id": "t1", "family_id": "f1", "created_by": "1", "type": "shopping",
    "title": "Молоко", "quantity": 2, "unit": "л", "status": "active",
    "category": {"id": "c1", "name": "Молочное"},
}


def _source(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RestDataSource(BASE, client=client, retry_backoff=0, **kwargs)


def _ok(data, status=200):
    return httpx.Response(status, json={"data": data})


def _error(status, message):
    return httpx.Response(status, json={"error": message})


class TestEnvelope:
    @pytest.mark.asyncio
    async def test_get_user_unwraps_data(self):
        seen = []

        def handler(request):
            seen.append(request)
            return _ok(USER_ROW)

        user = await _source(handler).get_user("1")
        assert user.first_name == "Иван"
        assert seen[0].url.path == "/api/users"
        assert seen[0].url.params["id"] == "1"

    @pytest.mark.asyncio
    async def test_null_user_is_not_found(self):
        with pytest.raises(NotFoundError):
            await _source(lambda r: _ok(None)).get_user("9")

    @pytest.mark.asyncio
    async def test_joined_keys_are_ignored(self):
        tasks = await _source(lambda r: _ok([TASK_ROW])).list_tasks("f1", "active")
        assert tasks[0].quantity == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,error", [
        (400, InvalidInputError),
        (422, InvalidInputError),
        (404, NotFoundError),
        (409, ConflictError),
        (403, TransportError),
    ])
    async def test_status_mapping(self, status, error):
        with pytest.raises(error, match="nope"):
            await _source(lambda r: _error(status, "nope")).delete_task("t1")

    @pytest.mark.asyncio
    async def test_error_without_body_mentions_status(self):
        source = _source(lambda r: httpx.Response(404, text="gone"))
        with pytest.raises(NotFoundError, match="404"):
            await source.delete_event("e1")

    @pytest.mark.asyncio
    async def test_non_json_success_is_transport_error(self):
        source = _source(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(TransportError):
            await source.list_users()

    @pytest.mark.asyncio
    async def test_malformed_row_is_transport_error(self):
        source = _source(lambda r: _ok([{"id": "t1"}]))
        with pytest.raises(TransportError, match="Malformed"):
            await source.list_tasks("f1")

    @pytest.mark.asyncio
    async def test_list_payload_must_be_a_list(self):
        with pytest.raises(TransportError):
            await _source(lambda r: _ok({"id": "1"})).list_friends("1")


class TestRetries:
    @pytest.mark.asyncio
    async def test_get_retries_on_5xx_then_fails(self):
        calls = []

        def handler(request):
            calls.append(request)
            return _error(503, "unavailable")

        with pytest.raises(TransportError, match="unavailable"):
            await _source(handler, max_retries=2).list_events("1")
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_get_recovers_after_transient_failure(self):
        responses = [_error(500, "boom"), _ok([USER_ROW])]
        users = await _source(lambda r: responses.pop(0)).list_users()
        assert [u.id for u in users] == ["1"]

    @pytest.mark.asyncio
    async def test_4xx_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return _error(404, "missing")

        with pytest.raises(NotFoundError):
            await _source(handler).list_families("1")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_mutations_are_sent_once(self):
        calls = []

        def handler(request):
            calls.append(request)
            return _error(500, "boom")

        with pytest.raises(TransportError):
            await _source(handler).create_family("Дача", "1")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_network_error_becomes_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError, match="connection refused"):
            await _source(handler, max_retries=0).list_categories()


class TestRequests:
    @pytest.mark.asyncio
    async def test_complete_task_sends_actor(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return _ok({**TASK_ROW, "status": "completed", "completed_by": "2",
                        "completed_at": "2025-03-01T12:00:00+00:00"})

        task = await _source(handler).complete_task("t1", "2")
        assert seen[0] == {"id": "t1", "status": "completed", "completed_by": "2"}
        assert task.completed_by == "2"

    @pytest.mark.asyncio
    async def test_create_task_posts_draft(self):
        seen = []

        def handler(request):
            seen.append((request.method, json.loads(request.content)))
            return _ok(TASK_ROW, status=201)

        draft = TaskDraft(family_id="f1", created_by="1", type="shopping", title="Молоко",
                          quantity=2, unit="л")
        await _source(handler).create_task(draft)
        method, body = seen[0]
        assert method == "POST"
        assert body["type"] == "shopping"
        assert body["quantity"] == 2

    @pytest.mark.asyncio
    async def test_respond_sends_response_value(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return _ok({"success": True})

        result = await _source(handler).respond_to_event("e2", "1", EventResponse.NOT_GOING)
        assert result is None
        assert seen[0] == {"type": "response", "event_id": "e2", "user_id": "1",
                           "response": "not_going"}

    @pytest.mark.asyncio
    async def test_invalid_response_rejected_before_sending(self):
        source = _source(lambda r: pytest.fail("request should not be sent"))
        with pytest.raises(InvalidInputError):
            await source.respond_to_event("e2", "1", "maybe")

    @pytest.mark.asyncio
    async def test_accept_returns_nothing(self):
        seen = []

        def handler(request):
            seen.append((request.method, json.loads(request.content)))
            return _ok({"success": True})

        assert await _source(handler).accept_friend_request("fr1", "3") is None
        assert seen[0] == ("PATCH", {"action": "accept", "request_id": "fr1", "user_id": "3"})

    @pytest.mark.asyncio
    async def test_self_friend_request_rejected_locally(self):
        source = _source(lambda r: pytest.fail("request should not be sent"))
        with pytest.raises(InvalidInputError):
            await source.send_friend_request("1", "1")

    @pytest.mark.asyncio
    async def test_update_user_validates_fields(self):
        source = _source(lambda r: pytest.fail("request should not be sent"))
        with pytest.raises(InvalidInputError):
            await source.update_user("1", {"telegram_id": 5})

    @pytest.mark.asyncio
    async def test_wrongly_typed_edits_rejected_before_sending(self):
        source = _source(lambda r: pytest.fail("request should not be sent"))
        with pytest.raises(InvalidInputError):
            await source.update_task("t1", {"title": 5})
        with pytest.raises(InvalidInputError):
            await source.update_event("e1", "1", {"event_date": 123})
        with pytest.raises(InvalidInputError):
            await source.update_wishlist_item("w1", "1", {"booked_by": "4"})

    @pytest.mark.asyncio
    async def test_remove_friend_uses_query_params(self):
        seen = []

        def handler(request):
            seen.append(request)
            return _ok({"success": True})

        await _source(handler).remove_friend("1", "3")
        assert seen[0].method == "DELETE"
        assert dict(seen[0].url.params) == {"user_id": "1", "friend_id": "3"}


class TestWishlistAnonymity:
    ROWS = [
        {"id": "w3", "user_id": "1", "title": "Подписка", "is_booked": True,
         "booked_by": "3", "booked_at": "2025-03-01T12:00:00+00:00"},
        {"id": "w1", "user_id": "1", "title": "Наушники"},
    ]

    @pytest.mark.asyncio
    async def test_owner_view_scrubbed_even_if_server_leaks(self):
        items = await _source(lambda r: _ok(self.ROWS)).list_wishlist("1", viewer_id="1")
        w3 = items[0]
        assert w3.is_booked
        assert w3.booked_by is None
        assert w3.booked_at is None

    @pytest.mark.asyncio
    async def test_booker_sees_own_booking(self):
        items = await _source(lambda r: _ok(self.ROWS)).list_wishlist("1", viewer_id="3")
        assert items[0].booked_by == "3"

    @pytest.mark.asyncio
    async def test_third_party_sees_only_flag(self):
        items = await _source(lambda r: _ok(self.ROWS)).list_wishlist("1", viewer_id="4")
        assert items[0].is_booked
        assert items[0].booked_by is None

    @pytest.mark.asyncio
    async def test_booking_time_hidden_when_booker_is_omitted(self):
        row = {"id": "w3", "user_id": "1", "title": "Подписка", "is_booked": True,
               "booked_at": "2025-03-01T12:00:00+00:00"}
        items = await _source(lambda r: _ok([row])).list_wishlist("1", viewer_id="1")
        assert items[0].is_booked
        assert items[0].booked_by is None
        assert items[0].booked_at is None

    @pytest.mark.asyncio
    async def test_book_sends_booker(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return _ok({"success": True})

        await _source(handler).book_item("w1", "4")
        assert seen[0] == {"action": "book", "item_id": "w1", "booked_by": "4"}


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_close_leaves_injected_client_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: _ok(None)))
        source = RestDataSource(BASE, client=client)
        await source.close()
        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_base_url_trailing_slash_stripped(self):
        seen = []

        def handler(request):
            seen.append(request)
            return _ok([])

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        await RestDataSource(BASE + "/", client=client).list_categories()
        assert seen[0].url.path == "/api/tasks"
