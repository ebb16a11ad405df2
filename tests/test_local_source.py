"""Tests for family_app.adapters.local_source — LocalDataSource."""

import pytest

from family_app.data.models import EventResponse, TaskDraft, TelegramIdentity
from family_app.ports.data_port import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    capture,
)


class TestLocalReads:
    @pytest.mark.asyncio
    async def test_list_families_joins_users(self, local_source):
        families = await local_source.list_families("1")
        assert [f.id for f in families] == ["f1", "f2"]
        assert families[0].members[1].user.first_name == "Мария"

    @pytest.mark.asyncio
    async def test_list_tasks_all_and_filtered(self, local_source):
        assert len(await local_source.list_tasks("f1")) == 8
        active = await local_source.list_tasks("f1", "active")
        assert {t.id for t in active} == {"t1", "t2", "t4", "t7", "t8"}

    @pytest.mark.asyncio
    async def test_unknown_status_is_invalid(self, local_source):
        with pytest.raises(InvalidInputError):
            await local_source.list_tasks("f1", "done")

    @pytest.mark.asyncio
    async def test_search_excludes_current_user(self, local_source):
        found = await local_source.list_users("иван")
        assert [u.id for u in found] == ["2"]

    @pytest.mark.asyncio
    async def test_list_all_users(self, local_source):
        assert len(await local_source.list_users()) == 5

    @pytest.mark.asyncio
    async def test_wishlist_is_anonymized_for_owner(self, local_source):
        items = await local_source.list_wishlist("1", viewer_id="1")
        w3 = next(i for i in items if i.id == "w3")
        assert w3.is_booked is True
        assert w3.booked_by is None

    @pytest.mark.asyncio
    async def test_wishlist_shows_booker_their_booking(self, local_source):
        items = await local_source.list_wishlist("2", viewer_id="3")
        assert next(i for i in items if i.id == "w4").booked_by == "3"

    @pytest.mark.asyncio
    async def test_friend_views(self, local_source):
        assert {u.id for u in await local_source.list_friends("1")} == {"3", "4", "5"}
        incoming = await local_source.list_friend_requests("3")
        assert incoming[0].sender.username == "maria_ivanova"
        sent = await local_source.list_sent_requests("2")
        assert [r.receiver_id for r in sent] == ["3"]

    @pytest.mark.asyncio
    async def test_categories_sorted_by_type_and_order(self, local_source):
        categories = await local_source.list_categories()
        assert categories[0].id == "c11"
        assert len(categories) == 19


class TestLocalWrites:
    @pytest.mark.asyncio
    async def test_create_task(self, local_source):
        task = await local_source.create_task(
            TaskDraft(family_id="f1", created_by="1", type="shopping", title="Кефир")
        )
        assert task.id in {t.id for t in await local_source.list_tasks("f1", "active")}

    @pytest.mark.asyncio
    async def test_invalid_changes_become_invalid_input(self, local_source):
        with pytest.raises(InvalidInputError):
            await local_source.update_task("t1", {"quantity": -1})
        with pytest.raises(InvalidInputError):
            await local_source.update_user("1", {"birthday": "not-a-date"})
        with pytest.raises(InvalidInputError):
            await local_source.update_user("1", {"telegram_id": 1})
        with pytest.raises(InvalidInputError):
            await local_source.update_task("t1", {"title": 5})
        with pytest.raises(InvalidInputError):
            await local_source.update_event("e1", "1", {"event_date": 123})

    @pytest.mark.asyncio
    async def test_store_errors_pass_through(self, local_source):
        with pytest.raises(ConflictError):
            await local_source.book_item("w3", "4")
        with pytest.raises(NotFoundError):
            await local_source.get_user("nope")

    @pytest.mark.asyncio
    async def test_respond_to_event(self, local_source):
        await local_source.respond_to_event("e2", "1", EventResponse.GOING)
        events = await local_source.list_events("1")
        e2 = next(e for e in events if e.id == "e2")
        assert e2.participant("1").response is EventResponse.GOING

    @pytest.mark.asyncio
    async def test_upsert_user(self, local_source):
        user = await local_source.upsert_user(TelegramIdentity(telegram_id=7, first_name="Лена"))
        assert (await local_source.get_user(user.id)).first_name == "Лена"

    @pytest.mark.asyncio
    async def test_update_wishlist_item_returns_owner_view(self, local_source):
        item = await local_source.update_wishlist_item("w1", "1", {"price": 30000})
        assert item.price == 30000

    @pytest.mark.asyncio
    async def test_capture_folds_errors_into_result(self, local_source):
        result = await capture(local_source.delete_task("t3"))
        assert not result.ok
        assert result.kind == "conflict"
        assert "completed" in result.error

        ok = await capture(local_source.get_user("1"))
        assert ok.ok and ok.data.id == "1"
