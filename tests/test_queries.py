"""Tests for family_app.core.queries — feature queries over a local-mode app."""

from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import AsyncMock

from family_app.core.app import FamilyApp
from family_app.data.models import (
    EventDraft,
    EventResponse,
    NotificationType,
    TaskDraft,
    TaskStatus,
    TaskType,
    WishlistDraft,
)


def _in_days(n):
    return (datetime.now(timezone.utc) + timedelta(days=n)).isoformat()


@pytest.fixture
def notifier():
    return AsyncMock()


@pytest.fixture
def notified_app(local_settings, local_source, store, notifier):
    """Local app with a mock notifier so mutations' notifications can be asserted."""
    return FamilyApp(local_settings, local_source, store=store, notifier=notifier)


class TestCurrentUser:
    @pytest.mark.asyncio
    async def test_start_loads_seed_user(self, local_app):
        user = await local_app.start()
        assert user.first_name == "Иван"
        assert local_app.current_user.user.id == "1"

    @pytest.mark.asyncio
    async def test_update_profile(self, local_app):
        await local_app.start()
        await local_app.current_user.update({"first_name": "Ваня"})
        user = await local_app.current_user.load()
        assert user.first_name == "Ваня"

    @pytest.mark.asyncio
    async def test_invalid_update_is_reported_on_mutation(self, local_app):
        result = await local_app.current_user.update({"birthday": "31.12.1990"})
        assert result is None
        assert local_app.current_user.update.kind == "invalid"


class TestFamilies:
    @pytest.mark.asyncio
    async def test_selected_family_defaults_to_first(self, local_app):
        families = local_app.families()
        await families.load()
        assert [f.id for f in families.families] == ["f1", "f2"]
        assert families.selected_family.id == "f1"
        assert [u.id for u in families.family_members] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_sole_admin_leaving_deletes_group(self, local_app):
        families = local_app.families()
        families.select("f2")
        await families.leave("f2")
        await families.load()
        assert families.selected_family_id is None
        assert [f.id for f in families.families] == ["f1"]

    @pytest.mark.asyncio
    async def test_member_leaving_keeps_group(self, local_app):
        await local_app.families("2").leave("f1")
        families = local_app.families()
        await families.load()
        f1 = families.selected_family
        assert f1.id == "f1"
        assert [m.user_id for m in f1.members] == ["1"]

    @pytest.mark.asyncio
    async def test_create_selects_new_family(self, local_app):
        families = local_app.families()
        await families.load()
        family = await families.create("Дача")
        await families.load()
        assert families.selected_family.id == family.id
        assert families.selected_family.is_admin("1")

    @pytest.mark.asyncio
    async def test_invite_twice_is_a_conflict(self, local_app):
        families = local_app.families()
        await families.invite("f2", "2")
        await families.invite("f2", "2")
        assert families.invite.kind == "conflict"

    @pytest.mark.asyncio
    async def test_invite_notifies_invitee(self, notified_app, notifier):
        await notified_app.families().invite("f2", "2")
        notifier.notify.assert_awaited_once_with(
            NotificationType.FAMILY_INVITE, ["2"], actor_id="1", family="Родители"
        )


class TestTasks:
    @pytest.mark.asyncio
    async def test_active_and_archived_split(self, local_app):
        tasks = local_app.tasks("f1")
        await tasks.load()
        assert {t.id for t in tasks.archived_tasks} == {"t6"}
        assert "t3" in {t.id for t in tasks.active_tasks}

    @pytest.mark.asyncio
    async def test_load_is_cached(self, local_app):
        tasks = local_app.tasks("f1")
        await tasks.load()
        await tasks.load()
        assert local_app.client.get_state(tasks.key).fetch_count == 1

    @pytest.mark.asyncio
    async def test_add_then_reload_shows_task(self, local_app):
        tasks = local_app.tasks("f1")
        await tasks.load()
        task = await tasks.add(TaskDraft(family_id="f1", created_by="1", type="shopping",
                                         title="Кефир", quantity=1, unit="л"))
        assert local_app.client.get_state(tasks.key).stale is True
        await tasks.load()
        assert task.id in {t.id for t in tasks.tasks}

    @pytest.mark.asyncio
    async def test_wrongly_typed_edit_is_reported_on_mutation(self, local_app):
        tasks = local_app.tasks("f1")
        assert await tasks.update("t1", {"title": 5}) is None
        assert tasks.update.kind == "invalid"
        await tasks.load()
        assert next(t for t in tasks.tasks if t.id == "t1").title == "Молоко"

    @pytest.mark.asyncio
    async def test_add_to_another_family_invalidates_that_family(self, local_app):
        family = await local_app.families().create("Дача")
        mine, other = local_app.tasks("f1"), local_app.tasks(family.id)
        await mine.load()
        await other.load()
        task = await mine.add(TaskDraft(family_id=family.id, created_by="1",
                                        type="home", title="Покрасить забор"))
        assert local_app.client.get_state(other.key).stale is True
        assert local_app.client.get_state(mine.key).stale is False
        await other.load()
        assert [t.id for t in other.tasks] == [task.id]

    @pytest.mark.asyncio
    async def test_complete_then_archive(self, local_app):
        tasks = local_app.tasks("f1")
        completed = await tasks.complete("t1")
        assert completed.status is TaskStatus.COMPLETED
        assert completed.completed_by == "1"
        assert completed.completed_at

        await tasks.archive("t1")
        await tasks.load()
        assert "t1" in {t.id for t in tasks.archived_tasks}

    @pytest.mark.asyncio
    async def test_deleting_completed_task_fails(self, local_app):
        tasks = local_app.tasks("f1")
        assert await tasks.delete("t3") is None
        assert tasks.delete.kind == "conflict"

    @pytest.mark.asyncio
    async def test_assignment_notifies_assignees(self, notified_app, notifier):
        await notified_app.tasks("f1").add(
            TaskDraft(family_id="f1", created_by="1", type="home", title="Пропылесосить",
                      assigned_to=["1", "2"])
        )
        notifier.notify.assert_awaited_once_with(
            NotificationType.TASK_ASSIGNED, ["1", "2"], actor_id="1", task="Пропылесосить"
        )

    @pytest.mark.asyncio
    async def test_categories_by_type(self, local_app):
        categories = local_app.categories()
        await categories.load()
        assert len(categories.by_type[TaskType.HOME]) == 5


class TestEvents:
    @pytest.mark.asyncio
    async def test_invitee_sees_new_event(self, local_app):
        event = await local_app.events().add(
            EventDraft(created_by="1", title="Шашлыки", event_date=_in_days(5),
                       invited_users=["2"])
        )
        guest_events = local_app.events("2")
        await guest_events.load()
        assert event.id in {e.id for e in guest_events.events}

    @pytest.mark.asyncio
    async def test_respond_updates_participant(self, local_app):
        events = local_app.events()
        await events.respond("e2", EventResponse.NOT_GOING)
        await events.load()
        e2 = next(e for e in events.events if e.id == "e2")
        assert e2.participant("1").response is EventResponse.NOT_GOING

    @pytest.mark.asyncio
    async def test_only_creator_edits(self, local_app):
        events = local_app.events()
        await events.update("e2", {"title": "Кино"})
        assert events.update.kind == "conflict"

    @pytest.mark.asyncio
    async def test_response_notifies_creator(self, notified_app, notifier):
        await notified_app.events().respond("e2", "going")
        notifier.notify.assert_awaited_once_with(
            NotificationType.EVENT_RESPONSE, ["3"], actor_id="1",
            event="Поход в кино", response="going",
        )


class TestWishlist:
    @pytest.mark.asyncio
    async def test_owner_view_hides_booker(self, local_app):
        wishlist = local_app.wishlist()
        await wishlist.load()
        w3 = next(i for i in wishlist.items if i.id == "w3")
        assert w3.is_booked
        assert w3.booked_by is None
        assert {i.id for i in wishlist.my_wishlist} == {"w1", "w2", "w3"}

    @pytest.mark.asyncio
    async def test_booker_view_shows_own_booking(self, local_app):
        wishlist = local_app.wishlist("1", viewer_id="3")
        await wishlist.load()
        assert next(i for i in wishlist.items if i.id == "w3").booked_by == "3"

    @pytest.mark.asyncio
    async def test_booking_reaches_owner_anonymously(self, local_app):
        owner = local_app.wishlist()
        await owner.load()
        await local_app.wishlist("1", viewer_id="4").book("w1")
        await owner.load()
        w1 = next(i for i in owner.items if i.id == "w1")
        assert w1.is_booked
        assert w1.booked_by is None

    @pytest.mark.asyncio
    async def test_double_booking_is_a_conflict(self, local_app):
        await local_app.wishlist("1", viewer_id="4").book("w1")
        other = local_app.wishlist("1", viewer_id="5")
        await other.book("w1")
        assert other.book.kind == "conflict"

    @pytest.mark.asyncio
    async def test_add_and_delete_own_item(self, local_app):
        wishlist = local_app.wishlist()
        item = await wishlist.add(WishlistDraft(user_id="1", title="Велосипед", price=40000))
        await wishlist.load()
        assert item.id in {i.id for i in wishlist.items}
        await wishlist.delete(item.id)
        await wishlist.load()
        assert item.id not in {i.id for i in wishlist.items}

    @pytest.mark.asyncio
    async def test_booked_item_cannot_be_deleted(self, local_app):
        wishlist = local_app.wishlist()
        await wishlist.delete("w3")
        assert wishlist.delete.kind == "conflict"

    @pytest.mark.asyncio
    async def test_booking_notification_is_anonymous(self, notified_app, notifier):
        await notified_app.wishlist("1", viewer_id="4").book("w2")
        notifier.notify.assert_awaited_once_with(
            NotificationType.WISHLIST_BOOKED, ["1"], actor_id=None, item='Книга "Атомные привычки"'
        )


class TestFriends:
    @pytest.mark.asyncio
    async def test_load_fills_every_view(self, local_app):
        friends = local_app.friends("2")
        await friends.load()
        assert friends.friends == []
        assert friends.pending_request_user_ids == {"3"}
        assert len(friends.users) == 5

    @pytest.mark.asyncio
    async def test_accept_request(self, local_app):
        friends = local_app.friends("3")
        await friends.load()
        assert [r.id for r in friends.requests] == ["fr1"]

        await friends.accept("fr1")
        await friends.load()
        assert "2" in friends.friend_ids
        assert friends.requests == []

    @pytest.mark.asyncio
    async def test_remove_friend(self, local_app):
        friends = local_app.friends()
        await friends.load()
        await friends.remove("3")
        await friends.load()
        assert set(friends.friend_ids) == {"4", "5"}

    @pytest.mark.asyncio
    async def test_duplicate_request_is_a_conflict(self, local_app):
        friends = local_app.friends("3")
        await friends.send_request("2")
        assert friends.send_request.kind == "conflict"

    @pytest.mark.asyncio
    async def test_search_excludes_self(self, local_app):
        found = await local_app.friends().search("ма")
        assert [u.id for u in found] == ["2"]

    @pytest.mark.asyncio
    async def test_request_and_accept_notify(self, notified_app, notifier):
        await notified_app.friends("4").send_request("2")
        notifier.notify.assert_awaited_once_with(
            NotificationType.FRIEND_REQUEST, ["2"], actor_id="4"
        )

        notifier.notify.reset_mock()
        friends = notified_app.friends("3")
        await friends.load()
        await friends.accept("fr1")
        notifier.notify.assert_awaited_once_with(
            NotificationType.FRIEND_ACCEPTED, ["2"], actor_id="3"
        )


class TestUserProfile:
    @pytest.mark.asyncio
    async def test_friend_profile(self, local_app):
        profile = local_app.user_profile("3")
        await profile.load()
        assert profile.user.first_name == "Пётр"
        assert profile.is_friend
        assert [i.id for i in profile.wishlist] == ["w6"]

    @pytest.mark.asyncio
    async def test_stranger_profile(self, local_app):
        profile = local_app.user_profile("2")
        await profile.load()
        assert not profile.is_friend
        w4 = next(i for i in profile.wishlist if i.id == "w4")
        assert w4.is_booked
        assert w4.booked_by is None

    def test_view_available_before_load(self, local_app):
        profile = local_app.user_profile("4")
        assert profile.user.first_name == "Анна"
        assert profile.is_friend
