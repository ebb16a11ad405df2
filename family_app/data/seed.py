"""
Family App — Seed data.

The fixed dataset a fresh local store starts from, and the fallback when a
persisted snapshot is missing or unreadable. User "1" (Иван) is the current
user; event dates are relative to the moment the seed is built.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from family_app.data.models import (
    Event,
    EventParticipant,
    FamilyGroup,
    FamilyMember,
    FamilyRole,
    FriendRequest,
    Friendship,
    Task,
    TaskCategory,
    TaskStatus,
    TaskType,
    User,
    WishlistItem,
)

if TYPE_CHECKING:
    from family_app.data.store import StoreState

SEED_CURRENT_USER_ID = "1"


def _users() -> list[User]:
    return [
        User(id="1", telegram_id=123456789, username="ivan_ivanov", first_name="Иван",
             last_name="Иванов", avatar_url="https://api.dicebear.com/7.x/avataaars/svg?seed=Ivan",
             birthday="1990-05-15", show_birthday=True),
        User(id="2", telegram_id=987654321, username="maria_ivanova", first_name="Мария",
             last_name="Иванова", avatar_url="https://api.dicebear.com/7.x/avataaars/svg?seed=Maria",
             birthday="1992-08-22", show_birthday=True),
        User(id="3", telegram_id=555555555, username="petr_petrov", first_name="Пётр",
             last_name="Петров", avatar_url="https://api.dicebear.com/7.x/avataaars/svg?seed=Petr",
             birthday="1988-03-10", show_birthday=False),
        User(id="4", telegram_id=777777777, username="anna_sidorova", first_name="Анна",
             last_name="Сидорова", avatar_url="https://api.dicebear.com/7.x/avataaars/svg?seed=Anna",
             birthday="1995-12-01", show_birthday=True),
        User(id="5", telegram_id=999999999, username="alex_smirnov", first_name="Александр",
             last_name="Смирнов", avatar_url="https://api.dicebear.com/7.x/avataaars/svg?seed=Alex",
             birthday="1993-07-20", show_birthday=True),
    ]


def _categories() -> list[TaskCategory]:
    rows = [
        ("c1", "Молочное", "Milk", TaskType.SHOPPING, 1),
        ("c2", "Мясо/Рыба", "Beef", TaskType.SHOPPING, 2),
        ("c3", "Бакалея", "Package", TaskType.SHOPPING, 3),
        ("c4", "Овощи/Фрукты", "Apple", TaskType.SHOPPING, 4),
        ("c5", "Напитки", "CupSoda", TaskType.SHOPPING, 5),
        ("c6", "Хлеб/Выпечка", "Croissant", TaskType.SHOPPING, 6),
        ("c7", "Маркетплейсы", "ShoppingBag", TaskType.SHOPPING, 7),
        ("c8", "Аптека", "Pill", TaskType.SHOPPING, 8),
        ("c9", "Бытовая химия", "SprayCan", TaskType.SHOPPING, 9),
        ("c10", "Другое", "ShoppingCart", TaskType.SHOPPING, 10),
        ("c11", "Уборка", "Home", TaskType.HOME, 1),
        ("c12", "Ремонт", "Hammer", TaskType.HOME, 2),
        ("c13", "Сад/Огород", "Trees", TaskType.HOME, 3),
        ("c14", "Готовка", "ChefHat", TaskType.HOME, 4),
        ("c15", "Другое", "House", TaskType.HOME, 5),
        ("c16", "Документы", "FileText", TaskType.OTHER, 1),
        ("c17", "Звонки", "Phone", TaskType.OTHER, 2),
        ("c18", "Встречи", "Users", TaskType.OTHER, 3),
        ("c19", "Другое", "ListTodo", TaskType.OTHER, 4),
    ]
    return [TaskCategory(id=i, name=n, icon=ic, type=t, order=o) for i, n, ic, t, o in rows]


def build_seed(now: datetime | None = None) -> StoreState:
    """Build a fresh copy of the seed dataset."""
    from family_app.data.store import StoreState

    now = now or datetime.now(timezone.utc)
    ts = now.isoformat()

    def days(n: int) -> str:
        return (now + timedelta(days=n)).isoformat()

    families = [
        FamilyGroup(id="f1", name="Семья Ивановых", created_by="1", created_at=ts, members=[
            FamilyMember(id="fm1", family_id="f1", user_id="1", role=FamilyRole.ADMIN, joined_at=ts),
            FamilyMember(id="fm2", family_id="f1", user_id="2", role=FamilyRole.MEMBER, joined_at=ts),
        ]),
        FamilyGroup(id="f2", name="Родители", created_by="1", created_at=ts, members=[
            FamilyMember(id="fm3", family_id="f2", user_id="1", role=FamilyRole.ADMIN, joined_at=ts),
        ]),
    ]

    friendships = [
        Friendship(id="fs1", user_id="1", friend_id="3", created_at=days(-30)),
        Friendship(id="fs2", user_id="3", friend_id="1", created_at=days(-30)),
        Friendship(id="fs3", user_id="1", friend_id="4", created_at=days(-14)),
        Friendship(id="fs4", user_id="4", friend_id="1", created_at=days(-14)),
        Friendship(id="fs5", user_id="1", friend_id="5", created_at=days(-7)),
        Friendship(id="fs6", user_id="5", friend_id="1", created_at=days(-7)),
    ]

    friend_requests = [
        FriendRequest(id="fr1", sender_id="2", receiver_id="3", created_at=ts),
    ]

    shop, home, other = TaskType.SHOPPING, TaskType.HOME, TaskType.OTHER
    tasks = [
        Task(id="t1", family_id="f1", created_by="1", type=shop, category_id="c1",
             title="Молоко", description="Желательно 3.2%", quantity=2, unit="л",
             assigned_to=["1", "2"], created_at=ts),
        Task(id="t2", family_id="f1", created_by="2", type=shop, category_id="c2",
             title="Куриная грудка", description="Для салата Цезарь", quantity=1, unit="кг",
             created_at=ts),
        Task(id="t3", family_id="f1", created_by="1", type=shop, category_id="c4",
             title="Яблоки Голден", quantity=5, unit="шт", assigned_to=["1"],
             status=TaskStatus.COMPLETED, completed_at=ts, completed_by="1", created_at=ts),
        Task(id="t4", family_id="f1", created_by="1", type=home, category_id="c11",
             title="Помыть окна", description="На кухне и в спальне", assigned_to=["2"],
             created_at=ts),
        Task(id="t5", family_id="f1", created_by="2", type=shop, category_id="c5",
             title="Сок апельсиновый", quantity=1, unit="л",
             status=TaskStatus.COMPLETED, completed_at=ts, completed_by="2", created_at=ts),
        Task(id="t6", family_id="f1", created_by="1", type=shop, category_id="c6",
             title="Хлеб белый", quantity=1, unit="батон",
             status=TaskStatus.ARCHIVED, completed_at=days(-1), completed_by="1",
             created_at=days(-2)),
        Task(id="t7", family_id="f1", created_by="2", type=home, category_id="c14",
             title="Приготовить ужин", description="Паста карбонара", assigned_to=["2"],
             created_at=ts),
        Task(id="t8", family_id="f1", created_by="1", type=other, category_id="c16",
             title="Оплатить коммунальные", assigned_to=["1"], created_at=ts),
    ]

    def rsvp(pid: str, event_id: str, user_id: str, response: str) -> EventParticipant:
        return EventParticipant(id=pid, event_id=event_id, user_id=user_id,
                                response=response, updated_at=ts)

    events = [
        Event(id="e1", created_by="1", title="День рождения Маши",
              description="Отмечаем дома, приходите все! Будет торт и напитки.",
              location="Квартира Ивановых, ул. Ленина 15, кв. 42",
              event_date=days(7), invited_users=["2", "3", "4", "5"], created_at=ts,
              participants=[
                  rsvp("ep1", "e1", "2", "going"),
                  rsvp("ep2", "e1", "3", "pending"),
                  rsvp("ep3", "e1", "4", "going"),
                  rsvp("ep4", "e1", "5", "not_going"),
              ]),
        Event(id="e2", created_by="3", title="Поход в кино",
              description='Новый фильм Marvel - "Дэдпул и Росомаха"',
              location="ТЦ Европа, кинотеатр Киномакс",
              event_date=days(3), invited_users=["1"], created_at=ts,
              participants=[rsvp("ep5", "e2", "1", "pending")]),
        Event(id="e3", created_by="4", title="Пикник в парке",
              description="Выезд на природу, берём еду и напитки",
              location="Горький парк, главная аллея",
              event_date=days(14), invited_users=["1", "3"], created_at=ts,
              participants=[
                  rsvp("ep6", "e3", "1", "going"),
                  rsvp("ep7", "e3", "3", "pending"),
              ]),
    ]

    wishlist_items = [
        WishlistItem(id="w1", user_id="1", title="Наушники Sony WH-1000XM5",
                     description="Беспроводные наушники с активным шумоподавлением. Лучший выбор для работы и путешествий.",
                     link="https://market.yandex.ru/product--naushniki-sony-wh-1000xm5",
                     price=35000, created_at=ts),
        WishlistItem(id="w2", user_id="1", title='Книга "Атомные привычки"',
                     description="Джеймс Клир - Как приобретать полезные привычки и избавляться от вредных",
                     link="https://www.ozon.ru/product/kniga-atomnye-privychki",
                     price=800, created_at=ts),
        WishlistItem(id="w3", user_id="1", title="Подписка на Яндекс.Плюс",
                     description="Годовая подписка на музыку, кино и такси", price=2999,
                     is_booked=True, booked_by="3", booked_at=ts, created_at=ts),
        WishlistItem(id="w4", user_id="2", title="Подарочный сертификат Ozon",
                     description="Любая сумма, сам выберу что хочу", price=5000,
                     is_booked=True, booked_by="3", booked_at=ts, created_at=ts),
        WishlistItem(id="w5", user_id="2", title="Набор контейнеров для хранения",
                     description="Стеклянные, герметичные", price=2500, created_at=ts),
        WishlistItem(id="w6", user_id="3", title="Футболка с принтом Star Wars",
                     description="Размер M, желательно чёрная", price=1500, created_at=ts),
        WishlistItem(id="w7", user_id="4", title="Абонемент в фитнес-клуб",
                     description="На 3 месяца", price=9000, created_at=ts),
        WishlistItem(id="w8", user_id="5", title="Умная колонка Яндекс.Станция",
                     description="С Алисой, для умного дома", price=6000, created_at=ts),
    ]

    return StoreState(
        current_user_id=SEED_CURRENT_USER_ID,
        users=_users(),
        families=families,
        friendships=friendships,
        friend_requests=friend_requests,
        tasks=tasks,
        categories=_categories(),
        events=events,
        wishlist_items=wishlist_items,
    )
