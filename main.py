"""
Family App — Entry Point.

    python main.py summary [--user ID]   print a user's families, tasks, events and wishlist
    python main.py reset                 restore the local seed data
"""

import argparse
import asyncio
import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from family_app.config import settings
from family_app.core.app import FamilyApp, create_app
from family_app.core.selectors import is_past

logger = logging.getLogger(__name__)


async def print_summary(app: FamilyApp, user_id: str | None) -> int:
    await app.start()
    uid = user_id or app.user_id
    if uid is None:
        print("No current user; pass --user ID", file=sys.stderr)
        return 1

    profile = app.user_profile(uid, viewer_id=uid)
    user = await profile.load()
    if user is None:
        print(f"User {uid} not found: {profile.error}", file=sys.stderr)
        return 1
    print(f"{user.display_name} (@{user.username or '-'})")

    families = app.families(uid)
    await families.load()
    for family in families.families:
        print(f"\n[{family.name}] members: {len(family.members)}")
        tasks = app.tasks(family.id, uid)
        await tasks.load()
        for task in tasks.active_tasks:
            mark = "x" if task.status.value == "completed" else " "
            amount = f" {task.quantity:g} {task.unit or ''}".rstrip() if task.quantity else ""
            print(f"  [{mark}] {task.title}{amount}")
        if tasks.archived_tasks:
            print(f"  archived: {len(tasks.archived_tasks)}")

    events = app.events(uid)
    await events.load()
    print("\nEvents:")
    for event in sorted(events.events, key=lambda e: e.starts_at):
        when = event.starts_at.strftime("%Y-%m-%d %H:%M")
        suffix = " (past)" if is_past(event) else ""
        print(f"  {when} {event.title}{suffix}")

    print("\nWishlist:")
    for item in profile.wishlist:
        booked = " [booked]" if item.is_booked else ""
        price = f" {item.price:g}" if item.price is not None else ""
        print(f"  {item.title}{price}{booked}")

    friends = app.friends(uid)
    await friends.load()
    print(f"\nFriends: {', '.join(u.display_name for u in friends.friends) or '-'}")
    if friends.requests:
        print(f"Pending requests: {len(friends.requests)}")
    return 0


async def run(args: argparse.Namespace) -> int:
    app = create_app(settings)
    try:
        if args.command == "reset":
            app.reset()
            print("Local store reset to seed data")
            return 0
        return await print_summary(app, args.user)
    finally:
        await app.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Family App data layer")
    sub = parser.add_subparsers(dest="command", required=True)
    summary = sub.add_parser("summary", help="print a user's data")
    summary.add_argument("--user", help="user id (defaults to the current user)")
    sub.add_parser("reset", help="restore local seed data")
    args = parser.parse_args()

    if args.command == "reset" and not settings.is_local:
        parser.error("reset is only available with DATA_MODE=local")

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
