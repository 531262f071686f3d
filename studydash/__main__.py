"""CLI interface for StudyDash.

Usage:
    python -m studydash decks                     List decks with card counts
    python -m studydash add-deck "Biology"        Create a deck
    python -m studydash add 1 "front" "back"      Add a card to deck 1
    python -m studydash due                       Show how many cards are due
    python -m studydash review [--deck 1]         Start a study session
    python -m studydash stats                     Show your statistics
    python -m studydash chat [--mode practice]    Talk to the AI study assistant
    python -m studydash serve [--port 8000]       Run the HTTP API
"""

import argparse
import asyncio
import logging

import uvicorn
from sqlalchemy import and_, func, select

from backend.chat.client import ChatClient, ChatError, ChatMode
from backend.chat.conversation import Conversation
from backend.config import settings, utcnow
from backend.database import async_session, engine, ensure_sqlite_dir
from backend.errors import StudyDashError
from backend.models import Base
from backend.models.flashcard import Flashcard
from backend.srs import deck_service
from backend.srs.session import start_session

QUALITY_HELP = "0=blackout  1=wrong  2=hard wrong  3=hard  4=good  5=perfect"


async def ensure_db() -> None:
    """Create tables if they don't exist."""
    ensure_sqlite_dir(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def cmd_decks(args: argparse.Namespace) -> None:
    """List the user's decks."""
    await ensure_db()
    async with async_session() as db:
        stats = await deck_service.deck_stats(db, args.user)

    if not stats:
        print("  No decks yet. Create one with: add-deck NAME")
        return
    for d in stats:
        print(f"  [{d.deck_id}] {d.name:<30} {d.total} cards, {d.due} due")


async def cmd_add_deck(args: argparse.Namespace) -> None:
    await ensure_db()
    async with async_session() as db:
        deck = await deck_service.create_deck(db, args.user, args.name)
    print(f"  Created deck '{deck.name}' (id={deck.id})")


async def cmd_add(args: argparse.Namespace) -> None:
    """Add a new card to a deck."""
    await ensure_db()
    async with async_session() as db:
        card = await deck_service.create_card(db, args.user, args.deck_id, args.front, args.back)
    print(f"  Added card {card.id} (ready for review)")


async def cmd_due(args: argparse.Namespace) -> None:
    """Show how many cards are due."""
    await ensure_db()
    now = utcnow()

    async with async_session() as db:
        due = (
            await db.execute(
                select(func.count(Flashcard.id)).where(
                    and_(Flashcard.user_id == args.user, Flashcard.next_review <= now)
                )
            )
        ).scalar() or 0

    print(f"  {due} cards due")


def _read_quality() -> int | None:
    """Prompt until a quality 0-5 is entered; None means quit."""
    while True:
        raw = input("  Quality [0-5, q=quit]: ").strip().lower()
        if raw == "q":
            return None
        if raw.isdigit() and 0 <= int(raw) <= 5:
            return int(raw)
        print(f"  {QUALITY_HELP}")


async def cmd_review(args: argparse.Namespace) -> None:
    """Run an interactive study session."""
    await ensure_db()

    async with async_session() as db:
        session = await start_session(db, args.user, deck_id=args.deck)
        if session.queue.total == 0:
            print("\nNo cards to study. Add some with: add DECK_ID FRONT BACK")
            return

        print("\n  Study Session")
        if session.queue.cramming:
            print("  Nothing is due, studying all cards.")
        print(f"  {session.queue.total} cards")
        print(f"  Quality: {QUALITY_HELP}\n")

        while (card := session.current_card) is not None:
            position = session.queue.total - session.remaining + 1
            print(f"  [{position}/{session.queue.total}]")
            print(f"  {card.front}")
            input("  (enter to reveal) ")
            print(f"  {card.back}")

            quality = _read_quality()
            if quality is None:
                print("\n  Session ended early.")
                break

            _, new_state = await session.submit_answer(db, quality)
            print(f"  Next review in {new_state.interval} days\n")

    s = session.stats
    print("\n  Session Complete!")
    print(f"  Reviewed: {s.cards_reviewed}  Passed: {s.passed}  Failed: {s.failed}\n")


async def cmd_stats(args: argparse.Namespace) -> None:
    """Show flashcard statistics."""
    await ensure_db()
    now = utcnow()

    async with async_session() as db:
        total = (
            await db.execute(
                select(func.count(Flashcard.id)).where(Flashcard.user_id == args.user)
            )
        ).scalar() or 0
        mature = (
            await db.execute(
                select(func.count(Flashcard.id)).where(
                    and_(Flashcard.user_id == args.user, Flashcard.repetitions >= 5)
                )
            )
        ).scalar() or 0
        decks = await deck_service.deck_stats(db, args.user, now=now)

    due = sum(d.due for d in decks)
    print("\n  StudyDash Statistics")
    print(f"  {'Decks:':<20} {len(decks)}")
    print(f"  {'Total cards:':<20} {total}")
    print(f"  {'Due now:':<20} {due}")
    print(f"  {'Mature (5+ reps):':<20} {mature}")
    print()


async def cmd_chat(args: argparse.Namespace) -> None:
    """Interactive chat with the study assistant."""
    conversation = Conversation(client=ChatClient(), mode=ChatMode(args.mode))
    print(f"\n  AI Study Assistant ({conversation.mode.value} mode)")
    print("  Type 'q' to quit, 'clear' to start over\n")

    while True:
        text = input("  You: ").strip()
        if text.lower() == "q":
            break
        if text.lower() == "clear":
            conversation.clear()
            continue
        if not text:
            continue

        shown = ""
        print("  Assistant: ", end="", flush=True)
        try:
            async for snapshot in conversation.send(text):
                # Snapshots are cumulative; print only the new tail
                print(snapshot[len(shown) :], end="", flush=True)
                shown = snapshot
        except ChatError as exc:
            print(f"\n  Error: {exc}")
            continue
        print("\n")


def main() -> None:
    """Entry point for the StudyDash CLI application."""
    parser = argparse.ArgumentParser(
        prog="studydash",
        description="StudyDash flashcards and study assistant",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("-u", "--user", default=settings.default_user_id, help="Owner id")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("decks", help="List decks")

    add_deck_parser = subparsers.add_parser("add-deck", help="Create a deck")
    add_deck_parser.add_argument("name", help="Deck name")

    add_parser = subparsers.add_parser("add", help="Add a card to a deck")
    add_parser.add_argument("deck_id", type=int, help="Deck id")
    add_parser.add_argument("front", help="Question side")
    add_parser.add_argument("back", help="Answer side")

    subparsers.add_parser("due", help="Show cards due for review")

    review_parser = subparsers.add_parser("review", help="Start a study session")
    review_parser.add_argument("--deck", type=int, default=None, help="Only study this deck")

    subparsers.add_parser("stats", help="Show your statistics")

    chat_parser = subparsers.add_parser("chat", help="Chat with the AI study assistant")
    chat_parser.add_argument(
        "--mode", choices=[m.value for m in ChatMode], default=ChatMode.ANSWER.value
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.command:
        parser.print_help()
        return

    # serve runs its own event loop, all others are async commands.
    if args.command == "serve":
        uvicorn.run("backend.main:app", host=args.host, port=args.port)
        return

    cmd_map = {
        "decks": cmd_decks,
        "add-deck": cmd_add_deck,
        "add": cmd_add,
        "due": cmd_due,
        "review": cmd_review,
        "stats": cmd_stats,
        "chat": cmd_chat,
    }

    try:
        asyncio.run(cmd_map[args.command](args))
    except StudyDashError as exc:
        parser.exit(1, f"  Error: {exc}\n")


if __name__ == "__main__":
    main()
