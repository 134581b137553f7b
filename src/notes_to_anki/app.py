import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from notes_to_anki.anki_connect import AnkiConnectClient
from notes_to_anki.anki_sync import SyncReport, delete_document_cards, sync_document
from notes_to_anki.document_host import FileDocumentHost
from notes_to_anki.errors import AnkiConnectionError, AnkiProtocolError
from notes_to_anki.settings import SyncSettings, load_settings

LOG = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notes-to-anki",
        description="Sync flashcards written in markdown notes with Anki through AnkiConnect.",
    )
    parser.add_argument("--config", help="YAML settings file")
    parser.add_argument("--endpoint", help="AnkiConnect URL (default http://127.0.0.1:8765)")
    parser.add_argument("--vault", help="vault root used for folder based decks and media lookup")
    parser.add_argument("--vault-name", help="vault name used in obsidian:// links")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")

    commands = parser.add_subparsers(dest="command", required=True)
    sync = commands.add_parser("sync", help="create, update and move the cards of notes")
    sync.add_argument("notes", nargs="+", help="markdown files to sync")
    delete = commands.add_parser("delete", help="delete the cards of notes from Anki only")
    delete.add_argument("notes", nargs="+", help="markdown files whose cards are deleted")
    commands.add_parser("ping", help="check that AnkiConnect is reachable")
    return parser


def _print_report(note: str, report: SyncReport) -> None:
    print(f"{note}:")
    for notice in report.notices:
        print(f"  {notice}")


async def arun_notes(command: str, notes: List[str], settings: SyncSettings, vault: Optional[str]) -> int:
    exit_code = 0
    async with AnkiConnectClient(settings.endpoint, timeout=settings.timeout) as client:
        # One pass at a time: passes on the same deck must not interleave
        for note in notes:
            host = FileDocumentHost(note, vault_root=vault, vault_name=settings.vault_name)
            if command == "sync":
                report = await sync_document(client, host, settings)
            else:
                report = await delete_document_cards(client, host, settings)
            _print_report(note, report)
            if report.aborted:
                exit_code = 1
                break
    return exit_code


async def aping(settings: SyncSettings) -> int:
    async with AnkiConnectClient(settings.endpoint, timeout=settings.timeout) as client:
        try:
            ok = await client.aping()
        except (AnkiConnectionError, AnkiProtocolError) as exc:
            print(f"AnkiConnect is not reachable: {exc}")
            return 1
    print("AnkiConnect is reachable" if ok else "AnkiConnect answered with an unexpected version")
    return 0 if ok else 1


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point of the `notes-to-anki` command."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    settings = load_settings(args.config, endpoint=args.endpoint, vault_name=args.vault_name)
    if args.command == "ping":
        return asyncio.run(aping(settings))
    return asyncio.run(arun_notes(args.command, args.notes, settings, args.vault))


if __name__ == "__main__":
    sys.exit(main())
