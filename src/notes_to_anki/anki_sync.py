import base64
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from notes_to_anki.anki_base import AbstractAnkiStore
from notes_to_anki.content import ContentTransform
from notes_to_anki.data_objects import Card
from notes_to_anki.document import DocumentRewriter
from notes_to_anki.document_host import AbstractDocumentHost
from notes_to_anki.errors import (
    AnkiConnectionError,
    AnkiProtocolError,
    DocumentRewriteError,
    MediaResolutionError,
    PartialBatchError,
)
from notes_to_anki.parser import CardParser, embedded_ids, ids_to_delete, parse_global_tags
from notes_to_anki.reconciler import ReconcileResult, reconcile
from notes_to_anki.settings import SyncSettings

LOG = logging.getLogger(__name__)

DECK_KEY = "cards-deck"
CONNECTION_NOTICE = "Error: Anki must be open with AnkiConnect installed."
UP_TO_DATE_NOTICE = "Nothing to do. Everything is up to date"


class SyncReport(BaseModel):
    deck_name: str = ""
    created: int = 0
    updated: int = 0
    deleted: int = 0
    moved: int = 0
    recovered: int = 0
    unchanged: int = 0
    document_written: bool = False
    aborted: bool = False
    notices: List[str] = Field(default_factory=list)

    def notice(self, message: str) -> None:
        LOG.info("%s", message)
        self.notices.append(message)

    def abort(self, message: str) -> "SyncReport":
        LOG.error("%s", message)
        self.notices.append(message)
        self.aborted = True
        return self


def resolve_deck_name(metadata: Dict[str, Any], folder: str, settings: SyncSettings) -> str:
    """Front matter deck, else the folder path as a deck hierarchy, else the default deck."""
    deck = metadata.get(DECK_KEY)
    if deck:
        return str(deck).strip()
    if settings.folder_based_deck and folder:
        return "::".join(part for part in folder.replace("\\", "/").split("/") if part)
    return settings.deck


def _note_count(cards: List[Card]) -> int:
    # A reversed card shows up as two cards in Anki
    return sum(2 if card.reversed else 1 for card in cards)


class DocumentSync:
    """One synchronization pass of a document with Anki.

    The pass owns the document text and its pending edits for its whole
    duration; callers must not run two passes on the same document at once.
    """

    def __init__(
        self,
        store: AbstractAnkiStore,
        host: AbstractDocumentHost,
        settings: Optional[SyncSettings] = None,
    ) -> None:
        self.store = store
        self.host = host
        self.settings = settings or SyncSettings()
        self.transform = ContentTransform(vault_name=self.settings.vault_name or host.vault_name)
        self.parser = CardParser(self.settings, self.transform)

    async def _aconnect(self, report: SyncReport) -> bool:
        try:
            if not await self.store.aping():
                LOG.warning("Continuing with an unexpected AnkiConnect version")
            if self.settings.anki_connect_permission:
                await self.store.arequest_permission()
        except AnkiConnectionError as exc:
            LOG.error("AnkiConnect is not reachable: %s", exc)
            report.abort(CONNECTION_NOTICE)
            return False
        except AnkiProtocolError as exc:
            report.abort(f"Error: AnkiConnect answered unexpectedly: {exc}")
            return False
        return True

    async def _aprepare_store(self, deck_name: str, report: SyncReport) -> None:
        settings = self.settings
        try:
            await self.store.acreate_models(settings.source_support, settings.code_highlight_support)
        except PartialBatchError as exc:
            report.notice(f"Error: could not set up note types: {exc}")
        if settings.code_highlight_support and settings.code_highlight_assets_dir:
            try:
                await self.store.astore_code_highlight_assets(settings.code_highlight_assets_dir)
            except (AnkiProtocolError, PartialBatchError) as exc:
                report.notice(f"Error: could not upload code highlighting files: {exc}")
        await self.store.acreate_deck(deck_name)

    async def arun(self) -> SyncReport:
        """Bring Anki and the document in line with each other.

        Returns the report of the pass; its notices are meant for the user.
        """
        report = SyncReport()
        if not await self._aconnect(report):
            return report

        text = await self.host.aread()
        if not text.endswith("\n"):
            text += "\n"
        global_tags = parse_global_tags(text)
        ids_in_document = embedded_ids(text)
        deck_name = resolve_deck_name(self.host.metadata(text), self.host.folder, self.settings)
        report.deck_name = deck_name
        LOG.info("Syncing %s into deck %s", self.host.note_name, deck_name)

        try:
            await self._aprepare_store(deck_name, report)
            deck_notes = await self.store.aget_notes_in_deck(deck_name)
            embedded_notes = await self.store.anotes_info(ids_in_document)
        except AnkiConnectionError as exc:
            LOG.error("Lost AnkiConnect: %s", exc)
            return report.abort(CONNECTION_NOTICE)
        except AnkiProtocolError as exc:
            return report.abort(f"Error: could not prepare deck {deck_name}: {exc}")

        cards = self.parser.parse(text, deck_name, global_tags, self.host.note_name)
        LOG.info("Found %d card(s) in %s", len(cards), self.host.note_name)
        rewriter = DocumentRewriter(text, [card.span_start for card in cards])
        result = reconcile(cards, deck_notes, embedded_notes, ids_in_document, recorder=rewriter)
        self._report_reconciliation(result, report)

        try:
            await self._adelete_marked(text, cards, rewriter, report)
            await self._astore_media(result.to_create + result.to_update, report)
            await self._aupdate(result.to_update, report)
            await self._acreate(result.to_create, rewriter, report)
            synced = {card.id for card in cards if card.id != -1}
            await self._amove(
                [note for note in embedded_notes if note.note_id in synced], deck_name, report
            )
        except AnkiConnectionError as exc:
            LOG.error("Lost AnkiConnect: %s", exc)
            report.abort(CONNECTION_NOTICE)

        rewriter.prune_ids(result.ids_to_prune)
        if rewriter.dirty:
            await self.host.awrite(rewriter.render())
            report.document_written = True

        if (
            cards
            and not report.aborted
            and self.settings.write_deck_to_frontmatter
            and await self.host.aset_metadata(DECK_KEY, deck_name)
        ):
            report.document_written = True

        if not report.notices:
            report.notice(UP_TO_DATE_NOTICE)
        return report

    def _report_reconciliation(self, result: ReconcileResult, report: SyncReport) -> None:
        report.recovered = len(result.recovered)
        report.unchanged = len(result.unchanged)
        if result.recovered:
            report.notice(f"Recovered the ids of {len(result.recovered)} card(s) already in Anki.")
        for note_id in result.not_found:
            report.notice(f"Error: Card with ID {note_id} is not in Anki!")
        for mismatch in result.mismatches:
            report.notice(f"Error: {mismatch}")
        if result.rewrite_error:
            report.notice(f"Error: could not write ids into the note: {result.rewrite_error}")

    async def _adelete_marked(
        self, text: str, cards: List[Card], rewriter: DocumentRewriter, report: SyncReport
    ) -> None:
        claimed = {card.id for card in cards if card.id != -1}
        ids = [note_id for note_id in ids_to_delete(text) if note_id not in claimed]
        if not ids:
            return
        try:
            await self.store.adelete_notes(ids)
        except AnkiProtocolError as exc:
            report.notice(f"Error: could not delete cards: {exc}")
            return
        rewriter.prune_ids(ids)
        report.deleted = len(ids)
        report.notice(f"Deleted successfully {len(ids)}/{len(ids)} cards.")

    async def _aresolve_media(self, cards: List[Card]) -> List[Card]:
        with_media = []
        for card in cards:
            for filename in card.media_references:
                if filename in card.media_payloads:
                    continue
                try:
                    data = await self.host.aread_media(filename)
                except MediaResolutionError as exc:
                    LOG.warning("Skipping media of %s: %s", card.describe(), exc)
                    continue
                card.media_payloads[filename] = base64.b64encode(data).decode("ascii")
            if card.media_payloads:
                with_media.append(card)
        return with_media

    async def _astore_media(self, cards: List[Card], report: SyncReport) -> None:
        with_media = await self._aresolve_media(cards)
        if not with_media:
            return
        try:
            count = await self.store.astore_media_files(with_media)
            LOG.info("Uploaded %d media file(s)", count)
        except (AnkiProtocolError, PartialBatchError) as exc:
            report.notice(f"Error: could not upload media: {exc}")

    async def _aupdate(self, cards: List[Card], report: SyncReport) -> None:
        if not cards:
            return
        for card in cards:
            added = sorted(set(card.tags) - set(card.previous_remote_tags))
            removed = sorted(set(card.previous_remote_tags) - set(card.tags))
            if added or removed:
                LOG.debug("Note %s tags +%s -%s", card.id, added, removed)
        try:
            await self.store.aupdate_notes(cards)
        except PartialBatchError as exc:
            report.updated = len(cards)
            report.notice(f"Error: some updates failed: {exc}")
            return
        except AnkiProtocolError as exc:
            report.notice(f"Error: could not update cards: {exc}")
            return
        report.updated = len(cards)
        report.notice(f"Updated successfully {len(cards)}/{len(cards)} cards.")

    async def _acreate(self, cards: List[Card], rewriter: DocumentRewriter, report: SyncReport) -> None:
        if not cards:
            return
        try:
            ids = await self.store.aadd_notes(cards)
        except AnkiProtocolError as exc:
            report.notice(f"Error: could not add cards: {exc}")
            return
        created = []
        for card, note_id in zip(cards, ids):
            if note_id is None:
                report.notice(f"Error, could not add: '{card.original_text}'")
                continue
            card.id = note_id
            created.append(card)
        report.created = len(created)
        report.notice(
            f"Inserted successfully {_note_count(created)}/{_note_count(cards)} cards."
        )
        try:
            rewriter.insert_created_ids(created)
        except DocumentRewriteError as exc:
            report.notice(f"Error: could not write ids into the note: {exc}")

    async def _amove(self, embedded_notes, deck_name: str, report: SyncReport) -> None:
        card_ids = [card_id for note in embedded_notes for card_id in note.cards]
        if not card_ids:
            return
        try:
            infos = await self.store.acards_info(card_ids)
            to_move = [info.card_id for info in infos if info.deck_name != deck_name]
            if to_move:
                await self.store.achange_deck(to_move, deck_name)
        except AnkiProtocolError as exc:
            report.notice(f"Error: could not move cards to {deck_name}: {exc}")
            return
        if to_move:
            report.moved = len(to_move)
            report.notice("Cards moved in new deck")

    async def adelete_file_cards(self) -> SyncReport:
        """Delete every note the document points to from Anki and drop its markers.

        The card text stays in the document, so a later pass recreates the
        cards as new notes.
        """
        report = SyncReport()
        if not await self._aconnect(report):
            return report
        text = await self.host.aread()
        ids = embedded_ids(text)
        if not ids:
            report.notice(UP_TO_DATE_NOTICE)
            return report
        try:
            await self.store.adelete_notes(ids)
        except AnkiConnectionError:
            return report.abort(CONNECTION_NOTICE)
        except AnkiProtocolError as exc:
            return report.abort(f"Error: could not delete cards: {exc}")
        rewriter = DocumentRewriter(text)
        rewriter.prune_ids(ids)
        await self.host.awrite(rewriter.render())
        report.document_written = True
        report.deleted = len(ids)
        report.notice(f"Deleted successfully {len(ids)}/{len(ids)} cards.")
        return report


async def sync_document(
    store: AbstractAnkiStore,
    host: AbstractDocumentHost,
    settings: Optional[SyncSettings] = None,
) -> SyncReport:
    """Run one synchronization pass for the document behind `host`."""
    return await DocumentSync(store, host, settings).arun()


async def delete_document_cards(
    store: AbstractAnkiStore,
    host: AbstractDocumentHost,
    settings: Optional[SyncSettings] = None,
) -> SyncReport:
    return await DocumentSync(store, host, settings).adelete_file_cards()
