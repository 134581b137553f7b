"""Decide which cards Anki needs to create, update, or leave alone.

Phase 1 checks every card that carries an embedded id against the notes
Anki returned for those ids. Phase 2 tries to recover the id of cards
without one by looking for a note in the deck with the same first field.
Recovery is ambiguous when two cards share a first field: the first
unclaimed note wins.
"""
import logging
from typing import Dict, Iterable, List, Optional, Protocol, Set

from pydantic import BaseModel, ConfigDict, Field

from notes_to_anki.anki_models import RemoteNote
from notes_to_anki.data_objects import Card
from notes_to_anki.errors import DocumentRewriteError, ReconciliationMismatch
from notes_to_anki.utils import tags_equal

LOG = logging.getLogger(__name__)


class IdRecorder(Protocol):
    def record_id(self, card: Card) -> None:
        ...


class ReconcileResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    to_create: List[Card] = Field(default_factory=list)
    to_update: List[Card] = Field(default_factory=list)
    not_found: List[int] = Field(default_factory=list)
    unchanged: List[Card] = Field(default_factory=list)
    recovered: List[Card] = Field(default_factory=list)
    mismatches: List[ReconciliationMismatch] = Field(default_factory=list)
    ids_to_prune: List[int] = Field(default_factory=list)
    document_dirty: bool = False
    rewrite_error: Optional[str] = None


def fields_match(card: Card, note: RemoteNote) -> bool:
    """Strict comparison: same field names and values, same tag set."""
    remote = note.field_values()
    if len(remote) != len(card.fields):
        return False
    for name, value in card.fields.items():
        if name not in remote or remote[name] != value:
            return False
    return tags_equal(card.tags, note.tags)


def first_field_matches(card: Card, note: RemoteNote) -> bool:
    remote_first = note.first_field
    if remote_first is None or card.first_field is None:
        return False
    return remote_first[1] == card.first_field[1]


def _schema_mismatch(card: Card, note: RemoteNote) -> Optional[ReconciliationMismatch]:
    if len(note.fields) == len(card.fields):
        return None
    return ReconciliationMismatch(
        note.note_id, list(card.fields), [name for name, _ in note.ordered_fields()]
    )


def reconcile(
    cards: List[Card],
    deck_notes: Iterable[RemoteNote],
    embedded_notes: Iterable[RemoteNote],
    embedded_ids: Iterable[int],
    recorder: Optional[IdRecorder] = None,
) -> ReconcileResult:
    """Sort `cards` into creations and updates.

    `deck_notes` are all notes of the target deck, `embedded_notes` the
    notes Anki returned for the ids found in the document. Cards are
    mutated in place: ids are reset or recovered, and remote tags are
    captured before an update. Recovered ids are handed to `recorder` so
    the document can carry them.
    """
    result = ReconcileResult()
    embedded_by_id: Dict[int, RemoteNote] = {note.note_id: note for note in embedded_notes}
    known_ids: Set[int] = set(embedded_ids)
    deck_notes = list(deck_notes)
    originals = [card for card in cards if card.id == -1]

    # Phase 1: cards that already carry an id
    for card in cards:
        if card.id == -1:
            continue
        if card.id not in known_ids:
            LOG.debug("Id %s of %s is not in the document; creating it", card.id, card.describe())
            card.id = -1
            card.inserted = False
            result.to_create.append(card)
            continue
        note = embedded_by_id.get(card.id)
        if note is None:
            LOG.info("Note %s no longer exists in Anki; recreating %s", card.id, card.describe())
            result.ids_to_prune.append(card.id)
            result.not_found.append(card.id)
            card.id = -1
            card.inserted = False
            result.to_create.append(card)
            continue
        mismatch = _schema_mismatch(card, note)
        if mismatch is not None:
            LOG.warning("%s", mismatch)
            result.mismatches.append(mismatch)
            continue
        if fields_match(card, note):
            result.unchanged.append(card)
        else:
            card.previous_remote_tags = list(note.tags)
            result.to_update.append(card)

    # Phase 2: look for the lost id of cards extracted without one
    claimed: Set[int] = set(known_ids)
    for card in originals:
        note = None
        for candidate in deck_notes:
            if not first_field_matches(card, candidate):
                continue
            if candidate.note_id in claimed:
                LOG.warning(
                    "Ignoring content match with note %s for %s: the note is already claimed",
                    candidate.note_id, card.describe(),
                )
                continue
            note = candidate
            break
        if note is None:
            result.to_create.append(card)
            continue
        claimed.add(note.note_id)
        card.id = note.note_id
        card.inserted = True
        result.recovered.append(card)
        LOG.info("Recovered note %s for %s", note.note_id, card.describe())
        if recorder is not None and result.rewrite_error is None:
            try:
                recorder.record_id(card)
                result.document_dirty = True
            except DocumentRewriteError as exc:
                LOG.error("Could not embed recovered id %s: %s", note.note_id, exc)
                result.rewrite_error = str(exc)
        mismatch = _schema_mismatch(card, note)
        if mismatch is not None:
            LOG.warning("%s", mismatch)
            result.mismatches.append(mismatch)
        elif fields_match(card, note):
            result.unchanged.append(card)
        else:
            card.previous_remote_tags = list(note.tags)
            result.to_update.append(card)

    return result
