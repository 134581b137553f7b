"""Unit tests for the AnkiConnect response models."""
import pytest
from pydantic import ValidationError

from notes_to_anki.anki_models import BatchResult, RemoteCard, RemoteNote


class TestRemoteNote:
    """Test suite for RemoteNote."""

    @pytest.fixture
    def payload(self):
        """A notesInfo entry as AnkiConnect returns it."""
        return {
            "noteId": 1502298033753,
            "profile": "User_1",
            "modelName": "Obsidian-basic",
            "tags": ["obsidian", "lang::py"],
            "fields": {
                "Back": {"value": "<p>A</p>", "order": 1},
                "Front": {"value": "<p>Q</p>", "order": 0},
            },
            "mod": 1718377864,
            "cards": [1498938915662],
        }

    def test_from_notes_info(self, payload):
        """Test parsing a notesInfo entry, extra keys ignored."""
        note = RemoteNote.model_validate(payload)

        assert note.note_id == 1502298033753
        assert note.model_name == "Obsidian-basic"
        assert note.tags == ["obsidian", "lang::py"]
        assert note.cards == [1498938915662]

    def test_ordered_fields(self, payload):
        """Test fields are ordered by their Anki order, not by key order."""
        note = RemoteNote.model_validate(payload)

        assert note.ordered_fields() == [("Front", "<p>Q</p>"), ("Back", "<p>A</p>")]
        assert note.field_values() == {"Front": "<p>Q</p>", "Back": "<p>A</p>"}
        assert note.first_field == ("Front", "<p>Q</p>")

    def test_no_fields(self):
        """Test a note without fields has no first field."""
        assert RemoteNote.model_validate({"noteId": 1}).first_field is None

    def test_note_id_required(self):
        """Test an entry without note id is rejected."""
        with pytest.raises(ValidationError):
            RemoteNote.model_validate({"modelName": "Obsidian-basic"})

    def test_populate_by_name(self):
        """Test construction with field names."""
        note = RemoteNote(note_id=5, model_name="Obsidian-cloze")
        assert note.model_dump(by_alias=True)["noteId"] == 5


class TestRemoteCard:
    """Test suite for RemoteCard."""

    def test_from_cards_info(self):
        """Test parsing a cardsInfo entry."""
        card = RemoteCard.model_validate(
            {"cardId": 10, "note": 1, "deckName": "Default", "question": "<p>Q</p>"}
        )
        assert card.card_id == 10
        assert card.note_id == 1
        assert card.deck_name == "Default"


class TestBatchResult:
    """Test suite for BatchResult."""

    def test_ok(self):
        """Test success is the absence of an error."""
        assert BatchResult(action="addTags").ok
        assert BatchResult(action="addNotes", result=[1]).ok
        assert not BatchResult(action="addTags", error="note was not found").ok
