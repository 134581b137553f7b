"""Unit tests for the reconciler."""
import logging
from unittest.mock import MagicMock

import pytest

from notes_to_anki.anki_models import RemoteNote
from notes_to_anki.data_objects import Card, CardKind
from notes_to_anki.errors import DocumentRewriteError
from notes_to_anki.reconciler import fields_match, first_field_matches, reconcile


def remote_note(note_id, front="<p>Q1</p>", back="<p>A1</p>", tags=("obsidian",), extra_fields=()):
    fields = {"Front": {"value": front, "order": 0}, "Back": {"value": back, "order": 1}}
    for order, name in enumerate(extra_fields, start=2):
        fields[name] = {"value": "", "order": order}
    return RemoteNote.model_validate(
        {"noteId": note_id, "modelName": "Obsidian-basic", "tags": list(tags), "fields": fields, "cards": [note_id * 10]}
    )


def card(note_id=-1, front="<p>Q1</p>", back="<p>A1</p>", tags=("obsidian",)):
    return Card(
        kind=CardKind.TAG,
        id=note_id,
        deck_name="Default",
        original_text="Q1",
        fields={"Front": front, "Back": back},
        tags=list(tags),
        inserted=note_id != -1,
        span_start=0,
        span_end=11,
    )


class TestMatching:
    """Test suite for the field comparisons."""

    def test_fields_match(self):
        """Test strict matching on fields and the tag set."""
        assert fields_match(card(), remote_note(1))
        assert fields_match(card(tags=("a", "b")), remote_note(1, tags=("b", "a")))
        assert not fields_match(card(back="<p>Other</p>"), remote_note(1))
        assert not fields_match(card(tags=("a",)), remote_note(1, tags=("a", "b")))
        assert not fields_match(card(), remote_note(1, extra_fields=("Source",)))

    def test_first_field_matches(self):
        """Test loose matching only looks at the first field value."""
        assert first_field_matches(card(back="<p>Different</p>"), remote_note(1))
        assert not first_field_matches(card(front="<p>Q2</p>"), remote_note(1))

    def test_first_field_matches_any_field_name(self):
        """Test the remote field name does not matter, only its value."""
        note = RemoteNote.model_validate(
            {"noteId": 1, "fields": {"Text": {"value": "<p>Q1</p>", "order": 0}}}
        )
        assert first_field_matches(card(), note)


class TestReconcile:
    """Test suite for reconcile."""

    def test_no_op(self):
        """Test an embedded card equal to its note needs nothing."""
        c = card(111)
        note = remote_note(111)
        result = reconcile([c], [note], [note], [111])

        assert result.to_create == []
        assert result.to_update == []
        assert result.unchanged == [c]
        assert result.document_dirty is False

    def test_update(self):
        """Test a changed answer schedules an update and captures remote tags."""
        c = card(111)
        note = remote_note(111, back="<p>Old</p>", tags=("old",))
        result = reconcile([c], [note], [note], [111])

        assert result.to_update == [c]
        assert c.previous_remote_tags == ["old"]

    def test_tag_order_does_not_update(self):
        """Test tags in another order are still equal."""
        c = card(111, tags=("a", "b"))
        note = remote_note(111, tags=("b", "a"))
        result = reconcile([c], [note], [note], [111])

        assert result.to_update == []
        assert result.unchanged == [c]

    def test_missing_note_is_recreated(self):
        """Test a card whose note is gone is recreated and its marker pruned."""
        c = card(111)
        result = reconcile([c], [], [], [111])

        assert result.to_create == [c]
        assert result.not_found == [111]
        assert result.ids_to_prune == [111]
        assert c.id == -1
        assert c.inserted is False

    def test_missing_note_is_not_recovered(self):
        """Test a card reset in phase one does not go through recovery."""
        c = card(111)
        other = remote_note(333)
        result = reconcile([c], [other], [], [111])

        assert result.to_create == [c]
        assert result.recovered == []
        assert c.id == -1

    def test_recovery(self):
        """Test a card without id takes over the matching deck note."""
        c = card()
        recorder = MagicMock()
        result = reconcile([c], [remote_note(222)], [], [], recorder=recorder)

        assert c.id == 222
        assert c.inserted is True
        assert result.recovered == [c]
        assert result.unchanged == [c]
        assert result.to_create == []
        assert result.document_dirty is True
        recorder.record_id.assert_called_once_with(c)

    def test_recovery_then_update(self):
        """Test a recovered card whose answer changed is updated."""
        c = card(back="<p>New</p>")
        result = reconcile([c], [remote_note(222, tags=("old",))], [], [])

        assert result.recovered == [c]
        assert result.to_update == [c]
        assert c.previous_remote_tags == ["old"]

    def test_each_note_is_claimed_once(self):
        """Test two cards with the same front do not share one note."""
        first, second = card(), card()
        result = reconcile([first, second], [remote_note(222)], [], [])

        assert first.id == 222
        assert second.id == -1
        assert result.to_create == [second]

    def test_claimed_match_is_logged(self, caplog):
        """Test a content match skipped because its note is taken is warned about."""
        first, second = card(), card()
        with caplog.at_level(logging.WARNING, logger="notes_to_anki.reconciler"):
            reconcile([first, second], [remote_note(222)], [], [])

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "222" in warnings[0].getMessage()
        assert "already claimed" in warnings[0].getMessage()

    def test_embedded_ids_are_not_recovered(self):
        """Test a note already claimed by an id in the document stays with it."""
        with_id = card(111)
        without_id = card()
        note = remote_note(111)
        result = reconcile([with_id, without_id], [note], [note], [111])

        assert without_id.id == -1
        assert result.to_create == [without_id]
        assert result.unchanged == [with_id]

    def test_id_not_in_document_is_reset(self):
        """Test a card id the document does not list is treated as new."""
        c = card(999)
        result = reconcile([c], [], [], [])

        assert c.id == -1
        assert result.to_create == [c]
        assert result.ids_to_prune == []

    def test_schema_mismatch_is_reported(self):
        """Test a note with another field count is neither updated nor matched."""
        c = card(111)
        note = remote_note(111, extra_fields=("Source",))
        result = reconcile([c], [note], [note], [111])

        assert result.to_update == []
        assert len(result.mismatches) == 1
        assert result.mismatches[0].note_id == 111

    def test_recorder_failure_stops_recording(self):
        """Test a rewrite failure is kept and no further ids are recorded."""
        first, second = card(), card(front="<p>Q2</p>")
        recorder = MagicMock()
        recorder.record_id.side_effect = DocumentRewriteError("bad span")
        result = reconcile(
            [first, second], [remote_note(222), remote_note(333, front="<p>Q2</p>")], [], [], recorder
        )

        assert result.rewrite_error == "bad span"
        assert result.document_dirty is False
        assert recorder.record_id.call_count == 1
        assert [c.id for c in result.recovered] == [222, 333]

    @pytest.mark.parametrize("count", [0, 3])
    def test_every_card_is_classified(self, count):
        """Test each card ends up in exactly one of create, update or unchanged."""
        cards = [card(front=f"<p>Q{i}</p>") for i in range(count)]
        result = reconcile(cards, [], [], [])

        assert len(result.to_create) + len(result.to_update) + len(result.unchanged) == count
