import bisect
import logging
from typing import Iterable, List, Optional, Set, Tuple

from notes_to_anki.data_objects import Card, parse_id_marker
from notes_to_anki.errors import DocumentRewriteError
from notes_to_anki.patterns import quote_prefix

LOG = logging.getLogger(__name__)


class DocumentRewriter:
    """Edits to one document snapshot, applied together by `render()`.

    Every insertion position is computed against the snapshot the cards were
    extracted from, so the order in which markers are recorded does not
    matter. Marker pruning runs last as a whole-document line filter.
    """

    def __init__(self, text: str, card_starts: Iterable[int] = ()) -> None:
        self.text = text
        self.card_starts = sorted(set(card_starts))
        self.dirty = False
        self.error: Optional[str] = None
        self._edits: List[Tuple[int, int, str]] = []
        self._prune: Set[int] = set()

    def _next_card_start(self, position: int) -> int:
        index = bisect.bisect_right(self.card_starts, position)
        return self.card_starts[index] if index < len(self.card_starts) else len(self.text)

    def insertion_point(self, card: Card) -> Tuple[int, str]:
        """Where the marker of `card` goes and the text to insert there."""
        text = self.text
        if card.id == -1:
            raise DocumentRewriteError(f"{card.describe()} has no note id to embed")
        if not 0 <= card.span_start <= card.span_end <= len(text):
            raise DocumentRewriteError(
                f"{card.describe()} spans {card.span_start}-{card.span_end} "
                f"outside a document of length {len(text)}"
            )

        newline = text.find("\n", card.span_end)
        position = len(text) if newline == -1 else newline + 1

        first_end = text.find("\n", card.span_start)
        start_line = text[card.span_start:] if first_end == -1 else text[card.span_start:first_end]
        # Inside a callout the marker goes after the callout's last line
        if start_line.strip().startswith(">") and "[!" in start_line:
            prefix = quote_prefix(start_line) or ""
            limit = self._next_card_start(card.span_start)
            while position < len(text) and position < limit:
                end = text.find("\n", position)
                end = len(text) if end == -1 else end
                line = text[position:end]
                if not line.strip() or not line.startswith(prefix) or "[!" in line:
                    break
                position = min(end + 1, len(text))

        marker = card.id_marker() + "\n"
        if position == 0 or text[position - 1] != "\n":
            return position, "\n" + marker
        if position >= 2 and text[position - 2] == "\n":
            # Keep the blank line after the card instead of doubling it
            return position - 1, marker
        return position, marker

    def record_id(self, card: Card) -> None:
        """Embed the id marker of one card, right after its answer."""
        if self.error is not None:
            raise DocumentRewriteError(f"Document edits were aborted: {self.error}")
        try:
            position, insert = self.insertion_point(card)
        except DocumentRewriteError as exc:
            self.error = str(exc)
            raise
        self._edits.append((position, len(self._edits), insert))
        card.inserted = True
        self.dirty = True
        LOG.debug("Embedding note %s at offset %d", card.id, position)

    def insert_created_ids(self, cards: Iterable[Card]) -> int:
        """Embed markers for newly created cards; stops at the first failure."""
        count = 0
        for card in cards:
            if card.id == -1 or card.inserted:
                continue
            self.record_id(card)
            count += 1
        return count

    def prune_ids(self, note_ids: Iterable[int]) -> None:
        note_ids = set(note_ids)
        if not note_ids:
            return
        self._prune |= note_ids
        self.dirty = True

    def render(self) -> str:
        pieces = []
        cursor = 0
        for position, _, insert in sorted(self._edits):
            pieces.append(self.text[cursor:position])
            pieces.append(insert)
            cursor = position
        pieces.append(self.text[cursor:])
        rendered = "".join(pieces)
        if not self._prune:
            return rendered
        return "\n".join(
            line for line in rendered.split("\n") if parse_id_marker(line) not in self._prune
        )
