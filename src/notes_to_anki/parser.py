import logging
import re
from typing import Iterable, List, Optional

from notes_to_anki.content import ContentTransform
from notes_to_anki.data_objects import Card, parse_id_marker
from notes_to_anki.extractors import EXTRACTORS, ExtractionContext, contained
from notes_to_anki.patterns import CardPatterns
from notes_to_anki.settings import SyncSettings
from notes_to_anki.utils import normalize_tag, unique

LOG = logging.getLogger(__name__)

GLOBAL_TAGS_RE = re.compile(r"^(?:cards-)?tags: ?(.*)$", re.MULTILINE | re.IGNORECASE)
GLOBAL_TAG_TOKEN_RE = re.compile(r"\[\[(.*?)\]\]|#?([^\s,#\[\]]+)")


def parse_global_tags(text: str) -> List[str]:
    """Tags from the first `tags:` / `cards-tags:` line of the document."""
    match = GLOBAL_TAGS_RE.search(text)
    if not match:
        return []
    tags = []
    for token in GLOBAL_TAG_TOKEN_RE.finditer(match.group(1)):
        tag = token.group(1) if token.group(1) is not None else token.group(2)
        tag = normalize_tag(tag.strip().lstrip("#")).replace(" ", "-")
        if tag:
            tags.append(tag)
    return unique(tags)


def embedded_ids(text: str) -> List[int]:
    """Note ids of every id marker line, in document order."""
    ids = []
    for line in text.split("\n"):
        note_id = parse_id_marker(line)
        if note_id is not None:
            ids.append(note_id)
    return ids


def ids_to_delete(text: str) -> List[int]:
    """Ids whose marker has no card above it (blank line or start of document)."""
    ids = []
    previous: Optional[str] = None
    for line in text.split("\n"):
        note_id = parse_id_marker(line)
        if note_id is not None and (previous is None or not previous.strip()):
            ids.append(note_id)
        previous = line
    return ids


def filter_excluded(cards: Iterable[Card], regions) -> List[Card]:
    kept = []
    for card in cards:
        if contained(card.span_start, card.span_end, regions):
            LOG.debug("Dropping %s inside an excluded region", card.describe())
            continue
        kept.append(card)
    return kept


class CardParser:
    """Runs every grammar over a document and returns its cards in order."""

    def __init__(
        self,
        settings: SyncSettings,
        transform: Optional[ContentTransform] = None,
    ) -> None:
        self.settings = settings
        self.transform = transform or ContentTransform(settings.vault_name or "")
        self.patterns = CardPatterns.from_settings(settings)

    def parse(
        self,
        text: str,
        deck_name: str,
        global_tags: Optional[List[str]] = None,
        note_name: Optional[str] = None,
    ) -> List[Card]:
        ctx = ExtractionContext(
            text,
            self.settings,
            deck_name,
            transform=self.transform,
            patterns=self.patterns,
            global_tags=global_tags,
            note_name=note_name,
        )
        cards: List[Card] = []
        for extract in EXTRACTORS:
            found = extract(ctx)
            LOG.debug("%s found %d card(s)", extract.__name__, len(found))
            cards.extend(found)

        cards = filter_excluded(cards, ctx.excluded)
        default_tag = self.settings.default_anki_tag.strip()
        if default_tag:
            for card in cards:
                card.tags = unique(card.tags + [normalize_tag(default_tag)])
        # Same-offset cards keep extractor order
        return sorted(cards, key=lambda card: card.span_start)
