"""The four card grammars: tag cards, inline cards, spaced cards and clozes.

Every extractor reads the whole document through an `ExtractionContext`
and returns cards whose spans index into that same text.
"""
import bisect
import logging
import textwrap
from typing import Callable, List, Optional, Set, Tuple

from notes_to_anki.content import ContentTransform
from notes_to_anki.data_objects import SOURCE_FIELD, Card, CardKind, parse_id_marker
from notes_to_anki.headings import HEADING_RE, HeadingIndex
from notes_to_anki.patterns import (
    BLOCK_REF_RE,
    CLOZE_CURLY_RE,
    CLOZE_HIGHLIGHT_RE,
    CODE_BLOCK_RE,
    FRONT_MATTER_RE,
    HTML_COMMENT_RE,
    MATH_BLOCK_RE,
    MATH_INLINE_RE,
    METADATA_LINE_RE,
    STANDALONE_BLOCK_REF_RE,
    TRAILING_TAGS_RE,
    CardPatterns,
    quote_prefix,
    strip_list_marker,
    strip_quote,
)
from notes_to_anki.settings import SyncSettings
from notes_to_anki.utils import normalize_tag, unique

LOG = logging.getLogger(__name__)

Span = Tuple[int, int]


def math_ranges(text: str) -> List[Span]:
    return [m.span() for m in MATH_BLOCK_RE.finditer(text)] + [
        m.span() for m in MATH_INLINE_RE.finditer(text)
    ]


def excluded_regions(text: str) -> List[Span]:
    """Regions no card may live in: code, math, front matter and comments."""
    regions = [m.span() for m in CODE_BLOCK_RE.finditer(text)]
    regions += math_ranges(text)
    regions += [m.span() for m in FRONT_MATTER_RE.finditer(text)]
    regions += [m.span() for m in HTML_COMMENT_RE.finditer(text)]
    return regions


def contained(start: int, end: int, regions: List[Span]) -> bool:
    return any(start >= region_start and end <= region_end for region_start, region_end in regions)


def parse_tags(tag_text: Optional[str], global_tags: List[str]) -> List[str]:
    tags = list(global_tags)
    for tag in (tag_text or "").split("#"):
        if tag.strip():
            tags.append(normalize_tag(tag))
    return unique(tags)


def substitute_clozes(line: str, line_start: int, protected: List[Span]) -> str:
    """Anki cloze syntax for one line; curly spans inside `protected` are kept."""

    def curly(match) -> str:
        start, end = line_start + match.start(), line_start + match.end()
        if contained(start, end, protected):
            return match.group(0)
        return "{{c%s::%s}}" % (match.group(1) or "1", match.group(2))

    line = CLOZE_CURLY_RE.sub(curly, line)
    return CLOZE_HIGHLIGHT_RE.sub(lambda m: "{{c1::%s}}" % m.group(1), line)


class ExtractionContext:
    """Per-pass view of one document shared by the extractors."""

    def __init__(
        self,
        text: str,
        settings: SyncSettings,
        deck_name: str,
        transform: Optional[ContentTransform] = None,
        patterns: Optional[CardPatterns] = None,
        global_tags: Optional[List[str]] = None,
        note_name: Optional[str] = None,
    ) -> None:
        self.text = text
        self.settings = settings
        self.deck_name = deck_name
        self.transform = transform or ContentTransform(settings.vault_name or "")
        self.patterns = patterns or CardPatterns.from_settings(settings)
        self.global_tags = list(global_tags or [])
        self.headings = (
            HeadingIndex.from_text(text) if settings.context_aware_mode else HeadingIndex([])
        )
        self.source = (
            self.transform.note_link(note_name) if settings.source_support and note_name else None
        )
        self.lines = text.split("\n")
        self.line_starts: List[int] = []
        offset = 0
        for line in self.lines:
            self.line_starts.append(offset)
            offset += len(line) + 1
        self.math = math_ranges(text)
        self.excluded = excluded_regions(text)
        self._card_starts: Optional[Set[int]] = None

    def line_index(self, offset: int) -> int:
        return bisect.bisect_right(self.line_starts, offset) - 1

    def line_end(self, index: int) -> int:
        return self.line_starts[index] + len(self.lines[index])

    def line_excluded(self, index: int) -> bool:
        return contained(self.line_starts[index], self.line_end(index), self.excluded)

    @property
    def card_starts(self) -> Set[int]:
        """Indices of the lines where some card begins."""
        if self._card_starts is None:
            self._card_starts = {
                index for index, line in enumerate(self.lines)
                if line.strip() and not self.line_excluded(index) and self._opens_card(index, line)
            }
        return self._card_starts

    def _opens_card(self, index: int, line: str) -> bool:
        patterns = self.patterns
        if patterns.tag_card.match(line) or patterns.spaced_card.match(line):
            return True
        if patterns.is_inline_line(line):
            return True
        match = patterns.cloze_line.match(line)
        if match:
            body = match.group(2)
            start = self.line_starts[index] + match.start(2)
            return substitute_clozes(body, start, self.math) != body
        return False

    def breadcrumb(self, text: str, offset: int, heading_prefix: Optional[str]) -> str:
        if not self.settings.context_aware_mode:
            return text
        own_level = len(heading_prefix.strip()) if heading_prefix and heading_prefix.strip() else None
        return self.headings.breadcrumb(
            text, max(offset - 1, 0), own_level, self.settings.context_separator
        )

    def collect_answer(
        self, card_line: int, callout: Optional[str], stop_at_block_ref: bool = False
    ) -> Tuple[List[str], int, Optional[int]]:
        """Answer lines following `card_line`.

        Returns the lines, the index of the last consumed line and the note
        id when an id marker closes the answer.
        """
        answer: List[str] = []
        last = card_line
        index = card_line + 1
        while index < len(self.lines):
            line = self.lines[index]
            if parse_id_marker(line) is not None:
                break
            if not line.strip() or HEADING_RE.match(line) or index in self.card_starts:
                break
            if callout is not None:
                if not line.startswith(callout):
                    break
                body = line[len(callout):]
                if not body.strip() or body.lstrip().startswith("[!"):
                    break
                line = body
            if stop_at_block_ref and BLOCK_REF_RE.search(line):
                break
            answer.append(line)
            last = index
            index += 1
        note_id, last = self.marker_after(last, allow_block_ref=True)
        return answer, last, note_id

    def marker_after(self, index: int, allow_block_ref: bool = False) -> Tuple[Optional[int], int]:
        """Id marker on the line after `index` and the index of the last consumed line."""
        following = index + 1
        if (
            allow_block_ref
            and following < len(self.lines)
            and STANDALONE_BLOCK_REF_RE.match(self.lines[following])
        ):
            following += 1
        if following < len(self.lines):
            note_id = parse_id_marker(self.lines[following])
            if note_id is not None:
                return note_id, following
        return None, index

    def build_card(
        self,
        kind: CardKind,
        original_text: str,
        raw_fields: List[Tuple[str, str]],
        tags: List[str],
        start: int,
        last_line: int,
        note_id: Optional[int],
        reversed: bool = False,
    ) -> Card:
        fields = {name: self.transform.convert(value) for name, value in raw_fields}
        contains_code = self.settings.code_highlight_support and ContentTransform.contains_code(
            fields.values()
        )
        if self.source is not None:
            fields[SOURCE_FIELD] = self.source
        return Card(
            kind=kind,
            id=note_id if note_id is not None else -1,
            deck_name=self.deck_name,
            original_text=original_text,
            fields=fields,
            tags=tags,
            reversed=reversed,
            span_start=start,
            span_end=self.line_end(last_line),
            inserted=note_id is not None,
            media_references=ContentTransform.media_references(value for _, value in raw_fields),
            contains_code=contains_code,
        )


def _clean_question(text: str) -> str:
    return strip_list_marker(strip_quote(text)).strip()


def _join_answer(lines: List[str]) -> str:
    return textwrap.dedent("\n".join(lines)).strip()


def _each_match(pattern, ctx: ExtractionContext, build: Callable) -> List[Card]:
    cards = []
    for match in pattern.finditer(ctx.text):
        try:
            card = build(match)
        except ValueError as exc:
            LOG.warning("Skipping malformed card at offset %d: %s", match.start(), exc)
            continue
        if card is not None:
            cards.append(card)
    return cards


def extract_tag_cards(ctx: ExtractionContext) -> List[Card]:
    tag = ctx.settings.flashcards_tag.lower()

    def build(match) -> Optional[Card]:
        heading, question_text, trigger, trailing = match.groups()
        line_index = ctx.line_index(match.start())
        reversed = trigger.lower() in (f"#{tag}-reverse", f"#{tag}/reverse")
        callout = None
        if question_text.lstrip().startswith(">"):
            prefix = quote_prefix(question_text)
            if prefix and "[!" in question_text:
                callout = prefix
        question = _clean_question(question_text)
        answer_lines, last, note_id = ctx.collect_answer(line_index, callout)
        front = ctx.breadcrumb(question, match.start(), heading)
        return ctx.build_card(
            CardKind.TAG,
            question,
            [("Front", front), ("Back", _join_answer(answer_lines))],
            parse_tags(trailing, ctx.global_tags),
            match.start(),
            last,
            note_id,
            reversed=reversed,
        )

    return _each_match(ctx.patterns.tag_card, ctx, build)


def _split_trailing_tags(text: str) -> Tuple[str, str]:
    match = TRAILING_TAGS_RE.search(text)
    if not match:
        return text.strip(), ""
    return text[: match.start()].strip(), match.group(1)


def extract_inline_cards(ctx: ExtractionContext) -> List[Card]:
    def build(match) -> Optional[Card]:
        heading, question_text, separator, first_answer = match.groups()
        if METADATA_LINE_RE.match(match.group(0)):
            return None
        line_index = ctx.line_index(match.start())
        question = _clean_question(question_text)
        if not question:
            return None
        first_answer, trailing = _split_trailing_tags(first_answer)
        answer_lines = []
        ends_with_ref = bool(BLOCK_REF_RE.search(first_answer))
        if ends_with_ref:
            first_answer = BLOCK_REF_RE.sub("", first_answer).strip()
        answer_lines.append(first_answer)
        if ends_with_ref:
            note_id, last = ctx.marker_after(line_index)
        else:
            more, last, note_id = ctx.collect_answer(line_index, None, stop_at_block_ref=True)
            answer_lines.extend(more)
        answer = _join_answer(answer_lines)
        if not answer:
            return None
        front = ctx.breadcrumb(question, match.start(), heading)
        return ctx.build_card(
            CardKind.INLINE,
            question,
            [("Front", front), ("Back", answer)],
            parse_tags(trailing, ctx.global_tags),
            match.start(),
            last,
            note_id,
            reversed=separator == ctx.patterns.reverse_separator,
        )

    return _each_match(ctx.patterns.inline_card, ctx, build)


def extract_spaced_cards(ctx: ExtractionContext) -> List[Card]:
    def build(match) -> Card:
        heading, prompt_text, _trigger, trailing = match.groups()
        line_index = ctx.line_index(match.start())
        prompt = _clean_question(prompt_text)
        note_id, last = ctx.marker_after(line_index)
        return ctx.build_card(
            CardKind.SPACED,
            prompt,
            [("Prompt", ctx.breadcrumb(prompt, match.start(), heading))],
            parse_tags(trailing, ctx.global_tags),
            match.start(),
            last,
            note_id,
        )

    return _each_match(ctx.patterns.spaced_card, ctx, build)


def _starts_other_card(patterns, line: str) -> bool:
    return bool(
        patterns.tag_card.match(line) or patterns.spaced_card.match(line) or patterns.is_inline_line(line)
    )


def extract_cloze_cards(ctx: ExtractionContext) -> List[Card]:
    def build(match) -> Optional[Card]:
        if _starts_other_card(ctx.patterns, match.group(0)):
            return None
        heading, body = match.group(1), match.group(2)
        body, trailing = _split_trailing_tags(body)
        body_start = match.start(2)
        text = substitute_clozes(body, body_start, ctx.math)
        if text == body:
            return None
        line_index = ctx.line_index(match.start())
        note_id, last = ctx.marker_after(line_index)
        return ctx.build_card(
            CardKind.CLOZE,
            body.strip(),
            [("Text", ctx.breadcrumb(text.strip(), match.start(), heading)), ("Extra", "")],
            parse_tags(trailing, ctx.global_tags),
            match.start(),
            last,
            note_id,
        )

    return _each_match(ctx.patterns.cloze_line, ctx, build)


EXTRACTORS = (extract_tag_cards, extract_inline_cards, extract_spaced_cards, extract_cloze_cards)
