import re
from typing import NamedTuple, Optional, Pattern, Tuple

from notes_to_anki.settings import SyncSettings

TRAILING_TAGS = r"((?:[ \t]+#[^\s#]+)*)"
TRAILING_TAGS_RE = re.compile(r"((?:[ \t]+#[^\s#]+)+)[ \t]*$")

LIST_MARKER_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")
QUOTE_PREFIX_RE = re.compile(r"^(\s*>[\s>]*)")
CALLOUT_HEADER_RE = re.compile(r"^\[![^\]]+\][+-]?\s*")
BLOCK_REF_RE = re.compile(r"\s\^[\w-]+\s*$")
STANDALONE_BLOCK_REF_RE = re.compile(r"^\s*\^[\w-]+\s*$")
METADATA_LINE_RE = re.compile(r"^\s*(?:cards-deck|cards-tags|tags)\s*:", re.IGNORECASE)

CODE_BLOCK_RE = re.compile(r"```.*?```", re.DOTALL)
MATH_BLOCK_RE = re.compile(r"\$\$.*?\$\$", re.DOTALL)
MATH_INLINE_RE = re.compile(r"\$[^$\n]+?\$")
FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\n.*?\n---[ \t]*(?:\n|\Z)", re.DOTALL)
HTML_COMMENT_RE = re.compile(r"<!--(?!\s*ankiID: \d+\s*-->).*?-->", re.DOTALL)

CLOZE_CURLY_RE = re.compile(r"\{(?:(\d+):)?([^{}\n]+?)\}")
CLOZE_HIGHLIGHT_RE = re.compile(r"==([^=\n]+?)==")


class CardPatterns(NamedTuple):
    """Start-of-card patterns for one set of settings.

    Compiled `re` patterns keep no match state, so one instance can be
    shared by any number of extraction passes.
    """

    tag_card: Pattern
    spaced_card: Pattern
    inline_card: Pattern
    cloze_line: Pattern
    separators: Tuple[str, ...]
    reverse_separator: str

    @classmethod
    def from_settings(cls, settings: SyncSettings) -> "CardPatterns":
        tag = re.escape(settings.flashcards_tag)
        # Longest separator first so `:::` is not read as `::` + `:`
        separators = tuple(sorted(
            {settings.inline_separator, settings.inline_separator_reverse}, key=len, reverse=True
        ))
        separator_group = "|".join(re.escape(sep) for sep in separators)
        return cls(
            tag_card=re.compile(
                r"^(?:( {0,3}#{1,6}) +)?(\S.*?)[ \t]+(#" + tag + r"(?:[/-]reverse)?)(?=[ \t]|$)"
                + TRAILING_TAGS + r"[ \t]*$",
                re.MULTILINE | re.IGNORECASE,
            ),
            spaced_card=re.compile(
                r"^(?:( {0,3}#{1,6}) +)?(\S.*?)[ \t]+(#" + tag + r"[/-]spaced)(?=[ \t]|$)"
                + TRAILING_TAGS + r"[ \t]*$",
                re.MULTILINE | re.IGNORECASE,
            ),
            inline_card=re.compile(
                r"^(?:( {0,3}#{1,6}) +)?(.+?)[ \t]*(" + separator_group + r")(?!:)[ \t]*(.*?)"
                + r"[ \t]*$",
                re.MULTILINE,
            ),
            cloze_line=re.compile(
                r"^(?:( {0,3}#{1,6}) +)?(.*(?:==[^=\n]+?==|\{[^{}\n]+?\}).*)$",
                re.MULTILINE,
            ),
            separators=separators,
            reverse_separator=settings.inline_separator_reverse,
        )

    def is_inline_line(self, line: str) -> bool:
        return bool(self.inline_card.match(line)) and not METADATA_LINE_RE.match(line)


def strip_list_marker(text: str) -> str:
    return LIST_MARKER_RE.sub("", text, count=1)


def quote_prefix(line: str) -> Optional[str]:
    match = QUOTE_PREFIX_RE.match(line)
    return match.group(1) if match else None


def strip_quote(text: str) -> str:
    """Remove a leading quote prefix and a callout header like `[!note]-`."""
    prefix = quote_prefix(text)
    if prefix:
        text = text[len(prefix):]
    return CALLOUT_HEADER_RE.sub("", text, count=1)
