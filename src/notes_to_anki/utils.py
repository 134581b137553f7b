import string
from typing import Iterable, List, Optional, Sequence


def tags_equal(left: Optional[Sequence[str]], right: Optional[Sequence[str]]) -> bool:
    """Order-independent tag comparison; `None` never equals anything."""
    if left is None or right is None:
        return False
    return len(left) == len(right) and sorted(left) == sorted(right)


MARKDOWN_PUNCTUATION = set(string.punctuation) - {"<", ">"}


def escape_markdown(text: str) -> str:
    """Backslash-escape punctuation so the text comes out of markdown unchanged.

    Angle brackets become entities instead, so math cannot open HTML tags.
    """
    escaped = []
    for char in text:
        if char == "<":
            escaped.append("&lt;")
        elif char == ">":
            escaped.append("&gt;")
        elif char in MARKDOWN_PUNCTUATION:
            escaped.append("\\" + char)
        else:
            escaped.append(char)
    return "".join(escaped)


def unique(items: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            result.append(item)
    return result


def normalize_tag(tag: str) -> str:
    # Anki uses `::` for hierarchical tags
    return tag.strip().replace("/", "::")
