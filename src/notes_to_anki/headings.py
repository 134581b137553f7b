import re
from typing import List, Optional

from notes_to_anki.data_objects import Heading

HEADING_RE = re.compile(r"^ {0,3}(#{1,6}) +([^\n]+?) ?((?: *#\S+)*) *$", re.MULTILINE)


class HeadingIndex:
    """Headings of a document in order of appearance."""

    def __init__(self, headings: List[Heading]) -> None:
        self.headings = sorted(headings, key=lambda heading: heading.offset)

    @classmethod
    def from_text(cls, text: str) -> "HeadingIndex":
        return cls([
            Heading(level=len(match.group(1)), text=match.group(2).strip(), offset=match.start())
            for match in HEADING_RE.finditer(text)
        ])

    def __len__(self) -> int:
        return len(self.headings)

    def context(self, position: int, own_level: Optional[int] = None) -> List[str]:
        """Ancestor heading texts of `position`, outermost first.

        `own_level` is given when the card is itself a heading; the search
        then starts one level above it. Otherwise the nearest heading before
        `position` is the first ancestor. Only headings exactly one level up
        from the last pick are taken, so siblings are skipped.
        """
        context: List[str] = []
        current = position
        goal = 6
        i = len(self.headings) - 1

        if own_level is not None:
            goal = own_level - 1
        else:
            while i >= 0:
                heading = self.headings[i]
                if heading.offset < current:
                    current = heading.offset
                    goal = heading.level - 1
                    context.insert(0, heading.text)
                    break
                i -= 1

        while i >= 0:
            heading = self.headings[i]
            if heading.level == goal and heading.offset < current:
                current = heading.offset
                goal = heading.level - 1
                context.insert(0, heading.text)
            i -= 1
        return context

    def breadcrumb(self, text: str, position: int, own_level: Optional[int], separator: str) -> str:
        return separator.join(self.context(position, own_level) + [text])
