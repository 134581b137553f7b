import re
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

ID_MARKER_RE = re.compile(r"<!-- ankiID: (\d+) -->")

SOURCE_FIELD = "Source"
SOURCE_SUFFIX = "-source"
CODE_SUFFIX = "-code"


def format_id_marker(note_id: int) -> str:
    return f"<!-- ankiID: {note_id} -->"


def parse_id_marker(line: str) -> Optional[int]:
    """Return the note id if `line` is exactly an id marker line."""
    match = ID_MARKER_RE.fullmatch(line.strip())
    return int(match.group(1)) if match else None


class CardKind(str, Enum):
    TAG = "tag"
    INLINE = "inline"
    SPACED = "spaced"
    CLOZE = "cloze"


class CardSchema(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    model_name: str
    reversed_model_name: Optional[str] = None
    fields: Tuple[str, ...]


CARD_SCHEMAS: Dict[CardKind, CardSchema] = {
    CardKind.TAG: CardSchema(
        model_name="Obsidian-basic",
        reversed_model_name="Obsidian-basic-reversed",
        fields=("Front", "Back"),
    ),
    CardKind.INLINE: CardSchema(
        model_name="Obsidian-basic",
        reversed_model_name="Obsidian-basic-reversed",
        fields=("Front", "Back"),
    ),
    CardKind.SPACED: CardSchema(model_name="Obsidian-spaced", fields=("Prompt",)),
    CardKind.CLOZE: CardSchema(model_name="Obsidian-cloze", fields=("Text", "Extra")),
}


class Heading(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: int
    text: str
    offset: int


class Card(BaseModel):
    """One flashcard found in a document.

    `id` is -1 until the card is known to Anki. `span_start`/`span_end` are
    indices into the document text the card was extracted from; `span_end`
    points just past the last consumed line (the id marker line included
    when there is one).
    """

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    kind: CardKind
    id: int = -1
    deck_name: str
    original_text: str = ""
    fields: Dict[str, str] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    reversed: bool = False
    span_start: int = 0
    span_end: int = 0
    inserted: bool = False
    media_references: List[str] = Field(default_factory=list)
    media_payloads: Dict[str, str] = Field(default_factory=dict)
    previous_remote_tags: List[str] = Field(default_factory=list)
    contains_code: bool = False

    @model_validator(mode="after")
    def _check_invariants(self) -> "Card":
        if self.inserted and self.id == -1:
            raise ValueError("an inserted card must carry a note id")
        if self.span_end < self.span_start:
            raise ValueError("span_end must not precede span_start")
        if self.reversed and CARD_SCHEMAS[self.kind].reversed_model_name is None:
            raise ValueError(f"{self.kind.value} cards cannot be reversed")
        declared = self.declared_fields()
        ordered = {name: self.fields.get(name, "") for name in declared}
        # Source is optional and only present when source support is on
        if SOURCE_FIELD in self.fields:
            ordered[SOURCE_FIELD] = self.fields[SOURCE_FIELD]
        self.fields = ordered
        return self

    @property
    def card_schema(self) -> CardSchema:
        return CARD_SCHEMAS[self.kind]

    def declared_fields(self) -> Tuple[str, ...]:
        return self.card_schema.fields

    @property
    def field_names(self) -> List[str]:
        return list(self.fields)

    @property
    def model_name(self) -> str:
        schema = self.card_schema
        name = schema.reversed_model_name if self.reversed else schema.model_name
        if SOURCE_FIELD in self.fields:
            name += SOURCE_SUFFIX
        if self.contains_code:
            name += CODE_SUFFIX
        return name

    @property
    def first_field(self) -> Tuple[str, str]:
        name = self.declared_fields()[0]
        return name, self.fields.get(name, "")

    def id_marker(self) -> str:
        return format_id_marker(self.id)

    def to_note(self, update: bool = False) -> Dict:
        """AnkiConnect note payload; `id` is only included for updates."""
        note = {
            "deckName": self.deck_name,
            "modelName": self.model_name,
            "fields": dict(self.fields),
            "tags": list(self.tags),
        }
        if update:
            note["id"] = self.id
        return note

    def media_files(self) -> List[Dict[str, str]]:
        return [
            {"filename": filename, "data": data}
            for filename, data in self.media_payloads.items()
        ]

    def describe(self) -> str:
        name, value = self.first_field
        return f"{self.kind.value} card '{value[:60]}'" if value else f"{self.kind.value} card"
