from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class NoteField(BaseModel):
    value: str = ""
    order: int = 0


class RemoteNote(BaseModel):
    """A note as returned by AnkiConnect's `notesInfo`."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True, protected_namespaces=())

    note_id: int = Field(..., alias="noteId", serialization_alias="noteId")
    model_name: str = Field(default="", alias="modelName", serialization_alias="modelName")
    tags: List[str] = Field(default_factory=list)
    fields: Dict[str, NoteField] = Field(default_factory=dict)
    cards: List[int] = Field(default_factory=list)

    def ordered_fields(self) -> List[Tuple[str, str]]:
        return [
            (name, field.value)
            for name, field in sorted(self.fields.items(), key=lambda item: item[1].order)
        ]

    def field_values(self) -> Dict[str, str]:
        return dict(self.ordered_fields())

    @property
    def first_field(self) -> Optional[Tuple[str, str]]:
        ordered = self.ordered_fields()
        return ordered[0] if ordered else None


class RemoteCard(BaseModel):
    """A card as returned by AnkiConnect's `cardsInfo`."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    card_id: int = Field(..., alias="cardId", serialization_alias="cardId")
    note_id: int = Field(default=0, alias="note", serialization_alias="note")
    deck_name: str = Field(default="", alias="deckName", serialization_alias="deckName")


class BatchResult(BaseModel):
    """Outcome of one sub-action of a `multi` request."""

    action: str
    result: object = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
