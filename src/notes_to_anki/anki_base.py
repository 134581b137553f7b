from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from notes_to_anki.anki_models import RemoteCard, RemoteNote
from notes_to_anki.data_objects import Card


class AbstractAnkiStore(ABC):
    """Remote flashcard store as seen by a sync pass."""

    @abstractmethod
    async def aping(self) -> bool:
        """Return True when the store answers with the expected protocol version."""
        raise NotImplementedError

    async def arequest_permission(self) -> bool:
        return True

    @abstractmethod
    async def acreate_deck(self, deck_name: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def acreate_models(self, source_support: bool, code_highlight_support: bool) -> None:
        """Make sure every note type the cards may use exists."""
        raise NotImplementedError

    async def astore_code_highlight_assets(self, directory: Path) -> bool:
        return False

    @abstractmethod
    async def astore_media_files(self, cards: List[Card]) -> int:
        """Upload the resolved media of `cards`; return the number of files sent."""
        raise NotImplementedError

    @abstractmethod
    async def aadd_notes(self, cards: List[Card]) -> List[Optional[int]]:
        """Create notes; one id (or None on failure) per card, in order."""
        raise NotImplementedError

    @abstractmethod
    async def aupdate_notes(self, cards: List[Card]) -> None:
        """Overwrite fields and tags of existing notes."""
        raise NotImplementedError

    @abstractmethod
    async def anotes_info(self, note_ids: List[int]) -> List[RemoteNote]:
        raise NotImplementedError

    @abstractmethod
    async def aget_notes_in_deck(self, deck_name: str) -> List[RemoteNote]:
        raise NotImplementedError

    @abstractmethod
    async def acards_info(self, card_ids: List[int]) -> List[RemoteCard]:
        raise NotImplementedError

    @abstractmethod
    async def achange_deck(self, card_ids: List[int], deck_name: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def adelete_notes(self, note_ids: List[int]) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None
