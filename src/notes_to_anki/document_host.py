import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import frontmatter
import yaml

from notes_to_anki.errors import MediaResolutionError

LOG = logging.getLogger(__name__)


class AbstractDocumentHost(ABC):
    """Where a note lives: its text, its metadata, and the media it links to."""

    @property
    @abstractmethod
    def note_name(self) -> str:
        raise NotImplementedError

    @property
    @abstractmethod
    def folder(self) -> str:
        """Folder of the note relative to the vault root, "" at the root."""
        raise NotImplementedError

    @property
    @abstractmethod
    def vault_name(self) -> str:
        raise NotImplementedError

    @abstractmethod
    async def aread(self) -> str:
        raise NotImplementedError

    @abstractmethod
    async def awrite(self, text: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def aread_media(self, filename: str) -> bytes:
        """Raw bytes of a linked media file; raises MediaResolutionError."""
        raise NotImplementedError

    @abstractmethod
    def metadata(self, text: str) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    async def aset_metadata(self, key: str, value: Any) -> bool:
        """Set one front matter key; return True when the document changed."""
        raise NotImplementedError


class FileDocumentHost(AbstractDocumentHost):
    """A markdown note on disk inside a vault directory."""

    def __init__(self, path, vault_root=None, vault_name: Optional[str] = None) -> None:
        self.path = Path(path).resolve()
        self.vault_root = Path(vault_root).resolve() if vault_root else self.path.parent
        self._vault_name = vault_name

    @property
    def note_name(self) -> str:
        return self.path.stem

    @property
    def folder(self) -> str:
        try:
            relative = self.path.parent.relative_to(self.vault_root)
        except ValueError:
            return ""
        return "" if str(relative) == "." else relative.as_posix()

    @property
    def vault_name(self) -> str:
        return self._vault_name or self.vault_root.name

    async def aread(self) -> str:
        return await asyncio.to_thread(self.path.read_text, encoding="utf-8")

    async def awrite(self, text: str) -> None:
        await asyncio.to_thread(self.path.write_text, text, encoding="utf-8")
        LOG.info("Wrote %s", self.path)

    def _find_media(self, filename: str) -> Path:
        candidates = [self.path.parent / filename, self.vault_root / filename]
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        name = Path(filename).name
        for candidate in self.vault_root.rglob(name):
            if candidate.is_file():
                return candidate
        raise MediaResolutionError(filename, "not found in the vault")

    async def aread_media(self, filename: str) -> bytes:
        path = self._find_media(filename)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise MediaResolutionError(filename, str(exc)) from exc

    def metadata(self, text: str) -> Dict[str, Any]:
        try:
            return dict(frontmatter.loads(text).metadata)
        except (yaml.YAMLError, ValueError) as exc:
            LOG.warning("Could not parse front matter of %s: %s", self.path, exc)
            return {}

    async def aset_metadata(self, key: str, value: Any) -> bool:
        text = await self.aread()
        post = frontmatter.loads(text)
        if post.metadata.get(key) == value:
            return False
        post.metadata[key] = value
        rendered = frontmatter.dumps(post)
        if not rendered.endswith("\n"):
            rendered += "\n"
        await self.awrite(rendered)
        return True
