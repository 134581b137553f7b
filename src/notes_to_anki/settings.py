import logging
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

LOG = logging.getLogger(__name__)


class SyncSettings(BaseModel):
    """User preferences for extraction and synchronization.

    Field names can also be given in the camelCase spelling the Obsidian
    plugin stores in its `data.json` (`contextAwareMode`, `flashcardsTag`...).
    """

    model_config = ConfigDict(populate_by_name=True, from_attributes=True, extra="ignore")

    flashcards_tag: str = Field(default="card", alias="flashcardsTag")
    context_aware_mode: bool = Field(default=True, alias="contextAwareMode")
    context_separator: str = Field(default=" > ", alias="contextSeparator")
    source_support: bool = Field(default=False, alias="sourceSupport")
    code_highlight_support: bool = Field(default=False, alias="codeHighlightSupport")
    code_highlight_assets_dir: Optional[Path] = Field(default=None, alias="codeHighlightAssetsDir")
    deck: str = "Default"
    folder_based_deck: bool = Field(default=True, alias="folderBasedDeck")
    inline_separator: str = Field(default="::", alias="inlineSeparator")
    inline_separator_reverse: str = Field(default=":::", alias="inlineSeparatorReverse")
    default_anki_tag: str = Field(default="obsidian", alias="defaultAnkiTag")
    anki_connect_permission: bool = Field(default=False, alias="ankiConnectPermission")
    endpoint: str = "http://127.0.0.1:8765"
    timeout: float = 30.0
    vault_name: Optional[str] = Field(default=None, alias="vaultName")
    write_deck_to_frontmatter: bool = Field(default=True, alias="writeDeckToFrontmatter")

    @field_validator("flashcards_tag")
    @classmethod
    def _check_tag(cls, value: str) -> str:
        value = value.strip().lstrip("#")
        if not value or any(ch.isspace() for ch in value):
            raise ValueError("flashcards tag must be a single non-empty word")
        return value

    @field_validator("inline_separator", "inline_separator_reverse")
    @classmethod
    def _check_separator(cls, value: str) -> str:
        if not value:
            raise ValueError("inline separators must not be empty")
        return value

    @model_validator(mode="after")
    def _separators_differ(self) -> "SyncSettings":
        if self.inline_separator == self.inline_separator_reverse:
            raise ValueError("inline separator and reversed inline separator must differ")
        return self


def load_settings(path: Optional[Union[str, Path]] = None, **overrides) -> SyncSettings:
    """Read settings from a YAML (or JSON) file, then apply `overrides`.

    Overrides whose value is None are ignored so CLI flags that were not
    given do not mask the file.
    """
    data = {}
    if path is not None:
        path = Path(path)
        if path.exists():
            with path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
            LOG.debug("Loaded settings from %s", path)
        else:
            LOG.warning("Settings file %s does not exist, using defaults", path)
    settings = SyncSettings.model_validate(data)
    updates = {key: value for key, value in overrides.items() if value is not None}
    if updates:
        settings = SyncSettings.model_validate({**settings.model_dump(), **updates})
    return settings
