import asyncio
import base64
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiohttp

from notes_to_anki.anki_base import AbstractAnkiStore
from notes_to_anki.anki_models import BatchResult, RemoteCard, RemoteNote
from notes_to_anki.data_objects import Card
from notes_to_anki.errors import AnkiConnectionError, AnkiProtocolError, PartialBatchError
from notes_to_anki.note_types import HIGHLIGHT_FILES, HIGHLIGHT_PROBE, all_models

LOG = logging.getLogger(__name__)

API_VERSION = 6

# Actions that answer `null` on success, so any other bare value is an error
NULL_RESULT_ACTIONS = {
    "updateNoteFields",
    "clearNotesTags",
    "addTags",
    "removeTags",
    "changeDeck",
    "deleteNotes",
    "updateModelTemplates",
    "updateModelStyling",
}


class AnkiConnectClient(AbstractAnkiStore):
    def __init__(self, endpoint: str = "http://127.0.0.1:8765", timeout: float = 30.0) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "AnkiConnectClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _post(self, action: str, **params) -> Any:
        payload = {"action": action, "version": API_VERSION, "params": params}
        session = await self._ensure_session()
        try:
            async with session.post(self.endpoint, json=payload) as response:
                response.raise_for_status()
                data = await response.json(content_type=None)
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as exc:
            raise AnkiConnectionError(f"Could not reach AnkiConnect at {self.endpoint}: {exc}") from exc
        except aiohttp.ClientResponseError as exc:
            raise AnkiProtocolError(f"AnkiConnect answered {action} with HTTP {exc.status}") from exc
        except aiohttp.ClientError as exc:
            raise AnkiConnectionError(f"AnkiConnect request {action} failed: {exc}") from exc
        except ValueError as exc:
            raise AnkiProtocolError(f"AnkiConnect sent an undecodable response to {action}") from exc

        if not isinstance(data, dict) or set(data) != {"result", "error"}:
            raise AnkiProtocolError(f"Unexpected AnkiConnect response to {action}: {data!r}")
        if data["error"] is not None:
            raise AnkiProtocolError(f"AnkiConnect error: {data['error']}")
        return data["result"]

    async def _multi(self, actions: List[Dict[str, Any]]) -> List[BatchResult]:
        """Run `actions` in one `multi` request and pair every sub-result with its action."""
        if not actions:
            return []
        raw = await self._post("multi", actions=actions) or []
        if len(raw) != len(actions):
            raise AnkiProtocolError(
                f"multi returned {len(raw)} results for {len(actions)} actions"
            )
        results = []
        for action, item in zip(actions, raw):
            name = action["action"]
            if isinstance(item, dict) and set(item) == {"result", "error"}:
                results.append(BatchResult(action=name, result=item["result"], error=item["error"]))
            elif name in NULL_RESULT_ACTIONS and item is not None:
                results.append(BatchResult(action=name, error=str(item)))
            else:
                results.append(BatchResult(action=name, result=item))
        for failed in (r for r in results if not r.ok):
            LOG.warning("AnkiConnect %s failed: %s", failed.action, failed.error)
        return results

    def _raise_for_failures(self, action: str, results: List[BatchResult]) -> None:
        failures = [(r.action, r.error) for r in results if not r.ok]
        if failures:
            raise PartialBatchError(action, failures)

    async def aping(self) -> bool:
        version = await self._post("version")
        if version != API_VERSION:
            LOG.warning("AnkiConnect speaks API version %s, expected %s", version, API_VERSION)
        return version == API_VERSION

    async def arequest_permission(self) -> bool:
        result = await self._post("requestPermission") or {}
        granted = result.get("permission") == "granted"
        if not granted:
            LOG.warning("AnkiConnect permission was not granted: %s", result)
        return granted

    async def acreate_deck(self, deck_name: str) -> None:
        await self._post("createDeck", deck=deck_name)

    async def acreate_models(self, source_support: bool, code_highlight_support: bool) -> None:
        models = all_models(source_support, code_highlight_support)
        results = await self._multi(
            [{"action": "createModel", "params": params} for params in models]
        )
        fallback = []
        for params, result in zip(models, results):
            if result.ok:
                LOG.info("Created note type %s", params["modelName"])
                continue
            if "already exists" not in str(result.error):
                continue
            templates = {
                template["Name"]: {"Front": template["Front"], "Back": template["Back"]}
                for template in params["cardTemplates"]
            }
            fallback.append({
                "action": "updateModelTemplates",
                "params": {"model": {"name": params["modelName"], "templates": templates}},
            })
            fallback.append({
                "action": "updateModelStyling",
                "params": {"model": {"name": params["modelName"], "css": params["css"]}},
            })
        fallback_results = await self._multi(fallback)
        unexpected = [
            r for r in results if not r.ok and "already exists" not in str(r.error)
        ]
        self._raise_for_failures("createModel", unexpected + fallback_results)

    async def astore_code_highlight_assets(self, directory: Path) -> bool:
        """Upload the syntax highlighting assets unless Anki already has them."""
        if await self._post("retrieveMediaFile", filename=HIGHLIGHT_PROBE):
            return False
        actions = []
        for filename in HIGHLIGHT_FILES:
            path = Path(directory) / filename
            if not path.is_file():
                LOG.warning("Code highlight asset %s is missing", path)
                continue
            data = base64.b64encode(path.read_bytes()).decode("ascii")
            actions.append({"action": "storeMediaFile", "params": {"filename": filename, "data": data}})
        results = await self._multi(actions)
        self._raise_for_failures("storeMediaFile", results)
        return bool(actions)

    async def astore_media_files(self, cards: List[Card]) -> int:
        actions = [
            {"action": "storeMediaFile", "params": media}
            for card in cards
            for media in card.media_files()
        ]
        results = await self._multi(actions)
        self._raise_for_failures("storeMediaFile", results)
        return len(actions)

    async def aadd_notes(self, cards: List[Card]) -> List[Optional[int]]:
        if not cards:
            return []
        ids = await self._post("addNotes", notes=[card.to_note() for card in cards]) or []
        if len(ids) != len(cards):
            raise AnkiProtocolError(f"addNotes returned {len(ids)} ids for {len(cards)} notes")
        return ids

    async def aupdate_notes(self, cards: List[Card]) -> None:
        actions = []
        for card in cards:
            actions.append({
                "action": "updateNoteFields",
                "params": {"note": {"id": card.id, "fields": dict(card.fields)}},
            })
            actions.append({"action": "clearNotesTags", "params": {"notes": [card.id]}})
            if card.tags:
                actions.append({
                    "action": "addTags",
                    "params": {"notes": [card.id], "tags": " ".join(card.tags)},
                })
        results = await self._multi(actions)
        self._raise_for_failures("updateNoteFields", results)

    async def anotes_info(self, note_ids: List[int]) -> List[RemoteNote]:
        if not note_ids:
            return []
        notes = await self._post("notesInfo", notes=list(note_ids)) or []
        # Unknown ids come back as empty objects
        return [RemoteNote.model_validate(note) for note in notes if note]

    async def afind_notes(self, query: str) -> List[int]:
        return await self._post("findNotes", query=query) or []

    async def aget_notes_in_deck(self, deck_name: str) -> List[RemoteNote]:
        note_ids = await self.afind_notes(f'deck:"{deck_name}"')
        return await self.anotes_info(note_ids)

    async def acards_info(self, card_ids: List[int]) -> List[RemoteCard]:
        if not card_ids:
            return []
        cards = await self._post("cardsInfo", cards=list(card_ids)) or []
        return [RemoteCard.model_validate(card) for card in cards if card]

    async def achange_deck(self, card_ids: List[int], deck_name: str) -> None:
        if card_ids:
            await self._post("changeDeck", cards=list(card_ids), deck=deck_name)

    async def adelete_notes(self, note_ids: List[int]) -> None:
        if note_ids:
            await self._post("deleteNotes", notes=list(note_ids))
