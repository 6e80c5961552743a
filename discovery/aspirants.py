"""
Aspirant Discovery - Tracks who is (and is no longer) running.

============================================================
RESPONSIBILITY
============================================================
Keeps the entity list in step with announced candidacies.

- discover(): match known politician names in candidacy news,
  inferring party and status from the surrounding text
- sync(): add newly announced aspirants as entities and remove
  entities whose aspirant stepped down
- check_for_withdrawals(): dedicated withdrawal scan over the
  current entity list

Every discovery is recorded in the aspirants collection.

============================================================
"""

import asyncio
import inspect
import logging
import random
import re
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

from core.clock import now_utc, to_iso8601
from core.constants import BASELINE_SCORE, ENTITY_COLORS
from core.models import AspirantRecord, AspirantStatus, Entity, HistoryPoint
from database.store import PersistentStore
from providers.image_finder import placeholder_avatar
from providers.search import SearchClient, extract_source_name


logger = logging.getLogger(__name__)


ASPIRANT_ROLE = "Presidential Aspirant"
PLACEHOLDER_HISTORY_POINTS = 15
RESULTS_PER_TERM = 10
WITHDRAWAL_RESULTS_PER_TERM = 5
TERM_DELAY_SECONDS = 0.5
WITHDRAWAL_TERM_DELAY_SECONDS = 0.3

SEARCH_TERMS = (
    "Kenya 2027 presidential candidate declares",
    "Kenya 2027 presidential aspirant announcement",
    "who will run for president Kenya 2027",
    "Kenya opposition presidential candidate 2027",
)

WITHDRAWAL_TERMS = (
    "presidential candidate withdraws Kenya 2027",
    "presidential aspirant steps down Kenya",
    "candidate drops out Kenya 2027 race",
)

CANDIDACY_KEYWORDS = ("president", "presidential", "candidate", "aspirant", "vying", "run for")
EXIT_KEYWORDS = ("withdraw", "step down", "drops out", "retire")
WITHDRAWAL_KEYWORDS = ("withdraw", "step down", "drops out", "quit")
CONFIRMED_KEYWORDS = ("confirmed", "official")

# (canonical name, pattern)
KNOWN_POLITICIANS: tuple[tuple[str, str], ...] = (
    ("William Ruto", r"william ruto"),
    ("Rigathi Gachagua", r"rigathi gachagua"),
    ("Kalonzo Musyoka", r"kalonzo musyoka"),
    ("Fred Matiang'i", r"fred matiang[’']?i"),
    ("Justin Muturi", r"justi(?:n|ce) muturi"),
    ("George Wajackoyah", r"george wajackoyah"),
    ("James Orengo", r"james orengo"),
    ("Moses Wetang'ula", r"moses wetang[’']?ula"),
    ("Wycliffe Oparanya", r"wycliffe oparanya"),
    ("Gideon Moi", r"gideon moi"),
    ("Ekuru Aukot", r"ekuru aukot"),
    ("Reuben Kigame", r"reuben kigame"),
    ("Moses Kuria", r"moses kuria"),
    ("Johnny Muthama", r"johnny muthama"),
    ("Josphat Nanok", r"josphat nanok"),
    ("Martin Wambora", r"martin wambora"),
    ("Hassan Joho", r"hassan joho"),
    ("Mwangi Thuita", r"mwangi thuita"),
)

_NAME_PATTERNS = tuple(
    (name, re.compile(rf"\b{pattern}\b", re.IGNORECASE)) for name, pattern in KNOWN_POLITICIANS
)

PARTY_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("uda", "UDA"),
    ("kenya kwanza", "Kenya Kwanza"),
    ("odm", "ODM"),
    ("orange democratic movement", "ODM"),
    ("azimio", "Azimio"),
    ("wiper", "Wiper Democratic Movement"),
    ("jubilee", "Jubilee Party"),
    ("kanu", "KANU"),
    ("roots", "Roots Party"),
    ("thirdway", "Thirdway Alliance"),
    ("democratic", "Democratic Party"),
    ("ford", "Ford Kenya"),
    ("anc", "ANC"),
)

AddCallback = Callable[[Entity], Any]
RemoveCallback = Callable[[str], Any]


def infer_party(text: str) -> str:
    """First party keyword found as a whole word, else Independent."""
    lower = text.lower()
    for keyword, party in PARTY_KEYWORDS:
        if re.search(rf"\b{re.escape(keyword)}\b", lower):
            return party
    return "Independent"


def infer_status(text: str) -> AspirantStatus:
    lower = text.lower()
    if any(keyword in lower for keyword in EXIT_KEYWORDS):
        return AspirantStatus.STEPPED_DOWN
    if any(keyword in lower for keyword in CONFIRMED_KEYWORDS):
        return AspirantStatus.CONFIRMED
    return AspirantStatus.ANNOUNCEMENT


def find_known_names(text: str) -> list[str]:
    return [name for name, pattern in _NAME_PATTERNS if pattern.search(text)]


@dataclass(frozen=True)
class DiscoveredAspirant:
    name: str
    party: str
    status: AspirantStatus
    role: str = ASPIRANT_ROLE
    source_url: Optional[str] = None
    source_name: Optional[str] = None


async def _call(callback: Callable[[Any], Any], argument: Any) -> None:
    result = callback(argument)
    if inspect.isawaitable(result):
        await result


class AspirantDiscovery:
    """
    Candidacy tracker.

    Usage:
        discovery = AspirantDiscovery(store, search_client)
        await discovery.sync(store.get_entities(), tracker.add_entity, tracker.remove_entity)
    """

    def __init__(
        self,
        store: PersistentStore,
        search_client: SearchClient,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._store = store
        self._search = search_client
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def discover(self) -> list[DiscoveredAspirant]:
        """Search candidacy news and extract known aspirants (first sighting wins)."""
        discovered: dict[str, DiscoveredAspirant] = {}

        for index, term in enumerate(SEARCH_TERMS):
            for result in await self._search.search(term, max_results=RESULTS_PER_TERM):
                text = result.text.lower()
                if not any(keyword in text for keyword in CANDIDACY_KEYWORDS):
                    continue
                for name in find_known_names(text):
                    if name in discovered:
                        continue
                    discovered[name] = DiscoveredAspirant(
                        name=name,
                        party=infer_party(text),
                        status=infer_status(text),
                        source_url=result.url or None,
                        source_name=extract_source_name(result.url) if result.url else None,
                    )
            if index < len(SEARCH_TERMS) - 1:
                await self._sleep(TERM_DELAY_SECONDS)

        logger.info(f"[aspirants] Discovered {len(discovered)} aspirants")
        return list(discovered.values())

    async def sync(
        self,
        existing: Sequence[Entity],
        on_add: AddCallback,
        on_remove: RemoveCallback,
    ) -> list[DiscoveredAspirant]:
        """
        Reconcile discoveries with the tracked entities.

        - exit status: record stepped_down, remove a matching entity
        - unknown name: record it and add a new entity
        - known name: refresh last_seen and status
        """
        discovered = await self.discover()
        by_name = {entity.name.lower(): entity for entity in existing}
        stamp = to_iso8601(now_utc())

        for aspirant in discovered:
            key = aspirant.name.lower()
            recorded = self._find_record(aspirant.name)

            if aspirant.status.is_exit:
                self._store.add_aspirant(
                    self._record(aspirant, AspirantStatus.STEPPED_DOWN, recorded, stamp)
                )
                entity = by_name.get(key)
                if entity is not None:
                    logger.info(f"[aspirants] {aspirant.name} stepped down, removing")
                    await _call(on_remove, entity.id)
            elif key not in by_name:
                self._store.add_aspirant(self._record(aspirant, aspirant.status, recorded, stamp))
                logger.info(f"[aspirants] New aspirant {aspirant.name} ({aspirant.party})")
                await _call(on_add, self.build_entity(aspirant))
            elif recorded is not None:
                self._store.add_aspirant(self._record(aspirant, aspirant.status, recorded, stamp))

        return discovered

    async def check_for_withdrawals(
        self,
        existing: Sequence[Entity],
        on_remove: RemoveCallback,
    ) -> list[str]:
        """Remove entities named in withdrawal news; returns removed ids."""
        removed: list[str] = []

        for index, term in enumerate(WITHDRAWAL_TERMS):
            for result in await self._search.search(term, max_results=WITHDRAWAL_RESULTS_PER_TERM):
                snippet = result.snippet.lower()
                if not any(keyword in snippet for keyword in WITHDRAWAL_KEYWORDS):
                    continue
                for entity in existing:
                    if entity.id in removed or entity.name.lower() not in snippet:
                        continue
                    self._store.update_aspirant_status(entity.name, AspirantStatus.STEPPED_DOWN)
                    logger.info(f"[aspirants] Withdrawal reported for {entity.name}")
                    await _call(on_remove, entity.id)
                    removed.append(entity.id)
            if index < len(WITHDRAWAL_TERMS) - 1:
                await self._sleep(WITHDRAWAL_TERM_DELAY_SECONDS)

        return removed

    def build_entity(self, aspirant: DiscoveredAspirant) -> Entity:
        """New entity with a placeholder avatar and a flat placeholder history."""
        return Entity(
            id=f"auto-{uuid.uuid4().hex[:12]}",
            name=aspirant.name,
            role=aspirant.role,
            party=aspirant.party,
            score=BASELINE_SCORE,
            trend=0.0,
            color=self._rng.choice(ENTITY_COLORS),
            image=placeholder_avatar(aspirant.name),
            history=[
                HistoryPoint(time="", score=BASELINE_SCORE)
                for _ in range(PLACEHOLDER_HISTORY_POINTS)
            ],
        )

    def _find_record(self, name: str) -> Optional[AspirantRecord]:
        key = name.lower()
        return next((a for a in self._store.get_aspirants() if a.name.lower() == key), None)

    @staticmethod
    def _record(
        aspirant: DiscoveredAspirant,
        status: AspirantStatus,
        recorded: Optional[AspirantRecord],
        stamp: str,
    ) -> AspirantRecord:
        return AspirantRecord(
            name=recorded.name if recorded else aspirant.name,
            party=aspirant.party,
            role=aspirant.role,
            status=status,
            first_seen=recorded.first_seen if recorded else stamp,
            last_seen=stamp,
            source_url=aspirant.source_url,
            source_name=aspirant.source_name,
        )
