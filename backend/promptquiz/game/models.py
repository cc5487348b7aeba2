from __future__ import annotations

import base64
from dataclasses import dataclass, field
from threading import RLock
from typing import Literal, Protocol


RoomState = Literal["waiting", "preparing", "answering", "result", "finished"]


class Cancellable(Protocol):
    def cancel(self) -> bool: ...


@dataclass(frozen=True)
class GeneratedImage:
    data: bytes
    mime_type: str = "image/png"

    def data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


@dataclass
class Player:
    id: str
    name: str
    score: int = 0
    is_game_master: bool = False


@dataclass
class Settings:
    target_score: int = 5
    time_limit_seconds: int = 90


@dataclass(frozen=True)
class Claim:
    player_id: str
    player_name: str
    order: int


def normalize_answer(text: str) -> str:
    return (text or "").strip().lower()


@dataclass
class Round:
    keywords: list[str]
    image: GeneratedImage | None = None
    claims: dict[str, Claim] = field(default_factory=dict)
    countdown_remaining: int = 0
    timer: Cancellable | None = None

    @property
    def combined_text(self) -> str:
        return ", ".join(self.keywords)

    def slots(self) -> list[str]:
        """Keywords that can be claimed: the first keyword of each normalized form."""
        seen: set[str] = set()
        out: list[str] = []
        for kw in self.keywords:
            key = normalize_answer(kw)
            if key in seen:
                continue
            seen.add(key)
            out.append(kw)
        return out

    def slot_for(self, keyword: str) -> str | None:
        key = normalize_answer(keyword)
        for slot in self.slots():
            if normalize_answer(slot) == key:
                return slot
        return None

    @property
    def claimed_count(self) -> int:
        return len(self.claims)

    @property
    def total_count(self) -> int:
        return len(self.slots())

    def all_claimed(self) -> bool:
        return all(slot in self.claims for slot in self.slots())

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


@dataclass
class Room:
    id: str
    game_master_id: str | None = None
    state: RoomState = "waiting"
    settings: Settings = field(default_factory=Settings)
    active_round: Round | None = None
    round_number: int = 0
    # Insertion order doubles as join order.
    members: dict[str, Player] = field(default_factory=dict)
    lock: RLock = field(default_factory=RLock, repr=False, compare=False)

    @property
    def game_master(self) -> Player | None:
        if self.game_master_id is None:
            return None
        return self.members.get(self.game_master_id)

    def is_game_master(self, connection_id: str) -> bool:
        return bool(connection_id) and connection_id == self.game_master_id
