"""
Record types and the append-only log that persists them.

Each collection lives in the store as a counter key plus one key per record,
so appends never rewrite earlier entries and concurrent writers cannot lose
each other's records.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Optional

from community.store import KeyValueStore, decode_json


@dataclass
class Post:
    id: str
    content: str
    author: str
    timestamp: int

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "author": self.author,
            "timestamp": self.timestamp,
        }


@dataclass
class Submission:
    id: str
    message: str
    timestamp: int
    origin_ip: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "message": self.message,
            "timestamp": self.timestamp,
            "originIp": self.origin_ip,
        }


class RecordLog:
    """
    Append-only sequence of JSON records stored one key per slot.

    ``<name>:seq`` holds the number of slots handed out; slot ``n`` lives at
    ``<name>:<n>``. A slot that was claimed but never written is skipped.
    """

    def __init__(self, store: KeyValueStore, name: str):
        self.store = store
        self.name = name

    @property
    def seq_key(self) -> str:
        return f"{self.name}:seq"

    def slot_key(self, slot: int) -> str:
        return f"{self.name}:{slot}"

    def append(self, record: dict) -> int:
        slot = self.store.incr(self.seq_key)
        self.store.put(self.slot_key(slot), json.dumps(record))
        return slot

    def list(self) -> list[dict]:
        count = self.store.get_json(self.seq_key) or 0
        keys = [self.slot_key(slot) for slot in range(1, int(count) + 1)]
        values = self.store.get_many(keys)
        return [
            decode_json(key, raw) for key, raw in zip(keys, values) if raw is not None
        ]
