"""
Client key store for Preset Gateway.

Holds the credentials callers present to ``/v1/messages``. The whole set
lives in memory and is written back after every admin mutation.
"""

import logging
import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .errors import NotFoundError
from .persistence import Store, save_logged

logger = logging.getLogger(__name__)

KEY_PREFIX = "sk-gw-"
_ALPHABET = string.ascii_letters + string.digits


def _random_segment(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_secret() -> str:
    """Return ``sk-gw-`` followed by 12 and 32 random alphanumerics."""
    return f"{KEY_PREFIX}{_random_segment(12)}-{_random_segment(32)}"


def generate_key_id() -> str:
    return f"key_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


def mask_secret(secret: str) -> str:
    if len(secret) <= len(KEY_PREFIX) + 8:
        return KEY_PREFIX + "****"
    return f"{secret[:len(KEY_PREFIX) + 4]}...{secret[-4:]}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ApiKeyRecord:
    id: str
    name: str
    secret: str
    enabled: bool = True
    created_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "secret": self.secret,
            "enabled": self.enabled,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ApiKeyRecord":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            secret=str(data["secret"]),
            enabled=bool(data.get("enabled", True)),
            created_at=data.get("createdAt") or _now_iso(),
        )


def _parse_records(data) -> List[ApiKeyRecord]:
    if not isinstance(data, list):
        raise ValueError(f"expected a list of keys, got {type(data).__name__}")
    return [ApiKeyRecord.from_dict(item) for item in data]


class KeyStore:
    """In-memory set of client keys with synchronous write-back."""

    def __init__(self, store: Store):
        self.store = store
        self._records: List[ApiKeyRecord] = []

    def load(self, seed_secrets: Iterable[str] = ()) -> None:
        """Load persisted keys; on a first run, seed from configured secrets."""
        try:
            data = self.store.load()
            records = None if data is None else _parse_records(data)
        except (OSError, ValueError, KeyError, TypeError):
            # Leave the damaged file alone so it can be repaired by hand
            logger.exception("Failed to load keys from %s, starting with none", self.store.name)
            self._records = []
            return

        if records is None:
            self._records = [
                ApiKeyRecord(id=generate_key_id(), name=f"seed-{i + 1}", secret=s)
                for i, s in enumerate(seed_secrets)
            ]
            self._persist()
            logger.info("Created key store with %d seed keys", len(self._records))
            return

        self._records = records
        logger.info("Loaded %d client keys", len(self._records))

    def _persist(self) -> None:
        save_logged(self.store, [r.to_dict() for r in self._records])

    def _find(self, key_id: str) -> ApiKeyRecord:
        for record in self._records:
            if record.id == key_id:
                return record
        raise NotFoundError(f"Key {key_id} not found")

    def __len__(self) -> int:
        return len(self._records)

    def list(self) -> List[ApiKeyRecord]:
        return list(self._records)

    def get(self, key_id: str) -> ApiKeyRecord:
        return self._find(key_id)

    def validate(self, presented: Optional[str]) -> Optional[ApiKeyRecord]:
        """Return the enabled record whose secret equals ``presented`` exactly."""
        if not presented:
            return None
        candidate = presented.encode()
        for record in self._records:
            if record.enabled and secrets.compare_digest(record.secret.encode(), candidate):
                return record
        return None

    def create(self, name: str) -> ApiKeyRecord:
        record = ApiKeyRecord(id=generate_key_id(), name=name, secret=generate_secret())
        self._records.append(record)
        self._persist()
        logger.info("Created key %s (%s) %s", record.id, name, mask_secret(record.secret))
        return record

    def set_enabled(self, key_id: str, enabled: bool) -> ApiKeyRecord:
        record = self._find(key_id)
        record.enabled = enabled
        self._persist()
        logger.info("Key %s %s", key_id, "enabled" if enabled else "disabled")
        return record

    def rename(self, key_id: str, name: str) -> ApiKeyRecord:
        record = self._find(key_id)
        record.name = name
        self._persist()
        return record

    def delete(self, key_id: str) -> None:
        record = self._find(key_id)
        self._records.remove(record)
        self._persist()
        logger.info("Deleted key %s", key_id)

    def summary(self) -> Dict[str, int]:
        enabled = sum(1 for r in self._records if r.enabled)
        return {"total": len(self._records), "enabled": enabled}
