"""
Preset rules for Preset Gateway.

A preset is a keyword-triggered canned reply. When the latest user message
contains at least ``match_count`` of a rule's keywords, the gateway answers
with the rule's response instead of calling the upstream API.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .errors import NotFoundError, ValidationError
from .persistence import Store, save_logged

logger = logging.getLogger(__name__)

SEED_PRESETS = [
    {
        "keywords": ["gateway", "preset", "demo"],
        "matchCount": 3,
        "response": (
            "This reply was served by the gateway's preset rules without "
            "calling the upstream model. Edit or remove it from /admin."
        ),
    }
]


@dataclass
class PresetRule:
    keywords: List[str]
    response: str
    match_count: int = 1

    def matches(self, text: str) -> int:
        """Number of keywords present in ``text`` (already lowercased)."""
        return sum(1 for kw in self.keywords if kw.lower() in text)

    def to_dict(self) -> dict:
        return {
            "keywords": list(self.keywords),
            "matchCount": self.match_count,
            "response": self.response,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PresetRule":
        return cls(
            keywords=[str(k) for k in data.get("keywords", [])],
            response=str(data.get("response", "")),
            match_count=int(data.get("matchCount") or 1),
        )


def _parse_rules(data) -> List[PresetRule]:
    if not isinstance(data, list):
        raise ValueError(f"expected a list of presets, got {type(data).__name__}")
    return [PresetRule.from_dict(p) for p in data]


class PresetMatcher:
    """Ordered preset rules; the first rule that reaches its threshold wins."""

    def __init__(self, store: Store):
        self.store = store
        self._rules: List[PresetRule] = []

    def load(self) -> None:
        try:
            data = self.store.load()
            rules = None if data is None else _parse_rules(data)
        except (OSError, ValueError, KeyError, TypeError):
            # Leave the damaged file alone so it can be repaired by hand
            logger.exception("Failed to load presets from %s, starting with none", self.store.name)
            self._rules = []
            return

        if rules is None:
            self._rules = [PresetRule.from_dict(p) for p in SEED_PRESETS]
            self._persist()
            logger.info("Created presets file with %d seed rules", len(self._rules))
            return

        self._rules = rules
        logger.info("Loaded %d presets", len(self._rules))

    def _persist(self) -> None:
        save_logged(self.store, [r.to_dict() for r in self._rules])

    def __len__(self) -> int:
        return len(self._rules)

    def list(self) -> List[PresetRule]:
        return list(self._rules)

    def match(self, text: Optional[str]) -> Optional[str]:
        """Return the response of the first satisfied rule, or None."""
        if text is None:
            return None

        msg = text.lower()
        for rule in self._rules:
            matched = rule.matches(msg)
            if matched >= rule.match_count:
                logger.info("[PRESET MATCH] keywords hit: %d/%d", matched, len(rule.keywords))
                return rule.response
        return None

    def add(self, keywords: List[str], response: str, match_count: Optional[int] = None) -> int:
        """Append a rule and return the new rule count."""
        keywords = [k for k in (keywords or []) if k]
        if not keywords or not response:
            raise ValidationError("Missing keywords or response")
        if match_count is not None and match_count < 1:
            raise ValidationError("matchCount must be a positive integer")

        self._rules.append(PresetRule(keywords=keywords, response=response, match_count=match_count or 1))
        self._persist()
        return len(self._rules)

    def remove(self, index: int) -> int:
        """Delete the rule at ``index`` and return the new rule count."""
        if index < 0 or index >= len(self._rules):
            raise NotFoundError(f"Preset {index} does not exist")
        del self._rules[index]
        self._persist()
        return len(self._rules)
