"""
Preset Gateway — Forwarding gateway for chat-completion APIs
=============================================================

Sits between your clients and one upstream Messages API. Checks client
keys, answers keyword-matched requests from canned presets, and relays
everything else upstream with the gateway's own credential.

Quick start:
    pip install preset-gateway
    UPSTREAM_API_KEY=... ADMIN_PASS=... preset-gateway start --port 5000

Then point your client at http://localhost:5000 and manage keys and
presets at http://localhost:5000/admin
"""

__version__ = "0.1.0"

from .keys import KeyStore, ApiKeyRecord
from .presets import PresetMatcher, PresetRule
from .stats import StatsAggregator

__all__ = ["KeyStore", "ApiKeyRecord", "PresetMatcher", "PresetRule", "StatsAggregator"]
