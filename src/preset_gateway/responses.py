"""
Synthetic chat-completion responses for preset hits.

Builds the same shapes the upstream Messages API returns, either as one
JSON object or as the fixed six-event SSE sequence streaming clients
expect.
"""

import json
import time
from typing import List

PRESET_MODEL = "claude-3-sonnet-20240229"
PLACEHOLDER_INPUT_TOKENS = 100


def _response_id() -> str:
    return f"msg_preset_{int(time.time() * 1000)}"


def build_single(text: str) -> dict:
    """Non-streaming response body carrying ``text``."""
    return {
        "id": _response_id(),
        "type": "message",
        "role": "assistant",
        "content": [{"type": "text", "text": text}],
        "model": PRESET_MODEL,
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": PLACEHOLDER_INPUT_TOKENS, "output_tokens": len(text)},
    }


def sse_frame(event: dict) -> str:
    data = json.dumps(event, ensure_ascii=False, separators=(",", ":"))
    return f"event: {event['type']}\ndata: {data}\n\n"


def build_stream(text: str) -> List[str]:
    """The six SSE frames of a streamed response, whole text in one delta."""
    events = [
        {
            "type": "message_start",
            "message": {
                "id": _response_id(),
                "type": "message",
                "role": "assistant",
                "content": [],
                "model": PRESET_MODEL,
                "stop_reason": None,
                "stop_sequence": None,
                "usage": {"input_tokens": PLACEHOLDER_INPUT_TOKENS, "output_tokens": 0},
            },
        },
        {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": text}},
        {"type": "content_block_stop", "index": 0},
        {
            "type": "message_delta",
            "delta": {"stop_reason": "end_turn", "stop_sequence": None},
            "usage": {"output_tokens": len(text)},
        },
        {"type": "message_stop"},
    ]
    return [sse_frame(e) for e in events]
