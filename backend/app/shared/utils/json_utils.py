"""
JSON / Text Utility Functions
Common helpers for tolerant parsing of provider payloads.
"""
import json
from typing import Any, Optional


def safe_json_parse(data: Any, default: Any = None) -> Any:
    """
    Safely parse JSON data, handling strings and already-parsed objects.

    PhantomBuster sometimes sends webhook bodies and container arguments as
    JSON-encoded strings, sometimes as objects.

    Examples:
        >>> safe_json_parse('{"containerId": "1"}')
        {'containerId': '1'}

        >>> safe_json_parse({'already': 'parsed'})
        {'already': 'parsed'}

        >>> safe_json_parse('not json', default={})
        {}
    """
    if data is None:
        return default

    if isinstance(data, (dict, list)):
        return data

    if isinstance(data, (bytes, bytearray)):
        data = data.decode("utf-8", errors="replace")

    if isinstance(data, str):
        if not data.strip():
            return default
        try:
            return json.loads(data)
        except (json.JSONDecodeError, ValueError):
            return default

    return default


def truncate_text(text: Optional[str], max_chars: int) -> Optional[str]:
    """Return the first max_chars characters of text (None stays None)."""
    if text is None:
        return None
    return text[:max_chars]
