"""
Shared Utility Functions
"""
from app.shared.utils.json_utils import safe_json_parse, truncate_text
from app.shared.utils.cache import (
    SimpleCache,
    app_cache,
    CACHE_TTL_CAMPAIGN_LIST,
    get_campaign_list_cache_key
)
from app.shared.utils.exceptions import (
    ConcurrentModificationError,
    EntityNotFoundError,
    InvalidStateError,
    SequenceValidationError
)

__all__ = [
    "safe_json_parse",
    "truncate_text",
    "SimpleCache",
    "app_cache",
    "CACHE_TTL_CAMPAIGN_LIST",
    "get_campaign_list_cache_key",
    "ConcurrentModificationError",
    "EntityNotFoundError",
    "InvalidStateError",
    "SequenceValidationError",
]
