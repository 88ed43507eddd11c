"""
Message CSV Store
Short-lived hand-off of generated LinkedIn messages to PhantomBuster.

The Message Sender agent cannot take a message per profile as an argument;
it downloads a CSV instead. We keep (linkedin_url, message) under a random token
and serve it at GET /api/v1/phantom/message-csv/{token}.
"""
import csv
import io
import logging
import secrets
import time
from typing import Optional, Dict

from app.shared.core.config import settings
from app.shared.core.constants import MESSAGE_CSV_TTL_SECONDS, MESSAGE_CSV_MAX_ENTRIES
from app.shared.utils.cache import SimpleCache

logger = logging.getLogger("message_csv_store")

MESSAGE_CSV_PATH = "/phantom/message-csv"


class MessageCsvStore:
    def __init__(self, cache: Optional[SimpleCache] = None, ttl_seconds: int = MESSAGE_CSV_TTL_SECONDS):
        self._cache = cache or SimpleCache(max_size=MESSAGE_CSV_MAX_ENTRIES)
        self._ttl = ttl_seconds

    def create_token(self, linkedin_url: str, message: str) -> str:
        token = f"msg_{int(time.time() * 1000)}_{secrets.token_hex(5)}"
        self._cache.set(
            token,
            {"linkedin_url": str(linkedin_url or ""), "message": str(message or "")},
            ttl_seconds=self._ttl
        )
        return token

    def get(self, token: str) -> Optional[Dict[str, str]]:
        return self._cache.get(token)

    def remove(self, token: str) -> None:
        self._cache.invalidate(token)

    def build_spreadsheet_url(self, linkedin_url: str, message: str) -> Optional[str]:
        """Public CSV URL for this message, or None when BACKEND_PUBLIC_URL is not set."""
        base_url = (settings.BACKEND_PUBLIC_URL or "").strip().rstrip("/")
        if not base_url:
            logger.warning("BACKEND_PUBLIC_URL not set; PhantomBuster cannot fetch message CSVs")
            return None

        token = self.create_token(linkedin_url, message)
        return f"{base_url}{settings.API_V1_STR}{MESSAGE_CSV_PATH}/{token}"

    def render_csv(self, token: str) -> Optional[str]:
        """CSV body with header LinkedInUrl,Message, or None if the token is unknown / expired."""
        entry = self.get(token)
        if entry is None:
            return None

        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(["LinkedInUrl", "Message"])
        writer.writerow([entry["linkedin_url"], entry["message"]])
        return buffer.getvalue()


# Singleton instance
message_csv_store = MessageCsvStore()
