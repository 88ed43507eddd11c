"""
PhantomBuster Service
Low-level wrapper for the PhantomBuster v2 API.

API Documentation: https://hub.phantombuster.com/reference

Handles:
- Authentication via X-Phantombuster-Key header
- Agent launch (returns a container id; the run completes asynchronously)
- Container status / output polling
- LinkedIn Auto Connect and Message Sender argument contracts

Argument contracts are NOT documented by PhantomBuster and differ between agents:
- Auto Connect reads `profileUrls` (newline separated) and its note from one of
  several keys depending on the agent version, so the note is sent under all of them.
- Message Sender only reads messages from a CSV it downloads itself
  (`spreadsheetUrl`, column named by `messageColumnName`).

Retry Strategy:
- Max 3 attempts with exponential backoff (2s, 4s, 8s)
- Only retries on: Timeout, Connection errors, 5xx server errors
- Does NOT retry on: 4xx client errors
"""
import asyncio
import logging
import time
from typing import Dict, Any, Optional, List

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from app.shared.core.config import settings
from app.shared.core.constants import (
    PHANTOMBUSTER_API_URL,
    TIMEOUT_PHANTOMBUSTER_API,
    PHANTOM_POLL_INTERVAL_SECONDS,
    PHANTOM_MAX_WAIT_MINUTES,
    MAX_RETRY_ATTEMPTS,
    RETRY_MIN_WAIT_SECONDS,
    RETRY_MAX_WAIT_SECONDS,
)
from app.shared.utils.http_client import http_client_manager

logger = logging.getLogger("phantombuster_service")

# Keys the various Auto Connect agent versions read the invitation note from
CONNECTION_NOTE_KEYS = (
    "message",
    "messageText",
    "yourMessage",
    "messageContent",
    "note",
    "invitationMessage",
)


# ============================================
# CUSTOM EXCEPTIONS FOR RETRY LOGIC
# ============================================

class PhantomBusterError(Exception):
    """Non-retryable failure: client error, bad configuration or a failed run."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        self.status_code = status_code
        self.payload = payload
        super().__init__(message)


class PhantomBusterRetryableError(PhantomBusterError):
    """Server-side failure (5xx); the request should be retried."""
    pass


# ============================================
# RETRY DECORATOR
# ============================================

def phantom_retry():
    """
    Retry decorator for PhantomBuster API calls.

    Retries on PhantomBusterRetryableError, timeouts and connect errors.
    Plain PhantomBusterError (4xx) is raised immediately.
    """
    return retry(
        stop=stop_after_attempt(MAX_RETRY_ATTEMPTS),
        wait=wait_exponential(
            multiplier=1,
            min=RETRY_MIN_WAIT_SECONDS,
            max=RETRY_MAX_WAIT_SECONDS
        ),
        retry=retry_if_exception_type((
            PhantomBusterRetryableError,
            httpx.TimeoutException,
            httpx.ConnectError,
        )),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )


class PhantomBusterService:
    """
    PhantomBuster API client.

    The httpx client is injectable (tests pass one built on httpx.MockTransport);
    by default the shared pooled client is used.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        api_key: Optional[str] = None,
        base_url: str = PHANTOMBUSTER_API_URL,
        poll_interval: float = PHANTOM_POLL_INTERVAL_SECONDS
    ):
        self._client = client
        self.api_key = api_key if api_key is not None else settings.PHANTOMBUSTER_API_KEY
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval

        if not self.api_key:
            logger.warning("⚠️ PHANTOMBUSTER_API_KEY not configured in .env")

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client or http_client_manager.get_client()

    def _get_headers(self) -> Dict[str, str]:
        return {
            "X-Phantombuster-Key": self.api_key or "",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def is_configured(self) -> bool:
        return bool(self.api_key)

    # ============================================
    # RAW API
    # ============================================

    @phantom_retry()
    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        response = await self.client.request(
            method,
            f"{self.base_url}{endpoint}",
            headers=self._get_headers(),
            params=params,
            json=json,
            timeout=TIMEOUT_PHANTOMBUSTER_API
        )

        if response.status_code >= 500:
            logger.warning(f"PhantomBuster {endpoint} server error: {response.status_code}")
            raise PhantomBusterRetryableError(
                f"PhantomBuster server error {response.status_code}",
                status_code=response.status_code,
                payload=response.text
            )
        if response.status_code >= 400:
            logger.error(f"PhantomBuster {endpoint} failed: {response.status_code} - {response.text}")
            raise PhantomBusterError(
                f"PhantomBuster request failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
                payload=response.text
            )

        if not response.content:
            return {}
        return response.json()

    async def launch_agent(self, agent_id: str, arguments: Optional[Dict[str, Any]] = None) -> str:
        """
        Launch an agent. Returns the container id of the new run.
        Raises PhantomBusterError if no container id comes back.
        """
        if not agent_id:
            raise PhantomBusterError("PhantomBuster agent id is not configured")

        body: Dict[str, Any] = {"id": agent_id}
        if arguments:
            body["arguments"] = arguments

        logger.info(f"🚀 Launching PhantomBuster agent {agent_id} ({len(arguments or {})} args)")
        data = await self._request("POST", "/agents/launch", json=body)

        container_id = data.get("containerId")
        if not container_id:
            raise PhantomBusterError("PhantomBuster launch returned no containerId", payload=data)

        logger.info(f"✅ Agent {agent_id} launched. Container: {container_id}")
        return str(container_id)

    async def fetch_container(self, container_id: str) -> Dict[str, Any]:
        """Container status: {id, status, exitCode, ...}."""
        return await self._request("GET", "/containers/fetch", params={"id": container_id})

    async def fetch_container_output(self, container_id: str) -> Dict[str, Any]:
        """Raw console output of a container, for looking into a failed run by hand."""
        return await self._request("GET", "/containers/fetch-output", params={"id": container_id})

    async def wait_for_completion(
        self,
        container_id: str,
        max_minutes: int = PHANTOM_MAX_WAIT_MINUTES
    ) -> Dict[str, Any]:
        """
        Poll the container until it finishes.
        Returns the container on exitCode 0, raises PhantomBusterError otherwise
        (non-zero exit code or timeout).

        The dispatcher does not block on this: it returns as soon as the launch
        hands back a container id, and completion reaches the sequence through
        POST /webhooks/phantombuster (WebhookService). Use this only where a caller
        really needs to wait on a run, e.g. one-off scripts without a public
        webhook URL.
        """
        deadline = time.monotonic() + max_minutes * 60
        logger.info(f"⏳ Waiting for container {container_id} (max {max_minutes} min)")

        while time.monotonic() < deadline:
            container = await self.fetch_container(container_id)
            exit_code = container.get("exitCode")
            status = container.get("status")

            if container.get("id") and (status == "finished" or exit_code is not None):
                if _exit_code_ok(exit_code):
                    logger.info(f"✅ Container {container_id} finished successfully")
                    return container
                raise PhantomBusterError(
                    f"Container {container_id} finished with exit code {exit_code}",
                    payload=container
                )

            await asyncio.sleep(self.poll_interval)

        raise PhantomBusterError(f"Container {container_id} did not finish within {max_minutes} minutes")

    # ============================================
    # LINKEDIN ACTIONS
    # ============================================

    async def auto_connect(self, leads: List[Dict[str, Any]], message: Optional[str] = None) -> Dict[str, Any]:
        """
        Send connection requests (optionally with a note) to the given leads.
        Returns {success, container_id, count, has_message}.
        """
        profile_urls = [lead["linkedin_url"] for lead in leads if lead.get("linkedin_url")]
        if not profile_urls:
            raise PhantomBusterError("No LinkedIn profile URLs to connect with")

        arguments: Dict[str, Any] = {
            "profileUrls": "\n".join(profile_urls),
            "numberOfAddsPerLaunch": len(profile_urls),
        }
        if message:
            for key in CONNECTION_NOTE_KEYS:
                arguments[key] = message
        else:
            logger.info("No note provided, sending connection requests without a message")

        container_id = await self.launch_agent(settings.AUTO_CONNECT_PHANTOM_ID, arguments)
        return {
            "success": True,
            "container_id": container_id,
            "count": len(profile_urls),
            "has_message": bool(message),
        }

    async def send_message(
        self,
        lead: Dict[str, Any],
        message: str,
        spreadsheet_url: Optional[str]
    ) -> Dict[str, Any]:
        """
        Send a LinkedIn message to one lead.
        The Message Sender agent downloads `spreadsheet_url` (a CSV served by this backend).
        """
        if not spreadsheet_url:
            raise PhantomBusterError(
                "LinkedIn Message Sender requires a spreadsheet URL. Set BACKEND_PUBLIC_URL in .env"
            )

        arguments = {
            "spreadsheetUrl": spreadsheet_url,
            "message": message,
            "messageColumnName": "message",
            "profilesPerLaunch": 1,
        }
        container_id = await self.launch_agent(settings.MESSAGE_SENDER_PHANTOM_ID, arguments)
        logger.info(f"📨 Message queued for {lead.get('linkedin_url')}. Container: {container_id}")
        return {"success": True, "container_id": container_id}


def _exit_code_ok(exit_code) -> bool:
    try:
        return int(exit_code) == 0
    except (TypeError, ValueError):
        return False


# Singleton instance
phantombuster_service = PhantomBusterService()
