"""
Discord webhook adapter.

Executes a Discord webhook with a single POST request and interprets the
response. No retries and no rate-limit handling: one attempt per call.

- Async I/O via httpx
- Never log the webhook URL (it embeds the webhook token)
"""

import json
from typing import List, Optional, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from adapters.discord_models import AllowedMentions, Embed, OutboundMessage, SentMessage
from common.logging import TimedLogger, get_logger

logger = get_logger(__name__)


class DiscordAPIError(Exception):
    """Raised when Discord rejects a webhook execution."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Discord API error: {status_code} {body}")


def build_webhook_url(webhook_url: str, wait: Optional[bool] = None) -> str:
    """
    Return the URL to POST to, with wait=true appended unless wait is False.

    Query parameters already present on the webhook URL (e.g. thread_id) are kept.
    """
    if wait is False:
        return webhook_url

    parts = urlsplit(webhook_url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "wait"]
    query.append(("wait", "true"))
    return urlunsplit(parts._replace(query=urlencode(query)))


async def send_discord_message(
    webhook_url: str,
    content: str,
    *,
    tts: Optional[bool] = None,
    embeds: Optional[List[Union[Embed, dict]]] = None,
    allowed_mentions: Optional[Union[AllowedMentions, dict]] = None,
    wait: Optional[bool] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[SentMessage]:
    """
    Send a message through a Discord webhook.

    Args:
        webhook_url: Full webhook URL including its token
        content: Message text
        tts: Send as a text-to-speech message
        embeds: Embed objects to attach
        allowed_mentions: Mention filter
        wait: Ask Discord to return the created message (default). Only an
            explicit False disables it.
        client: Optional client to reuse; a short-lived one is created otherwise

    Returns:
        The created message record, or None when Discord acknowledged
        without a body (204 or empty response)

    Raises:
        DiscordAPIError: If Discord answered with a non-success status
        json.JSONDecodeError: If a success body is not valid JSON
    """
    message = OutboundMessage(
        content=content, tts=tts, embeds=embeds, allowed_mentions=allowed_mentions
    )
    payload = message.to_payload()
    url = build_webhook_url(webhook_url, wait)

    if client is None:
        async with httpx.AsyncClient() as owned_client:
            response = await _post(owned_client, url, payload)
    else:
        response = await _post(client, url, payload)

    if not response.is_success:
        logger.warning(
            event="discord_webhook_rejected",
            status_code=response.status_code,
            webhook_host=response.request.url.host,
        )
        raise DiscordAPIError(response.status_code, response.text)

    if response.status_code == 204:
        return None

    response_text = response.text
    if not response_text:
        return None

    return json.loads(response_text)


async def _post(client: httpx.AsyncClient, url: str, payload: dict) -> httpx.Response:
    with TimedLogger(
        logger,
        "discord_webhook_executed",
        webhook_host=urlsplit(url).hostname,
        embeds_count=len(payload.get("embeds", [])),
    ):
        return await client.post(
            url,
            content=json.dumps(payload),
            headers={"Content-Type": "application/json"},
        )
