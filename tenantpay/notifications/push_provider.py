"""
Push Provider

Mobile push notifications through the Expo push service.
https://docs.expo.dev/push-notifications/sending-notifications/
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"
EXPO_CHUNK_SIZE = 100

# Android notification channels registered by the mobile app
CHANNEL_BY_TYPE = {
    "payment_reminder": "payment_reminders",
    "payment_confirmation": "payment_confirmations",
}


def is_expo_push_token(token: str) -> bool:
    return bool(token) and (
        token.startswith("ExponentPushToken[") or token.startswith("ExpoPushToken[")
    ) and token.endswith("]")


@dataclass
class PushMessage:
    """Push notification addressed to a set of device tokens."""
    tokens: List[str]
    title: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PushResult:
    success: bool
    sent: int = 0
    error: Optional[str] = None


class PushProvider(ABC):

    @abstractmethod
    async def send(self, message: PushMessage) -> PushResult:
        pass


class ExpoPushProvider(PushProvider):
    """
    Expo push provider.

    Invalid tokens are skipped; messages go out in chunks of 100 as the
    Expo API requires.
    """

    def __init__(self, access_token: Optional[str] = None):
        self.access_token = access_token

    def _build_messages(self, message: PushMessage) -> List[Dict[str, Any]]:
        channel_id = CHANNEL_BY_TYPE.get(message.data.get("type"), "default")
        messages = []
        for token in message.tokens:
            if not is_expo_push_token(token):
                logger.error(f"Push token {token} is not a valid Expo push token")
                continue
            messages.append({
                "to": token,
                "sound": "default",
                "title": message.title,
                "body": message.body,
                "data": message.data,
                "priority": "high",
                "channelId": channel_id,
                "badge": 1,
            })
        return messages

    async def send(self, message: PushMessage) -> PushResult:
        messages = self._build_messages(message)
        if not messages:
            return PushResult(success=True, sent=0)

        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"

        sent = 0
        errors = []
        async with httpx.AsyncClient() as client:
            for start in range(0, len(messages), EXPO_CHUNK_SIZE):
                chunk = messages[start:start + EXPO_CHUNK_SIZE]
                try:
                    response = await client.post(
                        EXPO_PUSH_URL, headers=headers, json=chunk, timeout=30.0
                    )
                    response.raise_for_status()
                except httpx.HTTPError as e:
                    logger.error(f"Error sending push notification chunk: {e}")
                    errors.append(str(e))
                    continue

                for ticket in response.json().get("data", []):
                    if ticket.get("status") == "ok":
                        sent += 1
                    else:
                        errors.append(ticket.get("message", "unknown push error"))

        if errors:
            return PushResult(success=sent > 0, sent=sent, error="; ".join(errors))
        return PushResult(success=True, sent=sent)


class ConsolePushProvider(PushProvider):
    """Console push provider for development/testing."""

    async def send(self, message: PushMessage) -> PushResult:
        logger.info(
            f"\n{'='*60}\n"
            f"PUSH (Console Mode)\n"
            f"{'='*60}\n"
            f"Tokens: {len(message.tokens)}\n"
            f"Title: {message.title}\n"
            f"Body: {message.body}\n"
            f"{'='*60}\n"
        )
        return PushResult(success=True, sent=len(message.tokens))


def get_push_provider(
    access_token: Optional[str] = None,
    console_mode: bool = False,
) -> PushProvider:
    """Expo unless running in console mode."""
    if console_mode:
        logger.info("Using console push provider (development mode)")
        return ConsolePushProvider()
    return ExpoPushProvider(access_token=access_token or None)
