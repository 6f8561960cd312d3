"""Delivery providers for outbound WhatsApp messages.

The provider is chosen once, when ``build_gateway`` turns the stored
configuration into a gateway instance; the queue only ever sees the
``DeliveryGateway`` interface.
"""
from __future__ import annotations

import asyncio
import random
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Tuple

import httpx

from core.settings import NOTIFY
from services.errors import DeliveryFailure
from storage.config import AppConfig


_NON_DIGITS = re.compile(r"[^0-9]")


def normalize_recipient(phone: Optional[str]) -> str:
    return _NON_DIGITS.sub("", phone or "")


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def sent(cls, message_id: Any) -> "DeliveryResult":
        return cls(success=True, message_id=None if message_id is None else str(message_id))

    @classmethod
    def rejected(cls, error: Any) -> "DeliveryResult":
        return cls(success=False, error=str(error) or "delivery failed")


class DeliveryGateway(Protocol):
    name: str

    async def send(self, recipient: str, text: str) -> DeliveryResult:
        ...


def _error_message(payload: Any, *path: str) -> Optional[str]:
    node = payload
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return str(node) if node else None


class _HttpGateway:
    """Shared HTTP plumbing: ``deliver`` raises, ``send`` reports."""

    def __init__(self, client: Optional[httpx.AsyncClient], timeout: float) -> None:
        self._client = client
        self._timeout = timeout

    async def _post(self, url: str, **kwargs) -> Tuple[httpx.Response, Any]:
        try:
            if self._client is not None:
                response = await self._client.post(url, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, **kwargs)
            return response, response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise DeliveryFailure(str(exc) or exc.__class__.__name__) from exc

    async def deliver(self, recipient: str, text: str) -> str:
        raise NotImplementedError

    async def send(self, recipient: str, text: str) -> DeliveryResult:
        try:
            return DeliveryResult.sent(await self.deliver(recipient, text))
        except DeliveryFailure as exc:
            return DeliveryResult.rejected(exc)


class Dialog360Gateway(_HttpGateway):
    name = "360dialog"

    def __init__(
        self,
        api_key: str,
        api_url: str = NOTIFY.dialog360_api_url,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = NOTIFY.http_timeout_sec,
    ) -> None:
        super().__init__(client, timeout)
        self.api_key = api_key
        self.api_url = api_url

    async def deliver(self, recipient: str, text: str) -> str:
        body = {
            "to": normalize_recipient(recipient),
            "type": "text",
            "text": {"body": text},
        }
        headers = {"Content-Type": "application/json", "D360-API-KEY": self.api_key}
        response, payload = await self._post(self.api_url, json=body, headers=headers)

        if not response.is_success:
            raise DeliveryFailure(_error_message(payload, "error", "message") or "Failed to send message")
        try:
            return str(payload["messages"][0]["id"])
        except (KeyError, IndexError, TypeError) as exc:
            raise DeliveryFailure("Malformed 360dialog response") from exc


class TwilioGateway(_HttpGateway):
    name = "twilio"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        api_url: str = NOTIFY.twilio_api_url,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = NOTIFY.http_timeout_sec,
    ) -> None:
        super().__init__(client, timeout)
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.api_url = api_url.rstrip("/")

    async def deliver(self, recipient: str, text: str) -> str:
        url = f"{self.api_url}/{self.account_sid}/Messages.json"
        form: Dict[str, str] = {
            "From": f"whatsapp:{self.from_number}",
            "To": f"whatsapp:+{normalize_recipient(recipient)}",
            "Body": text,
        }
        response, payload = await self._post(url, data=form, auth=(self.account_sid, self.auth_token))

        if response.is_success and isinstance(payload, dict) and payload.get("sid"):
            return str(payload["sid"])
        raise DeliveryFailure(_error_message(payload, "message") or "Failed to send message")


class SimulatedGateway:
    """Demo provider: accepts most messages and randomly rejects the rest."""

    name = "demo"

    def __init__(
        self,
        failure_rate: float = NOTIFY.demo_failure_rate,
        *,
        latency: float = NOTIFY.demo_latency_sec,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.failure_rate = failure_rate
        self.latency = latency
        self.rng = rng or random.Random()

    async def send(self, recipient: str, text: str) -> DeliveryResult:
        if self.latency > 0:
            await asyncio.sleep(self.latency)
        if self.rng.random() < self.failure_rate:
            return DeliveryResult.rejected("Demo failure")
        return DeliveryResult.sent(f"demo_{int(time.time() * 1000)}")


def build_gateway(config: AppConfig, *, client: Optional[httpx.AsyncClient] = None) -> DeliveryGateway:
    if config.provider == "360dialog":
        return Dialog360Gateway(config.dialog360.api_key, config.dialog360.api_url, client=client)
    if config.provider == "twilio":
        cfg = config.twilio
        return TwilioGateway(cfg.account_sid, cfg.auth_token, cfg.from_number, cfg.api_url, client=client)
    return SimulatedGateway()


__all__ = [
    "DeliveryGateway",
    "DeliveryResult",
    "Dialog360Gateway",
    "SimulatedGateway",
    "TwilioGateway",
    "build_gateway",
    "normalize_recipient",
]
