"""Outbound HTTP helpers: firing a maker webhook and finding our public address."""
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from hookrelay.config import Settings, get_settings
from hookrelay.errors import HookRelayError, MakerKeyMissing
from hookrelay.utilities import MAX_TRIGGER_VALUES


def trigger_values(*values: Any) -> Dict[str, str]:
    if len(values) > MAX_TRIGGER_VALUES:
        raise HookRelayError(f"At most {MAX_TRIGGER_VALUES} values can be sent, got {len(values)}")
    return {f"value{i + 1}": str(value) for i, value in enumerate(values)}


def trigger(
    event: str,
    *values: Any,
    key: Optional[str] = None,
    settings: Optional[Settings] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> bool:
    """Fire the maker webhook ``event`` with up to three values.

    Returns True when the service answered 200.
    """
    settings = settings or get_settings()
    key = key or settings.maker_key
    if not key:
        raise MakerKeyMissing("Set HOOKRELAY_MAKER_KEY or pass key= to trigger events")

    url = settings.maker_trigger_url.format(event=event, key=key)
    body = trigger_values(*values)
    logger.debug(f"Triggering '{event}' with {body}")
    try:
        with httpx.Client(transport=transport, timeout=settings.client_timeout_seconds) as client:
            response = client.post(url, json=body, headers={"Accept": "application/json"})
    except httpx.HTTPError as e:
        logger.error(f"Triggering '{event}' failed: {e}")
        return False
    return response.status_code == 200


def public_ip(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> Optional[str]:
    settings = settings or get_settings()
    try:
        with httpx.Client(transport=transport, timeout=settings.client_timeout_seconds) as client:
            response = client.get(settings.ip_lookup_url)
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"Could not determine public IP address: {e}")
        return None
    return "".join(response.text.splitlines()) or None
