from dataclasses import dataclass
from typing import Optional

import requests

from cronrelay.common.config import settings
from cronrelay.common.logging import get_logger

logger = get_logger(__name__)

USER_AGENT = "cronrelay/1.0"

@dataclass
class TargetResponse:
    url: str
    status_code: Optional[int]
    text: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status_code is not None and 200 <= self.status_code < 300

def call_target(url: str, trigger: str, flag: bool, fired_at: int, timeout: float | None = None) -> TargetResponse:
    """POST the fire notice to one target URL. Transport errors are returned, not raised."""
    timeout = settings.webhook_timeout_seconds if timeout is None else timeout
    body = {"job": trigger, "flag": flag, "fired_at": fired_at}
    try:
        resp = requests.post(url, json=body, headers={"User-Agent": USER_AGENT}, timeout=timeout)
    except requests.RequestException as exc:
        logger.warning("Webhook call to %s for %s failed: %s", url, trigger, exc)
        return TargetResponse(url=url, status_code=None, text=str(exc), error=str(exc))
    logger.info("Webhook call to %s for %s returned %d", url, trigger, resp.status_code)
    return TargetResponse(url=url, status_code=resp.status_code, text=resp.text)
