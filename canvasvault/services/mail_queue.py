"""Outbound mail job producer.

Emails (signup OTP, password reset OTP, password reset link) are not sent
inline. Each one is serialized as a job and pushed onto a cache list that a
separate mail worker drains. Producing a job never blocks on SMTP.

Job format (JSON):
    {"name": "send-otp", "data": {"email": "...", "otp": "123456"},
     "enqueued_at": "2025-01-01T00:00:00+00:00"}
"""

import json
import logging
from typing import Any

from canvasvault.core.cache import CacheBackend
from canvasvault.models.base import utc_now

logger = logging.getLogger(__name__)

SEND_OTP = "send-otp"
SEND_PASSWORD_RESET_OTP = "send-password-reset-otp"
SEND_PASSWORD_RESET_LINK = "send-password-reset-link"


class MailQueue:
    """Producer side of the mail job queue.

    Attributes:
        cache: Cache backend that stores the job list.
        queue_name: List key the worker consumes.
    """

    def __init__(self, cache: CacheBackend, queue_name: str):
        self.cache = cache
        self.queue_name = queue_name

    async def enqueue(self, name: str, data: dict[str, Any]) -> None:
        """Push one job onto the queue.

        Args:
            name: Job name (e.g., ``send-otp``).
            data: Job payload.

        Raises:
            CacheError: If the job could not be stored.
        """
        job = {"name": name, "data": data, "enqueued_at": utc_now().isoformat()}
        await self.cache.push(self.queue_name, json.dumps(job))
        # Payloads carry OTPs and reset links; log the job name only.
        logger.info(f"Mail job enqueued: {name}")

    async def send_otp(self, email: str, otp: str) -> None:
        await self.enqueue(SEND_OTP, {"email": email, "otp": otp})

    async def send_password_reset_otp(self, email: str, otp: str) -> None:
        await self.enqueue(SEND_PASSWORD_RESET_OTP, {"email": email, "otp": otp})

    async def send_password_reset_link(self, email: str, reset_link: str) -> None:
        await self.enqueue(
            SEND_PASSWORD_RESET_LINK, {"email": email, "resetLink": reset_link}
        )
