"""Unit tests for one-time codes and the mail job queue."""

import json

import pytest

from canvasvault.core.cache import MemoryCache
from canvasvault.services.mail_queue import (
    SEND_OTP,
    SEND_PASSWORD_RESET_LINK,
    SEND_PASSWORD_RESET_OTP,
    MailQueue,
)
from canvasvault.services.otp_service import OTPService, codes_match, generate_otp


@pytest.fixture
def otp_service(settings) -> OTPService:
    return OTPService(MemoryCache(), settings)


@pytest.mark.unit
class TestGenerateOtp:
    def test_six_digits_without_leading_zero(self):
        for _ in range(200):
            otp = generate_otp()
            assert len(otp) == 6
            assert otp.isdigit()
            assert 100000 <= int(otp) <= 999999

    def test_codes_match(self):
        assert codes_match("123456", "123456")
        assert not codes_match("123456", "654321")
        assert not codes_match("123456", "12345")


@pytest.mark.unit
class TestOTPService:
    async def test_verification_otp_lifecycle(self, otp_service):
        otp = await otp_service.issue_verification_otp(5)

        assert await otp_service.cache.get("user:otp:5") == otp
        assert await otp_service.get_verification_otp(5) == otp

        await otp_service.consume_verification_otp(5)
        assert await otp_service.get_verification_otp(5) is None

    async def test_reissue_overwrites(self, otp_service, fixed_otp):
        await otp_service.cache.set("user:otp:5", "111111", 300)
        await otp_service.issue_verification_otp(5)
        assert await otp_service.get_verification_otp(5) == fixed_otp

    async def test_reset_otp_separate_from_verification(self, otp_service):
        verification = await otp_service.issue_verification_otp(5)
        reset = await otp_service.issue_reset_otp(5)

        assert await otp_service.cache.get("user:password-reset-otp:5") == reset
        await otp_service.consume_reset_otp(5)
        assert await otp_service.get_reset_otp(5) is None
        assert await otp_service.get_verification_otp(5) == verification

    async def test_reset_token(self, otp_service):
        token = await otp_service.issue_reset_token(9)

        assert len(token) == 64
        assert await otp_service.resolve_reset_token(token) == 9
        assert await otp_service.resolve_reset_token("unknown") is None

        await otp_service.consume_reset_token(token)
        assert await otp_service.resolve_reset_token(token) is None


@pytest.mark.unit
class TestMailQueue:
    async def test_jobs_pushed_as_json(self):
        cache = MemoryCache()
        queue = MailQueue(cache, "queue:mail")

        await queue.send_otp("a@b.com", "123456")
        await queue.send_password_reset_otp("a@b.com", "654321")
        await queue.send_password_reset_link("a@b.com", "https://x/reset-password?token=t")

        jobs = [json.loads(raw) for raw in cache.lists["queue:mail"]]
        assert [job["name"] for job in jobs] == [
            SEND_OTP,
            SEND_PASSWORD_RESET_OTP,
            SEND_PASSWORD_RESET_LINK,
        ]
        assert jobs[0]["data"] == {"email": "a@b.com", "otp": "123456"}
        assert jobs[2]["data"] == {
            "email": "a@b.com",
            "resetLink": "https://x/reset-password?token=t",
        }
        assert "enqueued_at" in jobs[0]
