"""Unit tests for PasswordService (bcrypt)."""

import pytest

from canvasvault.services.password_service import PasswordService


@pytest.fixture
def service() -> PasswordService:
    return PasswordService(bcrypt_rounds=4)


@pytest.mark.unit
class TestPasswordService:
    def test_hash_is_bcrypt_and_salted(self, service):
        first = service.hash_password("password123")
        second = service.hash_password("password123")
        assert first.startswith("$2b$04$")
        assert first != second

    def test_verify_password(self, service):
        hashed = service.hash_password("password123")
        assert service.verify_password("password123", hashed)
        assert not service.verify_password("password124", hashed)

    def test_malformed_hash_is_a_mismatch(self, service):
        assert not service.verify_password("password123", "not-a-bcrypt-hash")

    def test_needs_rehash_when_rounds_change(self, service):
        hashed = service.hash_password("password123")
        assert not service.needs_rehash(hashed)
        assert PasswordService(bcrypt_rounds=5).needs_rehash(hashed)

    def test_needs_rehash_ignores_unknown_formats(self, service):
        assert not service.needs_rehash("plain")
