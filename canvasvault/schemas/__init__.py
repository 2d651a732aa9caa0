"""Pydantic request/response schemas (HTTP-layer concerns only)."""

from canvasvault.schemas.common import Envelope, failure_envelope, success_envelope

__all__ = ["Envelope", "failure_envelope", "success_envelope"]
