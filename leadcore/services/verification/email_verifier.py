"""
Email Verifier - deliverability check through an Apify actor.

The actor runs synchronously on Apify's side (up to 300s) and its dataset
holds one verdict per address. Only a first verdict with status "valid"
counts as verified.

Outcomes:
- VERIFIED: call succeeded, first verdict is "valid"
- INVALID:  call succeeded, verdict is anything else
- ERROR:    the call itself failed (timeout, API error, failed run)

INVALID and ERROR both persist as `failed`; the stored `verify_email_info`
keeps them apart (a verdict list versus an error marker).
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from apify_client import ApifyClientAsync

from ...config import VerificationSettings
from ...models.leads import VerifyEmailStatus

logger = logging.getLogger(__name__)


class VerificationError(Exception):
    """The verification service could not produce a verdict."""


class VerificationOutcome(str, Enum):
    VERIFIED = "verified"
    INVALID = "invalid"
    ERROR = "error"

    @property
    def persisted_status(self) -> VerifyEmailStatus:
        if self is VerificationOutcome.VERIFIED:
            return VerifyEmailStatus.VERIFIED
        return VerifyEmailStatus.FAILED


@dataclass
class VerificationResult:
    email: str
    outcome: VerificationOutcome
    info: Any

    @property
    def status(self) -> VerifyEmailStatus:
        return self.outcome.persisted_status


def outcome_from_verdicts(verdicts: List[Dict[str, Any]]) -> VerificationOutcome:
    if verdicts and isinstance(verdicts[0], dict) and verdicts[0].get("status") == "valid":
        return VerificationOutcome.VERIFIED
    return VerificationOutcome.INVALID


def error_marker(email: str, error: Exception) -> Dict[str, Any]:
    return {
        "error": str(error) or type(error).__name__,
        "error_type": type(error).__name__,
        "email": email,
        "checked_at": datetime.now(timezone.utc).isoformat(),
    }


class EmailVerifier(ABC):
    """Abstract verification adapter."""

    @abstractmethod
    async def check(self, email: str) -> List[Dict[str, Any]]:
        """Return the raw per-address verdicts or raise VerificationError."""

    async def verify(self, email: str) -> VerificationResult:
        """Map the service response (or its failure) to a VerificationResult."""
        try:
            verdicts = await self.check(email)
        except VerificationError as e:
            logger.warning("[EmailVerifier] Verification failed for %s: %s", email, e)
            return VerificationResult(email, VerificationOutcome.ERROR, error_marker(email, e))
        outcome = outcome_from_verdicts(verdicts)
        logger.info("[EmailVerifier] %s -> %s", email, outcome.value)
        return VerificationResult(email, outcome, verdicts)


def _field(obj: Any, key: str) -> Any:
    # apify-client returns plain dicts in 1.x and models in later releases
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


class ApifyEmailVerifier(EmailVerifier):
    """EmailVerifier running the email verification actor on Apify."""

    def __init__(self, settings: VerificationSettings, client: Optional[ApifyClientAsync] = None):
        self.settings = settings
        if client is None:
            if not settings.api_token:
                raise ValueError("Missing APIFY_API_TOKEN environment variable")
            client = ApifyClientAsync(settings.api_token)
        self.client = client

    @staticmethod
    def build_input(email: str) -> Dict[str, Any]:
        return {
            "emails": [email],
            "checkDeliverability": True,
            "allowInternationalized": False,
        }

    async def _run(self, email: str) -> List[Dict[str, Any]]:
        actor_client = self.client.actor(self.settings.actor_id)
        run = await actor_client.call(
            run_input=self.build_input(email),
            timeout_secs=int(self.settings.timeout_seconds),
        )
        if run is None:
            raise VerificationError("Actor run returned None (timeout)")

        status = _field(run, "status")
        if status != "SUCCEEDED":
            raise VerificationError(f"Actor run status: {status}")

        dataset_id = _field(run, "defaultDatasetId") or _field(run, "default_dataset_id")
        if not dataset_id:
            raise VerificationError("No default dataset ID found")

        page = await self.client.dataset(dataset_id).list_items()
        items = _field(page, "items")
        if items is None and isinstance(page, list):
            items = page
        return list(items or [])

    async def check(self, email: str) -> List[Dict[str, Any]]:
        try:
            return await asyncio.wait_for(self._run(email), timeout=self.settings.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise VerificationError(f"Verification timed out after {self.settings.timeout_seconds}s") from e
        except VerificationError:
            raise
        except Exception as e:
            # apify-client surfaces HTTP and transport failures as assorted exception types
            raise VerificationError(f"Apify request failed: {e}") from e
