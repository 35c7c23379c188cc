from .email_verifier import (
    ApifyEmailVerifier,
    EmailVerifier,
    VerificationError,
    VerificationOutcome,
    VerificationResult,
    outcome_from_verdicts,
)

__all__ = [
    "ApifyEmailVerifier",
    "EmailVerifier",
    "VerificationError",
    "VerificationOutcome",
    "VerificationResult",
    "outcome_from_verdicts",
]
