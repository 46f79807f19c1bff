"""
Employer verification status derivation.

User documents carry the rejection flag in three legacy encodings
(`True`, `"true"`, `1`) next to a free-form `status` string. All decoding of
those fields lives here; callers only ever see a VerificationStatus.
"""

from collections.abc import Mapping
from typing import Any

from database.models.enums import Role, VerificationStatus

# Every encoding of "rejected" found in stored user documents
_REJECTED_FLAG_VALUES = (True, "true", 1)


def _is_rejected_flag(value: Any) -> bool:
    # 1.0 == 1 and True == 1 in Python, so compare on type as well as value
    for accepted in _REJECTED_FLAG_VALUES:
        if type(value) is type(accepted) and value == accepted:
            return True
    return False


def derive_verification_status(raw: Any) -> VerificationStatus:
    """
    Compute the canonical verification status of an employer record.

    Precedence, first match wins:
        1. `verificationRejected` is True, "true" or 1 -> rejected
        2. `status == "rejected"` -> rejected
        3. non-empty `status` naming a known state -> that state
        4. anything else -> pending

    Never raises: missing, malformed or non-mapping input resolves to pending.
    """
    if not isinstance(raw, Mapping):
        return VerificationStatus.PENDING

    if _is_rejected_flag(raw.get("verificationRejected")):
        return VerificationStatus.REJECTED

    status = raw.get("status")
    if not isinstance(status, str) or not status:
        return VerificationStatus.PENDING
    if status == VerificationStatus.REJECTED.value:
        return VerificationStatus.REJECTED

    try:
        return VerificationStatus(status)
    except ValueError:
        # Unknown strings (e.g. "verified") are not passed through; results stay within the enum
        return VerificationStatus.PENDING


def is_employer_blocked(profile: Any) -> bool:
    """True when a profile acting as employer has been rejected by an admin."""
    if not isinstance(profile, Mapping):
        return False
    role = Role.parse(profile.get("role"))
    acting_as_employer = role is Role.EMPLOYER or (
        role is Role.MULTI and Role.parse(profile.get("activeRole")) is Role.EMPLOYER
    )
    return acting_as_employer and derive_verification_status(profile) is VerificationStatus.REJECTED
