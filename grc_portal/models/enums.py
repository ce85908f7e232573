"""
Closed enumerations shared by the consultant and scoping-form workflows.

Values are persisted as their string literals, so renaming a member is a
data migration.
"""

from __future__ import annotations

from enum import Enum

from grc_portal.core.exceptions import ValidationError


class ServiceType(str, Enum):
    ISO_27001 = "ISO_27001_INFORMATION_SECURITY_MANAGEMENT_SYSTEM"
    ISO_27701 = "ISO_27701_PRIVACY_INFORMATION_MANAGEMENT_SYSTEM"
    ISO_22301 = "ISO_22301_BUSINESS_CONTINUITY_MANAGEMENT_SYSTEM"
    ISO_27017 = "ISO_27017_CLOUD_SECURITY_CONTROLS"
    ISO_27018 = "ISO_27018_PII_PROTECTION_IN_PUBLIC_CLOUD"
    ISO_20000 = "ISO_20000_SERVICE_MANAGEMENT"
    ISO_12207 = "ISO_12207_SOFTWARE_LIFE_CYCLE"
    ISO_42001 = "ISO_42001_AI_MANAGEMENT_SYSTEM"
    TESTING_SERVICES = "TESTING_SERVICES"
    RISK_ASSESSMENT = "RISK_ASSESSMENT"
    BUSINESS_IMPACT_ANALYSIS = "BUSINESS_IMPACT_ANALYSIS"
    PRIVACY_IMPACT_ANALYSIS = "PRIVACY_IMPACT_ANALYSIS"
    DATA_ASSURANCE = "DATA_ASSURANCE"
    AUDIT = "AUDIT"
    AWARENESS_TRAINING = "AWARENESS_TRAINING"
    TABLETOP_EXERCISE = "TABLETOP_EXERCISE"
    OTHER = "OTHER"


class AccountRole(str, Enum):
    ADMIN = "ADMIN"
    CONSULTANT = "CONSULTANT"
    CLIENT = "CLIENT"


class ConsultantStatus(str, Enum):
    PENDING_REVIEW = "PENDING_REVIEW"
    INTERVIEW_INVITED = "INTERVIEW_INVITED"
    INTERVIEW_SCHEDULED = "INTERVIEW_SCHEDULED"
    REJECTED = "REJECTED"
    APPROVED = "APPROVED"


class ScopingFormStatus(str, Enum):
    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ClientOnboardingStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    PENDING_DISCOVERY = "PENDING_DISCOVERY"
    DISCOVERY_INVITED = "DISCOVERY_INVITED"
    DISCOVERY_SCHEDULED = "DISCOVERY_SCHEDULED"
    DISCOVERY_COMPLETED = "DISCOVERY_COMPLETED"
    SCOPING_IN_PROGRESS = "SCOPING_IN_PROGRESS"
    SCOPING_REVIEW = "SCOPING_REVIEW"
    TERMS_PENDING = "TERMS_PENDING"
    ONBOARDED = "ONBOARDED"
    REJECTED = "REJECTED"


def values_of(enum_cls) -> list[str]:
    """Return the persisted literals of an enum, in declaration order."""
    return [member.value for member in enum_cls]


def parse_enum(enum_cls, value, field: str):
    """Coerce a raw literal into ``enum_cls`` or raise ValidationError."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(
            f"Invalid {field} {value!r}",
            details={field: value, "validOptions": values_of(enum_cls)},
        ) from None
