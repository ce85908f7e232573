"""
Account directory — in-repo form of the Account/Auth collaborator.

Owns the mapping between a client profile id (what onboarding screens pass
around) and the account id that scoping-form instances are keyed by, plus
the minimal client registration and listing the admin dashboards need.
"""

from __future__ import annotations

import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select

from grc_portal.core.exceptions import ConflictError, NotFoundError, ValidationError
from grc_portal.models.auth import Account
from grc_portal.models.client import ClientProfile
from grc_portal.models.enums import AccountRole, ClientOnboardingStatus, parse_enum
from grc_portal.services.helpers.unit_of_work import read_or_raise, unit_of_work

logger = logging.getLogger(__name__)


def normalize_email(raw) -> str:
    """Validate and normalise an e-mail address (syntax only, no DNS)."""
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("email is required", details={"email": raw})
    try:
        return validate_email(raw.strip(), check_deliverability=False).normalized
    except EmailNotValidError as exc:
        raise ValidationError(f"Invalid email: {exc}", details={"email": raw}) from None


class AccountDirectory:
    """Resolves and registers accounts. Constructed with a SQLAlchemy session."""

    def __init__(self, session) -> None:
        self.session = session

    # ── Accounts ─────────────────────────────────────────────────────────

    def find_account_by_email(self, email: str) -> Account | None:
        return read_or_raise(
            lambda: self.session.execute(
                select(Account).where(Account.email == email)
            ).scalar_one_or_none()
        )

    def require_account(self, account_id) -> int:
        """Check that an acting account id (from the auth proxy) exists."""
        if read_or_raise(self.session.get, Account, account_id) is None:
            raise ValidationError("Unknown acting account", details={"actorId": account_id})
        return account_id

    def add_account(self, email: str, role: AccountRole) -> Account:
        """Stage a new account in the current transaction.

        The caller owns the transaction; a duplicate e-mail raises
        ConflictError before anything is flushed.
        """
        if self.find_account_by_email(email) is not None:
            raise ConflictError("Account", "email", email)
        account = Account(email=email, role=role.value)
        self.session.add(account)
        self.session.flush()
        return account

    # ── Client profiles ──────────────────────────────────────────────────

    def get_client_profile(self, client_profile_id) -> ClientProfile:
        profile = read_or_raise(self.session.get, ClientProfile, client_profile_id)
        if profile is None:
            raise NotFoundError("ClientProfile", client_profile_id)
        return profile

    def resolve_client_account(self, client_profile_id) -> int:
        """Translate a client profile id into its owning account id."""
        return self.get_client_profile(client_profile_id).account_id

    def register_client(self, data: dict) -> ClientProfile:
        """Create a CLIENT account and its profile in one transaction."""
        email = normalize_email(data.get("email"))
        full_name = (data.get("fullName") or "").strip()
        organization = (data.get("organization") or "").strip()
        missing = [k for k, v in (("fullName", full_name), ("organization", organization)) if not v]
        if missing:
            raise ValidationError(
                f"{', '.join(missing)} required",
                details={k: "required" for k in missing},
            )

        with unit_of_work(self.session):
            account = self.add_account(email, AccountRole.CLIENT)
            profile = ClientProfile(
                account_id=account.id,
                full_name=full_name,
                organization=organization,
                phone_number=data.get("phoneNumber"),
                onboarding_status=ClientOnboardingStatus.NOT_STARTED.value,
            )
            self.session.add(profile)

        logger.info(
            "Client registered",
            extra={"client_id": profile.id, "event_type": "client.registered"},
        )
        return profile

    def list_clients_by_status(self, status) -> list[ClientProfile]:
        status = parse_enum(ClientOnboardingStatus, status, "status")
        return read_or_raise(
            lambda: self.session.execute(
                select(ClientProfile)
                .where(ClientProfile.onboarding_status == status.value)
                .order_by(ClientProfile.created_at.desc(), ClientProfile.id.desc())
            ).scalars().all()
        )
