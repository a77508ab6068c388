"""Organization service - orgs, email domains and trusts."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from wecarry.core.errors import AuthorizationError, NotFoundError, ValidationError
from wecarry.db.enums import AuthType, ROLES_CAN_MANAGE_TRUST, UserAdminRole
from wecarry.db.models import Organization, OrganizationDomain, Trust, User, UserOrganization
from wecarry.services import trust_service, user_service

logger = logging.getLogger(__name__)


def _validate_auth_type(auth_type: str | None, field: str = "auth_type") -> None:
    if auth_type is None:
        return
    if auth_type not in {t.value for t in AuthType}:
        raise ValidationError.single(field, f"unknown auth type: {auth_type}")


def get_org(db: Session, org_id: int) -> Organization | None:
    return db.query(Organization).filter(Organization.id == org_id).first()


def find_org_by_uuid(db: Session, org_uuid: UUID) -> Organization:
    org = db.query(Organization).filter(Organization.uuid == org_uuid).first()
    if not org:
        raise NotFoundError("organization", org_uuid)
    return org


def create_organization(db: Session, user: User, data: dict) -> Organization:
    if not user_service.can_create_organization(user):
        raise AuthorizationError("user not allowed to create organizations")
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError.single("name", "name is required")
    auth_type = data.get("auth_type") or AuthType.GOOGLE.value
    _validate_auth_type(auth_type)

    org = Organization(
        name=name,
        url=data.get("url"),
        auth_type=auth_type,
        auth_config=data.get("auth_config") or {},
    )
    db.add(org)
    db.commit()
    db.refresh(org)
    logger.info("Created organization %s", org.uuid)
    return org


def update_organization(db: Session, user: User, org: Organization, data: dict) -> Organization:
    if not user_service.can_edit_organization(db, user, org.id):
        raise AuthorizationError("user not allowed to edit organization")
    if "name" in data:
        name = (data["name"] or "").strip()
        if not name:
            raise ValidationError.single("name", "name is required")
        org.name = name
    if "url" in data:
        org.url = data["url"]
    if "auth_type" in data:
        _validate_auth_type(data["auth_type"])
        org.auth_type = data["auth_type"]
    if "auth_config" in data:
        org.auth_config = data["auth_config"] or {}
    db.commit()
    db.refresh(org)
    return org


# =============================================================================
# Domains
# =============================================================================

def _normalize_domain(domain: str) -> str:
    return domain.strip().lower().lstrip("@")


def list_domains(db: Session, org: Organization) -> list[OrganizationDomain]:
    return (
        db.query(OrganizationDomain)
        .filter(OrganizationDomain.organization_id == org.id)
        .order_by(OrganizationDomain.domain)
        .all()
    )


def add_domain(
    db: Session,
    user: User,
    org: Organization,
    domain: str,
    auth_type: str | None = None,
    auth_config: dict | None = None,
) -> OrganizationDomain:
    if not user_service.can_edit_organization(db, user, org.id):
        raise AuthorizationError("user not allowed to edit organization")
    domain = _normalize_domain(domain or "")
    if not domain or "." not in domain:
        raise ValidationError.single("domain", "a valid domain is required")
    _validate_auth_type(auth_type)

    existing = db.query(OrganizationDomain).filter(OrganizationDomain.domain == domain).first()
    if existing:
        if existing.organization_id != org.id:
            raise ValidationError.single("domain", "domain belongs to another organization")
        existing.auth_type = auth_type
        existing.auth_config = auth_config
        db.commit()
        return existing

    org_domain = OrganizationDomain(
        organization_id=org.id,
        domain=domain,
        auth_type=auth_type,
        auth_config=auth_config,
    )
    db.add(org_domain)
    db.commit()
    db.refresh(org_domain)
    return org_domain


def remove_domain(db: Session, user: User, org: Organization, domain: str) -> None:
    if not user_service.can_edit_organization(db, user, org.id):
        raise AuthorizationError("user not allowed to edit organization")
    domain = _normalize_domain(domain or "")
    deleted = (
        db.query(OrganizationDomain)
        .filter(
            OrganizationDomain.organization_id == org.id,
            OrganizationDomain.domain == domain,
        )
        .delete(synchronize_session=False)
    )
    if not deleted:
        raise NotFoundError("organization domain", domain)
    db.commit()


def find_org_by_email_domain(db: Session, email: str) -> tuple[Organization | None, OrganizationDomain | None]:
    """Org owning the domain of email, with the matching domain row."""
    if "@" not in (email or ""):
        return None, None
    domain = _normalize_domain(email.rsplit("@", 1)[1])
    org_domain = db.query(OrganizationDomain).filter(OrganizationDomain.domain == domain).first()
    if org_domain is None:
        return None, None
    return org_domain.organization, org_domain


def find_orgs_for_login(db: Session, email: str) -> list[Organization]:
    """Orgs a user could log in to: existing memberships, then the email domain."""
    orgs = (
        db.query(Organization)
        .join(UserOrganization, UserOrganization.organization_id == Organization.id)
        .filter(UserOrganization.auth_email == email)
        .order_by(Organization.name)
        .all()
    )
    if orgs:
        return orgs
    org, _ = find_org_by_email_domain(db, email)
    return [org] if org else []


def auth_settings_for(db: Session, org: Organization, email: str) -> tuple[str, dict]:
    """Auth type/config for a login, preferring a domain-level override."""
    domain_org, org_domain = find_org_by_email_domain(db, email)
    if org_domain and domain_org.id == org.id and org_domain.auth_type:
        return org_domain.auth_type, org_domain.auth_config or {}
    return org.auth_type, org.auth_config or {}


# =============================================================================
# Trusts
# =============================================================================

def _require_trust_manager(user: User) -> None:
    if not (
        UserAdminRole.has_value(user.admin_role)
        and UserAdminRole(user.admin_role) in ROLES_CAN_MANAGE_TRUST
    ):
        raise AuthorizationError("user not allowed to manage trusts")


def create_org_trust(db: Session, user: User, primary: Organization, secondary: Organization) -> Trust:
    _require_trust_manager(user)
    return trust_service.create_trust(db, primary.id, secondary.id)


def remove_org_trust(db: Session, user: User, primary: Organization, secondary: Organization) -> None:
    _require_trust_manager(user)
    trust_service.remove_trust(db, primary.id, secondary.id)


def list_trusted_orgs(db: Session, org: Organization) -> list[Organization]:
    ids = trust_service.trusted_org_ids(db, org.id)
    if not ids:
        return []
    return db.query(Organization).filter(Organization.id.in_(ids)).order_by(Organization.name).all()
