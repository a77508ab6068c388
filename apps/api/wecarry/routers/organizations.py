"""Organizations router - orgs, their email domains and trusts."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from wecarry.core.deps import get_current_user, get_db
from wecarry.db.models import Organization
from wecarry.schemas.org import (
    DomainCreate,
    DomainRead,
    OrganizationCreate,
    OrganizationRead,
    OrganizationUpdate,
    TrustCreate,
)
from wecarry.services import org_service
from wecarry.services.access_token_service import CurrentUser

router = APIRouter()


def to_org_read(db: Session, org: Organization) -> OrganizationRead:
    return OrganizationRead(
        id=org.uuid,
        name=org.name,
        url=org.url,
        auth_type=org.auth_type,
        domains=[d.domain for d in org_service.list_domains(db, org)],
        trusted_organizations=[o.uuid for o in org_service.list_trusted_orgs(db, org)],
        created_at=org.created_at,
    )


@router.post("", response_model=OrganizationRead, status_code=201)
def create_organization(
    data: OrganizationCreate,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    org = org_service.create_organization(db, current.user, data.model_dump(mode="json"))
    return to_org_read(db, org)


@router.get("/{org_id}", response_model=OrganizationRead)
def get_organization(
    org_id: UUID,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return to_org_read(db, org_service.find_org_by_uuid(db, org_id))


@router.patch("/{org_id}", response_model=OrganizationRead)
def update_organization(
    org_id: UUID,
    data: OrganizationUpdate,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    org = org_service.find_org_by_uuid(db, org_id)
    org = org_service.update_organization(
        db, current.user, org, data.model_dump(mode="json", exclude_unset=True)
    )
    return to_org_read(db, org)


@router.post("/{org_id}/domains", response_model=DomainRead, status_code=201)
def add_domain(
    org_id: UUID,
    data: DomainCreate,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    org = org_service.find_org_by_uuid(db, org_id)
    org_domain = org_service.add_domain(
        db,
        current.user,
        org,
        data.domain,
        auth_type=data.auth_type.value if data.auth_type else None,
        auth_config=data.auth_config,
    )
    return DomainRead(domain=org_domain.domain, auth_type=org_domain.auth_type)


@router.delete("/{org_id}/domains/{domain}", status_code=204)
def remove_domain(
    org_id: UUID,
    domain: str,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    org = org_service.find_org_by_uuid(db, org_id)
    org_service.remove_domain(db, current.user, org, domain)


@router.post("/{org_id}/trusts", response_model=OrganizationRead, status_code=201)
def create_trust(
    org_id: UUID,
    data: TrustCreate,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    primary = org_service.find_org_by_uuid(db, org_id)
    secondary = org_service.find_org_by_uuid(db, data.secondary_id)
    org_service.create_org_trust(db, current.user, primary, secondary)
    return to_org_read(db, primary)


@router.delete("/{org_id}/trusts/{secondary_id}", status_code=204)
def remove_trust(
    org_id: UUID,
    secondary_id: UUID,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    primary = org_service.find_org_by_uuid(db, org_id)
    secondary = org_service.find_org_by_uuid(db, secondary_id)
    org_service.remove_org_trust(db, current.user, primary, secondary)
