"""Trust service - symmetric visibility sharing between organizations."""

import logging

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wecarry.core.errors import ValidationError
from wecarry.db.models import Trust

logger = logging.getLogger(__name__)


def validate_trust(primary_id: int | None, secondary_id: int | None) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    if not primary_id:
        errors.setdefault("primary_id", []).append("primary organization is required")
    if not secondary_id:
        errors.setdefault("secondary_id", []).append("secondary organization is required")
    if primary_id and secondary_id and primary_id == secondary_id:
        errors.setdefault("secondary_id", []).append(
            "an organization cannot trust itself"
        )
    return errors


def _pair_filter(a: int, b: int):
    return or_(
        and_(Trust.primary_id == a, Trust.secondary_id == b),
        and_(Trust.primary_id == b, Trust.secondary_id == a),
    )


def find_trust(db: Session, a: int, b: int) -> Trust | None:
    """Trust between two orgs, in either direction."""
    if not a or not b:
        raise ValidationError.single("organization_id", "both organization IDs must be valid")
    return db.query(Trust).filter(_pair_filter(a, b)).first()


def create_trust(db: Session, primary_id: int, secondary_id: int) -> Trust:
    """
    Create a trust between two orgs.

    Idempotent: an existing trust in either direction is returned as is.
    """
    errors = validate_trust(primary_id, secondary_id)
    if errors:
        raise ValidationError(errors)

    existing = find_trust(db, primary_id, secondary_id)
    if existing:
        return existing

    trust = Trust(primary_id=primary_id, secondary_id=secondary_id)
    db.add(trust)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent insert of the same pair
        db.rollback()
        existing = find_trust(db, primary_id, secondary_id)
        if existing is None:
            raise
        return existing
    db.refresh(trust)
    logger.info("Created trust between orgs %s and %s", primary_id, secondary_id)
    return trust


def remove_trust(db: Session, primary_id: int, secondary_id: int) -> int:
    """Delete the trust in both directions. Returns rows deleted."""
    deleted = (
        db.query(Trust)
        .filter(_pair_filter(primary_id, secondary_id))
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted


def find_trusts_for_org(db: Session, org_id: int) -> list[Trust]:
    return (
        db.query(Trust)
        .filter(or_(Trust.primary_id == org_id, Trust.secondary_id == org_id))
        .order_by(Trust.id)
        .all()
    )


def trusted_org_ids(db: Session, org_id: int) -> set[int]:
    """Ids of every org sharing a trust with org_id (not including itself)."""
    ids: set[int] = set()
    for trust in find_trusts_for_org(db, org_id):
        ids.add(trust.secondary_id if trust.primary_id == org_id else trust.primary_id)
    return ids
