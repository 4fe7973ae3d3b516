from dataclasses import replace

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.constants import NO_SUB_RESOURCE
from ..core.errors import NotFound, ResourceInactive, ValidationFailed
from ..db import models
from .slot_calculator import ResourceConfig


def to_config(resource: models.Resource) -> ResourceConfig:
    return ResourceConfig.from_dicts(
        id=resource.id,
        owner_id=resource.owner_id,
        kind=resource.kind.value,
        slot_duration=resource.slot_duration,
        min_slots=resource.min_slots,
        max_slots=resource.max_slots,
        base_price=resource.base_price,
        operating_hours=resource.operating_hours,
        price_rules=resource.price_rules,
        is_active=resource.is_active,
    )


def get_resource(db: Session, resource_id: int) -> models.Resource:
    resource = db.get(models.Resource, resource_id)
    if not resource:
        raise NotFound("Resource not found")
    return resource


def select_court(
    db: Session, resource: models.Resource, court_id: int | None
) -> models.Court | None:
    if court_id:
        court = db.get(models.Court, court_id)
        if not court or court.resource_id != resource.id:
            raise ValidationFailed("Court does not belong to this resource")
        if not court.is_active:
            raise ValidationFailed("Court is not active")
        return court
    active = list(
        db.scalars(
            select(models.Court)
            .where(models.Court.resource_id == resource.id, models.Court.is_active.is_(True))
            .order_by(models.Court.number)
        )
    )
    if not active:
        return None
    if len(active) == 1:
        return active[0]
    raise ValidationFailed("This resource has several courts, please choose one")


def get_resource_config(
    db: Session, resource_id: int, court_id: int | None = None
) -> tuple[models.Resource, int, ResourceConfig]:
    """Load an active resource and resolve the sub-resource to book on."""
    resource = get_resource(db, resource_id)
    if not resource.is_active:
        raise ResourceInactive("Resource is not available for booking")
    court = select_court(db, resource, court_id)
    config = to_config(resource)
    if court and court.base_price_override is not None:
        config = replace(config, base_price=court.base_price_override)
    sub_resource_id = court.id if court else NO_SUB_RESOURCE
    return resource, sub_resource_id, config
