from enum import Enum as PyEnum
from sqlalchemy import Boolean, CheckConstraint, Enum, ForeignKey, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class ResourceKind(str, PyEnum):
    field = "field"
    coach = "coach"


class Resource(Base):
    """Bookable resource configuration, maintained by the catalog.

    ``operating_hours`` holds ``{"day": "monday", "start": "08:00", "end": "22:00"}``
    items; ``price_rules`` holds the same keys plus ``multiplier`` and an
    optional ``priority``.
    """

    __tablename__ = "resources"
    __table_args__ = (
        CheckConstraint("slot_duration > 0", name="ck_resource_slot_duration_positive"),
        CheckConstraint("min_slots > 0 AND max_slots >= min_slots", name="ck_resource_slot_bounds"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    kind: Mapped[ResourceKind] = mapped_column(Enum(ResourceKind), default=ResourceKind.field)
    name: Mapped[str] = mapped_column(String(255))
    slot_duration: Mapped[int] = mapped_column(Integer, default=60)
    min_slots: Mapped[int] = mapped_column(Integer, default=1)
    max_slots: Mapped[int] = mapped_column(Integer, default=4)
    base_price: Mapped[int] = mapped_column(Integer, nullable=False)
    operating_hours: Mapped[list] = mapped_column(JSON, default=list)
    price_rules: Mapped[list] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    owner = relationship("User")
    courts = relationship("Court", back_populates="resource", order_by="Court.number")


class Court(Base):
    __tablename__ = "courts"
    __table_args__ = (
        UniqueConstraint("resource_id", "number", name="uq_court_resource_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    resource_id: Mapped[int] = mapped_column(ForeignKey("resources.id", ondelete="CASCADE"))
    name: Mapped[str] = mapped_column(String(128))
    number: Mapped[int] = mapped_column(Integer, default=1)
    base_price_override: Mapped[int | None] = mapped_column(Integer)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    resource = relationship("Resource", back_populates="courts")
