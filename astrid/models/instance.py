import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from astrid.db.session import Base
from astrid.models.enums import InstanceStatus, HealthStatus

class Instance(Base):
    __tablename__ = "instances"
    __table_args__ = (UniqueConstraint("user_id", name="uq_instances_user_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    status: Mapped[InstanceStatus] = mapped_column(
        Enum(InstanceStatus, name="instance_status"),
        nullable=False,
        default=InstanceStatus.pending,
    )
    status_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    droplet_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    droplet_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    droplet_ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
    region: Mapped[str] = mapped_column(String(32), nullable=False)
    size: Mapped[str] = mapped_column(String(64), nullable=False)

    tunnel_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tunnel_hostname: Mapped[str | None] = mapped_column(String(255), nullable=True)

    gateway_token: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    gateway_port: Mapped[int] = mapped_column(Integer, nullable=False, default=18789)

    assistant_name: Mapped[str] = mapped_column(String(100), nullable=False)
    assistant_emoji: Mapped[str] = mapped_column(String(16), nullable=False)
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    telegram_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    welcome_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    health_status: Mapped[HealthStatus] = mapped_column(
        Enum(HealthStatus, name="health_status"),
        nullable=False,
        default=HealthStatus.unknown,
    )
    last_health_check: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    provisioned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # optimistic concurrency: a stale read-modify-write raises StaleDataError
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # eager_defaults: server-side timestamps are loaded at flush, not lazily
    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}
