from datetime import datetime

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from astrid.db.session import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")

class WorkspaceSnapshot(Base):
    """Last workspace state pushed by the agent running on the instance."""

    __tablename__ = "workspace_snapshots"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, autoincrement=True)
    instance_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("instances.id", ondelete="CASCADE"), unique=True, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    projects: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    tasks: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    ideas: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    inbox: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    stats: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
