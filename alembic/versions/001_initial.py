"""initial schema"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    instance_status = postgresql.ENUM(
        "pending", "provisioning", "configuring", "active", "stopped", "error", "destroying",
        name="instance_status",
        create_type=True,
    )
    instance_status.create(op.get_bind(), checkfirst=True)
    health_status = postgresql.ENUM("healthy", "unhealthy", "unknown", name="health_status", create_type=True)
    health_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "instances",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column(
            "status",
            postgresql.ENUM(name="instance_status", create_type=False),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("status_message", sa.Text(), nullable=True),
        sa.Column("droplet_id", sa.String(length=32), nullable=True),
        sa.Column("droplet_name", sa.String(length=100), nullable=True),
        sa.Column("droplet_ip", sa.String(length=45), nullable=True),
        sa.Column("region", sa.String(length=32), nullable=False),
        sa.Column("size", sa.String(length=64), nullable=False),
        sa.Column("tunnel_id", sa.String(length=64), nullable=True),
        sa.Column("tunnel_hostname", sa.String(length=255), nullable=True),
        sa.Column("gateway_token", sa.String(length=128), nullable=False),
        sa.Column("gateway_port", sa.Integer(), nullable=False, server_default="18789"),
        sa.Column("assistant_name", sa.String(length=100), nullable=False),
        sa.Column("assistant_emoji", sa.String(length=16), nullable=False),
        sa.Column("model", sa.String(length=100), nullable=True),
        sa.Column("telegram_user_id", sa.String(length=64), nullable=True),
        sa.Column("welcome_sent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "health_status",
            postgresql.ENUM(name="health_status", create_type=False),
            nullable=False,
            server_default="unknown",
        ),
        sa.Column("last_health_check", sa.DateTime(timezone=True), nullable=True),
        sa.Column("provisioned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("user_id", name="uq_instances_user_id"),
    )
    op.create_index("ix_instances_gateway_token", "instances", ["gateway_token"])

    op.create_table(
        "instance_status_events",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "instance_id",
            sa.String(length=36),
            sa.ForeignKey("instances.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("from_status", sa.String(length=50), nullable=True),
        sa.Column("to_status", sa.String(length=50), nullable=False),
        sa.Column("message", sa.String(length=500), nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    )
    op.create_index("ix_instance_status_events_instance_id", "instance_status_events", ["instance_id"])

    op.create_table(
        "workspace_snapshots",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "instance_id",
            sa.String(length=36),
            sa.ForeignKey("instances.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("projects", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("tasks", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("ideas", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("inbox", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("stats", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("synced_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    )
    op.create_index("ix_workspace_snapshots_instance_id", "workspace_snapshots", ["instance_id"], unique=True)
    op.create_index("ix_workspace_snapshots_user_id", "workspace_snapshots", ["user_id"])

def downgrade() -> None:
    op.drop_index("ix_workspace_snapshots_user_id", table_name="workspace_snapshots")
    op.drop_index("ix_workspace_snapshots_instance_id", table_name="workspace_snapshots")
    op.drop_table("workspace_snapshots")
    op.drop_index("ix_instance_status_events_instance_id", table_name="instance_status_events")
    op.drop_table("instance_status_events")
    op.drop_index("ix_instances_gateway_token", table_name="instances")
    op.drop_table("instances")
    sa.Enum(name="health_status").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="instance_status").drop(op.get_bind(), checkfirst=True)
