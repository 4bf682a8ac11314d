# Re-export Base and ensure all models are imported so metadata is complete
from astrid.db.session import Base  # provides Base.metadata

# Import models here so Alembic can discover them via Base.metadata
from astrid.models.instance import Instance  # noqa: F401
from astrid.models.instance_status_event import InstanceStatusEvent  # noqa: F401
from astrid.models.workspace_snapshot import WorkspaceSnapshot  # noqa: F401
