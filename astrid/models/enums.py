import enum

class InstanceStatus(str, enum.Enum):
    pending = "pending"
    provisioning = "provisioning"
    configuring = "configuring"
    active = "active"
    stopped = "stopped"
    error = "error"
    destroying = "destroying"

# statuses the reconciler still has work to do for
IN_PROGRESS_STATUSES = (InstanceStatus.provisioning, InstanceStatus.configuring)

# forward order of the normal provisioning path
STATUS_ORDER = {
    InstanceStatus.pending: 0,
    InstanceStatus.provisioning: 1,
    InstanceStatus.configuring: 2,
    InstanceStatus.active: 3,
}

class HealthStatus(str, enum.Enum):
    healthy = "healthy"
    unhealthy = "unhealthy"
    unknown = "unknown"
