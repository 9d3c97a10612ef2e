STATE_DIR_NAME = ".task_planner"
CONFIG_FILE = "config.yaml"
SNAPSHOT_VERSION = 1

DEFAULT_PRIORITY = 5
DEFAULT_DEPENDENCY_WEIGHT = 1.0
DEFAULT_KNOWLEDGE_WEIGHT = 0.8
DEFAULT_MAX_DEPTH = 10
DEFAULT_EVENT_HISTORY = 500

# Duration used by the critical path for tasks without an estimate.
DEFAULT_TASK_DURATION = 1

# Criticality score weights
CRITICALITY_DEPENDENT_WEIGHT = 10
CRITICALITY_DURATION_WEIGHT = 5
CRITICALITY_DEPTH_BASELINE = 10
CRITICALITY_DEPTH_WEIGHT = 2
CRITICALITY_RESOURCE_WEIGHT = 3

# Recommendation thresholds
BOTTLENECK_BLOCKED_RATIO = 2
UNDERUTILIZED_MIN_READY = 4
UNDERUTILIZED_MAX_RUNNING = 2

SEVERITY_HIGH = "high"
SEVERITY_MEDIUM = "medium"
SEVERITY_LOW = "low"

CONFLICT_TYPE_RESOURCE_CONTENTION = "resource_contention"
