STATE_DIR_NAME = ".focusboard"
CONFIG_FILE = "config.yaml"
LEGACY_PREFIX = ".focusboard_legacy_"
SCHEMA_VERSION = 1
WINDOWS_LOCK_BYTES = 4096

TABLE_FILES = {
    "tasks": "tasks.yaml",
    "focus": "focus.yaml",
    "projects": "projects.yaml",
    "milestones": "milestones.yaml",
    "issues": "issues.yaml",
}

MIN_PRIORITY = 1
MAX_PRIORITY = 4
DEFAULT_PRIORITY = 1

UNTAGGED = "Untagged"

# Time buckets, in display order
BUCKET_OVERDUE = "Overdue"
BUCKET_DUE_TODAY = "Due Today"
BUCKET_DUE_TOMORROW = "Due Tomorrow"
BUCKET_NEXT_7_DAYS = "Next 7 Days"
BUCKET_LATER = "7+ Days Later"

TIME_BUCKETS = (
    BUCKET_OVERDUE,
    BUCKET_DUE_TODAY,
    BUCKET_DUE_TOMORROW,
    BUCKET_NEXT_7_DAYS,
    BUCKET_LATER,
)

ISSUE_LABELS = (
    "Bug",
    "Feature",
    "Enhancement",
    "Documentation",
    "Question",
    "Research",
    "Design",
    "Testing",
    "Deployment",
    "Maintenance",
)

# Fraction of the busiest day needed for heatmap levels 2..6
HEATMAP_THRESHOLDS = (0.075, 0.15, 0.3, 0.6, 0.9)
ROLLING_WINDOWS_DAYS = (1, 7, 30)

EXPORT_FORMAT = "focusboard"
EXPORT_VERSION = 1
