"""Static defaults shared across clpsync services."""

DIR_MODE = 0o755
FILE_MODE = 0o644
WRITABLE_MODE = 0o775

LOG_MARKER = "[+]"
DEFAULT_CONFIG_FILE = ".clpsync.yml"
DEFAULT_LOG_NAME = "rsync-pull-codeigniter.log"
DEFAULT_TIMEZONE = "Europe/Dublin"
DEFAULT_MYSQL_SERVICE = "mysql"
SCRATCH_DIR_NAME = "tmp"
LOCK_FILE_NAME = "clpsync.lock"
REPORT_FILE_NAME = "clpsync-report.json"

DUMP_SUFFIX = ".sql.gz"
BACKUP_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

MIRROR_EXCLUDES = (
    "application/cache/",
    "application/logs/",
    "application/config/database.php",
    "application/config/config.php",
    ".env",
)

WRITABLE_DIRS = (
    "application/cache",
    "application/logs",
    "application/sessions",
)
