"""
Directory Kernel — Constants (Default Values)

All magic numbers and fixed names live here. Runtime overrides come from
``directory_runtime.config``.
"""

# --- Remote store ---
COLLECTION_PATH: str = "colleges"

# Initial load gives up waiting for the first notification after this.
LOAD_TIMEOUT_SECONDS: float = 3.0

# --- Local session slot ---
SESSION_USER_KEY: str = "collegeConnectUser"

# --- Backups ---
BACKUP_RETENTION: int = 30
BACKUP_PREFIX: str = "backup-"
EMERGENCY_PREFIX: str = "EMERGENCY-"
PRE_RESTORE_PREFIX: str = "emergency-before-restore-"
RESTORE_CONFIRMATION: str = "RESTORE"

# --- Integrity monitor ---
# A drop strictly greater than these counts is classified as data loss.
DATA_LOSS_STUDENT_THRESHOLD: int = 5
DATA_LOSS_COLLEGE_THRESHOLD: int = 1

# --- Liveness ---
HEARTBEAT_INTERVAL_SECONDS: float = 60.0

# --- Validation ---
EMAIL_PATTERN: str = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
LINKEDIN_MARKER: str = "linkedin.com/in/"
