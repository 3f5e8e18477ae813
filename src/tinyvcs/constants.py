"""Constants used throughout TinyVCS."""

# Directory names
TINYVCS_DIR = ".tinyvcs"
OBJECTS_DIR = "objects"

# Object kinds (subdirectories of objects/)
BLOB_KIND = "blobs"
COMMIT_KIND = "commits"
OBJECT_KINDS = (BLOB_KIND, COMMIT_KIND)

# File names
METADATA_DB = "metadata.db"
REFS_FILE = "refs.json"
INDEX_FILE = "index"
REMOVALS_FILE = "removals.json"
CURRENT_BRANCH_FILE = "CURRENT_BRANCH"
LOCK_FILE = "lock"
IGNORE_FILE = ".tinyvcsignore"

# Reference table
HEAD = "HEAD"
INITIAL = "INITIAL"
RESERVED_REFS = frozenset({HEAD, INITIAL})
DEFAULT_BRANCH = "master"
INITIAL_COMMIT_MESSAGE = "initial commit"

# Staging index format
INDEX_VERSION = 1

# File size limits (bytes)
GZIP_THRESHOLD = 200 * 1024 * 1024   # 200 MB

# Hash algorithm
HASH_ALGORITHM = "sha256"
HASH_LENGTH = 64  # SHA-256 produces 64 hex characters

# Merge conflict markers
CONFLICT_START = b"<<<<<<< HEAD\n"
CONFLICT_SEPARATOR = b"=======\n"
CONFLICT_END = b">>>>>>>\n"

# Exit codes
EXIT_USER_ERROR = 1
EXIT_SYSTEM_ERROR = 2

# Environment variables
ENV_LOG_LEVEL = "TINYVCS_LOG_LEVEL"
ENV_ROOT = "TINYVCS_ROOT"

# Database schema version
DB_SCHEMA_VERSION = 2
