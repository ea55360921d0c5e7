"""Fixed layout of a kit asset tree."""

# Subdirectories every genuine install must contain
REQUIRED_SUBDIRS = ("scripts", "templates", "guidelines")

# The single user-editable configuration file
USER_CONFIG_FILENAME = "config.json"

# Paths whose absence means a tree (or a backup of one) is structurally broken
CRITICAL_PATHS = ("kit.toml", USER_CONFIG_FILENAME, *REQUIRED_SUBDIRS)

# Files created by desktop environments; never counted or classified
OS_NOISE_FILENAMES = frozenset({".DS_Store", "Thumbs.db", "desktop.ini"})
