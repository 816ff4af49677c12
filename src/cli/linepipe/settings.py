"""Settings and configuration for linepipe."""

# Config file
USER_DIR = ".linepipe"
CONFIG_FILE = "linepipe.cfg"
CONFIG_SECTION = "config"

# Recognized settings, in the order they are shown by `linepipe config`
CONFIG_KEYS = [
    "LINEPIPE_SHELL",
    "LINEPIPE_ENCODING",
    "LINEPIPE_TERM_GRACE",
    "LINEPIPE_LOG_LEVEL",
]

# Defaults
DEFAULT_SHELL = "/bin/sh"
DEFAULT_ENCODING = "utf-8"
DEFAULT_TERM_GRACE = 5.0
DEFAULT_LOG_LEVEL = "INFO"

# Lines buffered per captured output stream before the reader blocks
MAX_QUEUED_LINES = 65536

# Templates
CONFIG_TEMPLATE = """
[config]
# command interpreter for shell commands, defaults to /bin/sh
LINEPIPE_SHELL=

# text encoding of process pipes, defaults to utf-8
LINEPIPE_ENCODING=

# seconds between SIGTERM and SIGKILL when aborting, defaults to 5
LINEPIPE_TERM_GRACE=

# ERROR, WARN, INFO or DEBUG
LINEPIPE_LOG_LEVEL=
"""
