# paths.py
from __future__ import annotations
import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("XDR_INSTALLER_HOME", "/root/xdr-installer"))
STATE_DIR = BASE_DIR / "state"

STATE_FILE = STATE_DIR / "xdr_install.state"
CONFIG_FILE = STATE_DIR / "xdr_install.conf"
LOG_FILE = STATE_DIR / "xdr_install.log"
CONFLICT_LOG = STATE_DIR / "rename_conflicts.log"
