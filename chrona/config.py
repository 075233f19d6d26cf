"""
Configuration for Chrona.

Paths and runtime settings are loaded from environment variables so the same
code can run against the bundled data folder, a deployed web root, or a
temporary directory in tests.

To point Chrona at another data folder, add this to your ~/.bashrc:
    export CHRONA_PUBLIC_DIR="/srv/chrona/public"

Then run: source ~/.bashrc (or restart your terminal)
"""

import logging
import os
from pathlib import Path


# ============================================================
# FILE PATHS
# ============================================================

# Project root directory (where setup.py is)
PROJECT_ROOT = Path(__file__).parent.parent

# Web root that holds design-tokens.json and the data/ folder
PUBLIC_DIR = Path(os.environ.get("CHRONA_PUBLIC_DIR", PROJECT_ROOT / "public"))

# Per-user JSON files live under here
DATA_DIR = PUBLIC_DIR / "data"

# Where exports and backups are written
EXPORT_DIR = Path(os.environ.get("CHRONA_EXPORT_DIR", PROJECT_ROOT / "exports"))

# Front-end sources rewritten when a design token is renamed
SOURCE_DIR = Path(os.environ.get("CHRONA_SOURCE_DIR", PROJECT_ROOT / "src"))


# ============================================================
# WEB SERVER
# ============================================================

WEB_HOST = os.environ.get("CHRONA_HOST", "0.0.0.0")
WEB_PORT = int(os.environ.get("CHRONA_PORT", "8002"))


# ============================================================
# LOGGING
# ============================================================

LOG_LEVEL = os.environ.get("CHRONA_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = None):
    """
    Configure the root logger once for the CLI and the web server.

    Args:
        level: Level name such as "DEBUG"; defaults to CHRONA_LOG_LEVEL
    """
    level = (level or LOG_LEVEL).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
