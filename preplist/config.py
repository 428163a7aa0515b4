"""Runtime configuration defaults for the backend, local state and printing."""

from __future__ import annotations

import os

BACKEND_DB_PATH = "data/preplist-shared.db"
STATE_DB_PATH = "data/preplist-device.db"
DEBUG_LOG_PATH = "/tmp/preplist-debug.log"

# Bump to abandon every snapshot persisted under the previous namespace.
STATE_NAMESPACE = "preplist-v1"

CHANGE_POLL_INTERVAL_S = 0.5
NOTIFICATION_TIMEOUT_S = 3.0

PRINTER_USB_VENDOR_ID = 0x28E9
PRINTER_USB_PRODUCT_ID = 0x0289
PRINTER_WIDTH_PX = 384
PRINTER_FONT_SIZE = 40
PRINTER_FONT_PATH = "/System/Library/Fonts/SFNS.ttf"
PRINTER_LEFT_INDENT_PX = 16
PRINTER_TAIL_SPACER_PX = 70


def backend_db_path() -> str:
    return os.environ.get("PREPLIST_BACKEND_DB", "").strip() or BACKEND_DB_PATH


def state_db_path() -> str:
    return os.environ.get("PREPLIST_STATE_DB", "").strip() or STATE_DB_PATH


def debug_log_path() -> str:
    return os.environ.get("PREPLIST_DEBUG_LOG", "").strip() or DEBUG_LOG_PATH
