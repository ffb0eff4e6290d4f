# framefit/core/logs.py
"""
Logging setup for the command line tools.

Library modules only ever call ``logging.getLogger(__name__)``; handlers are
installed here, once, by whichever entry point runs.
"""
from __future__ import annotations
import logging
import os
import sys
from datetime import datetime
from typing import Optional

_configured = False


def setup_logging(level: int = logging.INFO, log_dir: Optional[str] = None) -> logging.Logger:
    """
    Console handler at ``level``; when ``log_dir`` is given, also a DEBUG
    file log named ``framefit_<timestamp>.log`` inside it.
    """
    global _configured
    root = logging.getLogger()
    if _configured:
        return root

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    root.setLevel(logging.DEBUG)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        logfile = os.path.join(log_dir, f"framefit_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log")
        fh = logging.FileHandler(logfile)
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(formatter)
        root.addHandler(fh)
        root.info("[logging] Writing debug output to: %s", logfile)

    _configured = True
    return root


def trace(log: logging.Logger, cfg: dict, msg: str, *args) -> None:
    """Detector-style trace: INFO when cfg['debug'] is set, DEBUG otherwise."""
    log.log(logging.INFO if cfg.get("debug") else logging.DEBUG, msg, *args)
