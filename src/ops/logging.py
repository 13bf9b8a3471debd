"""
Logging setup.
"""

from __future__ import annotations

import logging
import os

# Chatty HTTP client libraries; their DEBUG output drowns the state log
NOISY_LOGGERS = ("urllib3", "google.auth", "google.resumable_media")


def setup_logging(log_path: str, log_level: str) -> None:
    log_dir = os.path.dirname(log_path)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir)

    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_path),
            logging.StreamHandler(),
        ],
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, getattr(logging, log_level)))
