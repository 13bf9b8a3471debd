from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from cloud.connectivity import Connectivity
from cloud.outbox import Outbox
from cloud.sync import QueueWorker
from models.config import Config
from runtime.commands import ControlChannel
from runtime.session import MonitoringSession
from sensing.sources import MotionSource
from storage.database import Database


@dataclass
class RuntimeContext:
    """Holds the wired services for one run; avoids global singletons."""

    config: Config
    db: Database
    connectivity: Connectivity
    outbox: Outbox
    session: MonitoringSession
    motion_source: MotionSource
    commands: ControlChannel
    image_source: Any = None
    worker: Optional[QueueWorker] = None

    def close(self) -> None:
        """Stop background work and release devices. Safe to call twice."""
        self.session.stop()
        if self.worker is not None:
            self.worker.stop_worker_thread()
        self.motion_source.close()
        if self.image_source is not None:
            self.image_source.release()
        self.db.close()
        logging.info("Runtime closed")
