"""
Crash Guard: on-device crash detection and tamper-evident evidence capture.

Reads IMU samples, runs the crash detector, arbitrates detections through a
cancellable countdown, captures and seals evidence, and delivers the alert and
record through a durable outbox.

Usage:
    python src/main.py --config config/config.yaml
    python src/main.py --replay recordings/crash.csv
    python src/main.py --export-latest exports/
    python src/main.py --verify exports/trust_packet_<id>.json

Arguments:
    --config: Path to configuration file
    --replay: Replay a recorded CSV instead of reading the serial IMU
    --export-latest: Write the latest sealed record to a directory and exit
    --verify: Check the digest of an exported record and exit
"""

import os
import sys
import argparse
import json
import logging
import threading
import time
from typing import Any, Dict, Optional, Tuple

import uvicorn
import yaml

from camera.camera import create_image_source
from cloud.connectivity import Connectivity
from cloud.dispatch import CloudDispatchChannel
from cloud.outbox import Outbox
from cloud.sync import QueueWorker
from errors import CaptureError, RecordIntegrityError
from evidence.capture import EvidenceCapturer
from evidence.sealer import compute_digest, require_valid
from evidence.sources import create_alarm, create_audio_source, create_location_source
from models.config import Config, SensingConfig
from models.record import TrustPacket
from ops.logging import setup_logging
from ops.process import ensure_single_instance, stop_existing_instance
from runtime.commands import ControlChannel
from runtime.context import RuntimeContext
from runtime.session import MonitoringSession
from sensing.buffer import SampleBuffer
from sensing.detector import CrashDetector
from sensing.sources import CsvMotionSource, MotionSource, SerialMotionSource
from storage.database import Database
from storage.queue import DurabilityQueue
from web.app import create_app

CLEANUP_INTERVAL_SECONDS = 86400


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        # Finally apply explicit config_path if it's not the local override file itself
        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    # Required top-level sections
    required_sections = ['sensing', 'detection', 'confirmation', 'capture', 'storage', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Validate sensing settings
    sensing = config.get('sensing') or {}
    source = sensing.get('source', 'serial')
    if source not in ('serial', 'csv'):
        return False, "sensing.source must be one of: serial, csv"
    if source == 'serial' and not sensing.get('port'):
        return False, "sensing.port is required when sensing.source is 'serial'"
    if source == 'csv' and not sensing.get('csv_path'):
        return False, "sensing.csv_path is required when sensing.source is 'csv'"
    capacity = sensing.get('buffer_capacity', 100)
    if not isinstance(capacity, int) or capacity <= 0:
        return False, "sensing.buffer_capacity must be a positive integer"

    # Validate detection settings
    detection = config.get('detection') or {}
    for key in ('sustained_window_ms', 'high_g_threshold', 'rotation_threshold'):
        if key in detection and (not _is_number(detection[key]) or detection[key] <= 0):
            return False, f"detection.{key} must be a positive number"
    for key in ('min_high_g_samples', 'min_window_samples'):
        if key in detection and (not isinstance(detection[key], int) or detection[key] <= 0):
            return False, f"detection.{key} must be a positive integer"
    if detection.get('min_window_samples', 5) > capacity:
        return False, "detection.min_window_samples cannot exceed sensing.buffer_capacity"

    # Validate confirmation settings
    confirmation = config.get('confirmation') or {}
    countdown = confirmation.get('countdown_ms', 5000)
    if not _is_number(countdown) or countdown < 0:
        return False, "confirmation.countdown_ms must be a non-negative number"
    alarm_command = confirmation.get('alarm_command')
    if alarm_command is not None and (not isinstance(alarm_command, list) or not alarm_command):
        return False, "confirmation.alarm_command must be a non-empty list of strings"

    # Validate capture settings
    capture = config.get('capture') or {}
    for key in ('grace_delay_ms', 'image_timeout_ms', 'location_timeout_ms',
                'audio_duration_ms', 'audio_timeout_ms'):
        if key in capture and (not _is_number(capture[key]) or capture[key] < 0):
            return False, f"capture.{key} must be a non-negative number"
    if capture.get('image_timeout_ms', 10000) == 0:
        return False, "capture.image_timeout_ms must be positive"

    camera = capture.get('camera') or {}
    device_id = camera.get('device_id', 0)
    if not isinstance(device_id, (int, str)):
        return False, "capture.camera.device_id must be an integer (index) or string (URL)"
    if isinstance(device_id, int) and device_id < 0:
        return False, "capture.camera.device_id integer must be non-negative"
    resolution = camera.get('resolution', [1280, 720])
    if not isinstance(resolution, list) or len(resolution) != 2:
        return False, "capture.camera.resolution must be a list of [width, height]"
    if not all(isinstance(x, int) and x > 0 for x in resolution):
        return False, "capture.camera.resolution values must be positive integers"
    quality = camera.get('jpeg_quality', 80)
    if not isinstance(quality, int) or not (1 <= quality <= 100):
        return False, "capture.camera.jpeg_quality must be an integer between 1 and 100"

    location = capture.get('location') or {}
    backend = location.get('backend', 'gpsd')
    if backend not in ('gpsd', 'static', 'none'):
        return False, "capture.location.backend must be one of: gpsd, static, none"
    if backend == 'static' and not (_is_number(location.get('lat')) and _is_number(location.get('lon'))):
        return False, "capture.location.lat and lon are required when backend is 'static'"

    # Validate storage settings
    storage = config.get('storage') or {}
    if 'local_database_path' not in storage:
        return False, "Missing storage.local_database_path"
    if not isinstance(storage['local_database_path'], str):
        return False, "storage.local_database_path must be a string"

    if 'retention_days' in storage:
        if not isinstance(storage['retention_days'], int) or storage['retention_days'] <= 0:
            return False, "storage.retention_days must be a positive integer"

    # Optional queue settings
    queue_cfg = config.get('queue') or {}
    if 'max_attempts' in queue_cfg:
        if not isinstance(queue_cfg['max_attempts'], int) or queue_cfg['max_attempts'] <= 0:
            return False, "queue.max_attempts must be a positive integer"

    # Validate log settings
    valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    if config['log_level'] not in valid_log_levels:
        return False, f"log_level must be one of: {', '.join(valid_log_levels)}"

    return True, None


def create_motion_source(sensing: SensingConfig) -> MotionSource:
    if sensing.source == "csv":
        return CsvMotionSource(sensing.csv_path, realtime=True)
    return SerialMotionSource(sensing.port, sensing.baudrate)


def build_runtime(config: Config, raw_config: Dict[str, Any]) -> RuntimeContext:
    """Wire every service from configuration. Devices are not opened here."""
    db = Database(config.storage.local_database_path)
    db.initialize()

    dispatch_cfg = config.dispatch
    connectivity = Connectivity(
        online=True,
        check_url=dispatch_cfg.connectivity_url,
        check_timeout=dispatch_cfg.connectivity_timeout_seconds,
    )
    queue = DurabilityQueue(db, max_attempts=config.queue.max_attempts)
    outbox = Outbox(CloudDispatchChannel(dispatch_cfg), queue, connectivity, database=db)

    capture_cfg = config.capture
    image_source = create_image_source(dict((raw_config.get('capture') or {}).get('camera') or {}))
    alarm = create_alarm(config.confirmation.alarm_command)
    capturer = EvidenceCapturer(
        image_source=image_source,
        location_source=create_location_source(capture_cfg.location),
        audio_source=create_audio_source(capture_cfg.audio, capture_cfg.audio_timeout_ms),
        alarm=alarm,
        config=capture_cfg,
    )

    session = MonitoringSession(
        detector=CrashDetector(config.detection),
        capturer=capturer,
        database=db,
        outbox=outbox,
        alarm=alarm,
        buffer=SampleBuffer(config.sensing.buffer_capacity),
        countdown_ms=config.confirmation.countdown_ms,
    )

    return RuntimeContext(
        config=config,
        db=db,
        connectivity=connectivity,
        outbox=outbox,
        session=session,
        motion_source=create_motion_source(config.sensing),
        commands=ControlChannel(),
        image_source=image_source,
        worker=QueueWorker(outbox, connectivity, interval_seconds=config.queue.drain_interval_seconds),
    )


def export_latest(config: Config, output_dir: str) -> int:
    db = Database(config.storage.local_database_path)
    try:
        db.initialize()
        path = db.export_latest_record(output_dir)
    finally:
        db.close()
    if path is None:
        print("No trust packet recorded yet.")
        return 1
    print(f"Exported {path}")
    return 0


def verify_file(path: str) -> int:
    """Print the verification result for an exported packet; 0 when valid."""
    try:
        with open(path, "r") as f:
            packet = TrustPacket.from_dict(json.load(f))
    except (OSError, ValueError, KeyError, TypeError) as e:
        print(f"Cannot read trust packet {path}: {e}")
        return 2

    try:
        require_valid(packet)
    except ValueError as e:
        # NaN or Infinity in a field has no canonical form
        print(f"Cannot verify trust packet {path}: {e}")
        return 2
    except RecordIntegrityError as e:
        print(f"INVALID: {e}")
        print(f"  recorded digest: {packet.digest}")
        print(f"  computed digest: {compute_digest(packet)}")
        return 1
    print(f"VALID: {packet.event_id} digest={packet.digest}")
    return 0


def run(ctx: RuntimeContext) -> None:
    """Main loop: samples, operator commands and countdown ticks on one thread."""
    session = ctx.session
    source = ctx.motion_source
    last_cleanup_time = time.time()

    while True:
        sample = source.read()
        try:
            if sample is not None:
                session.on_sample(sample)
            ctx.commands.apply(session)
            session.tick()
        except CaptureError as e:
            logging.error(f"Evidence capture failed, monitoring re-armed: {e}")

        if source.exhausted and session.countdown_remaining_ms() is None:
            logging.info("Motion replay finished")
            break

        current_time = time.time()
        if current_time - last_cleanup_time >= CLEANUP_INTERVAL_SECONDS:
            retention_days = ctx.config.storage.retention_days
            ctx.db.cleanup_old_records(retention_days=retention_days)
            last_cleanup_time = current_time

        if sample is None:
            time.sleep(0.01)


def main():
    """Main application function."""
    # Parse command-line arguments
    parser = argparse.ArgumentParser(description='Crash Guard - crash detection and evidence capture')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--replay', type=str, default=None,
                        help='Replay a recorded motion CSV instead of the serial IMU')
    parser.add_argument('--export-latest', type=str, metavar='DIR', default=None,
                        help='Export the latest trust packet to DIR and exit')
    parser.add_argument('--verify', type=str, metavar='FILE', default=None,
                        help='Verify the digest of an exported trust packet and exit')
    parser.add_argument('--no-web', action='store_true',
                        help='Do not start the control/status API')
    parser.add_argument('--kill-existing', action='store_true',
                        help='Stop a running instance before starting')
    parser.add_argument('--stop', action='store_true',
                        help='Stop a running instance and exit')
    args = parser.parse_args()

    if args.verify:
        sys.exit(verify_file(args.verify))
    if args.stop:
        sys.exit(0 if stop_existing_instance() else 1)

    # Load configuration
    raw_config = load_config(args.config)
    if args.replay:
        raw_config.setdefault('sensing', {})
        raw_config['sensing']['source'] = 'csv'
        raw_config['sensing']['csv_path'] = args.replay

    # Validate configuration
    is_valid, error_msg = validate_config(raw_config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    config = Config.from_dict(raw_config)

    # Setup logging
    setup_logging(config.log_path, config.log_level)

    if args.export_latest:
        sys.exit(export_latest(config, args.export_latest))

    if not ensure_single_instance(kill_existing=args.kill_existing):
        sys.exit(1)

    logging.info("Starting Crash Guard")
    ctx = None
    try:
        ctx = build_runtime(config, raw_config)
        ctx.motion_source.open()

        if config.web.enabled and not args.no_web:
            app = create_app(ctx.session, ctx.commands)

            def run_web_app():
                uvicorn.run(
                    app,
                    host=config.web.host,
                    port=config.web.port,
                    log_level="info",
                )

            web_thread = threading.Thread(target=run_web_app, daemon=True)
            web_thread.start()
            logging.info(f"Control API started on port {config.web.port}")

        ctx.session.start()
        ctx.worker.start_worker_thread()
        run(ctx)

    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    except RuntimeError as e:
        logging.error(f"Startup failed: {e}")
        sys.exit(1)
    finally:
        if ctx is not None:
            ctx.close()
        logging.info("Crash Guard stopped")


if __name__ == "__main__":
    main()
