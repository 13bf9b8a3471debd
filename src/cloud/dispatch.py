"""
Dispatch channels for the alert and the record upload.

A channel reports every attempt as a DispatchResult. UNAVAILABLE means the
far end could not be reached (connection refused, DNS failure, timeout) and
the work should wait for connectivity. FAILED means the far end answered and
refused.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests
from google.api_core import exceptions as gcp_exceptions

from models.config import DispatchConfig
from models.queue_item import DispatchResult
from models.record import TrustPacket

from .auth import get_credentials


def alert_payload(packet: TrustPacket, message: str) -> Dict[str, Any]:
    """
    Build the JSON body sent to the alert webhook.

    The text carries the trust packet ID and the coordinates (when known) so
    a responder can act on it without fetching the record.
    """
    text = f"{message} Trust packet: {packet.event_id}."
    if packet.location.is_available:
        text += f" Location: {packet.location.lat:.6f}, {packet.location.lon:.6f}."
        if packet.location.accuracy is not None:
            text += f" Accuracy: {packet.location.accuracy:.0f} m."
    return {
        "message": text,
        "eventId": packet.event_id,
        "timestamp": packet.timestamp,
        "location": packet.location.to_dict(),
        "digest": packet.digest,
    }


def record_blob_name(folder: str, packet: TrustPacket) -> str:
    return f"{folder.rstrip('/')}/trust_packet_{packet.event_id}.json"


class DispatchChannel(ABC):
    """Outbound transport for alerts and sealed records."""

    @property
    def alerts_enabled(self) -> bool:
        return True

    @property
    def uploads_enabled(self) -> bool:
        return True

    @abstractmethod
    def send_alert(self, packet: TrustPacket) -> DispatchResult:
        """Deliver the emergency alert for a sealed packet."""

    @abstractmethod
    def upload_record(self, packet: TrustPacket) -> DispatchResult:
        """Upload the full sealed packet."""


class CloudDispatchChannel(DispatchChannel):
    """
    Posts alerts to an HTTP webhook and uploads packets to Cloud Storage.

    Either half is optional: without a webhook URL alerts are disabled, and
    without a gcp section uploads are disabled.
    """

    def __init__(
        self,
        config: DispatchConfig,
        http: Optional[requests.Session] = None,
        bucket=None,
    ):
        self.config = config
        self._http = http or requests.Session()
        self._bucket = bucket

    @property
    def alerts_enabled(self) -> bool:
        return bool(self.config.alert_webhook_url)

    @property
    def uploads_enabled(self) -> bool:
        return self._bucket is not None or (
            self.config.gcp is not None and bool(self.config.gcp.bucket_name)
        )

    def send_alert(self, packet: TrustPacket) -> DispatchResult:
        url = self.config.alert_webhook_url
        if not url:
            logging.error("Alert webhook not configured")
            return DispatchResult.FAILED

        try:
            response = self._http.post(
                url,
                json=alert_payload(packet, self.config.alert_message),
                headers={"Content-Type": "application/json"},
                timeout=self.config.alert_timeout_seconds,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            logging.warning(f"Alert webhook unreachable: {e}")
            return DispatchResult.UNAVAILABLE
        except requests.RequestException as e:
            logging.error(f"Alert webhook error: {e}")
            return DispatchResult.FAILED

        if not response.ok:
            logging.warning(f"Alert webhook failed: {response.status_code} {response.text[:100]}")
            return DispatchResult.FAILED

        logging.info(f"Alert sent for {packet.event_id}")
        return DispatchResult.SUCCESS

    def _get_bucket(self):
        """Create the storage client on first use."""
        if self._bucket is None:
            from google.cloud import storage

            gcp = self.config.gcp
            credentials = get_credentials(gcp.credentials_file) if gcp.credentials_file else None
            client = storage.Client(project=gcp.project_id, credentials=credentials)
            self._bucket = client.bucket(gcp.bucket_name)
            logging.info(f"Cloud Storage bucket ready: {gcp.bucket_name}")
        return self._bucket

    def upload_record(self, packet: TrustPacket) -> DispatchResult:
        if not self.uploads_enabled:
            logging.error("Record upload not configured")
            return DispatchResult.FAILED

        folder = self.config.gcp.records_folder if self.config.gcp else "trust_packets"
        blob_name = record_blob_name(folder, packet)
        try:
            bucket = self._get_bucket()
            blob = bucket.blob(blob_name)
            blob.metadata = {"eventId": packet.event_id, "digest": packet.digest or ""}
            blob.upload_from_string(
                json.dumps(packet.to_dict()),
                content_type="application/json",
            )
        except (requests.ConnectionError, requests.Timeout, gcp_exceptions.ServiceUnavailable,
                gcp_exceptions.RetryError) as e:
            logging.warning(f"Cloud Storage unreachable: {e}")
            return DispatchResult.UNAVAILABLE
        except gcp_exceptions.GoogleAPICallError as e:
            logging.error(f"Cloud Storage rejected {blob_name}: {e}")
            return DispatchResult.FAILED
        except Exception as e:
            logging.error(f"Error uploading {blob_name}: {e}")
            return DispatchResult.FAILED

        logging.info(f"Uploaded trust packet: gs://{bucket.name}/{blob_name}")
        return DispatchResult.SUCCESS
