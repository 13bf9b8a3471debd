"""
Online/offline signal with change notifications.
"""

import logging
import threading
from typing import Callable, List, Optional

import requests

ConnectivityCallback = Callable[[bool], None]


class Connectivity:
    """
    Tracks whether the dispatch channel is believed reachable.

    Callbacks fire once per change, outside the internal lock, in
    registration order.
    """

    def __init__(
        self,
        online: bool = True,
        check_url: Optional[str] = None,
        check_timeout: float = 3.0,
        http: Optional[requests.Session] = None,
    ):
        self._online = online
        self.check_url = check_url
        self.check_timeout = check_timeout
        self._http = http or requests.Session()
        self._lock = threading.Lock()
        self._callbacks: List[ConnectivityCallback] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, callback: ConnectivityCallback) -> None:
        self._callbacks.append(callback)

    def set_online(self, online: bool) -> None:
        with self._lock:
            changed = online != self._online
            self._online = online
        if not changed:
            return
        logging.info(f"Connectivity {'restored' if online else 'lost'}")
        for callback in list(self._callbacks):
            callback(online)

    def check(self) -> bool:
        """
        Check reachability of check_url and update the signal.

        Any HTTP response counts as online; only transport errors mean offline.
        Without a check URL the current state is kept.
        """
        if not self.check_url:
            return self._online
        try:
            self._http.get(self.check_url, timeout=self.check_timeout, allow_redirects=False)
            online = True
        except requests.RequestException as e:
            logging.debug(f"Connectivity check failed: {e}")
            online = False
        self.set_online(online)
        return online
