# Where: services/storefront/services/config_reloader.py
# What: Hot-reload watcher for runtime config files.
# Why: Toggle maintenance mode and allow-lists without restarting the gateway.
"""
Config reloader for hot reload functionality.

Periodically reloads sales_channels.yml and routing.yml when files change.
Works in conjunction with SalesChannelRegistry and RouteMatcher.
"""

import logging
import os
import threading
from typing import Callable, Dict, Optional

logger = logging.getLogger("storefront.config_reloader")


class ConfigFileWatcher:
    """
    Watches a single config file for changes using modification time.
    """

    def __init__(self, file_path: str):
        """
        Args:
            file_path: Path to the config file to watch
        """
        self.file_path = file_path
        self._last_mtime: Optional[float] = None
        self._lock = threading.RLock()

    def has_changed(self) -> bool:
        """
        Check if the file has been modified since last check.

        A file that appears after startup counts as a change.
        """
        try:
            current_mtime = os.stat(self.file_path).st_mtime
        except FileNotFoundError:
            logger.debug(f"Config file not found: {self.file_path}")
            return False
        except OSError as e:
            logger.error(f"Error checking config file {self.file_path}: {e}")
            return False

        with self._lock:
            if self._last_mtime is None or current_mtime != self._last_mtime:
                self._last_mtime = current_mtime
                return True
            return False

    def update_mtime(self) -> None:
        """
        Update the last known modification time.
        """
        with self._lock:
            try:
                self._last_mtime = os.stat(self.file_path).st_mtime
            except OSError:
                self._last_mtime = None


class ConfigReloader:
    """
    Manages hot reloading of gateway configuration files.

    Each watched file has a reload callback that is invoked from a background
    thread when the file's modification time changes.
    """

    def __init__(self, interval: float = 2.0, enabled: bool = True, lock_timeout: float = 5.0):
        self._enabled = enabled
        self._interval = max(0.5, interval)  # Minimum 0.5s
        self._lock_timeout = lock_timeout

        self._watchers: Dict[str, ConfigFileWatcher] = {}
        self._callbacks: Dict[str, Callable[[], None]] = {}

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._reload_lock = threading.RLock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def watch(self, file_path: str, callback: Callable[[], None]) -> None:
        """
        Register a file and the callback that reloads it.

        The current modification time is recorded, so only later edits
        trigger the callback.
        """
        watcher = ConfigFileWatcher(file_path)
        watcher.update_mtime()
        with self._reload_lock:
            self._watchers[file_path] = watcher
            self._callbacks[file_path] = callback

    def start(self) -> None:
        """
        Start the background reloader thread.
        """
        if not self._enabled:
            logger.info("Config reloader is disabled")
            return

        if self.is_running:
            logger.warning("Config reloader already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, daemon=True, name="config-reloader")
        self._thread.start()
        logger.info(
            f"Config reloader started (interval={self._interval}s, files={len(self._watchers)})"
        )

    def stop(self) -> None:
        """
        Stop the background reloader thread.
        """
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=self._lock_timeout + 1.0)
            logger.info("Config reloader stopped")
        self._thread = None

    def _run_loop(self) -> None:
        """
        Main loop for periodic config checking.
        """
        while not self._stop_event.is_set():
            try:
                self.check_and_reload()
            except Exception as e:
                logger.error(f"Error in config reload loop: {e}")

            self._stop_event.wait(timeout=self._interval)

    def check_and_reload(self) -> int:
        """
        Check all watched files and trigger reload callbacks if changed.

        Returns:
            Number of callbacks that completed successfully
        """
        reloaded = 0
        with self._reload_lock:
            for file_path, watcher in self._watchers.items():
                if not watcher.has_changed():
                    continue
                logger.info(f"Detected changes in {file_path}, reloading...")
                try:
                    self._callbacks[file_path]()
                    reloaded += 1
                    logger.info(f"Reloaded {file_path} successfully")
                except Exception as e:
                    logger.error(f"Error reloading {file_path}: {e}")
        return reloaded
