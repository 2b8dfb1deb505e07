"""Trigger a graceful configuration reload in a running fluentd."""

from __future__ import annotations

import logging
import urllib.error
import urllib.request
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class Reloader:
    """Notifies fluentd through its RPC endpoint; a reloader without a port does nothing."""

    port: int | None = None
    timeout: float = 30.0

    def reload_configuration(self) -> None:
        """Ask fluentd to reload; failures are logged, not raised."""
        if self.port is None:
            logger.info("Not reloading fluentd (fake or filesystem datasource used)")
            return

        logger.info(
            "Reloading fluentd configuration gracefully via POST to /api/config.gracefulReload"
        )
        url = f"http://127.0.0.1:{self.port}/api/config.gracefulReload"
        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as response:
                status = response.status
                body = response.read().decode(errors="replace") if status != 200 else ""
        except urllib.error.HTTPError as exc:
            status = exc.code
            body = exc.read().decode(errors="replace")
        except OSError as exc:
            logger.error("fluentd config.gracefulReload request failed: %s", exc)
            return

        if status != 200:
            logger.error(
                "fluentd config.gracefulReload endpoint returned statuscode %s; response: %s",
                status,
                body,
            )