"""Validate generated configurations by running fluentd against them."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile

from configreloader.util import exec_and_get_output, trim

logger = logging.getLogger(__name__)

JUST_EXIT_PLUGIN_DIRECTIVE = """
# extreme validation
<source>
  @type just_exit
</source>
"""


class ValidationError(Exception):
    """Raised when fluentd rejects a configuration or cannot be run."""


def _strip_unprintable(text: str) -> str:
    start = 0
    end = len(text)
    while start < end and not text[start].isprintable():
        start += 1
    while end > start and not text[end - 1].isprintable():
        end -= 1
    return text[start:end]


class Validator:
    """Checks configurations with a fluentd command line such as ``fluentd -p plugins``."""

    def __init__(self, command: str, timeout: float = 30.0) -> None:
        parts = trim(command).split(" ")
        self.command = parts[0]
        self.args = parts[1:]
        self.timeout = timeout

    def _run_on_config(self, config: str, namespace: str, prefix: str, flags: list[str]) -> None:
        try:
            with tempfile.NamedTemporaryFile(
                mode="w", prefix=prefix + namespace, delete=False, encoding="utf-8"
            ) as handle:
                path = handle.name
                handle.write(config)
        except OSError as exc:
            logger.error("error writing config to temp file for namespace %s: %s", namespace, exc)
            raise

        try:
            try:
                out = exec_and_get_output(
                    self.command, self.timeout, *self.args, *flags, "-c", path
                )
                failure = None
            except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as exc:
                out = getattr(exc, "output", None) or ""
                failure = exc
        finally:
            os.remove(path)

        out = _strip_unprintable(out)
        logger.debug("Checked config for namespace %s with fluentd and got: %s", namespace, out)
        if failure is not None:
            logger.error(
                "error running validation command for namespace %s: %s", namespace, failure
            )
            raise ValidationError(out) from failure

    def validate_config(self, config: str, namespace: str) -> None:
        """Validate with ``--dry-run``; raises ``ValidationError`` with fluentd's output."""
        self._run_on_config(config, namespace, "validate-", ["--dry-run"])

    def validate_config_extremely(self, config: str, namespace: str) -> None:
        """Start fluentd for real with a plugin that exits right away."""
        self._run_on_config(
            config + JUST_EXIT_PLUGIN_DIRECTIVE,
            namespace,
            "validate-ext-",
            ["-q", "--no-supervisor"],
        )

    def ensure_usable(self) -> str:
        """Check that the command runs; returns the reported version."""
        try:
            out = exec_and_get_output(self.command, self.timeout, "--version")
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as exc:
            raise ValidationError(f"invalid fluentd binary used {self.command}: {exc}") from exc

        version = trim(out)
        logger.info("Validator using %s at version %s", self.command, version)
        return version