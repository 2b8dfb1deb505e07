"""Helpers shared by the configuration parser, validator and processors."""

from __future__ import annotations

import hashlib
import logging
import os
import re
import subprocess
import unicodedata
from collections.abc import Mapping

logger = logging.getLogger(__name__)

MACRO_LABELS = "$labels"
CONTAINER_LABEL = "_container"

_FILE_MODE = 0o664
_DIR_MODE = 0o775

_VALID_LABEL_NAME = re.compile(r"([A-Za-z0-9][-A-Za-z0-9/_.]*)?[A-Za-z0-9]")
_VALID_LABEL_VALUE = re.compile(r"(([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9])?")


def trim(s: str) -> str:
    """Strip leading and trailing whitespace."""
    return s.strip()


def _is_safe_char(ch: str) -> bool:
    if ch in "-_":
        return True
    category = unicodedata.category(ch)
    return category.startswith("L") or category == "Nd"


def make_fluentd_safe_name(s: str) -> str:
    """Replace every character that is not a letter, digit, '-' or '_' with '-'."""
    return "".join(ch if _is_safe_char(ch) else "-" for ch in s)


def to_ruby_map_literal(labels: Mapping[str, str] | None) -> str:
    """Render a mapping as a Ruby hash literal with keys in sorted order."""
    if not labels:
        return "{}"
    body = ",".join(f"'{key}'=>'{labels[key]}'" for key in sorted(labels))
    return "{" + body + "}"


def make_hash(owner: str, value: str) -> str:
    """Return a 40-character hex digest of ``owner:value``."""
    digest = hashlib.sha256(f"{owner}:{value}".encode()).digest()
    return digest[:20].hex()


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data


def exec_and_get_output(cmd: str, timeout: float, *args: str) -> str:
    """Run a command and return its combined stdout and stderr.

    Raises ``subprocess.CalledProcessError`` on a non-zero exit,
    ``subprocess.TimeoutExpired`` when the process had to be killed, and
    ``OSError`` when it could not be started. Both subprocess errors carry
    the captured output in their ``output`` attribute.
    """
    argv = [cmd, *args]
    try:
        completed = subprocess.run(
            argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        raise subprocess.TimeoutExpired(argv, timeout, output=_decode(exc.output)) from None

    output = _decode(completed.stdout)
    if completed.returncode != 0:
        raise subprocess.CalledProcessError(completed.returncode, argv, output=output)
    return output


def write_string_to_file(filename: str | os.PathLike[str], data: str) -> None:
    """Write ``data`` to ``filename``, creating it with mode 0664 if needed."""
    fd = os.open(filename, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _FILE_MODE)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(data)


def trim_trailing_comment(line: str) -> str:
    """Drop a trailing ``# comment`` unless the line starts with '#'."""
    index = line.find("#")
    if index > 0:
        return trim(line[:index])
    return trim(line)


def parse_tag_to_labels(tag: str) -> dict[str, str]:
    """Parse a ``$labels(k=v, ...)`` macro into a mapping.

    Raises ``ValueError`` for malformed macros, names or values.
    """
    if not tag.startswith(MACRO_LABELS + "(") and not tag.endswith(")"):
        raise ValueError(f"bad $labels macro use: {tag}")

    labels_only = tag[len(MACRO_LABELS) + 1 : len(tag) - 1]
    result: dict[str, str] = {}

    for record in labels_only.split(","):
        if record == "":
            continue
        pair = record.split("=")
        if len(pair) != 2:
            raise ValueError(f"bad label definition: {record}")

        key = trim(pair[0])
        if key != CONTAINER_LABEL and not _VALID_LABEL_NAME.fullmatch(key):
            raise ValueError(f"bad label name: {key}")

        value = trim(pair[1])
        if not _VALID_LABEL_VALUE.fullmatch(value):
            raise ValueError(f"bad label value: {value}")
        if key == CONTAINER_LABEL and value == "":
            raise ValueError(f"value for {CONTAINER_LABEL} cannot be empty string")

        result[key] = value

    if not result:
        raise ValueError("at least one label must be given")
    return result


def match_labels(
    labels: Mapping[str, str] | None,
    cont_labels: Mapping[str, str],
    cont_name: str,
) -> bool:
    """Tell whether a container satisfies every label in ``labels``."""
    for key, expected in (labels or {}).items():
        actual = cont_name if key == CONTAINER_LABEL else cont_labels.get(key, "")
        if expected != actual:
            return False
    return True


def ensure_dir_exists(directory: str | os.PathLike[str]) -> None:
    """Create ``directory`` (one level only) when it does not exist yet."""
    if os.path.exists(directory):
        return
    try:
        os.mkdir(directory, _DIR_MODE)
    except OSError:
        logger.error("Unexpected error occurred with output config directory: %s", directory)
        raise