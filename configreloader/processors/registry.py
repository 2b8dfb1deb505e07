"""The standard chain of fragment processors."""

from __future__ import annotations

from configreloader.processors.base import FragmentProcessor
from configreloader.processors.destinations import FixDestinationsProcessor
from configreloader.processors.detect_exceptions import DetectExceptionsProcessor
from configreloader.processors.expand_tags import ExpandTagsProcessor
from configreloader.processors.extract_plugins import ExpandPluginsProcessor
from configreloader.processors.labels import ExpandLabelsProcessor
from configreloader.processors.mounted_file import MountedFileProcessor
from configreloader.processors.relabel import RewriteLabelsProcessor
from configreloader.processors.share import ShareLogsProcessor
from configreloader.processors.thisns import ExpandThisnsProcessor
from configreloader.processors.unique_rewrite_tag import UniqueRewriteTagProcessor


def default_processors() -> list[FragmentProcessor]:
    """Return fresh instances of all known processors in dependency order."""
    return [
        ExpandPluginsProcessor(),
        ExpandTagsProcessor(),
        ExpandThisnsProcessor(),
        FixDestinationsProcessor(),
        ExpandLabelsProcessor(),
        UniqueRewriteTagProcessor(),
        RewriteLabelsProcessor(),
        MountedFileProcessor(),
        ShareLogsProcessor(),
        DetectExceptionsProcessor(),
    ]