"""Restrictions on output plugins and rewriting of buffer paths."""

from __future__ import annotations

from configreloader.parser import Directive, Fragment
from configreloader.processors.base import (
    FragmentProcessor,
    ProcessingError,
    ProcessorContext,
    apply_recursively_in_place,
)
from configreloader.util import make_fluentd_safe_name, make_hash

PARAM_BUFFER_PATH = "buffer_path"
MOUNTED_FILE_SOURCE_TYPE = "mounted-file"

_ALWAYS_PROHIBITED = frozenset({"exec", "exec_filter", "stdout", "rewrite_tag_filter"})


def make_safe_buffer_path(ctx: ProcessorContext, orig_buf_path: str) -> str:
    """Map a user-supplied buffer path to a private location under /var/log."""
    name = (
        f"kfo-{make_fluentd_safe_name(ctx.deployment_id)}-{ctx.namespace}-"
        f"{make_hash('', orig_buf_path)}.buf"
    )
    if ctx.buffer_mount_folder:
        return f"/var/log/{ctx.buffer_mount_folder}/{name}"
    return f"/var/log/{name}"


def prohibit_sources(directive: Directive, ctx: ProcessorContext) -> None:
    """Reject every <source> except the mounted-file kind."""
    if directive.name == "source" and directive.type() != MOUNTED_FILE_SOURCE_TYPE:
        raise ProcessingError("cannot use <source> directive")


def prohibit_types(directive: Directive, ctx: ProcessorContext) -> None:
    """Reject plugin types that namespaces may not use."""
    if directive.name not in ("match", "store", "filter"):
        return

    plugin_type = directive.type()
    forbidden = (
        plugin_type in _ALWAYS_PROHIBITED
        or (plugin_type == "detect_exceptions" and directive.name == "match")
        or (plugin_type == "file" and not ctx.allow_file)
    )
    if forbidden:
        raise ProcessingError(f"cannot use '@type {plugin_type}' in <{directive.name}>")

    if plugin_type == "fields_parser" and (
        directive.param("remove_tag_prefix") or directive.param("add_tag_prefix")
    ):
        raise ProcessingError(f"cannot modify tags using the plugin {plugin_type}")


def rewrite_buffer_path(directive: Directive, ctx: ProcessorContext) -> None:
    """Point buffer paths of outputs and file buffers to safe locations."""
    if directive.name in ("match", "store"):
        orig = directive.param(PARAM_BUFFER_PATH)
        if orig:
            directive.set_param(PARAM_BUFFER_PATH, make_safe_buffer_path(ctx, orig))
        return

    if directive.name == "buffer" and directive.type() == "file":
        path = directive.param("path")
        if path:
            directive.set_param("path", make_safe_buffer_path(ctx, path))


class FixDestinationsProcessor(FragmentProcessor):
    """Enforces allowed plugin types and isolates buffer files."""

    def process(self, fragment: Fragment) -> Fragment:
        for check in (prohibit_types, rewrite_buffer_path, prohibit_sources):
            apply_recursively_in_place(fragment, self.context, check)
        return fragment