"""Rewriting of ``detect_exceptions`` filters into match/retag pairs."""

from __future__ import annotations

from configreloader.parser import Directive, Fragment, params_from_kv
from configreloader.processors.base import (
    PREFIX_PROCESSED,
    FragmentProcessor,
    ProcessorContext,
    apply_recursively_in_place,
    copy_directive,
    transform,
)
from configreloader.util import make_hash

KEY_DET_EXC = "detexc"

_COPIED_PARAMS = ("languages", "multiline_flush_interval", "max_lines", "max_bytes", "message")


def make_tag_prefix(selector: str) -> str:
    """Return the tag prefix used to route records through exception detection."""
    return make_hash(KEY_DET_EXC, selector)


def extract_selector(tag: str) -> str:
    """Return the first pattern of a tag, dropping any ``_proc.`` augmentation."""
    return tag.split(" ")[0]


def copy_param(name: str, src: Directive, dest: Directive) -> None:
    """Copy a parameter from ``src`` to ``dest`` when it has a value."""
    value = src.param(name)
    if value:
        dest.set_param(name, value)


def _is_detect_exceptions_filter(directive: Directive) -> bool:
    return directive.name == "filter" and directive.type() == "detect_exceptions"


def _rewrite(directive: Directive, parent: Fragment) -> Directive | None:
    if not _is_detect_exceptions_filter(directive):
        return copy_directive(directive, parent)

    selector = extract_selector(directive.tag)
    tag_prefix = make_tag_prefix(selector)

    rule = Directive(name="rule")
    rule.set_param("key", "_dummy")
    rule.set_param("pattern", "/ZZ/")
    rule.set_param("invert", "true")
    rule.set_param("tag", f"{tag_prefix}.{PREFIX_PROCESSED}.${{tag}}")

    rewrite_tag = Directive(
        name="match",
        tag=selector,
        params=params_from_kv("@type", "rewrite_tag_filter"),
        nested=Fragment([rule]),
    )

    detect = Directive(
        name="match",
        tag=f"{tag_prefix}.{PREFIX_PROCESSED}.{selector}",
        params=params_from_kv("@type", "detect_exceptions"),
    )
    detect.set_param("stream", "container_info")
    detect.set_param("remove_tag_prefix", tag_prefix)
    for name in _COPIED_PARAMS:
        copy_param(name, directive, detect)

    parent.extend([rewrite_tag, detect])
    return None


class DetectExceptionsProcessor(FragmentProcessor):
    """Turns ``<filter> @type detect_exceptions`` into the matching output pipeline."""

    def prepare(self, fragment: Fragment) -> Fragment:
        def mark(directive: Directive, ctx: ProcessorContext) -> None:
            if _is_detect_exceptions_filter(directive):
                ctx.generation_context.needs_processing = True

        apply_recursively_in_place(fragment, self.context, mark)
        return Fragment()

    def process(self, fragment: Fragment) -> Fragment:
        return transform(fragment, _rewrite)