"""Namespacing of fluentd label names so namespaces cannot collide."""

from __future__ import annotations

from configreloader.parser import Directive, Fragment
from configreloader.processors.base import (
    FragmentProcessor,
    ProcessingError,
    ProcessorContext,
    apply_recursively_in_place,
)
from configreloader.util import make_fluentd_safe_name, make_hash

VALID_LABEL_DIRECTIVES = frozenset({"match", "store", "filter", "parse", "source"})
VALID_LABEL_TYPES = frozenset(
    {"relabel", "null", "forward", "stdout", "copy", "kafka", "elasticsearch"}
)


def normalize_label_name(ctx: ProcessorContext, label: str) -> str:
    """Return a namespace-unique label name; ``@$...`` macros are left alone."""
    if label.startswith("@$"):
        return label
    return f"@{make_fluentd_safe_name(label)}-{make_hash(ctx.namespace, label)}"


def _normalize_label_params(directive: Directive, ctx: ProcessorContext) -> None:
    if directive.name not in VALID_LABEL_DIRECTIVES:
        return

    timeout_label = directive.param("timeout_label")
    if timeout_label:
        if not timeout_label.startswith("@"):
            raise ProcessingError(
                f"bad label name {timeout_label} for timeout_label, must start with @"
            )
        directive.set_param("timeout_label", normalize_label_name(ctx, timeout_label))

    if directive.type() not in VALID_LABEL_TYPES:
        return

    label_name = directive.param("@label")
    if label_name:
        if not label_name.startswith("@"):
            raise ProcessingError(f"bad label name {label_name} for @label, must start with @")
        directive.set_param("@label", normalize_label_name(ctx, label_name))


def _rewrite_label_tag(directive: Directive, ctx: ProcessorContext) -> None:
    if directive.name != "label":
        return
    if not directive.tag.startswith("@"):
        raise ProcessingError(f"bad label name {directive.tag} for <label>, must start with @")
    directive.tag = normalize_label_name(ctx, directive.tag)


class RewriteLabelsProcessor(FragmentProcessor):
    """Rewrites label references and <label> directives to namespaced names."""

    def process(self, fragment: Fragment) -> Fragment:
        apply_recursively_in_place(fragment, self.context, _normalize_label_params)
        apply_recursively_in_place(fragment, self.context, _rewrite_label_tag)
        return fragment