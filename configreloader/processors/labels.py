"""Expansion of the ``$labels(...)`` macro into label-based tag routing."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence

from configreloader.parser import Directive, Fragment, parse_string
from configreloader.processors.base import (
    FragmentProcessor,
    ProcessingError,
    ProcessorContext,
    apply_recursively_in_place,
)
from configreloader.util import CONTAINER_LABEL, MACRO_LABELS, parse_tag_to_labels

_RE_SAFE = re.compile(r"[.-]|^$")

_RETAG_TEMPLATE = """
<filter {pattern}>
  @type record_transformer
  enable_ruby true
  <record>
    kubernetes_pod_label_values {values}
  </record>
</filter>

<match {pattern}>
  @type rewrite_tag_filter
  <rule>
    key      kubernetes_pod_label_values
    pattern  ^(.+)$
    tag     ${{tag}}._labels.$1
  </rule>
</match>

<filter {pattern}.**>
  @type record_transformer
  remove_keys kubernetes_pod_label_values
</filter>
"""


def safe_label_value(s: str) -> str:
    """Replace '.', '-' and the empty string with '_', which fluentd treats plainly."""
    return _RE_SAFE.sub("_", s)


def make_tag_from_filter(
    ns: str, sorted_label_names: Sequence[str], label_names: Mapping[str, str]
) -> str:
    """Build the routing tag that selects records carrying the given labels."""
    container = label_names.get(CONTAINER_LABEL)
    if container is not None:
        prefix = f"kube.{ns}.*.{container}._labels."
    else:
        prefix = f"kube.{ns}.*.*._labels."

    parts = []
    last = len(sorted_label_names) - 1
    for index, label in enumerate(sorted_label_names):
        if label == CONTAINER_LABEL:
            continue
        value = label_names.get(label)
        parts.append(safe_label_value(value) if value is not None else "*")
        if index < last:
            parts.append(".")
    return prefix + "".join(parts)


def _uses_labels_macro(directive: Directive) -> bool:
    return directive.name in ("filter", "match") and directive.tag.startswith(MACRO_LABELS)


def _render_retag_directives(namespace: str, labels: Sequence[str]) -> str:
    values = ".".join(
        f"${{record.dig('kubernetes','labels','{label}')&.gsub(/[.-]/, '_') || '_'}}"
        for label in labels
    )
    return _RETAG_TEMPLATE.format(pattern=f"kube.{namespace}.*.*", values=values)


class ExpandLabelsProcessor(FragmentProcessor):
    """Rewrites ``$labels(...)`` tags and adds directives that tag records by label."""

    def process(self, fragment: Fragment) -> Fragment:
        referenced: set[str] = set()

        def collect(directive: Directive, ctx: ProcessorContext) -> None:
            if not _uses_labels_macro(directive):
                return
            try:
                labels = parse_tag_to_labels(directive.tag)
            except ValueError as exc:
                raise ProcessingError(str(exc)) from exc
            referenced.update(labels)

        apply_recursively_in_place(fragment, self.context, collect)
        if not referenced:
            return fragment

        referenced.discard(CONTAINER_LABEL)
        sorted_names = sorted(referenced)

        def replace(directive: Directive, ctx: ProcessorContext) -> None:
            if not _uses_labels_macro(directive):
                return
            try:
                labels = parse_tag_to_labels(directive.tag)
            except ValueError:
                return
            directive.tag = make_tag_from_filter(ctx.namespace, sorted_names, labels)
            ctx.generation_context.augment_directive_tag(directive)

        apply_recursively_in_place(fragment, self.context, replace)

        extra = parse_string(_render_retag_directives(self.context.namespace, sorted_names))
        return extra + fragment