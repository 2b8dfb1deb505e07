"""Sharing of logs between namespaces through bridge labels."""

from __future__ import annotations

from configreloader.parser import Directive, Fragment, ParseError, params_from_kv, parse_string
from configreloader.processors.base import (
    FragmentProcessor,
    ProcessingError,
    ProcessorContext,
    apply_recursively_in_place,
)
from configreloader.util import trim

MACRO_FROM = "$from"

_REWRITE_SHARED_TAG = """
<match {source_tag}>
  @type rewrite_tag_filter
  <rule>
    key _dummy_
    pattern /ZZ/
    invert  true
    tag kube.{namespace}.${{tag_parts[2]}}.${{tag_parts[3]}}
  </rule>
</match>
"""


def make_bridge_name(source_ns: str, dest_ns: str) -> str:
    """Return the label that carries logs from one namespace to another."""
    return f"@bridge-{source_ns}__{dest_ns}"


def extract_source_ns_from_macro(label_expr: str) -> str:
    """Return the namespace inside ``@$from(ns)``, or '' if the expression is not one."""
    if not label_expr.startswith("@" + MACRO_FROM):
        return ""
    start = label_expr.rfind("(")
    if start <= 0:
        return ""
    end = label_expr.rfind(")")
    if end <= 0:
        return ""
    return trim(label_expr[start + 1 : end])


def make_rewrite_tag_fragment(source_ns: str, dest_ns: str) -> Fragment:
    """Build the directive that retags a source namespace's logs for the destination."""
    text = _REWRITE_SHARED_TAG.format(source_tag=f"kube.{source_ns}.**", namespace=dest_ns)
    return parse_string(text)


class ShareLogsProcessor(FragmentProcessor):
    """Handles ``@type share`` stores and ``<label @$from(ns)>`` receivers."""

    def prepare(self, fragment: Fragment) -> Fragment:
        bridges = self.context.generation_context.referenced_bridges

        def collect(directive: Directive, ctx: ProcessorContext) -> None:
            if directive.name != "label":
                return
            source_ns = extract_source_ns_from_macro(directive.tag)
            if source_ns:
                bridges[make_bridge_name(source_ns, ctx.namespace)] = True

        apply_recursively_in_place(fragment, self.context, collect)
        return Fragment()

    def process(self, fragment: Fragment) -> Fragment:
        bridges = self.context.generation_context.referenced_bridges

        def rewrite_share_type(directive: Directive, ctx: ProcessorContext) -> None:
            if directive.name != "match" or directive.type() != "copy":
                return
            content = Fragment()
            for nested in directive.nested:
                if nested.name != "store" or nested.type() != "share":
                    content.append(nested)
                    continue
                dest_ns = nested.param("with_namespace")
                if not dest_ns:
                    raise ProcessingError("@type share required a with_namespace parameter")
                bridge = make_bridge_name(ctx.namespace, dest_ns)
                if bridge in bridges:
                    store = Directive(name="store")
                    store.set_param("@type", "relabel")
                    store.set_param("@label", bridge)
                    content.append(store)
            directive.nested = content

        def rewrite_from_macro(directive: Directive, ctx: ProcessorContext) -> None:
            if directive.name != "label":
                return
            source_ns = extract_source_ns_from_macro(directive.tag)
            if not source_ns:
                return
            directive.tag = make_bridge_name(source_ns, ctx.namespace)
            try:
                rewriter = make_rewrite_tag_fragment(source_ns, ctx.namespace)
            except ParseError as exc:
                raise ProcessingError(str(exc)) from exc
            directive.nested = rewriter + directive.nested

        apply_recursively_in_place(fragment, self.context, rewrite_share_type)
        apply_recursively_in_place(fragment, self.context, rewrite_from_macro)
        return fragment

    def get_validation_trailer(self, fragment: Fragment) -> Fragment:
        prefix = f"@bridge-{self.context.namespace}__"
        return Fragment(
            Directive(
                name="label",
                tag=bridge,
                nested=Fragment(
                    [Directive(name="match", tag="**", params=params_from_kv("@type", "null"))]
                ),
            )
            for bridge in sorted(self.context.generation_context.referenced_bridges)
            if bridge.startswith(prefix)
        )