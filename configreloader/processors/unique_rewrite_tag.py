"""Support for the ``retag`` plugin and the ``$tag(...)`` macro."""

from __future__ import annotations

from configreloader.parser import Directive, Fragment
from configreloader.processors.base import (
    FragmentProcessor,
    ProcessingError,
    ProcessorContext,
    apply_recursively_in_place,
)

MACRO_UNIQUE_TAG = "$tag"


def create_unique_tag(tag: str, namespace: str) -> str:
    """Place a rewritten tag inside the namespace's private tag space."""
    return f"kube.{namespace}._retag.{tag}"


def _adapt_retag_plugin(directive: Directive, ctx: ProcessorContext) -> None:
    if directive.name != "match" or directive.type() != "retag":
        return

    for rule in directive.nested:
        if rule.name != "rule":
            continue
        tag_param = rule.param("tag")
        if not tag_param:
            raise ProcessingError("retag plugin requires each rule to have a tag parameter")
        if "${tag_parts[" in tag_param or "__TAG_PARTS[" in tag_param:
            raise ProcessingError(
                "retag plugin does not yet support the ${tag_parts[n]} "
                "and __TAG_PARTS[n]__ placeholders"
            )
        rule.set_param("tag", create_unique_tag(tag_param, ctx.namespace))

    directive.set_param("@type", "rewrite_tag_filter")


def _rewrite_tag_macro(directive: Directive, ctx: ProcessorContext) -> None:
    if directive.name not in ("match", "filter"):
        return
    if not directive.tag.startswith(MACRO_UNIQUE_TAG):
        return
    if not directive.tag.endswith(")"):
        raise ProcessingError(
            "Malformed tag. To match output from the retag plugin the tag "
            "must be placed inside the $tag() macro"
        )

    target = directive.tag[len(MACRO_UNIQUE_TAG) + 1 : -1]
    directive.tag = create_unique_tag(target, ctx.namespace)
    ctx.generation_context.augment_directive_tag(directive)


class UniqueRewriteTagProcessor(FragmentProcessor):
    """Turns ``retag`` into ``rewrite_tag_filter`` with namespace-unique tags."""

    def process(self, fragment: Fragment) -> Fragment:
        apply_recursively_in_place(fragment, self.context, _adapt_retag_plugin)
        apply_recursively_in_place(fragment, self.context, _rewrite_tag_macro)
        return fragment