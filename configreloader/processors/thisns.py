"""Expansion of the ``$thisns`` macro and enforcement of namespace tags."""

from __future__ import annotations

from configreloader.parser import Directive, Fragment
from configreloader.processors.base import (
    FragmentProcessor,
    ProcessingError,
    ProcessorContext,
    apply_recursively_in_place,
)
from configreloader.processors.unique_rewrite_tag import MACRO_UNIQUE_TAG
from configreloader.util import MACRO_LABELS

MACRO_THISNS = "$thisns"


def _expand_thisns(directive: Directive, ctx: ProcessorContext) -> None:
    if directive.name not in ("match", "filter"):
        return

    good_prefix = f"kube.{ctx.namespace}"

    if directive.tag in ("**", MACRO_THISNS):
        directive.tag = good_prefix + ".**"
        ctx.generation_context.augment_directive_tag(directive)
        return

    if directive.tag.startswith(MACRO_THISNS):
        directive.tag = good_prefix + directive.tag[len(MACRO_THISNS) :]
        ctx.generation_context.augment_directive_tag(directive)
        return

    if directive.tag.startswith(MACRO_LABELS) or directive.tag.startswith(MACRO_UNIQUE_TAG):
        return

    expanded = directive.tag.replace(MACRO_THISNS, good_prefix)
    if not expanded.startswith(good_prefix + "."):
        raise ProcessingError(
            f"bad tag for <{directive.name}>: {directive.tag}. "
            f"Tag must start with **, $thisns or {ctx.namespace}"
        )


class ExpandThisnsProcessor(FragmentProcessor):
    """Rewrites ``**`` and ``$thisns`` tags into the namespace's own tag space."""

    def process(self, fragment: Fragment) -> Fragment:
        apply_recursively_in_place(fragment, self.context, _expand_thisns)
        return fragment