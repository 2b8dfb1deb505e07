"""Expansion of ``{a,b}`` alternatives and multi-pattern tags into separate directives."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable

from configreloader.parser import Directive, Fragment
from configreloader.processors.base import (
    FragmentProcessor,
    ProcessingError,
    ProcessorContext,
    apply_recursively_in_place,
)

_TAG_MATCHER = re.compile(
    r"(?:[^\s{}()]*(?:(?:(?:\{.*?\})|(?:\(.*?\)))[^\s{}()]*)+)"
    r"|(?:[^\s{}()]+(?:(?:(?:\{.*?\})|(?:\(.*?\)))[^\s{}()]*)*)",
    re.ASCII,
)

StatefulCallback = Callable[[Directive, ProcessorContext], "list[Directive]"]


def expand_first_curly_braces(tag: str) -> list[str]:
    """Expand the first ``{a,b,...}`` group of a tag into one tag per alternative."""
    open_pos = tag.find("{")
    if open_pos < 0:
        return [tag]
    if open_pos > 0 and tag[open_pos - 1] == "#":
        raise ProcessingError("Pattern #{...} is not yet supported in tag definition")
    close_pos = tag.find("}")
    if close_pos <= open_pos + 1:
        raise ProcessingError("Invalid {...} pattern in tag definition")
    terms = tag[open_pos + 1 : close_pos].split(",")
    return [tag[:open_pos] + term.strip() + tag[close_pos + 1 :] for term in terms]


def apply_recursively_with_state(
    directives: Iterable[Directive], ctx: ProcessorContext | None, callback: StatefulCallback
) -> Fragment:
    """Replace each directive, children first, with the directives ``callback`` returns."""
    directives = list(directives)
    for directive in directives:
        directive.nested = apply_recursively_with_state(directive.nested, ctx, callback)

    result = Fragment()
    for directive in directives:
        result.extend(callback(directive, ctx))
    return result


def _expand_directive(directive: Directive, ctx: ProcessorContext) -> list[Directive]:
    if directive.name not in ("match", "filter"):
        return [directive]

    expanding = _TAG_MATCHER.findall(directive.tag)
    remainders = _TAG_MATCHER.split(directive.tag)
    if "".join(remainders).strip():
        raise ProcessingError(f"Malformed tag {directive.tag}. Cannot parse it")

    processing: list[str] = []
    while len(expanding) > len(processing):
        processing = expanding
        expanding = [tag for item in processing for tag in expand_first_curly_braces(item)]

    if len(expanding) == 1:
        return [directive]

    expanded = []
    for tag in expanding:
        clone = directive.clone()
        clone.tag = tag
        expanded.append(clone)
    return expanded


def _reject_braces(directive: Directive, ctx: ProcessorContext) -> None:
    if directive.name in ("match", "filter") and "{" in directive.tag:
        raise ProcessingError("Processing of {...} pattern in tags is disabled")


class ExpandTagsProcessor(FragmentProcessor):
    """Splits directives whose tags hold several patterns or ``{...}`` alternatives."""

    def process(self, fragment: Fragment) -> Fragment:
        if self.context.allow_tag_expansion:
            return self.process_expanding_tags(fragment)
        return self.process_not_expanding_tags(fragment)

    def process_expanding_tags(self, fragment: Fragment) -> Fragment:
        """Replace each <match>/<filter> by one directive per expanded tag."""
        return apply_recursively_with_state(fragment, self.context, _expand_directive)

    def process_not_expanding_tags(self, fragment: Fragment) -> Fragment:
        """Reject any ``{...}`` pattern in tags."""
        apply_recursively_in_place(fragment, self.context, _reject_braces)
        return fragment