"""Virtual output plugins defined in the admin namespace and their expansion."""

from __future__ import annotations

from configreloader.parser import Directive, Fragment
from configreloader.processors.base import (
    FragmentProcessor,
    GenerationContext,
    ProcessorContext,
    apply_recursively_in_place,
)

DIR_PLUGIN = "plugin"


def extract_plugins(generation_context: GenerationContext, fragment: Fragment) -> Fragment:
    """Move top-level ``<plugin>`` directives into the context, keyed by their tag.

    Returns the remaining directives.
    """
    plugins: dict[str, Directive] = {}
    remaining = Fragment()
    for directive in fragment:
        if directive.name == DIR_PLUGIN:
            plugins[directive.tag] = directive
        else:
            remaining.append(directive)
    generation_context.plugins = plugins
    return remaining


class ExpandPluginsProcessor(FragmentProcessor):
    """Replaces references to virtual plugins in outputs with their definitions."""

    def process(self, fragment: Fragment) -> Fragment:
        plugins = self.context.generation_context.plugins
        if not plugins:
            return fragment

        def expand(directive: Directive, ctx: ProcessorContext) -> None:
            if directive.name not in ("match", "store"):
                return
            replacement = plugins.get(directive.type())
            if replacement is None:
                return

            directive.nested = replacement.nested.clone()
            for key, value in replacement.params.items():
                if key not in directive.params:
                    directive.params[key] = value.clone()
            directive.set_param("@type", replacement.type())
            directive.params.pop("type", None)

        apply_recursively_in_place(fragment, self.context, expand)
        return fragment