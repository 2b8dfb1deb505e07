"""Shared machinery for rewriting namespace configuration fragments."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from configreloader.parser import Directive, Fragment

PREFIX_PROCESSED = "_proc"


class ProcessingError(ValueError):
    """Raised when a fragment cannot be rewritten for a namespace."""


@dataclass
class Mount:
    """A volume mount of a container that is backed by the host."""

    path: str = ""
    volume_name: str = ""
    sub_path: str = ""


@dataclass
class MiniContainer:
    """The facts about a running container that the processors need."""

    pod_id: str = ""
    pod_name: str = ""
    image: str = ""
    container_id: str = ""
    name: str = ""
    node_name: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    host_mounts: list[Mount] = field(default_factory=list)


def augment_tag(orig: str) -> str:
    """Extend a tag so that it also matches the already processed stream."""
    if orig == "":
        return ""
    return f"{orig} {PREFIX_PROCESSED}.{orig}"


@dataclass
class GenerationContext:
    """State shared by all processors and namespaces during one generation run."""

    referenced_bridges: dict[str, bool] = field(default_factory=dict)
    needs_processing: bool = False
    plugins: dict[str, Directive] = field(default_factory=dict)

    def augment_directive_tag(self, directive: Directive) -> None:
        """Augment the directive's tag when post-processing is needed."""
        if self.needs_processing:
            directive.tag = augment_tag(directive.tag)


@dataclass
class ProcessorContext:
    """The environment a processor works in for a single namespace."""

    namespace: str = ""
    namespace_labels: dict[str, str] = field(default_factory=dict)
    allow_file: bool = False
    deployment_id: str = ""
    mini_containers: list[MiniContainer] = field(default_factory=list)
    kubelet_root: str = ""
    buffer_mount_folder: str = ""
    generation_context: GenerationContext = field(default_factory=GenerationContext)
    allow_tag_expansion: bool = False


Callback = Callable[[Directive, ProcessorContext], None]
TransformFunc = Callable[[Directive, Fragment], "Directive | None"]


class FragmentProcessor:
    """Rewrites a namespace's configuration; subclasses override what they need."""

    def __init__(self, context: ProcessorContext | None = None) -> None:
        self.context = context

    def set_context(self, ctx: ProcessorContext) -> None:
        """Bind the processor to the context it runs in."""
        self.context = ctx

    def prepare(self, fragment: Fragment) -> Fragment:
        """Return directives destined for the main fluentd file."""
        return Fragment()

    def process(self, fragment: Fragment) -> Fragment:
        """Return the rewritten fragment; the default leaves it unchanged."""
        return fragment

    def get_validation_trailer(self, fragment: Fragment) -> Fragment:
        """Return directives that make the namespace config valid in isolation."""
        return Fragment()


def _do_transform(fragment: Iterable[Directive], func: TransformFunc, result: Fragment) -> None:
    for child in fragment:
        new_child = func(child, result)
        if child.nested and new_child is not None:
            nested_result = Fragment()
            _do_transform(child.nested, func, nested_result)
            new_child.nested = nested_result


def transform(fragment: Iterable[Directive], func: TransformFunc) -> Fragment:
    """Build a new fragment by letting ``func`` place each directive into its parent.

    ``func`` appends whatever it wants to the parent list and returns the
    directive whose children should be transformed, or None to drop them.
    """
    result = Fragment()
    _do_transform(fragment, func, result)
    return result


def copy_directive(directive: Directive, parent: Fragment) -> Directive:
    """Append a clone of ``directive`` to ``parent`` and return the clone."""
    clone = directive.clone()
    parent.append(clone)
    return clone


def apply_recursively_in_place(
    directives: Iterable[Directive], ctx: ProcessorContext | None, callback: Callback
) -> None:
    """Call ``callback`` on every directive, level by level, siblings first."""
    directives = list(directives)
    for directive in directives:
        callback(directive, ctx)
    for directive in directives:
        apply_recursively_in_place(directive.nested, ctx, callback)


def process(
    fragment: Fragment, ctx: ProcessorContext | None, processors: Iterable[FragmentProcessor]
) -> Fragment:
    """Chain the processors, each one working on the previous one's output."""
    if ctx is None:
        raise ProcessingError("cannot work without a processor context")
    result = fragment
    for proc in processors:
        proc.set_context(ctx)
        result = proc.process(result)
    return result


def prepare(
    fragment: Fragment, ctx: ProcessorContext | None, processors: Iterable[FragmentProcessor]
) -> Fragment:
    """Concatenate what every processor prepares for the main file."""
    if ctx is None:
        raise ProcessingError("cannot work without a processor context")
    result = Fragment()
    for proc in processors:
        proc.set_context(ctx)
        result.extend(proc.prepare(fragment))
    return result


def get_validation_trailer(
    fragment: Fragment, ctx: ProcessorContext | None, processors: Iterable[FragmentProcessor]
) -> Fragment:
    """Concatenate the validation trailers of every processor."""
    result = Fragment()
    if ctx is None:
        return result
    for proc in processors:
        proc.set_context(ctx)
        result.extend(proc.get_validation_trailer(fragment))
    return result