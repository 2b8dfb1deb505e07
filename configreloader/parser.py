"""Parser and renderer for fluentd configuration fragments."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from configreloader.util import trim, trim_trailing_comment

_RE_COMMENT = re.compile(r"\s*#", re.ASCII)
_RE_START_DIRECTIVE = re.compile(r"<([^/\s]+)(\s+(.*))?>\s*", re.ASCII)
_RE_END_DIRECTIVE = re.compile(r"</(.*)>\s*", re.ASCII)
_RE_PARAM = re.compile(r"([^<\s]+)(\s+(.+))?", re.ASCII)


class ParseError(ValueError):
    """Raised when a configuration fragment is syntactically invalid."""


@dataclass
class Param:
    """A name/value pair inside a directive."""

    name: str
    value: str = ""

    def clone(self) -> Param:
        return Param(self.name, self.value)

    def __str__(self) -> str:
        return f"{self.name} {self.value}\n"


class Fragment(list):
    """An ordered list of directives."""

    def clone(self) -> Fragment:
        return Fragment(directive.clone() for directive in self)

    def __add__(self, other: Iterable[Directive]) -> Fragment:
        return Fragment(list.__add__(self, list(other)))

    def __str__(self) -> str:
        return "".join(directive.render(0) + "\n" for directive in self)


@dataclass
class Directive:
    """A fluentd directive such as ``<match tag> ... </match>``."""

    name: str
    tag: str = ""
    params: dict[str, Param] = field(default_factory=dict)
    nested: Fragment = field(default_factory=Fragment)

    def type(self) -> str:
        """Return the ``@type`` (or legacy ``type``) value, or ''."""
        param = self.params.get("@type") or self.params.get("type")
        return param.value if param is not None else ""

    def clone(self) -> Directive:
        return Directive(
            name=self.name,
            tag=self.tag,
            params={key: value.clone() for key, value in self.params.items()},
            nested=Fragment(child.clone() for child in self.nested),
        )

    def param_verbatim(self, name: str) -> str:
        param = self.params.get(name)
        return param.value if param is not None else ""

    def param(self, name: str) -> str:
        return trim_trailing_comment(self.param_verbatim(name))

    def set_param(self, name: str, value: str) -> None:
        """Set a parameter; an empty value removes it."""
        if value == "":
            self.params.pop(name, None)
            return
        existing = self.params.get(name)
        if existing is None:
            self.params[name] = Param(name, value)
        else:
            existing.value = value

    def render(self, indent: int) -> str:
        pad = " " * indent
        tag = f" {self.tag}" if self.tag else ""
        lines = [f"{pad}<{self.name}{tag}>\n"]
        lines.extend(" " * (indent + 2) + str(self.params[key]) for key in sorted(self.params))
        if self.params and self.nested:
            lines.append("\n")
        lines.extend(child.render(indent + 2) for child in self.nested)
        lines.append(f"{pad}</{self.name}>\n")
        return "".join(lines)

    def __str__(self) -> str:
        return self.render(0)


def params_from_kv(*args: str) -> dict[str, Param]:
    """Build params from alternating names and values; a lone last name is ignored."""
    pairs = zip(args[0::2], args[1::2])
    return {key: Param(key, value) for key, value in pairs}


def parse_string(s: str) -> Fragment:
    """Parse configuration text into a fragment, raising ``ParseError`` on bad syntax."""
    result = Fragment()
    stack: list[Directive] = []

    for raw_line in s.split("\n"):
        if raw_line == "" or _RE_COMMENT.match(raw_line):
            continue

        line = trim(raw_line)

        start = _RE_START_DIRECTIVE.match(line)
        if start:
            directive = Directive(name=trim(start.group(1)), tag=trim(start.group(3) or ""))
            if stack:
                stack[-1].nested.append(directive)
            else:
                result.append(directive)
            stack.append(directive)
            continue

        end = _RE_END_DIRECTIVE.match(line)
        if end:
            if not stack:
                raise ParseError("syntax error")
            if stack[-1].name != end.group(1):
                raise ParseError("mismatched tags")
            stack.pop()
            continue

        param_match = _RE_PARAM.match(line)
        if param_match:
            name = param_match.group(1)
            value = param_match.group(3) or ""
            if name in ("type", "@type"):
                value = trim_trailing_comment(value)
            if not stack:
                raise ParseError(f"syntax error: dangling parameter {name}")
            stack[-1].params[name] = Param(name, value)

    if stack:
        raise ParseError("syntax error: incomplete directive")

    return result