"""Tailing of log files that containers write to mounted empty-dir volumes."""

from __future__ import annotations

import posixpath
from collections.abc import Mapping
from dataclasses import dataclass, field

from configreloader.parser import Directive, Fragment, params_from_kv
from configreloader.processors.base import (
    FragmentProcessor,
    MiniContainer,
    Mount,
    ProcessingError,
)
from configreloader.util import (
    make_hash,
    match_labels,
    parse_tag_to_labels,
    to_ruby_map_literal,
    trim_trailing_comment,
)

MOUNTED_FILE_SOURCE_TYPE = "mounted-file"


@dataclass
class ContainerFile:
    """What a ``<source> @type mounted-file`` directive asks for."""

    labels: dict[str, str] | None = None
    added_labels: dict[str, str] | None = None
    path: str = ""
    parse: Directive | None = None


def is_relevant(directive: Directive) -> bool:
    """Tell whether a directive is a mounted-file source."""
    return directive.name == "source" and directive.type() == MOUNTED_FILE_SOURCE_TYPE


def matches(spec: ContainerFile, mini: MiniContainer) -> bool:
    """Tell whether a container carries every label the spec asks for."""
    return match_labels(spec.labels, mini.labels, mini.name)


def merge_maps(
    base: Mapping[str, str] | None, more: Mapping[str, str] | None
) -> dict[str, str]:
    """Merge two mappings; keys already in ``base`` are never overridden."""
    result = dict(base or {})
    for key, value in (more or {}).items():
        result.setdefault(key, value)
    return result


def _join_path(*elements: str) -> str:
    present = [element for element in elements if element]
    if not present:
        return ""
    joined = posixpath.normpath("/".join(present))
    if joined.startswith("//"):
        joined = "/" + joined.lstrip("/")
    return joined


def _make_default_parse_directive() -> Directive:
    return Directive(name="parse", params=params_from_kv("@type", "none"))


def _parse_labels(value: str) -> dict[str, str]:
    try:
        return parse_tag_to_labels(f"$labels({value})")
    except ValueError as exc:
        raise ProcessingError(str(exc)) from exc


class MountedFileProcessor(FragmentProcessor):
    """Replaces mounted-file sources with tail sources in the main configuration."""

    def prepare(self, fragment: Fragment) -> Fragment:
        result = Fragment()
        for directive in fragment:
            if not is_relevant(directive):
                continue

            labels_value = directive.param("labels")
            if not labels_value:
                raise ProcessingError(
                    f"'labels' is required when using @type {MOUNTED_FILE_SOURCE_TYPE}"
                )
            labels = _parse_labels(trim_trailing_comment(labels_value))

            added_value = trim_trailing_comment(directive.param("add_labels"))
            added_labels = _parse_labels(added_value) if added_value else None

            path = directive.param("path")
            if not path:
                raise ProcessingError(
                    f"'path' is required when using @type {MOUNTED_FILE_SOURCE_TYPE}"
                )

            if len(directive.nested) >= 2:
                raise ProcessingError(
                    "One or zero <parse> directives required when using "
                    f"@type {MOUNTED_FILE_SOURCE_TYPE}, found {len(directive.nested)}"
                )
            parse = directive.nested[0] if directive.nested else None

            spec = ContainerFile(
                labels=labels, added_labels=added_labels, path=path, parse=parse
            )
            result.extend(self.convert_to_fragment(spec))
        return result

    def convert_to_fragment(self, container_file: ContainerFile) -> Fragment:
        """Produce a tail source and metadata filter for every matching container."""
        ctx = self.context
        result = Fragment()
        for container in ctx.mini_containers:
            if not matches(container_file, container):
                continue
            for mount in container.host_mounts:
                if not container_file.path.startswith(mount.path):
                    continue

                host_path = self._make_host_path(container_file, mount, container)
                pos = make_hash(
                    ctx.deployment_id, f"{container.pod_id}-{container.name}-{host_path}"
                )
                tag = f"kube.{ctx.namespace}.{container.pod_name}.{container.name}-{pos}"

                source = Directive(name="source")
                source.set_param("@type", "tail")
                source.set_param("path", host_path)
                source.set_param("read_from_head", "true")
                source.set_param("tag", tag)
                source.set_param("pos_file", f"/var/log/kfotail-{pos}.pos")
                parse = container_file.parse or _make_default_parse_directive()
                source.nested = Fragment([parse])

                result.append(source)
                result.append(self._make_metadata_directive(tag, container, container_file))
                break
        return result

    def _make_metadata_directive(
        self, tag: str, container: MiniContainer, container_file: ContainerFile
    ) -> Directive:
        ctx = self.context
        record = Directive(name="record")
        result = Directive(name="filter", tag=tag, nested=Fragment([record]))
        result.set_param("@type", "record_modifier")
        result.set_param("remove_keys", "dummy_")

        kubernetes = to_ruby_map_literal(
            {
                "container_name": container.name,
                "container_image": container.image,
                "namespace_name": ctx.namespace,
                "pod_name": container.pod_name,
                "pod_id": container.pod_id,
                "host": container.node_name,
            }
        )
        docker = to_ruby_map_literal({"container_id": container.container_id})
        labels = to_ruby_map_literal(merge_maps(container.labels, container_file.added_labels))
        statements = [
            f"record['stream']='{container_file.path}'",
            f"record['kubernetes']={kubernetes}",
            f"record['docker']={docker}",
            f"record['container_info']='{make_hash(container.pod_id, container_file.path)}'",
            f"record['kubernetes']['labels']={labels}",
            "record['kubernetes']['namespace_labels']="
            + to_ruby_map_literal(ctx.namespace_labels),
        ]
        record.set_param("dummy_", "${" + "; ".join(statements) + "}")
        return result

    def _make_host_path(
        self, container_file: ContainerFile, mount: Mount, container: MiniContainer
    ) -> str:
        sub_path = container_file.path[len(mount.path) :]
        return _join_path(
            self.context.kubelet_root,
            "pods",
            container.pod_id,
            "volumes",
            "kubernetes.io~empty-dir",
            mount.volume_name,
            mount.sub_path,
            sub_path,
        )

    def process(self, fragment: Fragment) -> Fragment:
        return Fragment(directive for directive in fragment if not is_relevant(directive))