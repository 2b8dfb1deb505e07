# configreloader

A library for fluentd configuration fragments that belong to individual
Kubernetes namespaces. It parses them, rewrites them so that one namespace
cannot read or disturb another's logs, and checks them by running fluentd.

## Install

```
pip install .
```

The package has no dependencies outside the standard library.

## Parsing

```python
from configreloader.parser import parse_string

fragment = parse_string("""
<match **>
  @type null
</match>
""")
print(fragment[0].name, fragment[0].type())
print(str(fragment))
```

`parse_string` returns a `Fragment`, a list of `Directive` objects. A
`Directive` has a `name`, a `tag`, a `params` dict of `Param` objects and a
`nested` fragment. Use `type()` for the `@type` (or `type`) value,
`param(name)` for a value without its trailing `# comment`,
`param_verbatim(name)` for the raw value, and `set_param(name, value)` to set
a value (an empty value removes the parameter). `clone()` makes a deep copy;
`str()` renders the configuration with parameters in sorted order.
`params_from_kv("@type", "null")` builds a params dict from alternating names
and values.

`parse_string` raises `ParseError` when a directive is left open, when a
closing tag does not match, or when a parameter sits outside any directive.

## Rewriting

The modules under `configreloader.processors` do the rewriting. Each
processor subclasses `FragmentProcessor` from `configreloader.processors.base`
and does one job:

| Processor | Module | Job |
|---|---|---|
| `ExpandPluginsProcessor` | `extract_plugins` | replace references to admin-defined `<plugin>` outputs |
| `ExpandTagsProcessor` | `expand_tags` | split `{a,b}` alternatives and multi-pattern tags |
| `ExpandThisnsProcessor` | `thisns` | expand `**` and `$thisns`, reject foreign tags |
| `FixDestinationsProcessor` | `destinations` | forbid unsafe plugin types, move buffer paths |
| `ExpandLabelsProcessor` | `labels` | turn `$labels(k=v, ...)` into label routing |
| `UniqueRewriteTagProcessor` | `unique_rewrite_tag` | handle the `retag` plugin and `$tag(...)` |
| `RewriteLabelsProcessor` | `relabel` | namespace `@label` names |
| `MountedFileProcessor` | `mounted_file` | tail files in containers' empty-dir mounts |
| `ShareLogsProcessor` | `share` | share logs between namespaces via bridge labels |
| `DetectExceptionsProcessor` | `detect_exceptions` | route records through exception detection |

`configreloader.processors.registry.default_processors()` returns fresh
instances of all of them in the order they must run.

```python
from configreloader.processors.base import GenerationContext, ProcessorContext, prepare, process
from configreloader.processors.registry import default_processors

ctx = ProcessorContext(namespace="monitoring", generation_context=GenerationContext())
procs = default_processors()
main_file_part = prepare(fragment, ctx, procs)
result = process(fragment, ctx, procs)
print(result)
```

`prepare` collects directives meant for the main fluentd file and records
shared state in the `GenerationContext`; `process` chains the processors and
returns the namespace's rewritten fragment (it may change the input in place);
`get_validation_trailer` returns directives that make the namespace's config
valid on its own. Rewriting errors raise `ProcessingError`.

`extract_plugins(generation_context, fragment)` removes top-level `<plugin>`
directives from an admin fragment and stores them in the context for
`ExpandPluginsProcessor`. Container facts for mounted files are given as
`MiniContainer` and `Mount` objects in `ProcessorContext.mini_containers`.

## Validation and reload

`configreloader.validator.Validator("fluentd -p plugins", timeout=30)` runs
the given fluentd command line:

- `ensure_usable()` runs it with `--version` and returns the version text;
- `validate_config(config, namespace)` runs it with `--dry-run`;
- `validate_config_extremely(config, namespace)` starts it with
  `-q --no-supervisor` and an added source that exits at once.

Each raises `ValidationError`, carrying fluentd's output, when the check fails.

`configreloader.reloader.Reloader(port=24444).reload_configuration()` sends a
request to `http://127.0.0.1:<port>/api/config.gracefulReload`. Failures are
logged, not raised; a `Reloader()` without a port does nothing.

`configreloader.util` holds the shared helpers: `parse_tag_to_labels`,
`match_labels`, `make_hash`, `make_fluentd_safe_name`, `to_ruby_map_literal`,
`trim_trailing_comment`, `exec_and_get_output`, `write_string_to_file` and
`ensure_dir_exists`.

## What this package does not do

It is a library only. It has no command to run, no control loop that watches
Kubernetes for namespace configurations, no step that renders and writes the
complete set of fluentd files to disk, and no metrics endpoint. Those parts
must be supplied by the program that uses it.

## Tests

```
pip install .[test]
pytest
```