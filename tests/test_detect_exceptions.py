from configreloader.parser import Directive, parse_string
from configreloader.processors.base import (
    GenerationContext,
    ProcessorContext,
    prepare,
    process,
)
from configreloader.processors.detect_exceptions import (
    DetectExceptionsProcessor,
    copy_param,
    extract_selector,
    make_tag_prefix,
)
from configreloader.processors.labels import ExpandLabelsProcessor
from configreloader.processors.thisns import ExpandThisnsProcessor


def _ctx():
    return ProcessorContext(
        namespace="monitoring",
        generation_context=GenerationContext(referenced_bridges={}),
    )


REWRITE_INPUT = """
<filter $labels(app=jpetstore)>
	@type detect_exceptions
	languages java, python
</filter>

<filter $labels(server=apache)>
	@type parse
	format apache2
</filter>

<match **>
  @type null
</match>
"""


def test_rewrite():
    ctx = _ctx()
    fragment = parse_string(REWRITE_INPUT)
    procs = [ExpandThisnsProcessor(), ExpandLabelsProcessor(), DetectExceptionsProcessor()]

    prepared = prepare(fragment, ctx, procs)
    assert len(prepared) == 0
    assert ctx.generation_context.needs_processing is True

    processed = process(fragment, ctx, procs)
    assert len(processed) == 7

    selector = "kube.monitoring.*.*._labels.jpetstore.*"
    retag = processed[3]
    assert retag.name == "match"
    assert retag.type() == "rewrite_tag_filter"
    assert retag.tag == selector
    assert retag.nested[0].name == "rule"
    assert retag.nested[0].param("invert") == "true"

    detect = processed[4]
    prefix = detect.param("remove_tag_prefix")
    assert detect.type() == "detect_exceptions"
    assert detect.tag == f"{prefix}._proc.{selector}"
    assert detect.param("stream") == "container_info"
    assert detect.param("languages") == "java, python"
    assert retag.nested[0].param("tag") == f"{prefix}._proc.${{tag}}"

    assert processed[6].tag == "kube.monitoring.** _proc.kube.monitoring.**"


def test_prepare_without_detect_exceptions_leaves_flag():
    ctx = _ctx()
    fragment = parse_string("<match **>\n@type null\n</match>\n")
    prepare(fragment, ctx, [DetectExceptionsProcessor()])
    assert ctx.generation_context.needs_processing is False


def test_process_without_detect_exceptions_copies_everything():
    s = """
<match **>
  @type logzio
  <buffer>
    @type file
    path /etc/passwd
  </buffer>
</match>
"""
    fragment = parse_string(s)
    processed = process(fragment, _ctx(), [DetectExceptionsProcessor()])
    assert str(processed) == str(fragment)
    assert processed[0] is not fragment[0]


def test_nested_detect_exceptions_is_rewritten():
    s = """
<label @x>
  <filter **>
    @type detect_exceptions
    max_lines 10
  </filter>
</label>
"""
    fragment = parse_string(s)
    processed = process(fragment, _ctx(), [DetectExceptionsProcessor()])
    nested = processed[0].nested
    assert [d.type() for d in nested] == ["rewrite_tag_filter", "detect_exceptions"]
    assert nested[0].tag == "**"
    assert nested[1].param("max_lines") == "10"
    assert fragment[0].nested[0].type() == "detect_exceptions"


def test_extract_selector():
    assert extract_selector("xxx") == "xxx"
    assert extract_selector("xxx _proc.xxx") == "xxx"
    assert extract_selector("xxx what ever man") == "xxx"


def test_make_tag_prefix_is_stable_hex():
    prefix = make_tag_prefix("kube.a.**")
    assert prefix == make_tag_prefix("kube.a.**")
    assert len(prefix) == 40
    assert all(ch in "0123456789abcdef" for ch in prefix)
    assert prefix != make_tag_prefix("kube.b.**")


def test_copy_param():
    src = Directive(name="filter")
    src.set_param("languages", "java # comment")
    dest = Directive(name="match")
    copy_param("languages", src, dest)
    copy_param("max_bytes", src, dest)
    assert dest.param("languages") == "java"
    assert "max_bytes" not in dest.params