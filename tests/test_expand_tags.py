import pytest

from configreloader.parser import Directive, Fragment, parse_string
from configreloader.processors.base import GenerationContext, ProcessingError, ProcessorContext, process
from configreloader.processors.expand_tags import (
    ExpandTagsProcessor,
    apply_recursively_with_state,
    expand_first_curly_braces,
)


def _ctx(allow=True):
    return ProcessorContext(
        namespace="monitoring",
        generation_context=GenerationContext(),
        allow_tag_expansion=allow,
    )


@pytest.mark.parametrize(
    "s",
    [
        """<match kube.monitoring.{app1,app2}.** kube.monitoring.app3.**>
			@type null
		</match>""",
        """<filter kube.monitoring.{app1, app2}.**  kube.monitoring.app3.**>
	  		@type null
		</filter>""",
    ],
)
def test_tags_expand_ok(s):
    fragment = process(parse_string(s), _ctx(), [ExpandTagsProcessor()])
    assert len(fragment) == 3
    assert fragment[0].tag == "kube.monitoring.app1.**"
    assert fragment[1].tag == "kube.monitoring.app2.**"
    assert fragment[2].tag == "kube.monitoring.app3.**"
    text = str(fragment)
    assert "{" not in text
    assert "}" not in text


def test_nested_tags_expand_ok():
    s = """
	<label @test>
	  <match kube.monitoring.{app1, app2}.** kube.monitoring.app3.**>
		@type null
	  </match>
	</label>
	"""
    fragment = process(parse_string(s), _ctx(), [ExpandTagsProcessor()])
    assert len(fragment) == 1
    assert [d.tag for d in fragment[0].nested] == [
        "kube.monitoring.app1.**",
        "kube.monitoring.app2.**",
        "kube.monitoring.app3.**",
    ]
    assert all(d.type() == "null" for d in fragment[0].nested)


def test_single_tag_is_kept():
    fragment = process(
        parse_string("<match kube.monitoring.**>\n@type null\n</match>\n"),
        _ctx(),
        [ExpandTagsProcessor()],
    )
    assert len(fragment) == 1
    assert fragment[0].tag == "kube.monitoring.**"


@pytest.mark.parametrize(
    "s",
    [
        """<match kube.monitoring.#{ENV_VAR}.**>
          @type null
		 </match>""",
        """<match kube.monitoring.{app1.**>
		  @type null
		</match>""",
        """<match kube.monitoring.app2}.**>
		  @type null
		</match>""",
    ],
)
def test_tags_expand_bad_config(s):
    ctx = ProcessorContext(namespace="monitoring", allow_tag_expansion=True)
    with pytest.raises(ProcessingError):
        process(parse_string(s), ctx, [ExpandTagsProcessor()])


def test_braces_rejected_when_expansion_disabled():
    s = "<match kube.monitoring.{a,b}.**>\n@type null\n</match>\n"
    with pytest.raises(ProcessingError, match="disabled"):
        process(parse_string(s), _ctx(allow=False), [ExpandTagsProcessor()])


def test_plain_tags_pass_when_expansion_disabled():
    s = "<match kube.monitoring.a.** kube.monitoring.b.**>\n@type null\n</match>\n"
    fragment = process(parse_string(s), _ctx(allow=False), [ExpandTagsProcessor()])
    assert len(fragment) == 1
    assert fragment[0].tag == "kube.monitoring.a.** kube.monitoring.b.**"


def test_expand_first_curly_braces():
    assert expand_first_curly_braces("a.{b, c}.d") == ["a.b.d", "a.c.d"]
    assert expand_first_curly_braces("plain") == ["plain"]
    assert expand_first_curly_braces("{x,y}.{z,w}") == ["x.{z,w}", "y.{z,w}"]


@pytest.mark.parametrize("tag", ["a.{}", "a.#{b}", "a.{b"])
def test_expand_first_curly_braces_errors(tag):
    with pytest.raises(ProcessingError):
        expand_first_curly_braces(tag)


def test_apply_recursively_with_state_drops_nested():
    outer = Directive(
        name="label",
        nested=Fragment([Directive(name="drop"), Directive(name="keep")]),
    )
    fragment = Fragment([outer, Directive(name="drop")])

    def callback(directive, ctx):
        return [] if directive.name == "drop" else [directive]

    result = apply_recursively_with_state(fragment, None, callback)
    assert [d.name for d in result] == ["label"]
    assert [d.name for d in result[0].nested] == ["keep"]