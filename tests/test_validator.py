import os
import stat
import sys

import pytest

from configreloader.validator import ValidationError, Validator

FAKE_FLUENTD = '''
import sys

args = sys.argv[1:]
if "--version" in args:
    print("fluentd 1.0.0-fake")
    sys.exit(0)

path = args[args.index("-c") + 1]
with open(path) as handle:
    text = handle.read()
with open(sys.argv[0] + ".content", "w") as handle:
    handle.write(text)
with open(sys.argv[0] + ".path", "w") as handle:
    handle.write(path)

if "ERROR" in text:
    print("\\x1b[31mconfig error: " + " ".join(args) + "\\x1b[0m")
    sys.exit(1)
print("ok")
'''

GOOD_CONFIG = """
\t<match **>
\t  @type null
\t</match>
\t"""

BAD_CONFIG = """
\t# ERROR <- this is a marker to cause failure
\t<match **>
\t  @type null
\t</match>
\t"""


@pytest.fixture
def fake_fluentd(tmp_path):
    script = tmp_path / "fake-fluentd"
    script.write_text(f"#!{sys.executable}\n{FAKE_FLUENTD}")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


def _command(script):
    return f"{script} -p plugins"


def test_valid_config_string(fake_fluentd):
    validator = Validator(_command(fake_fluentd), 30)
    assert validator.ensure_usable() == "fluentd 1.0.0-fake"

    validator.validate_config_extremely(GOOD_CONFIG, "namespace-1")
    captured = (fake_fluentd.parent / "fake-fluentd.content").read_text()
    assert captured.startswith(GOOD_CONFIG)
    assert "@type just_exit" in captured


def test_unusable():
    validator = Validator("./no-such command", 30)
    with pytest.raises(ValidationError):
        validator.ensure_usable()


def test_bad_config_string(fake_fluentd):
    validator = Validator(_command(fake_fluentd), 30)
    assert validator.ensure_usable() == "fluentd 1.0.0-fake"

    with pytest.raises(ValidationError) as info:
        validator.validate_config_extremely(BAD_CONFIG, "namespace-1")
    message = str(info.value)
    assert "config error" in message
    assert "-p plugins -q --no-supervisor -c" in message
    assert not message.startswith("\x1b")


def test_dry_run_uses_dry_run_flag(fake_fluentd):
    validator = Validator(_command(fake_fluentd), 30)
    with pytest.raises(ValidationError) as info:
        validator.validate_config(BAD_CONFIG, "namespace-2")
    assert "-p plugins --dry-run -c" in str(info.value)

    captured = (fake_fluentd.parent / "fake-fluentd.content").read_text()
    assert captured == BAD_CONFIG
    assert "just_exit" not in captured


def test_dry_run_accepts_good_config_and_removes_temp_file(fake_fluentd):
    validator = Validator(_command(fake_fluentd), 30)
    validator.validate_config(GOOD_CONFIG, "namespace-3")

    temp_path = (fake_fluentd.parent / "fake-fluentd.path").read_text()
    assert "validate-namespace-3" in os.path.basename(temp_path)
    assert not os.path.exists(temp_path)


def test_command_is_split_into_args():
    validator = Validator("  fluentd -p plugins  ", 5)
    assert validator.command == "fluentd"
    assert validator.args == ["-p", "plugins"]
    assert validator.timeout == 5