import stat
import time
import pytest
import yaml
from vqueue.config.models import PipelineSettings
from vqueue.infrastructure.event_bus import EventBus
from vqueue.infrastructure.topology import ensure_layout

# ============================================================================
# Stub transcoder scripts
# ============================================================================

_STUB_TEMPLATE = """#!/bin/sh
# Stand-in for ffmpeg: <input flags> -i <input> <output flags> <output>
prev=""
input=""
last=""
for arg in "$@"; do
  if [ "$prev" = "-i" ]; then input="$arg"; fi
  prev="$arg"
  last="$arg"
done
{log}
{sleep}
{write}
{log_end}
exit {exit_code}
"""


@pytest.fixture
def make_stub(tmp_path):
    """Factory writing an executable /bin/sh stand-in for the transcoder.

    The stub records "start <input>" / "end <input>" lines to `log` when given,
    sleeps `sleep` seconds, writes its last argument unless write_output is
    False, and exits with exit_code.
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)

    def _make(name="fake-ffmpeg", exit_code=0, write_output=True, sleep=0.0, log=None):
        script = bin_dir / name
        script.write_text(_STUB_TEMPLATE.format(
            log=f'echo "start $input" >> "{log}"' if log else "",
            sleep=f"sleep {sleep}" if sleep else "",
            write='printf "transcoded" > "$last"' if write_output else "",
            log_end=f'echo "end $input" >> "{log}"' if log else "",
            exit_code=exit_code,
        ))
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return _make

# ============================================================================
# Layout / settings fixtures
# ============================================================================

@pytest.fixture
def base_dir(tmp_path):
    """Creates an empty base directory."""
    base = tmp_path / "media"
    base.mkdir()
    return base


@pytest.fixture
def layout(base_dir):
    """Returns a fully created DirectoryLayout under base_dir."""
    return ensure_layout(base_dir)


@pytest.fixture
def make_settings(layout, make_stub):
    """Factory for PipelineSettings pointing at a stub transcoder."""

    def _make(executable=None, **kwargs):
        if executable is None:
            executable = make_stub()
        return PipelineSettings(layout=layout, executable=executable, **kwargs)

    return _make


@pytest.fixture
def config_yaml_path(tmp_path, base_dir):
    """Creates a temporary YAML config file."""
    conf_dir = tmp_path / "conf"
    conf_dir.mkdir()
    conf_file = conf_dir / "vqueue.yaml"

    content = {
        'base_dir': str(base_dir),
        'staging_dir_name': 'holding',
        'transcoder': {
            'executable': 'ffmpeg',
            'input_flags': '-y -hide_banner',
            'output_flags': ['-c:v', 'libx264', '-crf', '23'],
        },
        'general': {
            'shutdown_mode': 'finish',
            'debug': False,
        },
    }

    with open(conf_file, 'w') as f:
        yaml.dump(content, f)

    return conf_file

# ============================================================================
# EventBus Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()

# ============================================================================
# Helpers
# ============================================================================

def wait_for(predicate, timeout=10.0, interval=0.05):
    """Polls predicate until it is truthy or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


@pytest.fixture
def wait():
    return wait_for


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
