import os
import stat
import sys
from pathlib import Path

import pytest


# Ensure tests can import project packages regardless of how pytest is invoked.
ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

from soaper_dl.models.config import SoaperConfig  # noqa: E402


# Stands in for ffmpeg's concat demuxer: joins the listed files byte for byte.
_FAKE_FFMPEG = """#!{python}
import sys

args = sys.argv[1:]
list_path = args[args.index("-i") + 1]
output_path = args[-1]
with open(list_path, encoding="utf-8") as f:
    entries = [line.strip() for line in f if line.strip()]
with open(output_path, "wb") as out:
    for entry in entries:
        path = entry[len("file "):].strip()[1:-1].replace("'\\\\''", "'")
        with open(path, "rb") as part:
            out.write(part.read())
sys.exit(0)
"""

_BROKEN_FFMPEG = """#!{python}
import sys

with open(sys.argv[-1], "wb") as out:
    out.write(b"half")
sys.stderr.write("concat: invalid data found\\n")
sys.exit(1)
"""

posix_only = pytest.mark.skipif(os.name != "posix", reason="needs an executable script")


def _write_script(path: Path, template: str) -> str:
    path.write_text(template.format(python=sys.executable), encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def fake_ffmpeg(tmp_path: Path) -> str:
    return _write_script(tmp_path / "fake-ffmpeg", _FAKE_FFMPEG)


@pytest.fixture
def broken_ffmpeg(tmp_path: Path) -> str:
    return _write_script(tmp_path / "broken-ffmpeg", _BROKEN_FFMPEG)


def make_config(**overrides) -> SoaperConfig:
    """Fast-failing settings for tests."""
    settings = {"max_attempts": 1, "base_delay": 0, "max_workers": 4}
    settings.update(overrides)
    return SoaperConfig(**settings)
