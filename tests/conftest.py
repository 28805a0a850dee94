from __future__ import annotations

import json
import stat
import sys
from pathlib import Path
from typing import Callable

import pytest

# Stands in for Chromium: fetches the target URL from the file server and
# answers --dump-dom / --screenshot the way the real binary would. Markers in
# the fetched page steer failure modes.
_FAKE_BROWSER = '''#!{python}
import json
import sys
import time
import urllib.error
import urllib.request

argv = sys.argv[1:]
with open({args_log!r}, "a") as log:
    log.write(json.dumps(argv) + "\\n")

if {exit_code!r}:
    sys.stderr.write("fake browser: forced failure\\n")
    sys.exit({exit_code!r})

opener = urllib.request.build_opener(urllib.request.ProxyHandler({{}}))
try:
    with opener.open(argv[-1], timeout=10) as resp:
        page = resp.read().decode("utf-8")
except urllib.error.HTTPError as e:
    page = e.read().decode("utf-8")
except urllib.error.URLError as e:
    sys.stderr.write("fake browser: cannot load page: %s\\n" % e)
    sys.exit(5)

if "FAKE_EXIT" in page:
    sys.stderr.write("Uncaught ReferenceError: p5 is not defined\\n")
    sys.exit(3)
if "FAKE_HANG" in page:
    time.sleep(60)

if "--dump-dom" in argv:
    if "FAKE_NO_BODY" in page:
        print("<html><head></head></html>")
    elif "<body" in page:
        print(page)
    else:
        print("<html><head></head><body>" + page + "</body></html>")

for arg in argv:
    if arg.startswith("--screenshot="):
        with open(arg[len("--screenshot="):], "wb") as out:
            out.write(b"\\x89PNG\\r\\n\\x1a\\n" + page.encode("utf-8"))
'''


class FakeBrowser:
    def __init__(self, path: Path, args_log: Path) -> None:
        self.path = path
        self.args_log = args_log

    @property
    def calls(self) -> list[list[str]]:
        if not self.args_log.exists():
            return []
        return [json.loads(line) for line in self.args_log.read_text().splitlines() if line.strip()]


@pytest.fixture
def make_fake_browser(tmp_path: Path) -> Callable[..., FakeBrowser]:
    counter = {"n": 0}

    def _make(exit_code: int = 0) -> FakeBrowser:
        counter["n"] += 1
        path = tmp_path / f"fake-chromium-{counter['n']}"
        args_log = tmp_path / f"fake-chromium-{counter['n']}.args"
        path.write_text(_FAKE_BROWSER.format(python=sys.executable, args_log=str(args_log), exit_code=exit_code))
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return FakeBrowser(path, args_log)

    return _make


@pytest.fixture
def fake_browser(make_fake_browser) -> FakeBrowser:
    return make_fake_browser()
