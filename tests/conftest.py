from pathlib import Path
import sys

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def _clear_shutdown_flag():
    from vuln_list_sync.core.process_control import clear_shutdown_request

    clear_shutdown_request()
    yield
    clear_shutdown_request()


@pytest.fixture(autouse=True)
def _no_keyring(monkeypatch):
    monkeypatch.setattr("vuln_list_sync.infra.settings._keyring_available", lambda: False)


@pytest.fixture
def updater(tmp_path):
    """A fake updater that fails for ``debian`` and writes one file otherwise."""
    script = tmp_path / "vuln-list-update"
    script.write_text(
        "#!/bin/sh\n"
        "dir=\"$2\"\n"
        "target=\"$4\"\n"
        "if [ \"$target\" = \"debian\" ]; then exit 3; fi\n"
        "mkdir -p \"$dir\" && echo ok > \"$dir/$target.json\"\n",
        encoding="utf-8",
    )
    script.chmod(0o755)
    return script
