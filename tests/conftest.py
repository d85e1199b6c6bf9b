import os
import sys
from pathlib import Path

import pytest

project_root = Path(__file__).resolve().parents[1]
src_path = project_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))


@pytest.fixture(autouse=True)
def _isolate_epfarm_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("EPFARM_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("epfarm.config.load_dotenv", lambda *args, **kwargs: False)
