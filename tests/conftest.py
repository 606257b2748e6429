# SPDX-License-Identifier: LGPL-3.0-or-later
import os
import sys
from pathlib import Path

import pytest

_THIS_DIR = Path(__file__).resolve().parent
_REPO_ROOT = _THIS_DIR.parent

if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))
if str(_THIS_DIR) not in sys.path:
    sys.path.insert(0, str(_THIS_DIR))

os.environ.setdefault("PYTHONPATH", str(_REPO_ROOT))


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests with no host access")
    config.addinivalue_line("markers", "security: input hardening and secret redaction")


@pytest.fixture
def engine_cfg(tmp_path):
    """EngineConfig rooted in tmp_path with the usual directories created."""
    from netshift.config.settings import EngineConfig

    cfg = EngineConfig.rooted(tmp_path)
    cfg.interfaces_file.parent.mkdir(parents=True, exist_ok=True)
    cfg.sysctl_file.parent.mkdir(parents=True, exist_ok=True)
    cfg.sys_class_net.mkdir(parents=True, exist_ok=True)
    return cfg
