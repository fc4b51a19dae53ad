"""Pytest configuration shared by every suite.

What:
  Establish project import paths and apply a canned runtime configuration to
  every test.

Why:
  Tests must import the in-repo ``mailpop`` package rather than an installed
  wheel, and the configuration cache is process-global: without a reset one
  test's configuration would leak into the next.

How:
  Prepend ``mailpop/src`` and ``tests/unit`` (home of the protocol fakes) to
  ``sys.path`` when present, then point ``MAILPOP_CONFIG_PATH`` at
  ``tests/data/config.yaml`` and clear the cache around each test.

Interfaces:
  :func:`runtime_config` (autouse pytest fixture).
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "mailpop" / "src"
UNIT_DIR = Path(__file__).resolve().parent / "unit"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))
if str(UNIT_DIR) not in sys.path:
    sys.path.insert(0, str(UNIT_DIR))

import pytest

from mailpop.config.loader import reset_runtime_config

CONFIG_PATH = Path(__file__).resolve().parent / "data" / "config.yaml"


@pytest.fixture(autouse=True)
def runtime_config(monkeypatch: pytest.MonkeyPatch):
    """Apply the canned configuration file for every test.

    What:
      Sets ``MAILPOP_CONFIG_PATH`` to the repository fixture, removes any
      ``MAILPOP_PASSWORD`` override from the developer's shell, and clears the
      runtime configuration cache before and after the test.

    Args:
      monkeypatch: Pytest helper injected automatically for environment control.
    """

    monkeypatch.setenv("MAILPOP_CONFIG_PATH", str(CONFIG_PATH))
    monkeypatch.delenv("MAILPOP_PASSWORD", raising=False)
    reset_runtime_config()
    try:
        yield
    finally:
        reset_runtime_config()
