import atexit
import faulthandler
import os
import sys
import threading
from typing import Optional

import pytest


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _start_watchdog(timeout_seconds: int) -> Optional[threading.Timer]:
    if timeout_seconds <= 0:
        return None

    def _kill() -> None:
        try:
            faulthandler.dump_traceback(file=sys.stderr, all_threads=True)
        except Exception:
            pass
        # Hard exit: a stuck listener or probe timer must not hang CI.
        os._exit(2)

    timer = threading.Timer(timeout_seconds, _kill)
    timer.daemon = True
    timer.start()
    return timer


def pytest_sessionstart(session) -> None:  # noqa: ANN001
    try:
        faulthandler.enable(all_threads=True)
    except Exception:
        pass

    # Upper bound for the whole run; loopback sockets and timers are the usual suspects.
    timer = _start_watchdog(_env_int("LEEDZ_TEST_WATCHDOG_SECONDS", 10 * 60))
    if timer is not None:
        atexit.register(timer.cancel)


@pytest.fixture(autouse=True)
def isolated_project_logger(tmp_path):
    """Point the project logger at a per-test file instead of ~/.leedz/logs."""
    from leedz_bridge.utils.logger import setup_logger

    setup_logger(log_file=str(tmp_path / "bridge.log"), level="DEBUG")
    yield


@pytest.fixture(autouse=True)
def fresh_config_cache():
    from leedz_bridge.utils.config import reset_config_cache

    reset_config_cache()
    yield
    reset_config_cache()
