import os
import sys
import asyncio
import inspect

import pytest

# Ensure project root is on sys.path so `import planner` works in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

CATALOG_PATH = os.path.join(ROOT, "data", "catalog.json")


def pytest_pyfunc_call(pyfuncitem):
    """Allow running async tests without pytest-asyncio.

    If the test function is a coroutine, run it in a fresh event loop.
    """
    testfunction = pyfuncitem.obj
    if inspect.iscoroutinefunction(testfunction):
        funcargs = pyfuncitem.funcargs
        sig = inspect.signature(testfunction)
        # Filter only the parameters that the test function expects
        allowed = {name: funcargs[name] for name in sig.parameters.keys() if name in funcargs}
        asyncio.run(testfunction(**allowed))
        return True
    return None


@pytest.fixture(autouse=True)
def _fresh_metrics():
    from planner.obs.metrics import reset_metrics
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def catalog():
    from planner.catalog.loader import load_catalog
    return load_catalog(CATALOG_PATH)


@pytest.fixture
def offline_phraser():
    """Phraser with no gateway: canned text only."""
    from planner.llm.phrasing import Phraser
    return Phraser(gateway=None)
