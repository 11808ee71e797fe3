"""Root conftest.py for the ddisim monorepo.

Puts every package's src directory on the import path, registers the shared
markers, and tags tests that replace the network with mocks so they can be
selected or excluded with ``-m uses_mock``.
"""

from __future__ import annotations

import ast
import inspect
import sys
import textwrap
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.nodes import Item


PROJECT_ROOT = Path(__file__).parent
for pkg_dir in sorted(PROJECT_ROOT.glob("ddisim-*/src")):
    if str(pkg_dir) not in sys.path:
        sys.path.insert(0, str(pkg_dir))


def pytest_configure(config: Config) -> None:
    """Register custom markers.

    Args:
        config: pytest configuration object.
    """
    config.addinivalue_line(
        "markers",
        "uses_mock: Test replaces the client or the HTTP transport (auto-detected)",
    )
    config.addinivalue_line(
        "markers",
        "integration: Test talks to a running hawkBit server",
    )
    config.addinivalue_line(
        "markers",
        "slow: Slow-running test",
    )


class MockUsageVisitor(ast.NodeVisitor):
    """Find calls and parameters that stand in for a real hawkBit server."""

    MOCK_NAMES = frozenset({
        "MagicMock",
        "Mock",
        "AsyncMock",
        "patch",
        "create_autospec",
        "MockTransport",
    })

    # Fixture names used by the test suites for mocked collaborators.
    MOCK_FIXTURES = frozenset({"client", "server", "mgmt"})

    def __init__(self) -> None:
        self.found = False

    def visit_Call(self, node: ast.Call) -> None:
        func = node.func
        name = func.id if isinstance(func, ast.Name) else getattr(func, "attr", None)
        if name in self.MOCK_NAMES:
            self.found = True
        self.generic_visit(node)

    def _check_args(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> None:
        for arg in node.args.args:
            if arg.arg in self.MOCK_FIXTURES or "mock" in arg.arg.lower():
                self.found = True
        self.generic_visit(node)

    visit_FunctionDef = _check_args
    visit_AsyncFunctionDef = _check_args


def _uses_mock(item: Item) -> bool:
    """Return True if the test function's source shows mock usage."""
    obj = getattr(item, "obj", None)
    if obj is None:
        return False
    try:
        tree = ast.parse(textwrap.dedent(inspect.getsource(obj)))
    except (OSError, TypeError, SyntaxError):
        return False

    visitor = MockUsageVisitor()
    visitor.visit(tree)
    return visitor.found


def pytest_collection_modifyitems(config: Config, items: list[Item]) -> None:
    """Mark tests that use mocks.

    Args:
        config: pytest configuration object.
        items: List of collected test items.
    """
    for item in items:
        if item.get_closest_marker("integration") or item.get_closest_marker("uses_mock"):
            continue
        if _uses_mock(item):
            item.add_marker(pytest.mark.uses_mock)


def pytest_report_header(config: Config) -> list[str]:
    """Add the suite name and coverage state to the pytest header.

    Args:
        config: pytest configuration object.

    Returns:
        List of header lines.
    """
    lines = ["ddisim monorepo test suite"]
    if getattr(config.option, "cov_source", None):
        lines.append("Coverage: enabled")
    return lines
