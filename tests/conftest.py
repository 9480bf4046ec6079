"""
Shared pytest fixtures for the expression evaluator tests.

This module provides:
- Fresh registries and symbol tables
- Settings isolation (the cached settings are rebuilt for every test)
- A helper that writes YAML variable files
"""

from pathlib import Path
from typing import Any, Callable, Dict

import pytest
import yaml

from decexpr import SymbolTable, default_registry
from decexpr.core.config import get_settings
from decexpr.parser import Parser, RPNVisitor


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings so environment changes in a test take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def registry():
    """A private copy of the built-in registry."""
    return default_registry()


@pytest.fixture
def symbols():
    """An empty symbol table."""
    return SymbolTable()


@pytest.fixture
def parser(registry):
    return Parser(registry)


@pytest.fixture
def rpn(parser, symbols) -> Callable[[str], str]:
    """Parse an expression and render it in reverse Polish notation."""

    def _rpn(source: str) -> str:
        return RPNVisitor(symbols, parser.parse).render(parser.parse(source))

    return _rpn


@pytest.fixture
def variables_file(tmp_path: Path) -> Callable[[Dict[str, Any]], Path]:
    """Write a YAML document to a temporary file and return its path."""

    def _write(document: Dict[str, Any], name: str = "variables.yaml") -> Path:
        path = tmp_path / name
        path.write_text(yaml.safe_dump(document))
        return path

    return _write
