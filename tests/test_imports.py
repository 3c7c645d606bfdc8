import importlib

import pytest

PACKAGES = ["core", "loaders", "main"]


@pytest.mark.parametrize("module_name", PACKAGES)
def test_module_imports(module_name):
    """Each top-level package and the CLI entry point import cleanly."""
    try:
        importlib.import_module(module_name)
    except Exception as e:
        pytest.fail(f"Failed to import {module_name}: {e}")
