import ast
import importlib
from pathlib import Path

import pytest

import pixoo_commander

PACKAGE_ROOT = Path(pixoo_commander.__file__).parent
MODULES = sorted(path for path in PACKAGE_ROOT.rglob("*.py") if path.name != "__init__.py")


def module_name(path: Path) -> str:
    relative = path.relative_to(PACKAGE_ROOT.parent).with_suffix("")
    return ".".join(relative.parts)


@pytest.mark.parametrize("path", MODULES, ids=lambda path: module_name(path))
def test_modules_import_package_absolutely(path):
    tree = ast.parse(path.read_text(encoding="utf-8"))

    relative = [
        f"line {node.lineno}: from {'.' * node.level}{node.module or ''}"
        for node in ast.walk(tree)
        if isinstance(node, ast.ImportFrom) and node.level > 0
    ]

    assert relative == []


@pytest.mark.parametrize("path", MODULES, ids=lambda path: module_name(path))
def test_modules_import_standalone(path):
    assert importlib.import_module(module_name(path))
