"""The package tree has no __init__.py files, so installs rely on namespace discovery."""
from pathlib import Path

from setuptools import find_namespace_packages

ROOT = Path(__file__).resolve().parent


def test_install_picks_up_every_subpackage():
    packages = find_namespace_packages(where=str(ROOT), include=["ledgerbook*"])

    for name in ("ledgerbook", "ledgerbook.core", "ledgerbook.db", "ledgerbook.models",
                 "ledgerbook.schemas", "ledgerbook.services", "ledgerbook.api.routes"):
        assert name in packages


def test_pyproject_enables_namespace_discovery():
    pyproject = (ROOT / "pyproject.toml").read_text()
    assert "namespaces = true" in pyproject
