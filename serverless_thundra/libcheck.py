"""Checks that the Thundra agent library is installed for wrap-mode languages."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable

from .exceptions import LibraryNotInstalledError

NODE_AGENT_PACKAGE = "@thundra/core"


def check_python(service_path: Path, package_json_path: str | None, log: Callable[[str], None]) -> None:
    log("Please ensure that all necessary Thundra Python agents are installed")


def check_node(service_path: Path, package_json_path: str | None, log: Callable[[str], None]) -> None:
    manifest = Path(package_json_path) if package_json_path else service_path / "package.json"
    if not manifest.is_absolute():
        manifest = service_path / manifest

    try:
        pack = json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        log(
            "Could not read package.json. Skipping Thundra library validation - "
            "please make sure you have it installed!"
        )
        return

    dependencies = pack.get("dependencies") if isinstance(pack, dict) else None
    if NODE_AGENT_PACKAGE not in (dependencies or {}):
        raise LibraryNotInstalledError("node", NODE_AGENT_PACKAGE)


LIBRARY_CHECKS: dict[str, Callable[[Path, str | None, Callable[[str], None]], None]] = {
    "node": check_node,
    "python": check_python,
}


def check_library(
    language: str,
    service_path: Path,
    package_json_path: str | None,
    log: Callable[[str], None],
) -> None:
    check = LIBRARY_CHECKS.get(language)
    if check is None:
        log(f"Please ensure that the Thundra {language} agent is available to your functions")
        return
    check(service_path, package_json_path, log)
