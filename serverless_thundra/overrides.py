"""Override resolution: function > per-language service > global service > default."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from .exceptions import ConfigurationError
from .models import LATEST_VERSION, MODE_LAYER, ServiceThundraSettings, ThundraSettings


@dataclass(frozen=True)
class ResolvedOverrides:
    disable: bool = False
    mode: str = MODE_LAYER
    layer_version: str | None = None
    use_custom_runtime: bool = False
    package_json_path: str | None = None


def _is_set(value: Any) -> bool:
    return value is not None and value != ""


def resolve(function_value: Any, language_value: Any, global_value: Any, default: Any) -> Any:
    """Return the first set value. `False` counts as set."""
    for value in (function_value, language_value, global_value):
        if _is_set(value):
            return value
    return default


def resolve_overrides(
    function_settings: ThundraSettings,
    service_settings: ServiceThundraSettings,
    language: str | None,
    *,
    legacy_disable: bool = False,
) -> ResolvedOverrides:
    """Resolve every recognized key once for a function/language pair."""
    scopes = (
        function_settings,
        service_settings.for_language(language) if language else ThundraSettings(),
        service_settings,
    )

    def pick(attr: str, default: Any) -> Any:
        return resolve(*(getattr(scope, attr) for scope in scopes), default)

    disable = pick("disable", False)
    if legacy_disable and not _is_set(function_settings.disable):
        disable = True

    version = resolve(*(scope.layer.version for scope in scopes), None)

    return ResolvedOverrides(
        disable=bool(disable),
        mode=pick("mode", MODE_LAYER),
        layer_version=version,
        use_custom_runtime=bool(pick("use_custom_runtime", False)),
        package_json_path=pick("package_json_path", None),
    )


def parse_version_token(token: str | None) -> str | None:
    """
    Validate a layer version token.

    Returns None (use the default), "latest", or a non-negative integer string.
    """
    if token is None:
        return None
    value = str(token).strip()
    if value.lower() == LATEST_VERSION:
        return LATEST_VERSION
    if not re.fullmatch(r"[0-9]+", value):
        raise ConfigurationError("layer.version", token, "expected a non-negative integer or 'latest'")
    return str(int(value))
