"""
Attachment strategy catalog.

Each language maps either to a constant AttachmentStrategy or to a function
of (runtime, overrides) computing one. Node is the only computed entry: its
layer can run the agent through the custom runtime, through handler
delegation, or through the minified exec wrapper, depending on the runtime
version and the pinned layer version.
"""

from __future__ import annotations

import re
from typing import Callable, Union

from .exceptions import UnsupportedLanguageError
from .models import LATEST_VERSION, AttachmentStrategy
from .overrides import ResolvedOverrides

NODE_LAYER_NAME = "thundra-lambda-node-layer"
NODE_DEFAULT_LAYER_VERSION = "33"
# Node layers newer than this ship the delegating handler wrapper.
NODE_WITHOUT_CR_LAYER_THRESHOLD = 32
# Node runtime majors: below A only the custom runtime works, from B on the
# minified exec wrapper is used.
NODE_DELEGATION_RUNTIME_THRESHOLD = 10
NODE_MINIFIED_RUNTIME_THRESHOLD = 12

NODE_HANDLER_WRAPPER = "/opt/nodejs/node_modules/@thundra/core/dist/handler.wrapper"
NODE_EXEC_WRAPPER = "/opt/thundra/thundra-node-wrapper.min"

_RUNTIME_PATTERN = re.compile(r"^([A-Za-z]+)(\d+)(?:\.[0-9A-Za-z]+)*$")

StrategyFactory = Callable[[str, ResolvedOverrides], AttachmentStrategy]

NODE_WITH_CUSTOM_RUNTIME = AttachmentStrategy(
    layer_name=NODE_LAYER_NAME,
    default_version=NODE_DEFAULT_LAYER_VERSION,
    needs_delegation=False,
    uses_custom_runtime=True,
)

NODE_WITH_DELEGATION = AttachmentStrategy(
    layer_name=NODE_LAYER_NAME,
    default_version=NODE_DEFAULT_LAYER_VERSION,
    entry_point_name=NODE_HANDLER_WRAPPER,
    needs_delegation=True,
)

NODE_MINIFIED = AttachmentStrategy(
    layer_name=NODE_LAYER_NAME,
    default_version=NODE_DEFAULT_LAYER_VERSION,
    needs_delegation=False,
    environment={"AWS_LAMBDA_EXEC_WRAPPER": NODE_EXEC_WRAPPER},
)


def parse_runtime_major(runtime: str) -> int | None:
    """Return the major version of e.g. `nodejs12.x`, or None if it doesn't parse."""
    if not isinstance(runtime, str):
        return None
    match = _RUNTIME_PATTERN.match(runtime.strip())
    if not match:
        return None
    return int(match.group(2))


def _layer_supports_delegation(layer_version: str | None) -> bool:
    if layer_version is None:
        return False
    if str(layer_version).lower() == LATEST_VERSION:
        return True
    try:
        return int(layer_version) > NODE_WITHOUT_CR_LAYER_THRESHOLD
    except ValueError:
        return False


def node_strategy(runtime: str, overrides: ResolvedOverrides) -> AttachmentStrategy:
    if overrides.use_custom_runtime:
        return NODE_WITH_CUSTOM_RUNTIME

    major = parse_runtime_major(runtime)
    if major is None:
        return NODE_WITH_CUSTOM_RUNTIME

    if not _layer_supports_delegation(overrides.layer_version):
        return NODE_WITH_CUSTOM_RUNTIME

    if major < NODE_DELEGATION_RUNTIME_THRESHOLD:
        return NODE_WITH_CUSTOM_RUNTIME
    if major < NODE_MINIFIED_RUNTIME_THRESHOLD:
        return NODE_WITH_DELEGATION
    return NODE_MINIFIED


LAYER_STRATEGIES: dict[str, Union[AttachmentStrategy, StrategyFactory]] = {
    "java": AttachmentStrategy(
        layer_name="thundra-lambda-java-layer",
        default_version="37",
        entry_point_name="io.thundra.agent.lambda.core.handler.ThundraLambdaHandler",
        needs_delegation=True,
    ),
    "python": AttachmentStrategy(
        layer_name="thundra-lambda-python-layer",
        default_version="17",
        entry_point_name="thundra.handler.wrapper",
        needs_delegation=True,
    ),
    "node": node_strategy,
}

# Order matters: the first tag contained in the runtime string wins.
SUPPORTED_LANGUAGES = ("node", "python", "java")


def language_for_runtime(runtime: str | None) -> str | None:
    if not isinstance(runtime, str):
        return None
    for language in SUPPORTED_LANGUAGES:
        if language in runtime:
            return language
    return None


def layer_name_for(language: str) -> str:
    """Layer name of a language regardless of the computed variant."""
    entry = LAYER_STRATEGIES.get(language)
    if entry is None:
        raise UnsupportedLanguageError(language)
    if isinstance(entry, AttachmentStrategy):
        return entry.layer_name
    return entry("", ResolvedOverrides()).layer_name


def strategy_for(language: str, runtime: str, overrides: ResolvedOverrides) -> AttachmentStrategy:
    entry = LAYER_STRATEGIES.get(language)
    if entry is None:
        raise UnsupportedLanguageError(language)
    if isinstance(entry, AttachmentStrategy):
        return entry
    return entry(runtime, overrides)
