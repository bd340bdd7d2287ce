"""
Layer attachment engine.

Mutates one FunctionDescriptor so the Thundra layer is attached: entry point
delegation, environment injection, layer list update and custom runtime
selection. Every recoverable problem is reported through `context.log`.
"""

from __future__ import annotations

from .exceptions import LayerVersionLookupError
from .models import (
    API_KEY_ENV_VAR,
    CUSTOM_RUNTIME,
    DELEGATED_HANDLER_ENV_VAR,
    LATEST_VERSION,
    MAX_LAYERS,
    AttachmentStrategy,
    FunctionDescriptor,
    FunctionState,
    RunContext,
)
from .overrides import ResolvedOverrides


def get_layer_arn(region: str, account_no: int | str, name: str, version: str) -> str:
    return f"arn:aws:lambda:{region}:{account_no}:layer:{name}:{version}"


def has_layer(layers: list, layer_name: str) -> bool:
    # Non-string entries are CloudFormation references ({"Ref": ...}).
    return any(isinstance(layer, str) and layer_name in layer for layer in layers)


def _delegate_handler(
    function: FunctionDescriptor, strategy: AttachmentStrategy, context: RunContext
) -> bool:
    """Point the handler at the agent entry point. False means misconfigured."""
    entry_point = strategy.entry_point_name
    delegated = function.environment.get(DELEGATED_HANDLER_ENV_VAR)

    if function.handler == entry_point:
        if not delegated:
            context.log(
                f"Handler of function {function.name} is already set to Thundra's handler "
                f"but {DELEGATED_HANDLER_ENV_VAR} is not set, skipping."
            )
            return False
        if delegated == entry_point:
            context.log(
                f"{DELEGATED_HANDLER_ENV_VAR} of function {function.name} points to Thundra's "
                "own handler, skipping."
            )
            return False
        return True

    if delegated:
        context.log(
            f"Overwriting {DELEGATED_HANDLER_ENV_VAR} of function {function.name} "
            f"({delegated} -> {function.handler})."
        )
    function.environment[DELEGATED_HANDLER_ENV_VAR] = function.handler
    function.handler = entry_point
    return True


def _inject_environment(
    function: FunctionDescriptor, strategy: AttachmentStrategy, context: RunContext
) -> None:
    for key, value in strategy.environment.items():
        current = function.environment.get(key)
        if current is None:
            function.environment[key] = value
        elif current != value:
            context.log(f"Function {function.name} already sets {key}={current}, keeping it.")

    if context.api_key and API_KEY_ENV_VAR not in function.environment:
        function.environment[API_KEY_ENV_VAR] = context.api_key


def resolve_layer_arn(
    function: FunctionDescriptor,
    strategy: AttachmentStrategy,
    context: RunContext,
    overrides: ResolvedOverrides,
) -> str:
    version = overrides.layer_version or strategy.default_version
    if version == LATEST_VERSION:
        arn = context.latest_arns.get(function.runtime)
        if arn is None:
            raise LayerVersionLookupError(
                "no latest layer version resolved", runtime=function.runtime, region=context.region
            )
        return arn
    return get_layer_arn(context.region, context.account_no, strategy.layer_name, version)


def attach(
    function: FunctionDescriptor,
    language: str,
    strategy: AttachmentStrategy,
    context: RunContext,
    overrides: ResolvedOverrides,
) -> FunctionState:
    """
    Attach the agent layer of `language` to `function` in place.

    Returns the terminal state reached. Delegation done before a layer limit
    abort is kept.
    """
    if not function.runtime:
        function.runtime = context.default_runtime
    if function.layers is None:
        function.layers = list(context.baseline_layers)

    if strategy.needs_delegation and not _delegate_handler(function, strategy, context):
        return FunctionState.MISCONFIGURED

    if has_layer(function.layers, strategy.layer_name):
        context.log(
            f"Function {function.name} already has a Thundra {language} layer, "
            "skipping layer addition."
        )
    else:
        if len(function.layers) >= MAX_LAYERS:
            context.log(
                f"Function {function.name} already has {len(function.layers)} layers "
                f"(limit {MAX_LAYERS}), Thundra layer is not added."
            )
            return FunctionState.LAYER_SKIPPED_LIMIT_REACHED
        function.layers.append(resolve_layer_arn(function, strategy, context, overrides))

    _inject_environment(function, strategy, context)

    if strategy.uses_custom_runtime:
        function.runtime = CUSTOM_RUNTIME

    return FunctionState.LAYER_ATTACHED
