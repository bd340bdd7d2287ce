"""
Function classifier / driver.

Walks the declared functions in order, decides language and attachment mode
for each, runs the preparation phase (latest layer lookups, library checks)
and then hands every function to the layer engine or the wrapper renderer.
Mutated fields are written back into the declaration mappings.

Per-function states:
    Discovered -> Disabled | Unsupported | ModeResolved
    ModeResolved -> WrapPending -> WrapEmitted
    ModeResolved -> LayerPending -> LayerAttached | LayerSkippedLimitReached | Misconfigured
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field, replace
from pathlib import Path, PurePosixPath
from typing import Any, Callable, MutableMapping

from .catalog import language_for_runtime, strategy_for
from .config import config
from .exceptions import ConfigurationError, LayerVersionLookupError, UnsupportedLanguageError
from .layers import attach
from .libcheck import check_library
from .models import (
    LATEST_VERSION,
    MODE_LAYER,
    MODE_WRAP,
    VALID_MODES,
    FunctionDescriptor,
    FunctionState,
    GeneratedWrapper,
    RunContext,
    ServiceContext,
)
from .overrides import ResolvedOverrides, parse_version_token, resolve_overrides
from .parser import parse_functions, write_back
from .renderer import WRAPPER_EXTENSIONS, render_wrapper, wrapper_file_name
from .versions import BotoLayerVersionLookup, LayerVersionLookup, prepare_latest_arns

logger = logging.getLogger(__name__)

LAYER_STATES = (
    FunctionState.LAYER_ATTACHED,
    FunctionState.LAYER_SKIPPED_LIMIT_REACHED,
)


@dataclass
class FunctionPlan:
    """Classification of one function, computed before anything is mutated."""

    function: FunctionDescriptor
    state: FunctionState
    runtime: str | None
    language: str | None = None
    overrides: ResolvedOverrides = field(default_factory=ResolvedOverrides)
    message: str = ""


@dataclass(frozen=True)
class FunctionOutcome:
    name: str
    state: FunctionState
    language: str | None = None
    mode: str | None = None


@dataclass
class RunResult:
    outcomes: list[FunctionOutcome] = field(default_factory=list)
    wrappers: list[GeneratedWrapper] = field(default_factory=list)
    latest_arns: dict[str, str] = field(default_factory=dict)

    def outcome(self, name: str) -> FunctionOutcome:
        for outcome in self.outcomes:
            if outcome.name == name:
                return outcome
        raise KeyError(name)


def _default_log(message: str) -> None:
    logger.info(message)


def classify(function: FunctionDescriptor, service: ServiceContext) -> FunctionPlan:
    """Resolve language, overrides and mode of one function without side effects."""
    name = function.name
    runtime = function.runtime or service.default_runtime
    language = language_for_runtime(runtime)
    overrides = resolve_overrides(
        function.overrides,
        service.overrides,
        language,
        legacy_disable=function.disable_thundra,
    )

    def skip(state: FunctionState, message: str) -> FunctionPlan:
        return FunctionPlan(function, state, runtime, language, overrides, message)

    if overrides.disable:
        return skip(
            FunctionState.DISABLED,
            f"Automatic instrumentation is disabled for function {name}, skipping.",
        )
    if language is None:
        return skip(
            FunctionState.UNSUPPORTED,
            f'Thundra does not support "{runtime}" at the moment, skipping function {name}',
        )
    if not function.handler:
        return skip(FunctionState.UNSUPPORTED, f"Function {name} has no handler, skipping.")
    if overrides.mode not in VALID_MODES:
        return skip(
            FunctionState.UNSUPPORTED,
            f'Invalid Thundra mode "{overrides.mode}" for function {name} '
            f"(expected one of {', '.join(VALID_MODES)}), skipping.",
        )
    if overrides.mode == MODE_WRAP and language not in WRAPPER_EXTENSIONS:
        return skip(
            FunctionState.UNSUPPORTED,
            f"Wrap mode is not available for {language}, skipping function {name}",
        )
    if overrides.mode == MODE_LAYER:
        try:
            version = parse_version_token(overrides.layer_version)
        except ConfigurationError as e:
            return skip(FunctionState.UNSUPPORTED, f"{e} for function {name}, skipping.")
        overrides = replace(overrides, layer_version=version)

    return FunctionPlan(function, FunctionState.MODE_RESOLVED, runtime, language, overrides)


async def _prepare_latest_arns(
    plans: list[FunctionPlan],
    service: ServiceContext,
    lookup: LayerVersionLookup | None,
    account_no: int,
) -> dict[str, str]:
    runtimes = {plan.runtime for plan in plans if language_for_runtime(plan.runtime)}
    if language_for_runtime(service.default_runtime):
        runtimes.add(service.default_runtime)
    if not runtimes:
        # Nothing Thundra supports is declared.
        return {}

    if lookup is None:
        lookup = BotoLayerVersionLookup(account_no=account_no)

    latest_arns = await prepare_latest_arns(runtimes, service.region, lookup)

    latest_plans = [
        plan
        for plan in plans
        if plan.state == FunctionState.MODE_RESOLVED
        and plan.overrides.mode == MODE_LAYER
        and plan.overrides.layer_version == LATEST_VERSION
    ]
    missing = sorted({plan.runtime for plan in latest_plans if plan.runtime not in latest_arns})
    if missing:
        raise LayerVersionLookupError(
            f"No latest Thundra layer is compatible with {', '.join(missing)} "
            f"in region {service.region}"
        )
    return latest_arns


def _check_libraries(
    plans: list[FunctionPlan], service: ServiceContext, log: Callable[[str], None]
) -> None:
    # One check per distinct (language, manifest); package_json_path is
    # already resolved from the function scope down to the global one.
    checks = dict.fromkeys(
        (plan.language, plan.overrides.package_json_path)
        for plan in plans
        if plan.state == FunctionState.MODE_RESOLVED and plan.overrides.mode == MODE_WRAP
    )
    for language, package_json_path in checks:
        check_library(language, Path(service.service_path), package_json_path, log)


def _wrapper_handler(handler_dir: str, function_name: str, method: str) -> str:
    return posixpath.join(handler_dir, f"{function_name}-thundra.{method}")


def _root_prefix(handler_dir: str) -> str:
    depth = len(PurePosixPath(handler_dir).parts)
    return "../" * depth if depth else "./"


def _wrap(
    plan: FunctionPlan, service: ServiceContext, context: RunContext
) -> tuple[FunctionState, GeneratedWrapper | None]:
    function = plan.function
    handler_dir = service.overrides.handler_dir

    if function.handler.startswith(_wrapper_handler(handler_dir, function.name, "")):
        context.log(f"Function {function.name} is already wrapped with Thundra, skipping.")
        return FunctionState.WRAP_EMITTED, None

    relative_path, _, method = function.handler.rpartition(".")
    module_path = relative_path
    if plan.language == "python":
        module_path = relative_path.replace("/", ".")

    source = render_wrapper(
        plan.language,
        module_path,
        method,
        dependency_dir=service.overrides.dependency_dir,
        root_prefix=_root_prefix(handler_dir),
    )
    wrapper = GeneratedWrapper(
        function_name=function.name,
        language=plan.language,
        file_name=wrapper_file_name(function.name, plan.language),
        source=source,
    )
    function.handler = _wrapper_handler(handler_dir, function.name, method)
    return FunctionState.WRAP_EMITTED, wrapper


def _attach_layer(plan: FunctionPlan, context: RunContext) -> FunctionState:
    try:
        strategy = strategy_for(plan.language, plan.runtime, plan.overrides)
    except UnsupportedLanguageError as e:
        context.log(f"{e}, skipping layer addition for function {plan.function.name}")
        return FunctionState.UNSUPPORTED
    return attach(plan.function, plan.language, strategy, context, plan.overrides)


async def instrument(
    functions: MutableMapping[str, Any],
    service: ServiceContext,
    *,
    lookup: LayerVersionLookup | None = None,
    log: Callable[[str], None] | None = None,
    account_no: int | None = None,
) -> RunResult:
    """
    Instrument every declared function.

    Args:
        functions: `functions:` mapping of the service, mutated in place
        service: shared service context
        lookup: latest layer version lookup (default: boto3 ListLayerVersions)
        log: reporting sink, called once per recoverable condition
        account_no: account publishing the layers

    Raises:
        LayerVersionLookupError: a latest-version lookup failed or produced no usable layer
        LibraryNotInstalledError: the node agent is missing for a wrap-mode function
    """
    log = log or _default_log
    account_no = account_no if account_no is not None else config.THUNDRA_LAYER_ACCOUNT_NO

    descriptors = parse_functions(functions)
    plans = [classify(function, service) for function in descriptors.values()]

    # Preparation phase: nothing below may be mutated if this fails.
    latest_arns = await _prepare_latest_arns(plans, service, lookup, account_no)
    _check_libraries(plans, service, log)

    context = RunContext(
        region=service.region,
        account_no=account_no,
        log=log,
        latest_arns=latest_arns,
        api_key=service.overrides.api_key,
        baseline_layers=list(service.layers),
        default_runtime=service.default_runtime,
    )
    result = RunResult(latest_arns=latest_arns)

    for plan in plans:
        name = plan.function.name
        mode = plan.overrides.mode if plan.state == FunctionState.MODE_RESOLVED else None

        if plan.state != FunctionState.MODE_RESOLVED:
            log(plan.message)
            state = plan.state
        elif mode == MODE_WRAP:
            state, wrapper = _wrap(plan, service, context)
            if wrapper is not None:
                result.wrappers.append(wrapper)
                functions[name]["handler"] = plan.function.handler
        else:
            state = _attach_layer(plan, context)
            if state in LAYER_STATES:
                write_back(functions[name], plan.function)

        logger.debug(f"{name}: {state.value}", extra={"function": name})
        result.outcomes.append(FunctionOutcome(name, state, plan.language, mode))

    return result
