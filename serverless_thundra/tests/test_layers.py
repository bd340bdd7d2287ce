import pytest

from serverless_thundra.catalog import LAYER_STRATEGIES, NODE_MINIFIED, NODE_WITH_CUSTOM_RUNTIME
from serverless_thundra.exceptions import LayerVersionLookupError
from serverless_thundra.layers import attach, get_layer_arn, has_layer
from serverless_thundra.models import (
    DELEGATED_HANDLER_ENV_VAR,
    FunctionDescriptor,
    FunctionState,
    RunContext,
)
from serverless_thundra.overrides import ResolvedOverrides

PYTHON = LAYER_STRATEGIES["python"]
PYTHON_ARN = "arn:aws:lambda:eu-west-1:269863060030:layer:thundra-lambda-python-layer:17"


@pytest.fixture
def context(log):
    return RunContext(region="eu-west-1", account_no=269863060030, log=log)


def _function(**data):
    return FunctionDescriptor.from_dict("hello", {"runtime": "python3.8", "handler": "app.handler", **data})


def test_get_layer_arn():
    assert get_layer_arn("eu-west-1", 269863060030, "thundra-lambda-python-layer", "17") == PYTHON_ARN


def test_has_layer_ignores_references():
    assert has_layer([PYTHON_ARN], "thundra-lambda-python-layer")
    assert not has_layer([{"Ref": "ThundraLayer"}], "thundra-lambda-python-layer")
    assert not has_layer([], "thundra-lambda-python-layer")


def test_attach_with_delegation(context, log_lines):
    function = _function()

    state = attach(function, "python", PYTHON, context, ResolvedOverrides())

    assert state == FunctionState.LAYER_ATTACHED
    assert function.handler == "thundra.handler.wrapper"
    assert function.environment[DELEGATED_HANDLER_ENV_VAR] == "app.handler"
    assert function.layers == [PYTHON_ARN]
    assert function.runtime == "python3.8"
    assert log_lines == []


def test_attach_twice_is_a_no_op(context, log_lines):
    function = _function()
    attach(function, "python", PYTHON, context, ResolvedOverrides())
    snapshot = function.model_copy(deep=True)

    state = attach(function, "python", PYTHON, context, ResolvedOverrides())

    assert state == FunctionState.LAYER_ATTACHED
    assert function == snapshot
    assert len(log_lines) == 1
    assert "already has a Thundra python layer" in log_lines[0]


@pytest.mark.parametrize("delegated", [None, "", "thundra.handler.wrapper"])
def test_attach_misconfigured_entry_point(context, log_lines, delegated):
    environment = {DELEGATED_HANDLER_ENV_VAR: delegated} if delegated is not None else {}
    function = _function(handler="thundra.handler.wrapper", environment=environment)

    state = attach(function, "python", PYTHON, context, ResolvedOverrides())

    assert state == FunctionState.MISCONFIGURED
    assert function.handler == "thundra.handler.wrapper"
    assert function.layers == []
    assert len(log_lines) == 1


def test_attach_overwrites_stale_delegation(context, log_lines):
    function = _function(environment={DELEGATED_HANDLER_ENV_VAR: "old.handler"})

    attach(function, "python", PYTHON, context, ResolvedOverrides())

    assert function.environment[DELEGATED_HANDLER_ENV_VAR] == "app.handler"
    assert len(log_lines) == 1
    assert "old.handler -> app.handler" in log_lines[0]


def test_attach_skips_when_layer_present(context, log_lines):
    existing = "arn:aws:lambda:eu-west-1:269863060030:layer:thundra-lambda-python-layer:9"
    function = _function(layers=[existing])

    state = attach(function, "python", PYTHON, context, ResolvedOverrides())

    assert state == FunctionState.LAYER_ATTACHED
    assert function.layers == [existing]
    assert function.handler == "thundra.handler.wrapper"
    assert len(log_lines) == 1


def test_attach_layer_limit(context, log_lines):
    layers = [f"arn:aws:lambda:eu-west-1:1:layer:other-{i}:1" for i in range(5)]
    function = _function(layers=layers)

    state = attach(function, "python", PYTHON, context, ResolvedOverrides())

    assert state == FunctionState.LAYER_SKIPPED_LIMIT_REACHED
    assert function.layers == layers
    # delegation is not rolled back
    assert function.handler == "thundra.handler.wrapper"
    assert function.environment[DELEGATED_HANDLER_ENV_VAR] == "app.handler"
    assert len(log_lines) == 1
    assert "limit 5" in log_lines[0]


def test_attach_layer_limit_skips_environment(context):
    layers = [f"arn:aws:lambda:eu-west-1:1:layer:other-{i}:1" for i in range(5)]
    function = _function(runtime="nodejs14.x", handler="index.handler", layers=layers)

    state = attach(function, "node", NODE_MINIFIED, context, ResolvedOverrides())

    assert state == FunctionState.LAYER_SKIPPED_LIMIT_REACHED
    assert "AWS_LAMBDA_EXEC_WRAPPER" not in function.environment


def test_attach_pinned_version(context):
    function = _function()

    attach(function, "python", PYTHON, context, ResolvedOverrides(layer_version="20"))

    assert function.layers == [
        "arn:aws:lambda:eu-west-1:269863060030:layer:thundra-lambda-python-layer:20"
    ]


def test_attach_latest_version(context):
    latest = "arn:aws:lambda:eu-west-1:269863060030:layer:thundra-lambda-python-layer:42"
    context.latest_arns = {"python3.8": latest}
    function = _function()

    attach(function, "python", PYTHON, context, ResolvedOverrides(layer_version="latest"))

    assert function.layers == [latest]


def test_attach_latest_version_missing(context):
    function = _function()

    with pytest.raises(LayerVersionLookupError) as excinfo:
        attach(function, "python", PYTHON, context, ResolvedOverrides(layer_version="latest"))
    assert excinfo.value.runtime == "python3.8"


def test_attach_uses_baseline_layers(context):
    context.baseline_layers = [{"Ref": "SharedLayer"}]
    function = _function()

    attach(function, "python", PYTHON, context, ResolvedOverrides())

    assert function.layers == [{"Ref": "SharedLayer"}, PYTHON_ARN]
    assert context.baseline_layers == [{"Ref": "SharedLayer"}]


def test_attach_explicit_empty_layers_ignores_baseline(context):
    context.baseline_layers = [{"Ref": "SharedLayer"}]
    function = _function(layers=[])

    attach(function, "python", PYTHON, context, ResolvedOverrides())

    assert function.layers == [PYTHON_ARN]


def test_attach_inherits_default_runtime(context):
    context.default_runtime = "python3.9"
    function = FunctionDescriptor.from_dict("hello", {"handler": "app.handler"})

    attach(function, "python", PYTHON, context, ResolvedOverrides())

    assert function.runtime == "python3.9"


def test_attach_injects_api_key(context):
    context.api_key = "secret"
    function = _function()
    keeps_own = _function(environment={"thundra_apiKey": "mine"})

    attach(function, "python", PYTHON, context, ResolvedOverrides())
    attach(keeps_own, "python", PYTHON, context, ResolvedOverrides())

    assert function.environment["thundra_apiKey"] == "secret"
    assert keeps_own.environment["thundra_apiKey"] == "mine"


def test_attach_custom_runtime(context):
    function = _function(runtime="nodejs10.x", handler="index.handler")

    state = attach(function, "node", NODE_WITH_CUSTOM_RUNTIME, context, ResolvedOverrides())

    assert state == FunctionState.LAYER_ATTACHED
    assert function.runtime == "provided"
    assert function.handler == "index.handler"
    assert DELEGATED_HANDLER_ENV_VAR not in function.environment
    assert function.layers == [
        "arn:aws:lambda:eu-west-1:269863060030:layer:thundra-lambda-node-layer:33"
    ]


def test_attach_exec_wrapper_keeps_user_value(context, log_lines):
    function = _function(
        runtime="nodejs14.x",
        handler="index.handler",
        environment={"AWS_LAMBDA_EXEC_WRAPPER": "/opt/custom"},
    )

    attach(function, "node", NODE_MINIFIED, context, ResolvedOverrides(layer_version="40"))

    assert function.environment["AWS_LAMBDA_EXEC_WRAPPER"] == "/opt/custom"
    assert function.runtime == "nodejs14.x"
    assert len(log_lines) == 1
