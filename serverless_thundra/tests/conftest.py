import pytest

from serverless_thundra.catalog import language_for_runtime, layer_name_for
from serverless_thundra.models import LatestLayerVersion


class FakeLookup:
    """Latest-version lookup returning canned ARNs and recording calls."""

    def __init__(self, results=None, error=None):
        self.results = results or {}
        self.error = error
        self.calls = []

    async def __call__(self, runtime, region):
        self.calls.append((runtime, region))
        if self.error is not None:
            raise self.error
        if runtime in self.results:
            return self.results[runtime]
        layer_name = layer_name_for(language_for_runtime(runtime))
        return LatestLayerVersion(
            arn=f"arn:aws:lambda:{region}:269863060030:layer:{layer_name}:99",
            compatible_runtimes=(runtime,),
        )


@pytest.fixture
def log_lines():
    return []


@pytest.fixture
def log(log_lines):
    return log_lines.append


@pytest.fixture
def fake_lookup():
    return FakeLookup()
