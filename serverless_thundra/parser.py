"""
Service Declaration Parser

Extract function descriptors and the shared service context from an already
loaded serverless service mapping, and write mutated descriptors back.

Expected shape:
    {
        'provider': {'runtime': 'python3.8', 'region': 'eu-west-1', 'layers': [...]},
        'custom': {'thundra': {...}},
        'functions': {
            'hello': {
                'handler': 'handler.hello',
                'runtime': 'python3.8',
                'environment': {...},
                'layers': [...],
                'custom': {'thundra': {...}},
            }
        },
    }
"""

from typing import Any, Dict, Mapping, MutableMapping

from .config import config
from .models import FunctionDescriptor, ServiceContext, ServiceThundraSettings


def get_thundra_config(service: Mapping[str, Any]) -> ServiceThundraSettings:
    custom = service.get("custom") or {}
    return ServiceThundraSettings.model_validate(custom.get("thundra") or {})


def parse_service_context(service: Mapping[str, Any], service_path: str = ".") -> ServiceContext:
    provider = service.get("provider") or {}
    runtime = provider.get("runtime")
    return ServiceContext(
        default_runtime=runtime if isinstance(runtime, str) else None,
        region=provider.get("region") or config.DEFAULT_REGION,
        overrides=get_thundra_config(service),
        layers=list(provider.get("layers") or []),
        service_path=service_path,
    )


def parse_functions(functions: Mapping[str, Any]) -> Dict[str, FunctionDescriptor]:
    """Parse `functions:` preserving declaration order."""
    return {
        name: FunctionDescriptor.from_dict(name, data or {})
        for name, data in (functions or {}).items()
    }


def write_back(declaration: MutableMapping[str, Any], function: FunctionDescriptor) -> None:
    """Persist the mutable fields of a processed function into its declaration."""
    if function.handler is not None:
        declaration["handler"] = function.handler
    if function.runtime is not None:
        declaration["runtime"] = function.runtime
    declaration["environment"] = dict(function.environment)
    if function.layers is not None:
        declaration["layers"] = list(function.layers)
