"""
Instrumentation domain models.

Declarations (functions, provider, custom.thundra) are parsed into Pydantic
models; values computed per run are small frozen dataclasses.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import config

CUSTOM_RUNTIME = "provided"
MAX_LAYERS = 5
DELEGATED_HANDLER_ENV_VAR = "thundra_agent_lambda_handler"
API_KEY_ENV_VAR = "thundra_apiKey"

MODE_LAYER = "layer"
MODE_WRAP = "wrap"
VALID_MODES = (MODE_LAYER, MODE_WRAP)

LATEST_VERSION = "latest"


class LayerSettings(BaseModel):
    """`layer:` block of an override scope."""

    model_config = ConfigDict(extra="ignore")

    version: Optional[str] = None

    @field_validator("version", mode="before")
    @classmethod
    def _coerce_version(cls, value: Any) -> Any:
        # YAML reads `version: 37` as an int.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class ThundraSettings(BaseModel):
    """One `custom.thundra` override scope. `None` means unset."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    disable: Optional[bool] = None
    mode: Optional[str] = None
    layer: LayerSettings = Field(default_factory=LayerSettings)
    use_custom_runtime: Optional[bool] = Field(default=None, alias="useCustomRuntime")
    package_json_path: Optional[str] = None

    @field_validator("mode", mode="before")
    @classmethod
    def _coerce_mode(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("layer", mode="before")
    @classmethod
    def _empty_layer(cls, value: Any) -> Any:
        return {} if value is None else value


class ServiceThundraSettings(ThundraSettings):
    """Service-wide `custom.thundra` scope with per-language sub-scopes."""

    node: ThundraSettings = Field(default_factory=ThundraSettings)
    python: ThundraSettings = Field(default_factory=ThundraSettings)
    java: ThundraSettings = Field(default_factory=ThundraSettings)

    api_key: Optional[str] = Field(default=None, alias="apiKey")
    handler_dir: str = Field(
        default_factory=lambda: config.THUNDRA_HANDLER_DIR, alias="thundraHandlerDir"
    )
    dependency_dir: Optional[str] = Field(default=None, alias="dependencyDir")

    @field_validator("node", "python", "java", mode="before")
    @classmethod
    def _empty_scope(cls, value: Any) -> Any:
        return {} if value is None else value

    def for_language(self, language: str) -> ThundraSettings:
        scope = getattr(self, language, None)
        if isinstance(scope, ThundraSettings):
            return scope
        return ThundraSettings()


class FunctionDescriptor(BaseModel):
    """
    One deployable function.

    Mutated in place by the layer engine and the driver during a run.
    """

    name: str
    runtime: Optional[str] = None
    handler: Optional[str] = None
    environment: Dict[str, Any] = Field(default_factory=dict)
    # None when the declaration has no `layers:`; provider layers then apply.
    layers: Optional[List[Any]] = None
    overrides: ThundraSettings = Field(default_factory=ThundraSettings)
    disable_thundra: bool = False

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "FunctionDescriptor":
        """Factory to create from a `functions:` entry."""
        thundra = (data.get("custom") or {}).get("thundra") or {}
        runtime = data.get("runtime")
        handler = data.get("handler")
        layers = data.get("layers")
        return cls(
            name=name,
            runtime=runtime if isinstance(runtime, str) else None,
            handler=handler if isinstance(handler, str) else None,
            environment=dict(data.get("environment") or {}),
            layers=list(layers) if layers is not None else None,
            overrides=ThundraSettings.model_validate(thundra),
            disable_thundra=bool(data.get("disableThundra", False)),
        )


class ServiceContext(BaseModel):
    """Shared scope of a declaration set."""

    default_runtime: Optional[str] = None
    region: str = "us-east-1"
    overrides: ServiceThundraSettings = Field(default_factory=ServiceThundraSettings)
    layers: List[Any] = Field(default_factory=list)
    service_path: str = "."


@dataclass(frozen=True)
class AttachmentStrategy:
    """Structural parameters for attaching the agent layer to one function."""

    layer_name: str
    default_version: str
    entry_point_name: str = ""
    needs_delegation: bool = False
    uses_custom_runtime: bool = False
    environment: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if self.needs_delegation and not self.entry_point_name:
            raise ValueError(f"{self.layer_name}: delegation requires an entry point name")


@dataclass(frozen=True)
class LatestLayerVersion:
    """Result of a latest-version lookup."""

    arn: str
    compatible_runtimes: tuple[str, ...] = ()


@dataclass
class RunContext:
    """
    Values shared by every function of one run.

    `latest_arns` is filled by the preparation phase before any function
    is mutated; `log` is the host's reporting channel.
    """

    region: str
    account_no: int
    log: Callable[[str], None]
    latest_arns: Dict[str, str] = field(default_factory=dict)
    default_runtime: Optional[str] = None
    api_key: Optional[str] = None
    baseline_layers: List[Any] = field(default_factory=list)


@dataclass(frozen=True)
class GeneratedWrapper:
    """Wrapper source queued for writing under the handler directory."""

    function_name: str
    language: str
    file_name: str
    source: str


class FunctionState(str, Enum):
    DISCOVERED = "Discovered"
    DISABLED = "Disabled"
    UNSUPPORTED = "Unsupported"
    MODE_RESOLVED = "ModeResolved"
    WRAP_PENDING = "WrapPending"
    WRAP_EMITTED = "WrapEmitted"
    LAYER_PENDING = "LayerPending"
    LAYER_ATTACHED = "LayerAttached"
    LAYER_SKIPPED_LIMIT_REACHED = "LayerSkippedLimitReached"
    MISCONFIGURED = "Misconfigured"
