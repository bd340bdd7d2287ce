"""
Serverless host adapter.

Binds the instrumentation run and the cleanup to the serverless lifecycle
events, owns the service path and writes generated wrappers to disk.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, MutableMapping

from .driver import RunResult, instrument
from .logging_config import setup_logging
from .models import ServiceThundraSettings
from .parser import get_thundra_config, parse_service_context
from .utils import remove_dir, write_files
from .versions import LayerVersionLookup

logger = logging.getLogger("serverless_thundra")

LOG_PREFIX = "[serverless-plugin-thundra]"


class ThundraPlugin:
    """
    Thundra's serverless plugin.

    Args:
        service: loaded serverless service mapping (`provider`, `functions`, `custom`)
        service_path: directory of the service; wrappers are written below it
        log: host reporting channel (default: the `serverless_thundra` logger,
            configured through setup_logging)
        lookup: latest layer version lookup (default: boto3)
    """

    commands = {
        "thundra": {
            "usage": "Automatically instruments your functions with Thundra.",
            "lifecycleEvents": ["run", "clean"],
            "commands": {
                "clean": {
                    "usage": "Cleans up extra Thundra files if necessary",
                    "lifecycleEvents": ["init"],
                }
            },
        }
    }

    def __init__(
        self,
        service: MutableMapping[str, Any],
        service_path: str | Path = ".",
        log: Callable[[str], None] | None = None,
        lookup: LayerVersionLookup | None = None,
    ):
        self.service = service
        self.service_path = Path(service_path)
        self._sink = log
        if log is None:
            setup_logging()
        self.lookup = lookup
        self.config: ServiceThundraSettings = get_thundra_config(service)
        self.last_result: RunResult | None = None

        self.hooks: dict[str, Callable[[], Any]] = {
            "before:package:createDeploymentArtifacts": self.run_hook,
            "before:deploy:function:packageFunction": self.run_hook,
            "before:invoke:local:invoke": self.run_hook,
            "before:offline:start:init": self.run_hook,
            "before:step-functions-offline:start": self.run_hook,
            "after:package:createDeploymentArtifacts": self.cleanup,
            "after:invoke:local:invoke": self.cleanup,
            "thundra:clean:init": self.cleanup,
        }

    def log(self, message: str) -> None:
        line = f"{LOG_PREFIX} {message}"
        if self._sink is not None:
            self._sink(line)
        else:
            logger.info(line)

    @property
    def handlers_dir(self) -> Path:
        return self.service_path / self.config.handler_dir

    def check_if_instrument(self) -> bool:
        if self.config.disable:
            self.log("Automatic instrumentation is disabled.")
            return False
        if not self.config.api_key:
            self.log(
                "Thundra API Key not provided. "
                "Make sure thundra_apiKey is set in your functions' environment."
            )
        return True

    async def run(self) -> RunResult | None:
        """Instrument the service functions and write wrapper sources."""
        self.config = get_thundra_config(self.service)
        if not self.check_if_instrument():
            return None

        self.log("Instrumenting your functions with Thundra...")
        functions = self.service.get("functions") or {}
        self.service["functions"] = functions
        context = parse_service_context(self.service, service_path=str(self.service_path))

        result = await instrument(functions, context, lookup=self.lookup, log=self.log)
        if result.wrappers:
            write_files(
                self.handlers_dir,
                {wrapper.file_name: wrapper.source for wrapper in result.wrappers},
            )
        self.last_result = result
        return result

    def run_hook(self) -> RunResult | None:
        return asyncio.run(self.run())

    def cleanup(self) -> None:
        """Remove generated wrappers. Safe to call repeatedly."""
        self.log("Cleaning up Thundra's handlers")
        remove_dir(self.handlers_dir)
