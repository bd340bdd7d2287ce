"""
Latest layer version resolution.

The preparation phase issues one lookup per distinct runtime, concurrently,
and builds the runtime -> layer ARN map used for `layer.version: latest`.
Any failed lookup aborts the whole run.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .catalog import language_for_runtime, layer_name_for
from .config import config
from .exceptions import LayerVersionLookupError
from .models import LatestLayerVersion

logger = logging.getLogger(__name__)

LayerVersionLookup = Callable[[str, str], Awaitable[LatestLayerVersion]]


class BotoLayerVersionLookup:
    """
    Resolve the newest published Thundra layer via `lambda:ListLayerVersions`.

    The boto3 call blocks, so it runs in a worker thread.
    """

    def __init__(self, account_no: int | None = None, client_factory=None):
        self.account_no = account_no if account_no is not None else config.THUNDRA_LAYER_ACCOUNT_NO
        self._client_factory = client_factory or self._default_client
        self._clients: dict[str, object] = {}

    @staticmethod
    def _default_client(region: str):
        return boto3.client(
            "lambda",
            region_name=region,
            config=Config(read_timeout=config.LAYER_LOOKUP_TIMEOUT, retries={"max_attempts": 0}),
        )

    def _client(self, region: str):
        if region not in self._clients:
            self._clients[region] = self._client_factory(region)
        return self._clients[region]

    def lookup(self, runtime: str, region: str) -> LatestLayerVersion:
        language = language_for_runtime(runtime)
        if language is None:
            raise LayerVersionLookupError("no Thundra layer for runtime", runtime=runtime, region=region)

        layer_arn = f"arn:aws:lambda:{region}:{self.account_no}:layer:{layer_name_for(language)}"
        try:
            response = self._client(region).list_layer_versions(
                CompatibleRuntime=runtime, LayerName=layer_arn, MaxItems=1
            )
        except (ClientError, BotoCoreError) as e:
            raise LayerVersionLookupError(str(e), runtime=runtime, region=region) from e

        versions = response.get("LayerVersions") or []
        if not versions:
            raise LayerVersionLookupError(
                "no published layer versions", runtime=runtime, region=region
            )
        latest = versions[0]
        return LatestLayerVersion(
            arn=latest["LayerVersionArn"],
            compatible_runtimes=tuple(latest.get("CompatibleRuntimes") or ()),
        )

    async def __call__(self, runtime: str, region: str) -> LatestLayerVersion:
        return await asyncio.to_thread(self.lookup, runtime, region)


async def prepare_latest_arns(
    runtimes: Iterable[str], region: str, lookup: LayerVersionLookup
) -> dict[str, str]:
    """
    Build the runtime -> latest layer ARN map.

    Raises LayerVersionLookupError when any lookup fails or when no runtime
    ends up with a compatible layer.
    """
    distinct = sorted(set(runtimes))
    logger.debug(f"Resolving latest Thundra layers for {distinct} in {region}")

    try:
        results = await asyncio.gather(*(lookup(runtime, region) for runtime in distinct))
    except LayerVersionLookupError:
        raise
    except Exception as e:
        raise LayerVersionLookupError(f"latest layer lookup failed: {e}") from e

    latest_arns: dict[str, str] = {}
    for runtime, result in zip(distinct, results):
        if runtime in result.compatible_runtimes:
            latest_arns[runtime] = result.arn
        else:
            logger.debug(f"{result.arn} is not compatible with {runtime}")

    if not latest_arns:
        raise LayerVersionLookupError(
            f"No Thundra layer is available for runtimes {distinct} in region {region}"
        )
    return latest_arns
