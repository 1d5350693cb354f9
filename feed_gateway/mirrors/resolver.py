"""
Resolution of abstract ``rsshub://`` feed addresses to a concrete mirror.

A fixed, ordered list of mirror instances is probed once at startup; the first
instance answering a HEAD request with 200 becomes the active mirror, and the
default instance is used when none answers. The selection result is kept in an
immutable ``MirrorState`` that is replaced with a single assignment, so request
handlers always read a consistent snapshot without locking. Requests served
before selection finishes see the default instance.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, replace
from typing import Iterable, Optional

import httpx

from feed_gateway.errors import InvalidInput

logger = logging.getLogger("uvicorn.error")

ABSTRACT_SCHEME = "rsshub://"
VALID_PATH_RE = re.compile(r"[a-zA-Z0-9/._%?&=+-]+")

PLATFORM_DESCRIPTIONS = {
    "techcrunch": "TechCrunch tech news",
    "github": "GitHub repository activity",
    "twitter": "Twitter user timeline",
    "weibo": "Weibo user timeline",
    "bilibili": "Bilibili uploader activity",
    "zhihu": "Zhihu columns and user activity",
    "juejin": "Juejin user articles",
    "v2ex": "V2EX forum",
    "sspai": "sspai articles",
    "coolapk": "Coolapk app market",
    "cnbeta": "cnBeta tech news",
}


@dataclass(frozen=True)
class MirrorState:
    instances: tuple[str, ...]
    default: str
    active: str
    selected: bool = False


@dataclass(frozen=True)
class AddressDescription:
    platform: str
    route: str
    description: str


def is_abstract_address(address: str) -> bool:
    return address.lower().startswith(ABSTRACT_SCHEME)


def _abstract_path(address: str) -> str:
    return address[len(ABSTRACT_SCHEME):]


def is_valid_abstract_address(address: str) -> bool:
    if not is_abstract_address(address):
        return False
    path = _abstract_path(address)
    if path in ("", "/"):
        return False
    return bool(VALID_PATH_RE.fullmatch(path))


def describe_address(address: str) -> Optional[AddressDescription]:
    """Split ``rsshub://platform/route`` into its parts, or None for other addresses."""
    if not is_abstract_address(address):
        return None
    segments = _abstract_path(address).split("/")
    platform = segments[0]
    route = "/".join(segments[1:])
    description = PLATFORM_DESCRIPTIONS.get(platform, f"{platform} RSS feed")
    return AddressDescription(platform=platform, route=route, description=description)


class MirrorResolver:
    def __init__(
        self,
        instances: Iterable[str],
        default: str,
        probe_timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._state = MirrorState(
            instances=tuple(instances), default=default, active=default
        )
        self.probe_timeout = probe_timeout
        self._transport = transport
        self._selection_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> MirrorState:
        return self._state

    @property
    def active(self) -> str:
        return self._state.active

    def _publish(self, active: str) -> None:
        self._state = replace(self._state, active=active, selected=True)

    async def probe(self, client: httpx.AsyncClient, instance: str) -> bool:
        try:
            response = await client.head(instance + "/")
        except httpx.HTTPError as e:
            logger.warning(f"[Mirror] Instance {instance} is not available: {e!r}")
            return False
        if response.status_code != 200:
            logger.warning(
                f"[Mirror] Instance {instance} answered {response.status_code}, skipping"
            )
            return False
        return True

    async def select_active(self) -> str:
        """Probe the instances in priority order and publish the first healthy one."""
        state = self._state
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.probe_timeout),
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            for instance in state.instances:
                if await self.probe(client, instance):
                    logger.info(f"[Mirror] Selected active instance: {instance}")
                    self._publish(instance)
                    return instance

        logger.warning(
            f"[Mirror] No instances are available, using default: {state.default}"
        )
        self._publish(state.default)
        return state.default

    def start_selection(self) -> asyncio.Task:
        """Run ``select_active`` in the background so startup is not delayed."""
        if self._selection_task is None or self._selection_task.done():
            self._selection_task = asyncio.create_task(self.select_active())
        return self._selection_task

    async def stop(self) -> None:
        task = self._selection_task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def resolve_address(self, address: str) -> str:
        if is_abstract_address(address):
            if not is_valid_abstract_address(address):
                raise InvalidInput(f"Invalid RSSHub address: {address}", target_url=address)
            path = _abstract_path(address)
            if not path.startswith("/"):
                path = "/" + path
            resolved = self.active + path
            logger.info(f"[Mirror] Converted {address} -> {resolved}")
            return resolved

        if address.lower().startswith(("http://", "https://")):
            return address

        raise InvalidInput(f"Unsupported feed URL: {address}", target_url=address)
