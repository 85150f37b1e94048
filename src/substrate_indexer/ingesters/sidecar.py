import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import aiohttp

from ..config import ProviderConfig
from ..errors import SourceExhausted, SourceProtocolError, SourceUnavailable
from ..types.raw import RawBlock, RawEvent, RawExtrinsic, RawHeader, TypedValue
from ..utils import parse_base_units
from .base import ChainSource

logger = logging.getLogger(__name__)

SUBSCRIBE_MESSAGE = {"method": "subscribe", "params": ["block"]}


def _call(method: Any) -> tuple[Optional[str], Optional[str]]:
    """Split a sidecar call descriptor into (section, method)"""
    if isinstance(method, dict):
        return method.get("pallet", method.get("section")), method.get("method")
    if isinstance(method, str) and "." in method:
        section, name = method.split(".", 1)
        return section, name
    return None, None


def _signer(signature: Any) -> Optional[str]:
    if not isinstance(signature, dict):
        return None
    signer = signature.get("signer")
    if isinstance(signer, dict):
        return signer.get("id", signer.get("Id"))
    return signer


def parse_header(payload: Dict[str, Any]) -> RawHeader:
    try:
        return RawHeader(
            number=parse_base_units(payload["number"]),
            hash=payload["hash"],
            parent_hash=payload["parentHash"],
            state_root=payload["stateRoot"],
            extrinsics_root=payload["extrinsicsRoot"],
        )
    except (KeyError, TypeError, ValueError) as e:
        raise SourceProtocolError(f"malformed block header: {e!r}") from e


def _object(value: Any, what: str) -> Dict[str, Any]:
    """Optional JSON object, absent counts as empty"""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SourceProtocolError(f"{what} is not an object: {type(value).__name__}")
    return value


def _array(value: Any, what: str) -> List[Any]:
    """Optional JSON array, absent counts as empty"""
    if value is None:
        return []
    if not isinstance(value, list):
        raise SourceProtocolError(f"{what} is not a list: {type(value).__name__}")
    return value


def parse_extrinsic(item: Dict[str, Any]) -> RawExtrinsic:
    """An extrinsic whose info can't be read comes back without a call, the normalizer skips it"""
    section, method = _call(item.get("method"))
    info = item.get("info")
    if info is not None and not isinstance(info, dict):
        return RawExtrinsic(section=None, method=None, hash=item.get("hash"))

    info = info or {}
    return RawExtrinsic(
        section=section,
        method=method,
        hash=item.get("hash"),
        signer=_signer(item.get("signature")),
        args=item.get("args"),
        weight=info.get("weight"),
        partial_fee=info.get("partialFee"),
    )


def parse_event(item: Dict[str, Any]) -> RawEvent:
    section, method = _call(item.get("method"))
    data = []
    for value in _array(item.get("data"), "event data"):
        if isinstance(value, dict) and set(value.keys()) == {"type", "value"}:
            data.append(TypedValue(type=value["type"], value=value["value"]))
        else:
            data.append(TypedValue(type=None, value=value))
    return RawEvent(section=section, method=method, data=data)


def parse_events(payload: Dict[str, Any]) -> List[RawEvent]:
    """Events of a block in execution order: initialization, extrinsics, finalization"""
    on_initialize = _object(payload.get("onInitialize"), "onInitialize")
    on_finalize = _object(payload.get("onFinalize"), "onFinalize")

    items = list(_array(on_initialize.get("events"), "onInitialize.events"))
    for extrinsic in _array(payload.get("extrinsics"), "extrinsics"):
        if isinstance(extrinsic, dict):
            items.extend(_array(extrinsic.get("events"), "extrinsic events"))
    items.extend(_array(on_finalize.get("events"), "onFinalize.events"))

    return [parse_event(item) for item in items if isinstance(item, dict)]


def parse_block(payload: Dict[str, Any]) -> RawBlock:
    if not isinstance(payload, dict):
        raise SourceProtocolError(f"block payload is not an object: {type(payload).__name__}")

    extrinsics = payload.get("extrinsics")
    if not isinstance(extrinsics, list):
        raise SourceProtocolError("block payload has no extrinsics list")

    return RawBlock(
        header=parse_header(payload),
        extrinsics=[
            parse_extrinsic(item) if isinstance(item, dict) else RawExtrinsic(None, None)
            for item in extrinsics
        ],
        events=parse_events(payload),
    )


class SidecarSource(ChainSource):
    """Reads a Substrate chain through a Substrate API Sidecar style HTTP gateway"""

    def __init__(self, config: ProviderConfig, session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        self.url = config.url.rstrip("/")
        self._session = session
        self._owns_session = session is None
        self._last_block: Optional[RawBlock] = None
        logger.info(f"Initialized SidecarSource with URL: {self.url}")

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = None
            if self.config.http_req_timeout_millis is not None:
                timeout = aiohttp.ClientTimeout(total=self.config.http_req_timeout_millis / 1000)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def _request(self, path: str) -> Any:
        url = f"{self.url}{path}"
        session = self._get_session()

        try:
            async with session.get(url) as response:
                if response.status == 429 or response.status >= 500:
                    raise SourceUnavailable(f"HTTP {response.status} from {url}: {await response.text()}")
                if response.status != 200:
                    raise SourceProtocolError(f"HTTP {response.status} from {url}: {await response.text()}")
                try:
                    return await response.json(content_type=None)
                except json.JSONDecodeError as e:
                    raise SourceProtocolError(f"invalid JSON from {url}: {e}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SourceUnavailable(f"request to {url} failed: {e!r}") from e

    async def _get_json(self, path: str) -> Any:
        """GET with exponential backoff on SourceUnavailable"""
        attempt = 0
        while True:
            try:
                return await self._request(path)
            except SourceUnavailable as e:
                if attempt >= self.config.max_num_retries:
                    raise
                delay_ms = min(
                    self.config.retry_base_ms * (2**attempt),
                    self.config.retry_ceiling_ms,
                )
                attempt += 1
                logger.warning(
                    f"{e}; retry {attempt}/{self.config.max_num_retries} in {delay_ms}ms"
                )
                await asyncio.sleep(delay_ms / 1000)

    async def latest_height(self) -> int:
        payload = await self._get_json("/blocks/head/header")
        return parse_header(payload).number

    async def block_hash(self, height: int) -> str:
        payload = await self._get_json(f"/blocks/{height}/header")
        return parse_header(payload).hash

    async def block(self, block_hash: str) -> RawBlock:
        raw = parse_block(await self._get_json(f"/blocks/{block_hash}"))
        self._last_block = raw
        return raw

    async def events(self, block_hash: str) -> List[RawEvent]:
        """Events come with the block payload, the last fetched block is reused"""
        last = self._last_block
        if last is not None and last.hash == block_hash and last.events is not None:
            return list(last.events)

        payload = await self._get_json(f"/blocks/{block_hash}")
        if not isinstance(payload, dict):
            raise SourceProtocolError(f"block payload is not an object: {type(payload).__name__}")
        return parse_events(payload)

    async def account_balance(self, address: str) -> str:
        payload = await self._get_json(f"/accounts/{address}/balance-info")
        try:
            return str(parse_base_units(payload["free"]))
        except (KeyError, TypeError, ValueError) as e:
            raise SourceProtocolError(f"malformed balance for {address}: {e!r}") from e

    async def subscribe(self) -> AsyncIterator[RawBlock]:
        if not self.config.ws_url:
            raise SourceExhausted("no ws_url configured for block subscription")

        session = self._get_session()
        try:
            ws = await session.ws_connect(self.config.ws_url)
        except (aiohttp.ClientError, OSError) as e:
            raise SourceExhausted(f"could not connect to {self.config.ws_url}: {e!r}") from e

        logger.info(f"Connected to {self.config.ws_url}")

        async with ws:
            await ws.send_json(SUBSCRIBE_MESSAGE)

            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        yield parse_block(json.loads(msg.data))
                    except (json.JSONDecodeError, SourceProtocolError) as e:
                        logger.error(f"Skipping malformed subscription message: {e}")
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error(f"Subscription error: {ws.exception()}")
                    break

        raise SourceExhausted("block subscription closed")

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None
