"""
pytest 配置和共享 fixtures。

使用方法：
    # 运行所有测试
    uv run pytest

    # 运行带覆盖率
    uv run pytest --cov=src --cov-report=html
"""

import base64
import hashlib
import os
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from src.core.config import Settings
from src.modules.sources.application.source_manager import SourceManager
from src.modules.sources.infrastructure.cache_store import FileCacheStore
from src.modules.sources.infrastructure.fetchers.cached import CachedURLFetcher
from src.modules.sources.infrastructure.minisign import MinisignVerifier
from src.modules.stamps.domain.entities import (
    ServerInformalProperties,
    ServerStamp,
    StampProtocol,
)

FRESHNESS_WINDOW = timedelta(hours=24)
RETRY_DELAY = timedelta(minutes=10)

SOURCE_URL = "https://catalog.example.com/public-resolvers.md"
SIG_URL = SOURCE_URL + ".minisig"

ALPHA_STAMP = ServerStamp(
    protocol=StampProtocol.DNSCRYPT,
    props=ServerInformalProperties.DNSSEC | ServerInformalProperties.NO_LOG,
    server_addr="1.2.3.4:443",
    server_pk=bytes(range(32)),
    provider_name="2.dnscrypt-cert.alpha.example",
)
BETA_STAMP = ServerStamp(
    protocol=StampProtocol.DOH,
    props=ServerInformalProperties.DNSSEC,
    server_addr="9.9.9.9:443",
    provider_name="beta.example.com",
    path="/dns-query",
)

V2_DOCUMENT = f"""# public-resolvers

A list of public resolvers.

## alpha
Alpha resolver, no logs.

{ALPHA_STAMP.to_string()}

## beta
Beta resolver.
{BETA_STAMP.to_string()}
"""


# ============================================
# 配置 Fixtures
# ============================================


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """测试环境配置。"""
    return Settings(
        ENVIRONMENT="local",
        SOURCES_CACHE_DIR=str(tmp_path / "cache"),
        SOURCES_UPDATE_DELAY_SEC=int(FRESHNESS_WINDOW.total_seconds()),
        SOURCES_RETRY_DELAY_SEC=int(RETRY_DELAY.total_seconds()),
        SOURCES=[],
    )


# ============================================
# Minisign Fixtures
# ============================================


@dataclass
class MinisignKeyPair:
    """测试用 minisign 密钥对。"""

    private_key: Ed25519PrivateKey
    key_id: bytes

    @property
    def public_key_text(self) -> str:
        raw = self.private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        return base64.b64encode(b"Ed" + self.key_id + raw).decode()

    def sign(
        self,
        content: str | bytes,
        trusted_comment: str = "timestamp:1700000000\tfile:public-resolvers.md",
        prehashed: bool = True,
    ) -> str:
        data = content.encode() if isinstance(content, str) else content
        return self.sign_raw(data, trusted_comment.encode(), prehashed).decode()

    def sign_raw(
        self, data: bytes, trusted_comment: bytes, prehashed: bool = True
    ) -> bytes:
        """按字节构造签名文件，trusted comment 可以不是合法 UTF-8。"""
        if prehashed:
            algorithm = b"ED"
            signature = self.private_key.sign(hashlib.blake2b(data, digest_size=64).digest())
        else:
            algorithm = b"Ed"
            signature = self.private_key.sign(data)
        global_signature = self.private_key.sign(signature + trusted_comment)
        return (
            b"untrusted comment: signature from minisign secret key\n"
            + base64.b64encode(algorithm + self.key_id + signature)
            + b"\ntrusted comment: "
            + trusted_comment
            + b"\n"
            + base64.b64encode(global_signature)
            + b"\n"
        )


@pytest.fixture
def keypair() -> MinisignKeyPair:
    return MinisignKeyPair(
        private_key=Ed25519PrivateKey.generate(), key_id=os.urandom(8)
    )


@pytest.fixture
def other_keypair() -> MinisignKeyPair:
    return MinisignKeyPair(
        private_key=Ed25519PrivateKey.generate(), key_id=os.urandom(8)
    )


# ============================================
# HTTP Fixtures
# ============================================


class RecordingTransport(httpx.MockTransport):
    """MockTransport that serves a url -> (status, body) map and records requests."""

    def __init__(self, routes: dict[str, tuple[int, str | bytes]]):
        self.routes = routes
        self.requested: list[str] = []
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        if url not in self.routes:
            raise httpx.ConnectError("connection refused", request=request)
        status_code, body = self.routes[url]
        return httpx.Response(status_code, content=body)


@pytest.fixture
def make_transport() -> Callable[..., RecordingTransport]:
    def _make(routes: dict[str, tuple[int, str | bytes]]) -> RecordingTransport:
        return RecordingTransport(routes)

    return _make


# ============================================
# 时间控制 Fixtures
# ============================================


class FakeClock:
    """可手动推进的时钟。"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime.now(UTC).replace(microsecond=0))


@pytest.fixture
def set_mtime() -> Callable[[Path, datetime], None]:
    """设置文件修改时间。"""

    def _set(path: Path, when: datetime) -> None:
        ts = when.timestamp()
        os.utime(path, (ts, ts))

    return _set


# ============================================
# Source Manager Fixtures
# ============================================


@pytest.fixture
def cache_file(tmp_path: Path) -> Path:
    return tmp_path / "cache" / "public-resolvers.md"


@pytest.fixture
def make_manager(clock: FakeClock) -> Callable[..., SourceManager]:
    """构造使用 MockTransport 的 SourceManager。"""

    def _make(transport: httpx.MockTransport, **kwargs) -> SourceManager:
        cache_store = FileCacheStore()
        fetcher = CachedURLFetcher(
            cache_store=cache_store,
            client=httpx.Client(transport=transport),
            freshness_window=FRESHNESS_WINDOW,
            retry_delay=RETRY_DELAY,
            clock=clock,
        )
        return SourceManager(
            fetcher=fetcher,
            verifier=kwargs.pop("verifier", MinisignVerifier()),
            cache_store=cache_store,
            clock=clock,
            **kwargs,
        )

    return _make


# ============================================
# Stamp Fixtures
# ============================================


class StubCodec:
    """记录调用参数的 stamp codec。"""

    def __init__(self, fail_on: str | None = None):
        self.fail_on = fail_on
        self.legacy_calls: list[dict] = []
        self.string_calls: list[str] = []

    def from_legacy_fields(
        self,
        server_addr: str,
        server_pk: str,
        provider_name: str,
        props: ServerInformalProperties,
    ) -> ServerStamp:
        self.legacy_calls.append(
            {
                "server_addr": server_addr,
                "server_pk": server_pk,
                "provider_name": provider_name,
                "props": props,
            }
        )
        if self.fail_on is not None and server_addr == self.fail_on:
            from src.modules.stamps.domain.exceptions import InvalidStampError

            raise InvalidStampError(f"bad address {server_addr}")
        return ServerStamp(
            protocol=StampProtocol.DNSCRYPT,
            props=props,
            server_addr=server_addr,
            provider_name=provider_name,
        )

    def from_string(self, text: str) -> ServerStamp:
        self.string_calls.append(text)
        if self.fail_on is not None and text == self.fail_on:
            from src.modules.stamps.domain.exceptions import InvalidStampError

            raise InvalidStampError(f"bad stamp {text}")
        return ServerStamp(
            protocol=StampProtocol.PLAIN,
            props=ServerInformalProperties.NONE,
            server_addr=text,
        )


@pytest.fixture
def stub_codec() -> StubCodec:
    return StubCodec()


# ============================================
# 目录文档 Fixtures
# ============================================


@pytest.fixture
def source_url() -> str:
    return SOURCE_URL


@pytest.fixture
def sig_url() -> str:
    return SIG_URL


@pytest.fixture
def v2_document() -> str:
    return V2_DOCUMENT


@pytest.fixture
def alpha_stamp() -> ServerStamp:
    return ALPHA_STAMP


@pytest.fixture
def beta_stamp() -> ServerStamp:
    return BETA_STAMP


@pytest.fixture
def make_codec() -> Callable[..., StubCodec]:
    return StubCodec


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
