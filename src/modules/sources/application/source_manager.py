"""目录源管理。

acquire 流程：
1. 校验格式与公钥（无任何 I/O）
2. 分别抓取内容与 .minisig 签名（两者都会尝试）
3. 为两个 URL 生成预取记录，无论后续是否成功都返回给调用方
4. 解码并校验签名，失败时同时删除两个缓存文件
5. 校验通过后才写入缓存（仅写入本次不是来自缓存的部分）
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import assert_never

from loguru import logger

from src.core.domain.exceptions import DomainException
from src.core.infrastructure.logging import BusinessEvents
from src.modules.sources.domain.entities import (
    SIGNATURE_SUFFIX,
    CatalogEntry,
    RefreshRecord,
    Source,
    SourceFormat,
    encode_payload,
)
from src.modules.sources.domain.exceptions import (
    CachePersistError,
    SignatureVerificationError,
    SourceTrustError,
)
from src.modules.sources.domain.fetcher import CachedFetcher, FetchOutcome
from src.modules.sources.domain.parsers import parse_v1, parse_v2
from src.modules.sources.domain.ports import SignatureVerifier, StampCodec
from src.modules.sources.infrastructure.cache_store import FileCacheStore
from src.modules.sources.infrastructure.fetchers.cached import CachedURLFetcher
from src.modules.sources.infrastructure.minisign import MinisignVerifier
from src.modules.stamps.domain.codec import DNSStampCodec


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class AcquireResult:
    """acquire 的返回值；错误以值的形式返回，不抛出。"""

    source: Source | None
    refresh_records: list[RefreshRecord] = field(default_factory=list)
    error: DomainException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.source is not None


class SourceManager:
    """Acquire, verify, cache and parse signed catalogs."""

    def __init__(
        self,
        fetcher: CachedFetcher | None = None,
        verifier: SignatureVerifier | None = None,
        codec: StampCodec | None = None,
        cache_store: FileCacheStore | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.cache_store = cache_store or FileCacheStore()
        self.fetcher = fetcher or CachedURLFetcher(cache_store=self.cache_store)
        self.verifier = verifier or MinisignVerifier()
        self.codec = codec or DNSStampCodec()
        self.clock = clock

    def acquire(
        self,
        url: str,
        public_key: str,
        cache_file: str,
        format_name: str,
        refresh_delay: timedelta | None = None,
    ) -> AcquireResult:
        """下载并校验目录。

        Args:
            url: 目录地址，签名地址为 url + ".minisig"
            public_key: minisign 公钥
            cache_file: 内容缓存文件，签名缓存为 cache_file + ".minisig"
            format_name: "v1" 或 "v2"
            refresh_delay: 刷新间隔提示（目前仅作记录）

        Returns:
            AcquireResult: 成功时包含 Source；预取记录在部分失败时也会返回
        """
        try:
            source_format = SourceFormat.from_name(format_name)
            key = self.verifier.parse_public_key(public_key)
        except DomainException as e:
            return AcquireResult(source=None, error=e)
        if refresh_delay is not None:
            logger.debug(f"Refresh delay hint for [{url}]: {refresh_delay}")

        now = self.clock()
        sig_url = url + SIGNATURE_SUFFIX
        sig_cache_file = cache_file + SIGNATURE_SUFFIX

        content = self.fetcher.fetch_with_cache(url, cache_file)
        signature = self.fetcher.fetch_with_cache(sig_url, sig_cache_file)
        records = [
            RefreshRecord(url=url, cache_file=cache_file, next_eligible=now + content.delay),
            RefreshRecord(
                url=sig_url, cache_file=sig_cache_file, next_eligible=now + signature.delay
            ),
        ]

        fetch_error = content.error or signature.error
        if fetch_error is not None:
            BusinessEvents.source_fetch_failed(url=fetch_error.url, error=fetch_error.message)
            return AcquireResult(source=None, refresh_records=records, error=fetch_error)

        try:
            self._verify(url, content, signature, key)
        except SourceTrustError as e:
            self._invalidate(cache_file, sig_cache_file)
            BusinessEvents.source_verification_failed(url=url, error=e.message)
            return AcquireResult(source=None, refresh_records=records, error=e)

        if not content.served_from_cache:
            self._persist(cache_file, content.content)
        if not signature.served_from_cache:
            self._persist(sig_cache_file, signature.content)

        logger.info(f"Source [{url}] loaded")
        BusinessEvents.source_loaded(url=url, from_cache=content.served_from_cache)
        source = Source(url=url, format=source_format, content=content.content)
        return AcquireResult(source=source, refresh_records=records)

    def parse(self, source: Source, prefix: str = "") -> list[CatalogEntry]:
        """按格式解析已校验的目录，每次调用都重新生成条目。"""
        match source.format:
            case SourceFormat.V1:
                return parse_v1(source, prefix, self.codec)
            case SourceFormat.V2:
                return parse_v2(source, prefix, self.codec)
            case _:
                assert_never(source.format)

    def refresh_cached_url(self, record: RefreshRecord) -> DomainException | None:
        """预取单个 URL 并重写缓存文件，刷新其修改时间。

        失败时 next_eligible 同样前移（失败的 delay 为最小重试间隔）。
        """
        outcome = self.fetcher.fetch_with_cache(record.url, record.cache_file)
        if outcome.ok:
            self._persist(record.cache_file, outcome.content)
        record.next_eligible = self.clock() + outcome.delay
        BusinessEvents.source_prefetched(
            url=record.url,
            success=outcome.ok,
            next_eligible=record.next_eligible.isoformat(),
        )
        return outcome.error

    def _verify(
        self,
        url: str,
        content: FetchOutcome,
        signature: FetchOutcome,
        key: object,
    ) -> None:
        try:
            decoded = self.verifier.decode_signature(signature.content)
            verified = self.verifier.verify(encode_payload(content.content), decoded, key)
        except ValueError as e:
            # 包括编码错误：无法校验的签名一律视为不可信
            raise SignatureVerificationError(
                f"Unable to verify signature for [{url}]: {e}"
            ) from e
        if not verified:
            raise SignatureVerificationError(
                f"Signature verification failed for [{url}]"
            )

    def _invalidate(self, cache_file: str, sig_cache_file: str) -> None:
        logger.warning(f"Invalidating cache files [{cache_file}] and [{sig_cache_file}]")
        self.cache_store.delete(cache_file)
        self.cache_store.delete(sig_cache_file)

    def _persist(self, cache_file: str, content: str) -> None:
        try:
            self.cache_store.atomic_write(cache_file, encode_payload(content))
        except CachePersistError as e:
            logger.warning(e.message)
            BusinessEvents.source_cache_persist_failed(
                cache_file=cache_file, error=e.message
            )
