"""Source domain entities."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from src.modules.sources.domain.exceptions import UnsupportedSourceFormatError
from src.modules.stamps.domain.entities import ServerStamp

SIGNATURE_SUFFIX = ".minisig"


class SourceFormat(StrEnum):
    """目录格式。"""

    V1 = "v1"  # 旧版 CSV
    V2 = "v2"  # "## " 分段的 markdown

    @classmethod
    def from_name(cls, name: str) -> "SourceFormat":
        try:
            return cls(name)
        except ValueError:
            raise UnsupportedSourceFormatError(name) from None


@dataclass(frozen=True)
class Source:
    """A verified catalog document.

    只有通过签名校验的内容才会被构造成 Source。
    """

    url: str
    format: SourceFormat
    content: str


@dataclass(frozen=True)
class CatalogEntry:
    """One named resolver from a catalog."""

    name: str
    stamp: ServerStamp


@dataclass
class RefreshRecord:
    """预取记录：URL、缓存文件与下次可刷新时间。"""

    url: str
    cache_file: str
    next_eligible: datetime

    def is_due(self, now: datetime) -> bool:
        return self.next_eligible <= now


def decode_payload(data: bytes) -> str:
    """字节解码为文本；非 UTF-8 字节原样保留，以便签名校验时还原。"""
    return data.decode("utf-8", errors="surrogateescape")


def encode_payload(text: str) -> bytes:
    return text.encode("utf-8", errors="surrogateescape")
