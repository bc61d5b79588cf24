"""Server stamp domain models.

Stamp 是对单个解析服务器的紧凑描述，文本形式为 ``sdns://`` 加上
URL-safe base64（无填充）编码的二进制载荷：

    protocol (1 byte) | props (8 bytes, little endian) | 协议相关字段

字符串字段都以单字节长度前缀（LP）编码；DoH 的证书哈希列表使用
可变长度前缀（VLP），除最后一项外长度字节的最高位置 1。
"""

import base64
from dataclasses import dataclass, field
from enum import IntEnum, IntFlag

from src.modules.stamps.domain.exceptions import InvalidStampError

STAMP_PREFIX = "sdns://"
DEFAULT_PORT = 443


class StampProtocol(IntEnum):
    """Stamp 协议标识。"""

    PLAIN = 0x00
    DNSCRYPT = 0x01
    DOH = 0x02


class ServerInformalProperties(IntFlag):
    """服务器自述属性。"""

    NONE = 0
    DNSSEC = 1 << 0
    NO_LOG = 1 << 1
    NO_FILTER = 1 << 2


@dataclass(frozen=True)
class ServerStamp:
    """Decoded server stamp."""

    protocol: StampProtocol
    props: ServerInformalProperties
    server_addr: str
    server_pk: bytes = b""
    provider_name: str = ""
    hashes: tuple[bytes, ...] = field(default_factory=tuple)
    path: str = ""

    def to_bytes(self) -> bytes:
        out = bytearray([self.protocol])
        out += int(self.props).to_bytes(8, "little")
        match self.protocol:
            case StampProtocol.PLAIN:
                out += _lp(_strip_default_port(self.server_addr).encode())
            case StampProtocol.DNSCRYPT:
                out += _lp(_strip_default_port(self.server_addr).encode())
                out += _lp(self.server_pk)
                out += _lp(self.provider_name.encode())
            case StampProtocol.DOH:
                out += _lp(_strip_default_port(self.server_addr).encode())
                out += _vlp(self.hashes)
                out += _lp(self.provider_name.encode())
                out += _lp(self.path.encode())
        return bytes(out)

    def to_string(self) -> str:
        encoded = base64.urlsafe_b64encode(self.to_bytes()).rstrip(b"=")
        return STAMP_PREFIX + encoded.decode("ascii")

    def __str__(self) -> str:
        return self.to_string()


def _lp(value: bytes) -> bytes:
    if len(value) > 0xFF:
        raise InvalidStampError("Stamp field is too long")
    return bytes([len(value)]) + value


def _vlp(values: tuple[bytes, ...]) -> bytes:
    if not values:
        return b"\x00"
    out = bytearray()
    for i, value in enumerate(values):
        if len(value) > 0x7F:
            raise InvalidStampError("Stamp hash is too long")
        length = len(value)
        if i < len(values) - 1:
            length |= 0x80
        out.append(length)
        out += value
    return bytes(out)


def _strip_default_port(addr: str) -> str:
    suffix = f":{DEFAULT_PORT}"
    if addr.endswith(suffix):
        return addr[: -len(suffix)]
    return addr


def with_default_port(addr: str) -> str:
    """为没有端口的地址补上默认端口。"""
    if addr.startswith("["):
        if addr.endswith("]"):
            return f"{addr}:{DEFAULT_PORT}"
        return addr
    if ":" not in addr:
        return f"{addr}:{DEFAULT_PORT}"
    return addr
