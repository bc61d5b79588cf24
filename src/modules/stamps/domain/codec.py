"""Stamp codec.

- from_legacy_fields: 由旧版 CSV 目录中的字段构造 DNSCrypt stamp
- from_string: 解码 ``sdns://`` 文本
"""

import base64
import binascii
from ipaddress import IPv6Address, ip_address

from src.modules.stamps.domain.entities import (
    STAMP_PREFIX,
    ServerInformalProperties,
    ServerStamp,
    StampProtocol,
    with_default_port,
)
from src.modules.stamps.domain.exceptions import InvalidStampError

PUBLIC_KEY_SIZE = 32


class DNSStampCodec:
    """Default stamp codec used by the catalog parsers."""

    def from_legacy_fields(
        self,
        server_addr: str,
        server_pk: str,
        provider_name: str,
        props: ServerInformalProperties,
    ) -> ServerStamp:
        try:
            ip_value = ip_address(server_addr)
        except ValueError:
            ip_value = None
        if isinstance(ip_value, IPv6Address):
            server_addr = f"[{server_addr}]:443"
        elif ip_value is not None:
            server_addr = f"{server_addr}:443"

        try:
            pk = bytes.fromhex(server_pk.replace(":", ""))
        except ValueError as e:
            raise InvalidStampError(f"Unsupported public key: [{server_pk}]") from e
        if len(pk) != PUBLIC_KEY_SIZE:
            raise InvalidStampError(f"Unsupported public key: [{server_pk}]")

        return ServerStamp(
            protocol=StampProtocol.DNSCRYPT,
            props=props,
            server_addr=server_addr,
            server_pk=pk,
            provider_name=provider_name,
        )

    def from_string(self, text: str) -> ServerStamp:
        if not text.startswith(STAMP_PREFIX):
            raise InvalidStampError("Stamps are expected to start with sdns://")
        payload = text[len(STAMP_PREFIX) :]
        try:
            raw = base64.urlsafe_b64decode(payload + "=" * (-len(payload) % 4))
        except (binascii.Error, ValueError) as e:
            raise InvalidStampError(f"Invalid stamp encoding: [{text}]") from e
        if len(raw) < 1:
            raise InvalidStampError("Stamp is too short")

        reader = _StampReader(raw)
        protocol_byte = reader.byte()
        try:
            protocol = StampProtocol(protocol_byte)
        except ValueError as e:
            raise InvalidStampError(
                f"Unsupported stamp version or protocol: {protocol_byte}"
            ) from e

        props = ServerInformalProperties(int.from_bytes(reader.take(8), "little"))
        match protocol:
            case StampProtocol.PLAIN:
                stamp = ServerStamp(
                    protocol=protocol,
                    props=props,
                    server_addr=with_default_port(reader.lp_str()),
                )
            case StampProtocol.DNSCRYPT:
                server_addr = with_default_port(reader.lp_str())
                server_pk = reader.lp()
                if len(server_pk) != PUBLIC_KEY_SIZE:
                    raise InvalidStampError("Unsupported public key length in stamp")
                stamp = ServerStamp(
                    protocol=protocol,
                    props=props,
                    server_addr=server_addr,
                    server_pk=server_pk,
                    provider_name=reader.lp_str(),
                )
            case StampProtocol.DOH:
                server_addr = reader.lp_str()
                hashes = reader.vlp()
                stamp = ServerStamp(
                    protocol=protocol,
                    props=props,
                    server_addr=with_default_port(server_addr) if server_addr else "",
                    hashes=tuple(h for h in hashes if h),
                    provider_name=reader.lp_str(),
                    path=reader.lp_str(),
                )
        return stamp


class _StampReader:
    def __init__(self, raw: bytes):
        self._raw = raw
        self._pos = 0

    def take(self, n: int) -> bytes:
        if self._pos + n > len(self._raw):
            raise InvalidStampError("Stamp is too short")
        chunk = self._raw[self._pos : self._pos + n]
        self._pos += n
        return chunk

    def byte(self) -> int:
        return self.take(1)[0]

    def lp(self) -> bytes:
        return self.take(self.byte())

    def lp_str(self) -> str:
        value = self.lp()
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidStampError(f"Invalid text field in stamp: {value!r}") from e

    def vlp(self) -> list[bytes]:
        values: list[bytes] = []
        while True:
            length = self.byte()
            values.append(self.take(length & 0x7F))
            if not length & 0x80:
                return values
