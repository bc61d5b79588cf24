"""Ports for the collaborators of the source manager."""

from typing import Any, Protocol

from src.modules.stamps.domain.entities import ServerInformalProperties, ServerStamp


class StampCodec(Protocol):
    """Builds server stamps from catalog data."""

    def from_legacy_fields(
        self,
        server_addr: str,
        server_pk: str,
        provider_name: str,
        props: ServerInformalProperties,
    ) -> ServerStamp: ...

    def from_string(self, text: str) -> ServerStamp: ...


class SignatureVerifier(Protocol):
    """Detached signature capability.

    decode_signature / verify 抛出的 SourceTrustError 或 ValueError，
    以及 verify 返回 False，都视为校验失败。
    """

    def parse_public_key(self, text: str) -> Any: ...

    def decode_signature(self, raw: str) -> Any: ...

    def verify(self, content: bytes, signature: Any, public_key: Any) -> bool: ...
