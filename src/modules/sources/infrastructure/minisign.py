"""Minisign 签名校验。

公钥（base64）：  "Ed" | key_id (8) | ed25519 公钥 (32)
签名文件（4 行）：
    untrusted comment: ...
    base64("Ed" 或 "ED" | key_id (8) | 签名 (64))
    trusted comment: ...
    base64(全局签名 (64))

"ED" 为预哈希模式，签名对象是内容的 BLAKE2b-512 摘要。
全局签名覆盖 签名 + trusted comment 正文，防止 trusted comment 被篡改。
"""

import base64
import binascii
import hashlib
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from src.modules.sources.domain.entities import encode_payload
from src.modules.sources.domain.exceptions import (
    InvalidPublicKeyError,
    SignatureDecodeError,
    SignatureVerificationError,
)

ALG_ED25519 = b"Ed"
ALG_ED25519_PREHASHED = b"ED"
TRUSTED_COMMENT_PREFIX = "trusted comment: "

PUBLIC_KEY_SIZE = 42
SIGNATURE_SIZE = 74
GLOBAL_SIGNATURE_SIZE = 64


@dataclass(frozen=True)
class MinisignPublicKey:
    algorithm: bytes
    key_id: bytes
    key: bytes


@dataclass(frozen=True)
class MinisignSignature:
    untrusted_comment: str
    algorithm: bytes
    key_id: bytes
    signature: bytes
    trusted_comment: str
    global_signature: bytes


def _b64decode(value: str) -> bytes:
    return base64.b64decode(value.strip(), validate=True)


class MinisignVerifier:
    """SignatureVerifier backed by Ed25519 from ``cryptography``."""

    def parse_public_key(self, text: str) -> MinisignPublicKey:
        lines = [line.strip() for line in text.strip().splitlines() if line.strip()]
        if not lines:
            raise InvalidPublicKeyError("empty key")
        # 允许直接粘贴 .pub 文件内容
        encoded = lines[-1]
        try:
            raw = _b64decode(encoded)
        except (binascii.Error, ValueError):
            raise InvalidPublicKeyError("invalid base64 encoding") from None
        if len(raw) != PUBLIC_KEY_SIZE or raw[:2] != ALG_ED25519:
            raise InvalidPublicKeyError("invalid encoded public key")
        return MinisignPublicKey(algorithm=raw[:2], key_id=raw[2:10], key=raw[10:])

    def decode_signature(self, raw: str) -> MinisignSignature:
        lines = raw.split("\n", 3)
        if len(lines) < 4:
            raise SignatureDecodeError("Incomplete encoded signature")
        try:
            bin1 = _b64decode(lines[1])
            bin2 = _b64decode(lines[3])
        except (binascii.Error, ValueError):
            raise SignatureDecodeError("Invalid encoded signature") from None
        if len(bin1) != SIGNATURE_SIZE or len(bin2) != GLOBAL_SIGNATURE_SIZE:
            raise SignatureDecodeError("Invalid encoded signature")
        if bin1[:2] not in (ALG_ED25519, ALG_ED25519_PREHASHED):
            raise SignatureDecodeError("Unsupported signature algorithm")
        return MinisignSignature(
            untrusted_comment=lines[0].rstrip("\r"),
            algorithm=bin1[:2],
            key_id=bin1[2:10],
            signature=bin1[10:],
            trusted_comment=lines[2].rstrip("\r"),
            global_signature=bin2,
        )

    def verify(
        self,
        content: bytes,
        signature: MinisignSignature,
        public_key: MinisignPublicKey,
    ) -> bool:
        if public_key.key_id != signature.key_id:
            raise SignatureVerificationError("Incompatible key identifiers")
        if not signature.trusted_comment.startswith(TRUSTED_COMMENT_PREFIX):
            raise SignatureVerificationError(
                "Unexpected format for the trusted comment"
            )

        message = content
        if signature.algorithm == ALG_ED25519_PREHASHED:
            message = hashlib.blake2b(content, digest_size=64).digest()

        ed_key = Ed25519PublicKey.from_public_bytes(public_key.key)
        try:
            ed_key.verify(signature.signature, message)
        except InvalidSignature:
            return False

        trusted_comment = signature.trusted_comment[len(TRUSTED_COMMENT_PREFIX) :]
        try:
            ed_key.verify(
                signature.global_signature,
                signature.signature + encode_payload(trusted_comment),
            )
        except InvalidSignature:
            raise SignatureVerificationError("Invalid global signature") from None
        return True
