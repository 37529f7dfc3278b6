from __future__ import annotations

import hashlib
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, Protocol, Union, runtime_checkable

from Crypto.Hash import SHA256
from Crypto.PublicKey import RSA
from Crypto.Signature import pkcs1_15

from dissect.rpm.exceptions import CryptoError
from dissect.rpm.helpers.logging import get_logger

if TYPE_CHECKING:
    from typing_extensions import Self

log = get_logger(__name__)

BUFFER_SIZE = 32768

Signable = Union[bytes, bytearray, memoryview, BinaryIO]


@runtime_checkable
class Signing(Protocol):
    """A signing backend: produces a detached signature over a byte string or a readable stream."""

    def sign(self, data: Signable) -> bytes: ...


@runtime_checkable
class Verifying(Protocol):
    """A verifying backend: checks a detached signature, raising :class:`CryptoError` if it does not match."""

    def verify(self, data: Signable, signature: bytes) -> None: ...


def _update(ctx, data: Signable) -> None:
    """Feed bytes or a stream into a hash object, reading streams in bounded chunks."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        ctx.update(data)
        return

    buf = data.read(BUFFER_SIZE)
    while buf:
        ctx.update(buf)
        buf = data.read(BUFFER_SIZE)


def compute_digests(fh: BinaryIO, header_size: int) -> tuple[bytes, str]:
    """Digest a ``header || payload`` stream in a single pass.

    Returns:
        The MD5 digest over the whole stream and the hex encoded SHA1 digest over the first ``header_size`` bytes.
    """
    md5 = hashlib.md5()
    sha1 = hashlib.sha1()

    pos = 0
    buf = fh.read(BUFFER_SIZE)
    while buf:
        md5.update(buf)
        if pos < header_size:
            sha1.update(buf[: header_size - pos])
        pos += len(buf)
        buf = fh.read(BUFFER_SIZE)

    if pos < header_size:
        raise CryptoError(f"Stream of {pos} bytes is shorter than the header ({header_size} bytes)")

    return md5.digest(), sha1.hexdigest()


def _load_key(key: bytes | str | Path, passphrase: str | None) -> RSA.RsaKey:
    if isinstance(key, (str, Path)):
        key = Path(key).read_bytes()

    try:
        return RSA.import_key(key, passphrase)
    except (ValueError, IndexError, TypeError) as e:
        raise CryptoError("Unable to load RSA key", cause=e)


class RSASigner:
    """PKCS#1 v1.5 signatures over SHA-256.

    The signatures are raw RSA signatures, not OpenPGP signature packets, so packages signed with this backend can be
    verified with :class:`RSAVerifier` but not with ``rpm --checksig``.
    """

    def __init__(self, key: RSA.RsaKey):
        if not key.has_private():
            raise CryptoError("Signing requires an RSA private key")
        self.key = key

    @classmethod
    def load_from(cls, key: bytes | str | Path, passphrase: str | None = None) -> Self:
        return cls(_load_key(key, passphrase))

    def sign(self, data: Signable) -> bytes:
        ctx = SHA256.new()
        _update(ctx, data)
        try:
            return pkcs1_15.new(self.key).sign(ctx)
        except (ValueError, TypeError) as e:
            raise CryptoError("RSA signing failed", cause=e)


class RSAVerifier:
    """Verify signatures produced by :class:`RSASigner`."""

    def __init__(self, key: RSA.RsaKey):
        self.key = key.public_key()

    @classmethod
    def load_from(cls, key: bytes | str | Path, passphrase: str | None = None) -> Self:
        return cls(_load_key(key, passphrase))

    def verify(self, data: Signable, signature: bytes) -> None:
        ctx = SHA256.new()
        _update(ctx, data)
        try:
            pkcs1_15.new(self.key).verify(ctx, signature)
        except (ValueError, TypeError) as e:
            raise CryptoError("RSA signature verification failed", cause=e)

        log.debug("Verified %d byte RSA signature", len(signature))
