"""Key file I/O and key generation for ES256 and EdDSA.

Private PEM bytes are only ever held in a SecretBuffer, which is zeroed when
the loading call returns or raises.
"""

from __future__ import annotations

import os
from pathlib import Path
from types import TracebackType

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from beltic.crypto.algorithms import (
    KeyMaterial,
    SignatureAlgorithm,
    decode_private,
    decode_public,
    detect_public_algorithm,
    encode_private,
    encode_public,
)
from beltic.errors import KeyFormatError
from beltic.observability import get_logger

logger = get_logger(__name__)

# Recommended mode for private key files (owner read/write only).
KEY_FILE_RECOMMENDED_MODE = 0o600


class SecretBuffer:
    """A bytearray that is overwritten with zeros when the context exits.

    Example:
        >>> with SecretBuffer.read(path) as pem:
        ...     key = decode_private(pem.data, "EdDSA")
    """

    def __init__(self, data: bytes | bytearray = b"") -> None:
        self._buf = bytearray(data)

    @classmethod
    def read(cls, path: str | Path) -> SecretBuffer:
        """Read a file straight into a mutable buffer."""
        path = Path(path)
        buffer = cls()
        with path.open("rb") as handle:
            size = os.fstat(handle.fileno()).st_size
            buffer._buf = bytearray(size)
            read = handle.readinto(buffer._buf)
        if read != size:
            buffer.wipe()
            raise OSError(f"short read from {path}: {read} of {size} bytes")
        return buffer

    @property
    def data(self) -> bytearray:
        return self._buf

    def wipe(self) -> None:
        self._buf[:] = bytes(len(self._buf))

    def __len__(self) -> int:
        return len(self._buf)

    def __repr__(self) -> str:
        return f"SecretBuffer(<{len(self._buf)} bytes>)"

    def __enter__(self) -> SecretBuffer:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.wipe()


def read_pem(path: str | Path) -> bytes:
    """Read a public PEM file. Raises KeyFormatError if it cannot be read."""
    path = Path(path)
    try:
        return path.read_bytes()
    except OSError as exc:
        raise KeyFormatError(
            f"failed to read key {path}: {exc.strerror or exc}",
            details={"path": str(path)},
        ) from exc


def warn_if_key_file_permissions_loose(path: Path) -> None:
    """Warn when key file is group/other readable (recommend chmod 0600)."""
    try:
        mode = path.stat().st_mode
    except OSError:
        return
    if (mode & 0o77) != 0:
        logger.warning(
            "beltic.key.permissions_loose",
            path=str(path),
            mode=oct(mode & 0o777),
            recommended=oct(KEY_FILE_RECOMMENDED_MODE),
        )


def load_private_key(path: str | Path, alg: SignatureAlgorithm | str) -> KeyMaterial:
    """Load a private key for ``alg`` from a PEM file.

    The file contents live in a SecretBuffer that is wiped on every exit
    path. Raises KeyFormatError if the file is unreadable or not a key of
    the requested algorithm.
    """
    path = Path(path)
    warn_if_key_file_permissions_loose(path)
    try:
        secret = SecretBuffer.read(path)
    except OSError as exc:
        raise KeyFormatError(
            f"failed to read private key at {path}: {exc.strerror or exc}",
            details={"path": str(path)},
        ) from exc
    with secret:
        return decode_private(secret.data, alg)


def load_public_key(path: str | Path, alg: SignatureAlgorithm | str) -> KeyMaterial:
    return decode_public(read_pem(path), alg)


def load_public_key_any(path: str | Path) -> KeyMaterial:
    """Load a public key whose algorithm is implied by the key itself."""
    pem = read_pem(path)
    return decode_public(pem, detect_public_algorithm(pem))


def generate_key(alg: SignatureAlgorithm | str = SignatureAlgorithm.EDDSA) -> KeyMaterial:
    alg = SignatureAlgorithm.parse(alg)
    if alg is SignatureAlgorithm.EDDSA:
        return KeyMaterial(algorithm=alg, key=Ed25519PrivateKey.generate())
    return KeyMaterial(algorithm=alg, key=ec.generate_private_key(ec.SECP256R1()))


def _ensure_parent(path: Path) -> None:
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)


def write_private_key(path: str | Path, material: KeyMaterial) -> Path:
    """Write the PKCS#8 PEM with mode 0600 (created with that mode, never widened)."""
    path = Path(path)
    _ensure_parent(path)
    with SecretBuffer(encode_private(material)) as pem:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, KEY_FILE_RECOMMENDED_MODE)
        with os.fdopen(fd, "wb") as handle:
            handle.write(pem.data)
    try:
        path.chmod(KEY_FILE_RECOMMENDED_MODE)
    except OSError:
        logger.warning("beltic.key.chmod_failed", path=str(path))
    return path


def write_public_key(path: str | Path, material: KeyMaterial) -> Path:
    path = Path(path)
    _ensure_parent(path)
    path.write_bytes(encode_public(material))
    return path
