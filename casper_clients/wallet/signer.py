"""
casper_clients.wallet.signer
============================

Deploy signers backed by the `cryptography` package.

Two algorithms are supported, matching the chain's public key tags:

- ed25519 (tag 01): signs the 32-byte deploy hash directly.
- secp256k1 (tag 02): ECDSA over SHA-256 of the deploy hash; the signature is
  the 64-byte r || s with s normalised to the lower half of the curve order.

`KeyPair.sign()` returns the raw signature; the deploy prepends the algorithm
tag when it records the approval. Key generation and account management are
not handled here; keys come from PEM files or raw private bytes.

Examples
--------
    kp = KeyPair.from_pem_file("secret_key.pem")
    deploy.approve(kp)
    kp.public_key.account_hash()
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature, encode_dss_signature)

from ..keys import KeyAlgorithm, PublicKey

__all__ = ["KeyPair", "PrivateKey"]

PrivateKey = Union[Ed25519PrivateKey, ec.EllipticCurvePrivateKey]

# secp256k1 group order
_SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


@dataclass(frozen=True)
class KeyPair:
    algorithm: KeyAlgorithm
    private_key: PrivateKey

    # --- constructors -----------------------------------------------------

    @classmethod
    def from_private_bytes(cls, algorithm: KeyAlgorithm, raw: bytes) -> "KeyPair":
        """32 raw secret bytes (big-endian scalar for secp256k1)."""
        if len(raw) != 32:
            raise ValueError(f"private key must be 32 bytes, got {len(raw)}")
        algorithm = KeyAlgorithm(algorithm)
        if algorithm is KeyAlgorithm.ED25519:
            return cls(algorithm, Ed25519PrivateKey.from_private_bytes(bytes(raw)))
        return cls(algorithm, ec.derive_private_key(int.from_bytes(raw, "big"), ec.SECP256K1()))

    @classmethod
    def from_pem(cls, data: bytes, password: Optional[bytes] = None) -> "KeyPair":
        key = serialization.load_pem_private_key(data, password=password)
        if isinstance(key, Ed25519PrivateKey):
            return cls(KeyAlgorithm.ED25519, key)
        if isinstance(key, ec.EllipticCurvePrivateKey) and isinstance(key.curve, ec.SECP256K1):
            return cls(KeyAlgorithm.SECP256K1, key)
        raise ValueError(f"unsupported private key type: {type(key).__name__}")

    @classmethod
    def from_pem_file(cls, path: Union[str, Path], password: Optional[bytes] = None) -> "KeyPair":
        return cls.from_pem(Path(path).read_bytes(), password)

    # --- views ------------------------------------------------------------

    @property
    def public_key(self) -> PublicKey:
        pub = self.private_key.public_key()
        if self.algorithm is KeyAlgorithm.ED25519:
            raw = pub.public_bytes(serialization.Encoding.Raw, serialization.PublicFormat.Raw)
        else:
            raw = pub.public_bytes(serialization.Encoding.X962, serialization.PublicFormat.CompressedPoint)
        return PublicKey(self.algorithm, raw)

    # --- signing ----------------------------------------------------------

    def sign(self, message: bytes) -> bytes:
        if self.algorithm is KeyAlgorithm.ED25519:
            return self.private_key.sign(bytes(message))
        der = self.private_key.sign(bytes(message), ec.ECDSA(hashes.SHA256()))
        r, s = decode_dss_signature(der)
        if s > _SECP256K1_N // 2:
            s = _SECP256K1_N - s
        return r.to_bytes(32, "big") + s.to_bytes(32, "big")

    def verify(self, message: bytes, signature: bytes) -> bool:
        """Check a raw (untagged) signature made by this key pair."""
        pub = self.private_key.public_key()
        try:
            if self.algorithm is KeyAlgorithm.ED25519:
                pub.verify(bytes(signature), bytes(message))
            else:
                if len(signature) != 64:
                    return False
                r = int.from_bytes(signature[:32], "big")
                s = int.from_bytes(signature[32:], "big")
                pub.verify(encode_dss_signature(r, s), bytes(message), ec.ECDSA(hashes.SHA256()))
        except InvalidSignature:
            return False
        return True

    def __repr__(self) -> str:
        return f"KeyPair({self.algorithm.name.lower()}, {self.public_key.to_hex()})"
