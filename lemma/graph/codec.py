"""Bidirectional mapping between internal node identities and public hashids.

The codec is configured once at startup and never mutated afterwards::

    codec = AddressCodec(salt=settings.hashid_salt)
    hashid = codec.encode(42)
    assert codec.decode(hashid) == 42
"""

from __future__ import annotations

from hashids import Hashids

from lemma.config import HASHID_ALPHABET
from lemma.errors import MalformedAddress


class AddressCodec:
    """Salted hashid codec over non-negative integer identities."""

    def __init__(
        self,
        salt: str,
        min_length: int = 6,
        alphabet: str = HASHID_ALPHABET,
    ) -> None:
        self._hashids = Hashids(salt=salt, min_length=min_length, alphabet=alphabet)
        self._alphabet = frozenset(alphabet)
        self.min_length = min_length

    def encode(self, identity: int) -> str:
        """Return the public hashid for *identity*.

        Raises:
            ValueError: If *identity* is not a non-negative integer.
        """
        if isinstance(identity, bool) or not isinstance(identity, int) or identity < 0:
            raise ValueError(f"identity must be a non-negative integer, got {identity!r}")
        return self._hashids.encode(identity)

    def decode(self, address: str) -> int:
        """Return the identity encoded in *address*.

        Only canonical hashids decode: the string must use the codec's
        alphabet, meet the minimum length, carry exactly one value, and
        re-encode to itself.

        Raises:
            MalformedAddress: For any string the codec could not have produced.
        """
        if not isinstance(address, str) or len(address) < self.min_length:
            raise MalformedAddress(f"malformed address: {address!r}")
        if not set(address) <= self._alphabet:
            raise MalformedAddress(f"malformed address: {address!r}")

        values = self._hashids.decode(address)
        if len(values) != 1 or self._hashids.encode(values[0]) != address:
            raise MalformedAddress(f"malformed address: {address!r}")
        return values[0]
