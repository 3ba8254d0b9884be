"""Tests for the hashid address codec."""

from __future__ import annotations

import pytest

from lemma.config import HASHID_ALPHABET
from lemma.errors import MalformedAddress
from lemma.graph.codec import AddressCodec


class TestEncode:
    def test_min_length_and_alphabet(self, codec: AddressCodec) -> None:
        for identity in (0, 1, 7, 1234, 10**9):
            hashid = codec.encode(identity)
            assert len(hashid) >= 6
            assert set(hashid) <= set(HASHID_ALPHABET)

    def test_no_ambiguous_glyphs(self, codec: AddressCodec) -> None:
        for identity in range(500):
            hashid = codec.encode(identity)
            assert "o" not in hashid
            assert "0" not in hashid

    def test_deterministic(self) -> None:
        assert AddressCodec(salt="s").encode(42) == AddressCodec(salt="s").encode(42)

    def test_salt_changes_output(self) -> None:
        assert AddressCodec(salt="one").encode(42) != AddressCodec(salt="two").encode(42)

    @pytest.mark.parametrize("bad", [-1, True, 1.5, "7", None])
    def test_rejects_non_identities(self, codec: AddressCodec, bad) -> None:
        with pytest.raises(ValueError):
            codec.encode(bad)


class TestDecode:
    def test_round_trip(self, codec: AddressCodec) -> None:
        for identity in list(range(2000)) + [2**31, 2**40, 987654321]:
            assert codec.decode(codec.encode(identity)) == identity

    def test_no_collisions_in_sampled_range(self, codec: AddressCodec) -> None:
        seen = {codec.encode(i) for i in range(10000)}
        assert len(seen) == 10000

    @pytest.mark.parametrize(
        "bad",
        ["", "abc", "ABCDEFG", "abc0def", "aoaoaoa", "abc-123", "abc def", None, 123],
    )
    def test_malformed(self, codec: AddressCodec, bad) -> None:
        with pytest.raises(MalformedAddress):
            codec.decode(bad)

    def test_non_canonical_is_malformed(self, codec: AddressCodec) -> None:
        hashid = codec.encode(5)
        # A hashid carrying two values is valid hashid syntax but not an address.
        two_values = codec._hashids.encode(5, 6)
        with pytest.raises(MalformedAddress):
            codec.decode(two_values)
        assert codec.decode(hashid) == 5

    def test_malformed_is_value_error(self, codec: AddressCodec) -> None:
        with pytest.raises(ValueError):
            codec.decode("!!!!!!")
