"""
Test Embedding Codec
====================

Unit tests for float32 encode/decode and the binary wrappers.
"""

import base64
import struct

import numpy as np
import pytest

from rvdb.errors import MalformedEmbeddingError
from rvdb.storage.codec import (
    decode_embedding,
    encode_embedding,
    project_embedding,
    to_text,
    unwrap_binary,
    wrap_binary,
)


class TestEncodeEmbedding:
    """Test encode_embedding."""

    def test_length_is_four_bytes_per_dimension(self):
        """Ogni dimensione occupa 4 bytes."""
        assert len(encode_embedding([0.0, 1.0, 2.0])) == 12
        assert encode_embedding([]) == b""

    def test_little_endian_layout(self):
        """Il formato è float32 little-endian concatenato."""
        payload = encode_embedding([1.0, -2.5])
        assert payload == struct.pack("<ff", 1.0, -2.5)

    def test_accepts_ndarray_of_other_dtype(self):
        """Un ndarray float64 viene convertito in float32."""
        payload = encode_embedding(np.array([0.5, 0.25], dtype=np.float64))
        assert payload == struct.pack("<2f", 0.5, 0.25)


class TestDecodeEmbedding:
    """Test decode_embedding."""

    def test_preserves_order(self):
        payload = struct.pack("<3f", 3.0, 1.0, 2.0)
        assert decode_embedding(payload).tolist() == [3.0, 1.0, 2.0]

    def test_returns_float32(self):
        assert decode_embedding(encode_embedding([1.0])).dtype == np.float32

    def test_empty_payload(self):
        assert decode_embedding(b"").shape == (0,)

    @pytest.mark.parametrize("length", [1, 2, 3, 5, 7, 13])
    def test_rejects_length_not_multiple_of_four(self, length):
        """Lunghezza non multipla di 4 -> MalformedEmbeddingError."""
        with pytest.raises(MalformedEmbeddingError) as exc_info:
            decode_embedding(b"\x00" * length)
        assert exc_info.value.length == length

    def test_malformed_error_is_value_error(self):
        with pytest.raises(ValueError):
            decode_embedding(b"\x01\x02\x03")

    def test_result_is_writable_copy(self):
        payload = encode_embedding([1.0, 2.0])
        vector = decode_embedding(payload)
        vector[0] = 9.0
        assert decode_embedding(payload)[0] == 1.0


class TestRoundTrip:
    """Decode(Encode(v)) == v bit per bit."""

    def test_random_vectors(self):
        rng = np.random.default_rng(7)
        for dim in (1, 3, 384, 1024):
            vector = rng.standard_normal(dim).astype(np.float32)
            decoded = decode_embedding(encode_embedding(vector))
            assert decoded.tobytes() == vector.tobytes()

    def test_special_values_preserve_bit_patterns(self):
        """NaN (con payload), Inf, -0.0 e subnormali sopravvivono bit-exact."""
        bits = np.array(
            [0x7FC00001, 0x7F800000, 0xFF800000, 0x80000000, 0x00000001, 0x7F7FFFFF],
            dtype=np.uint32,
        )
        vector = bits.view(np.float32)
        decoded = decode_embedding(encode_embedding(vector))
        assert decoded.view(np.uint32).tolist() == bits.tolist()


class TestBinaryWrappers:
    """Test the two textual encodings of binary payloads."""

    def test_project_embedding(self):
        projected = project_embedding(encode_embedding([1.0, 0.5]))
        assert projected == {"type": "float32_array", "dimensions": 2, "data": [1.0, 0.5]}

    def test_project_embedding_non_finite_as_null(self):
        """NaN e ±Inf diventano null nella proiezione JSON."""
        payload = encode_embedding([float("nan"), 2.0, float("-inf")])
        assert project_embedding(payload)["data"] == [None, 2.0, None]

    def test_unwrap_null_components_as_nan(self):
        payload = encode_embedding([float("nan"), 2.0])
        restored = decode_embedding(unwrap_binary(project_embedding(payload)))
        assert np.isnan(restored[0])
        assert restored[1] == 2.0

    def test_wrap_binary(self):
        wrapped = wrap_binary(b"\xff\x00\xfe")
        assert wrapped["type"] == "binary_data"
        assert wrapped["encoding"] == "base64"
        assert base64.b64decode(wrapped["data"]) == b"\xff\x00\xfe"

    def test_unwrap_binary(self):
        assert unwrap_binary(wrap_binary(b"\x80abc")) == b"\x80abc"
        payload = encode_embedding([0.25, -1.0])
        assert unwrap_binary(project_embedding(payload)) == payload

    def test_unwrap_plain_value_returns_none(self):
        assert unwrap_binary("hello") is None
        assert unwrap_binary({"type": "other"}) is None

    def test_to_text(self):
        """UTF-8 valido -> str, altrimenti wrapper base64."""
        assert to_text("caffè".encode("utf-8")) == "caffè"
        assert to_text(b"\xff\xfe")["type"] == "binary_data"
