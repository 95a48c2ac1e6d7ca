"""
Arweave "deep hash": a recursive, length-tagged SHA-384 over nested lists
of byte strings. Used as the signing payload for Arweave transactions and
for bundler withdrawal requests.
"""
from __future__ import annotations

import hashlib
from typing import Sequence, Union

DeepHashChunk = Union[bytes, str, Sequence["DeepHashChunk"]]


def _sha384(data: bytes) -> bytes:
    return hashlib.sha384(data).digest()


def deep_hash(data: DeepHashChunk) -> bytes:
    """Compute the deep hash of a blob or a (nested) list of blobs."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    if isinstance(data, (bytes, bytearray, memoryview)):
        blob = bytes(data)
        tag = b"blob" + str(len(blob)).encode()
        return _sha384(_sha384(tag) + _sha384(blob))

    chunks = list(data)
    acc = _sha384(b"list" + str(len(chunks)).encode())
    for chunk in chunks:
        acc = _sha384(acc + deep_hash(chunk))
    return acc
