"""
Tests for the Arweave deep hash.
"""
import hashlib

from bundlr_client.deep_hash import deep_hash


def _sha384(data: bytes) -> bytes:
    return hashlib.sha384(data).digest()


class TestDeepHash:
    """Tests for deep_hash."""

    def test_blob(self):
        """Should hash a blob together with its length tag."""
        expected = _sha384(_sha384(b"blob3") + _sha384(b"abc"))
        assert deep_hash(b"abc") == expected

    def test_list(self):
        """Should fold each chunk into a list-tagged accumulator."""
        acc = _sha384(b"list2")
        acc = _sha384(acc + deep_hash(b"a"))
        acc = _sha384(acc + deep_hash(b"bc"))
        assert deep_hash([b"a", b"bc"]) == acc

    def test_empty_list(self):
        assert deep_hash([]) == _sha384(b"list0")

    def test_strings_hash_as_utf8(self):
        assert deep_hash("arweave") == deep_hash(b"arweave")

    def test_nesting_changes_hash(self):
        assert deep_hash([b"a", b"b"]) != deep_hash([[b"a"], b"b"])
        assert deep_hash([b"ab"]) != deep_hash([b"a", b"b"])

    def test_digest_size(self):
        assert len(deep_hash([b"x", [b"y", b"z"]])) == 48
