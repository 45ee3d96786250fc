from __future__ import annotations

import gzip
import hashlib
from dataclasses import dataclass

GZIP_LEVEL = 9


@dataclass(frozen=True, slots=True)
class ContentStore:
    """Precomputed, immutable representations of the served document.

    Built once at startup and shared by reference with every request; nothing
    mutates it afterwards, so handlers read it without locking.
    """

    etag: str
    uncompressed: bytes
    compressed: bytes
    uncompressed_length: int
    compressed_length: int

    @classmethod
    def build(cls, content: bytes) -> ContentStore:
        content = bytes(content)
        etag = f'"{hashlib.md5(content).hexdigest()}"'
        # mtime=0 keeps the gzip header (and thus the body) stable across runs.
        compressed = gzip.compress(content, compresslevel=GZIP_LEVEL, mtime=0)
        return cls(
            etag=etag,
            uncompressed=content,
            compressed=compressed,
            uncompressed_length=len(content),
            compressed_length=len(compressed),
        )

    def representation(self, use_gzip: bool) -> tuple[bytes, int, str]:
        if use_gzip:
            return self.compressed, self.compressed_length, "gzip"
        return self.uncompressed, self.uncompressed_length, "identity"
