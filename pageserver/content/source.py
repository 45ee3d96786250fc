from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def load_document(path: str | Path) -> bytes:
    """Read the document to serve. OSError propagates; startup cannot continue without it."""
    source = Path(path)
    try:
        content = source.read_bytes()
    except OSError:
        logger.error("document.unreadable", extra={"index_path": str(source)})
        raise

    logger.info("document.loaded", extra={"index_path": str(source), "size_bytes": len(content)})
    return content
