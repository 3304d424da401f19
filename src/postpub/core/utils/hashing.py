"""Content hashing for rendered pages"""

import hashlib


def sha256(content: str) -> str:
    """Hex SHA-256 of content with line endings normalized, so hashes agree across platforms."""
    normalized = content.replace("\r\n", "\n").replace("\r", "\n")
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()
