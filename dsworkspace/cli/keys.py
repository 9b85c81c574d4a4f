"""Private key persistence."""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def save_private_key(key_dir: str, key_name: str, material: str) -> Path:
    """Write key material to <key_dir>/<key_name>.pem, readable by the owner only.

    A stale file with the same name is replaced: the provider only returns
    material for a key pair it just created.

    Args:
        key_dir: Target directory (created if missing)
        key_name: Key pair name
        material: PEM-encoded private key

    Returns:
        Path of the written key file
    """
    directory = Path(key_dir).expanduser()
    directory.mkdir(mode=0o700, parents=True, exist_ok=True)

    key_path = directory / f"{key_name}.pem"
    if key_path.exists():
        logger.warning(f"Replacing existing key file {key_path}")
        key_path.chmod(0o600)

    fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(material)
        if not material.endswith("\n"):
            f.write("\n")
    key_path.chmod(0o400)

    return key_path
