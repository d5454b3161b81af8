"""Private key material resolution."""

import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from ..utils.exceptions import KeyMaterialError
from ..utils.logging import get_logger

logger = get_logger("core.keys")

PEM_MARKER = "-----BEGIN"


class KeyKind(str, Enum):
    """How a private key was supplied."""
    PATH = "path"
    INLINE = "inline"


class ResolvedKey:
    """
    A private key ready to be handed to ``ssh -i``.

    Inline keys own a temporary file which is removed by ``release()``.
    """

    def __init__(self, kind: KeyKind, value: Union[str, bytes], path: str):
        self.kind = kind
        self.value = value
        self.path = path
        self._released = False

    def release(self) -> None:
        """Remove temporary key material. Safe to call more than once."""
        if self._released:
            return
        self._released = True

        if self.kind is not KeyKind.INLINE:
            return

        try:
            os.remove(self.path)
            logger.debug(f"Removed temporary key file {self.path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Failed to remove temporary key file {self.path}: {e}")

    @property
    def released(self) -> bool:
        return self._released

    def __enter__(self) -> "ResolvedKey":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"ResolvedKey(kind={self.kind.value}, path={self.path!r})"


def classify(raw: str) -> KeyKind:
    """Decide whether ``raw`` is PEM content or a filesystem path."""
    if raw.lstrip().startswith(PEM_MARKER):
        return KeyKind.INLINE
    return KeyKind.PATH


def expand_home(path: str) -> str:
    """Expand a leading ``~`` segment; other paths are returned untouched."""
    if path == "~":
        return str(Path.home())
    if path.startswith("~/") or path.startswith("~\\"):
        return str(Path.home() / path[2:])
    return path


class KeyMaterialResolver:
    """Turns a ``private_key`` field into a usable key file."""

    def __init__(self, temp_dir: Optional[str] = None):
        self.temp_dir = temp_dir

    def resolve(self, raw: str) -> ResolvedKey:
        """
        Resolve a private key field value.

        Args:
            raw: Raw PEM content or a filesystem path

        Returns:
            ResolvedKey pointing at a file ssh can read

        Raises:
            KeyMaterialError: If inline key material cannot be written securely
        """
        if not raw or not raw.strip():
            raise KeyMaterialError("Private key value is empty")

        if classify(raw) is KeyKind.PATH:
            expanded = expand_home(raw.strip())
            logger.debug(f"Using private key path: {expanded}")
            return ResolvedKey(KeyKind.PATH, expanded, expanded)

        return self._materialize(raw)

    def _materialize(self, raw: str) -> ResolvedKey:
        """Write inline PEM content to an owner-only temporary file."""
        pem = raw.strip().replace("\r\n", "\n") + "\n"
        data = pem.encode("utf-8")

        try:
            fd, path = tempfile.mkstemp(prefix="pax-key-", dir=self.temp_dir)
        except OSError as e:
            raise KeyMaterialError(f"Cannot create temporary key file: {e}") from e

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.chmod(path, 0o600)
        except OSError as e:
            try:
                os.remove(path)
            except OSError:
                logger.error(f"Failed to remove partially written key file {path}")
            raise KeyMaterialError(f"Cannot secure temporary key file: {e}") from e

        logger.debug(f"Inline private key written to {path}")
        return ResolvedKey(KeyKind.INLINE, data, path)
