from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Union

from dotenv import dotenv_values, set_key

from .config import API_KEY_NAME

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class CredentialStore:
    """
    A single secret string persisted in a dotenv file.

    The value is read once by load() at startup and written back to the file
    on every save(). When the file has no entry the process environment is
    used, which is how the key usually arrives from a shell.
    """

    def __init__(self, path: PathLike, key_name: str = API_KEY_NAME) -> None:
        self._path = Path(path)
        self._key_name = key_name
        self._value = ""

    @property
    def path(self) -> Path:
        return self._path

    @property
    def api_key(self) -> str:
        return self._value

    def __bool__(self) -> bool:
        return bool(self._value)

    def load(self) -> str:
        stored = None
        if self._path.exists():
            stored = dotenv_values(self._path).get(self._key_name)
        self._value = stored or os.getenv(self._key_name, "")
        if self._value:
            logger.debug("Loaded %s from %s", self._key_name, self._path)
        return self._value

    def save(self, value: str) -> None:
        self._value = value.strip()
        self._path.touch(exist_ok=True)
        set_key(str(self._path), self._key_name, self._value)
        logger.info("Saved %s to %s", self._key_name, self._path)
