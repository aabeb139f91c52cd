from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Iterator, Optional, Union

from dotenv import load_dotenv

from .errors import AuthError


class Credentials:
    """API key, shared secret and passphrase for one client.

    The secret lives in a private bytearray that is zeroed by ``wipe()``.
    ``close()``, leaving a ``with`` block and garbage collection all wipe it,
    so the buffer is overwritten on every exit path. There is no way to
    change the values after construction.
    """

    __slots__ = ("_key", "_secret", "_passphrase", "_wiped")

    def __init__(self, key: str, secret: Union[str, bytes], passphrase: str = "") -> None:
        if not key:
            raise AuthError("API key is empty")
        if not secret:
            raise AuthError("API secret is empty")
        self._key = key
        self._passphrase = passphrase
        try:
            raw = secret.encode("ascii") if isinstance(secret, str) else bytes(secret)
        except UnicodeEncodeError:
            raise AuthError("API secret must be ASCII base64") from None
        self._secret = bytearray(raw)
        self._wiped = False

    @classmethod
    def from_env(cls, prefix: str = "COINBASE_API_") -> "Credentials":
        load_dotenv()
        key = os.getenv(f"{prefix}KEY")
        secret = os.getenv(f"{prefix}SECRET")
        passphrase = os.getenv(f"{prefix}PASSPHRASE", "")
        missing = [name for name, val in (("KEY", key), ("SECRET", secret)) if not val]
        if missing:
            raise AuthError(
                "Missing required environment variables: "
                + ", ".join(prefix + m for m in missing)
            )
        return cls(key, secret, passphrase)

    def _check(self) -> None:
        if self._wiped:
            raise AuthError("credentials have been wiped")

    @property
    def key(self) -> str:
        self._check()
        return self._key

    @property
    def passphrase(self) -> str:
        self._check()
        return self._passphrase

    @property
    def secret(self) -> bytes:
        self._check()
        return bytes(self._secret)

    @contextmanager
    def borrow(self) -> Iterator[memoryview]:
        """Read-only view of the secret bytes, released on exit."""
        self._check()
        view = memoryview(self._secret).toreadonly()
        try:
            yield view
        finally:
            view.release()

    @property
    def wiped(self) -> bool:
        return self._wiped

    def wipe(self) -> None:
        if self._wiped:
            return
        for i in range(len(self._secret)):
            self._secret[i] = 0
        self._passphrase = ""
        self._wiped = True

    def close(self) -> None:
        self.wipe()

    def __enter__(self) -> "Credentials":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.wipe()

    def __del__(self) -> None:
        # __init__ may have failed before the buffer existed.
        if getattr(self, "_wiped", True) is False:
            self.wipe()

    def __repr__(self) -> str:
        state = "wiped" if self._wiped else "set"
        return f"Credentials(key={self._key!r}, secret=<{state}>, passphrase=<{state}>)"

    __str__ = __repr__

    def __reduce__(self) -> Optional[tuple]:
        raise TypeError("Credentials cannot be serialized")

    def __copy__(self) -> "Credentials":
        raise TypeError("Credentials cannot be copied")

    def __deepcopy__(self, memo: dict) -> "Credentials":
        raise TypeError("Credentials cannot be copied")
