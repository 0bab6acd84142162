from __future__ import annotations

import asyncio
import getpass
import os
from typing import Callable, Mapping, Optional, Protocol

from livetrans.errors import CredentialMissing


class CredentialProvider(Protocol):
    def has_credential(self) -> bool:
        ...

    def get_credential(self) -> str:
        ...

    async def request_credential(self) -> None:
        ...


class EnvCredentialProvider:
    """
    API key from an environment variable, or entered once on the console.
    """

    def __init__(
        self,
        env_var: str = "GEMINI_API_KEY",
        *,
        environ: Optional[Mapping[str, str]] = None,
        prompt: Callable[[str], str] = getpass.getpass,
    ) -> None:
        self.env_var = env_var
        self._environ = os.environ if environ is None else environ
        self._prompt = prompt
        self._entered: Optional[str] = None

    def _lookup(self) -> str:
        if self._entered:
            return self._entered
        return (self._environ.get(self.env_var) or "").strip()

    def has_credential(self) -> bool:
        return bool(self._lookup())

    def get_credential(self) -> str:
        key = self._lookup()
        if not key:
            raise CredentialMissing(f"No API key found. Set {self.env_var} or enter a key when prompted.")
        return key

    async def request_credential(self) -> None:
        loop = asyncio.get_running_loop()
        entered = await loop.run_in_executor(None, self._prompt, f"{self.env_var}: ")
        entered = (entered or "").strip()
        if not entered:
            raise CredentialMissing("No API key entered.")
        self._entered = entered
