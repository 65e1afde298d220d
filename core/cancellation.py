"""Cancellation tokens for screen-scoped async fetches."""

import asyncio


class FetchCancelled(Exception):
    """The owning screen went away before the result arrived."""


class CancelToken:
    """Cancelled when its screen is torn down or a newer fetch supersedes it."""

    def __init__(self, scope: str = ''):
        self.scope = scope
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise FetchCancelled(f"Fetch for {self.scope or 'screen'} was cancelled")

    async def run(self, awaitable):
        """Await `awaitable` unless the token fires first.

        A result that arrives after cancellation is discarded.
        """
        self.raise_if_cancelled()
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
        if not work.done():
            work.cancel()
        self.raise_if_cancelled()
        return work.result()


class TokenRegistry:
    """One live token per scope."""

    def __init__(self):
        self._tokens: dict[str, CancelToken] = {}

    def renew(self, scope: str) -> CancelToken:
        """Cancel the scope's current token and hand out a fresh one."""
        self.cancel(scope)
        token = CancelToken(scope)
        self._tokens[scope] = token
        return token

    def cancel(self, scope: str) -> None:
        """Cancel scope and its sub-scopes ('audio' also covers 'audio:<word>')."""
        for key in [k for k in self._tokens if k == scope or k.startswith(scope + ':')]:
            self._tokens.pop(key).cancel()

    def cancel_all(self) -> None:
        for scope in list(self._tokens):
            self.cancel(scope)
