"""Handler watching the monitoring token secret for upcoming expiry."""

from __future__ import annotations

from typing import Any

import kopf

from .base import BaseHandler


def _is_token_secret(name: str, namespace: str, memo: kopf.Memo, **_: Any) -> bool:
    return memo.token_expiry.is_watched(name, namespace)


class TokenExpiryHandler(BaseHandler):
    """Handler for the token Secret."""

    def __init__(self):
        super().__init__("Secret")

    def reconcile(self, body: dict[str, Any], memo: kopf.Memo) -> None:
        meta = body["metadata"]
        self.reconcile_with_metrics(
            body,
            memo.config,
            lambda: memo.token_expiry.reconcile(meta["name"], meta["namespace"]),
            emit_events=False,
        )


# Global handler instance
_handler = TokenExpiryHandler()


@kopf.on.create("v1", "secrets", when=_is_token_secret)
@kopf.on.update("v1", "secrets", when=_is_token_secret)
@kopf.on.resume("v1", "secrets", when=_is_token_secret)
def handle_token_secret(body: kopf.Body, memo: kopf.Memo, **kwargs: Any) -> None:
    """Delete the token secret once it is due, or wait until it is."""
    _handler.reconcile(body, memo)
