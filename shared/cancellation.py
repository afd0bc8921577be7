"""Cooperative cancellation for query pipelines."""

import logging
import threading
from typing import Optional

from shared.errors import QueryCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """A flag shared between a caller and a running query.

    The pipeline checks the token between stages; nothing is interrupted
    forcibly, so a language model call that is already in flight completes and
    its result is discarded.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        if self._event.is_set():
            logger.info(f"Query cancelled at stage '{stage}'")
            raise QueryCancelledError(f"Query cancelled at stage '{stage}'")


def check_cancelled(token: Optional[CancellationToken], stage: str) -> None:
    """Raise QueryCancelledError if ``token`` is set; no-op for ``None``."""
    if token is not None:
        token.raise_if_cancelled(stage)
