"""Turn adapter output into canonical email records.

A single unretrievable or malformed message is replaced by a sentinel record
instead of failing the batch, so the output always has one record per input
message, in input order.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

import structlog

from inbox_bridge.models import RETRIEVAL_ERROR, CanonicalEmail, RawMessage
from inbox_bridge.pipeline.base import MailboxAdapter

logger = structlog.get_logger()


def error_placeholder(message_id: str | None, occurred_at: datetime | None = None) -> CanonicalEmail:
    """Sentinel record for a message that could not be retrieved or decoded."""

    message_id = message_id or f"unknown-{uuid.uuid4().hex[:12]}"
    return CanonicalEmail(
        id=message_id,
        thread_id=message_id,
        occurred_at=occurred_at or datetime.now(timezone.utc),
        sender="",
        to="",
        subject=RETRIEVAL_ERROR,
        snippet=RETRIEVAL_ERROR,
        body="",
    )


def _known_time(adapter: MailboxAdapter, raw: RawMessage) -> datetime | None:
    try:
        return adapter.occurred_at(raw)
    except Exception:  # noqa: BLE001
        return None


class NormalizationPipeline:
    """Map raw provider messages to CanonicalEmail with per-message fault isolation."""

    def normalize(self, adapter: MailboxAdapter, raw_messages: Sequence[RawMessage]) -> list[CanonicalEmail]:
        emails: list[CanonicalEmail] = []
        failures = 0
        for raw in raw_messages:
            if raw.failed:
                failures += 1
                emails.append(error_placeholder(raw.message_id))
                continue
            try:
                emails.append(adapter.to_canonical(raw))
            except Exception as exc:  # noqa: BLE001
                failures += 1
                logger.warning(
                    "message_normalization_failed",
                    provider=adapter.kind.value,
                    message_id=raw.message_id,
                    error=str(exc),
                )
                emails.append(error_placeholder(raw.message_id, _known_time(adapter, raw)))

        logger.info(
            "messages_normalized",
            provider=adapter.kind.value,
            message_count=len(emails),
            failed=failures,
        )
        return emails

    @staticmethod
    def merge(batches: Iterable[Sequence[CanonicalEmail]]) -> list[CanonicalEmail]:
        """Concatenate provider batches in the given order; no re-sort by date."""

        merged: list[CanonicalEmail] = []
        for batch in batches:
            merged.extend(batch)
        return merged
