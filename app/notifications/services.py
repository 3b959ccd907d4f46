"""
Notification dispatch service.

NotificationDispatchService works off PendingMessageNotification rows in
batches. Rows are grouped by receiver so a burst of messages becomes a
single push ("You have 3 new messages") instead of one push per message.

Flow per dispatch pass:
    1. Fetch up to BATCH_SIZE pending rows, oldest first
    2. Group by receiver (first-seen order)
    3. For each receiver, independently of the others:
        - no profile           -> dead-letter the rows
        - no push token        -> mark delivered, nothing sent
        - push sent            -> mark delivered
        - DeliveryError        -> attempts + 1, error recorded
                                  (invalid token also clears the profile token;
                                  other permanent errors dead-letter the rows)
        - unexpected exception -> dead-letter the rows
    4. Return DispatchSummary(processed, success, failed)

Retries:
    A failed row is picked up again by the next pass until it reaches
    MAX_DELIVERY_ATTEMPTS. There is no backoff inside a pass; the
    celery-beat interval spaces the attempts.

Usage:
    from notifications.services import NotificationDispatchService

    summary = NotificationDispatchService.dispatch_pending()
    logger.info(summary.as_dict())
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING

from django.conf import settings
from django.db.models import F
from django.utils import timezone

from authentication.models import DEFAULT_DISPLAY_NAME, Profile
from authentication.services import PushTokenService
from core.services import BaseService
from notifications.constants import DISPATCH_CONFIG
from notifications.models import PendingMessageNotification
from notifications.push import DeliveryError, PushPayload, get_channel

if TYPE_CHECKING:
    from chat.models import Message


@dataclass
class DispatchSummary:
    """Counts for one dispatch pass."""

    processed: int = 0
    success: int = 0
    failed: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class NotificationDispatchService(BaseService):
    """Batched push dispatch for pending message notifications."""

    @classmethod
    def dispatch_pending(cls, batch_size: int = DISPATCH_CONFIG.BATCH_SIZE) -> DispatchSummary:
        """
        Run one dispatch pass.

        Errors while loading the batch propagate; errors for one receiver
        are contained to that receiver's rows.
        """
        logger = cls.get_logger()
        summary = DispatchSummary()

        pending = list(
            PendingMessageNotification.objects.pending().select_related(
                "message", "sender__profile"
            )[:batch_size]
        )
        if not pending:
            logger.debug("No pending message notifications")
            return summary

        groups = cls.group_by_receiver(pending)
        logger.info(f"Dispatching {len(pending)} notifications for {len(groups)} receivers")

        for receiver_id, rows in groups.items():
            count = len(rows)
            try:
                outcome = cls._dispatch_group(receiver_id, rows)
            except Exception as e:
                logger.exception(f"Unexpected error dispatching notifications for user {receiver_id}")
                cls._dead_letter(rows, f"Unexpected error: {e}")
                outcome = "failed"

            summary.processed += count
            if outcome == "success":
                summary.success += count
            elif outcome == "failed":
                summary.failed += count

        logger.info(
            f"Dispatch pass finished: processed={summary.processed} "
            f"success={summary.success} failed={summary.failed}"
        )
        return summary

    @staticmethod
    def group_by_receiver(
        rows: list[PendingMessageNotification],
    ) -> dict[int, list[PendingMessageNotification]]:
        """Group rows by receiver, keeping first-seen receiver order and row order."""
        groups: dict[int, list[PendingMessageNotification]] = {}
        for row in rows:
            groups.setdefault(row.receiver_id, []).append(row)
        return groups

    @classmethod
    def build_payload(cls, rows: list[PendingMessageNotification]) -> PushPayload:
        """
        Payload for a receiver's rows, described by the latest one.

        One row: the sender's name and a message preview.
        Several rows: the app name and a count.
        """
        latest = rows[-1]
        sender_name = sender_display_name(latest)
        if len(rows) > 1:
            title = getattr(settings, "PUSH_APP_NAME", DISPATCH_CONFIG.DEFAULT_APP_NAME)
            body = f"You have {len(rows)} new messages"
        else:
            title = sender_name
            body = message_preview(latest.message)

        return PushPayload(
            chat_id=latest.conversation_id,
            sender_id=latest.sender_id,
            message_id=latest.message_id,
            title=title,
            body=body,
            sender_name=sender_name,
        )

    # -------------------------------------------------------------------------
    # Per-receiver handling
    # -------------------------------------------------------------------------

    @classmethod
    def _dispatch_group(cls, receiver_id: int, rows: list[PendingMessageNotification]) -> str:
        """Returns "success", "failed" or "skipped"."""
        logger = cls.get_logger()

        profile = Profile.objects.filter(user_id=receiver_id).first()
        if profile is None:
            logger.warning(f"No profile for user {receiver_id}; dead-lettering {len(rows)} notifications")
            cls._dead_letter(rows, "Receiver profile not found")
            return "failed"

        if not profile.has_push_target:
            logger.info(f"No push token for user {receiver_id}; marking {len(rows)} delivered")
            cls._mark_delivered(rows)
            return "skipped"

        payload = cls.build_payload(rows)
        try:
            get_channel(profile.push_token_type).send(profile.push_token, payload)
        except DeliveryError as e:
            logger.warning(f"Push to user {receiver_id} failed: {e.code} - {e.message}")
            error = f"{e.code}: {e.message}"
            if e.is_invalid_token:
                cls._record_failure(rows, error)
                PushTokenService.clear_token(profile)
            elif e.is_permanent:
                # Retrying cannot succeed with this token
                cls._dead_letter(rows, error)
            else:
                cls._record_failure(rows, error)
            return "failed"

        cls._mark_delivered(rows)
        logger.info(f"Push sent to user {receiver_id} via {profile.push_token_type} for {len(rows)} messages")
        return "success"

    # -------------------------------------------------------------------------
    # Row state
    # -------------------------------------------------------------------------

    @staticmethod
    def _ids(rows) -> list[int]:
        return [row.id for row in rows]

    @classmethod
    def _mark_delivered(cls, rows) -> None:
        now = timezone.now()
        PendingMessageNotification.objects.filter(id__in=cls._ids(rows), delivered=False).update(
            delivered=True,
            delivered_at=now,
            last_attempt_at=now,
            error_message="",
            updated_at=now,
        )

    @classmethod
    def _record_failure(cls, rows, error: str) -> None:
        now = timezone.now()
        PendingMessageNotification.objects.filter(id__in=cls._ids(rows), delivered=False).update(
            delivery_attempts=F("delivery_attempts") + 1,
            error_message=error,
            last_attempt_at=now,
            updated_at=now,
        )

    @classmethod
    def _dead_letter(cls, rows, error: str) -> None:
        now = timezone.now()
        PendingMessageNotification.objects.filter(id__in=cls._ids(rows), delivered=False).update(
            delivery_attempts=DISPATCH_CONFIG.MAX_DELIVERY_ATTEMPTS,
            error_message=error,
            last_attempt_at=now,
            updated_at=now,
        )


def sender_display_name(row: PendingMessageNotification) -> str:
    try:
        return row.sender.profile.display_name
    except Profile.DoesNotExist:
        return DEFAULT_DISPLAY_NAME


def message_preview(message: Message) -> str:
    content = (message.content or "").strip()
    return content[: DISPATCH_CONFIG.PREVIEW_LENGTH] or DISPATCH_CONFIG.EMPTY_PREVIEW
