"""Notification planning.

Pure functions deciding which notifications should exist for an entity.
Nothing here reads the clock or touches the database; the notification
service persists the plans with insert-if-absent semantics, so running a
plan twice never creates a second row.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from coi_compliance.schemas.compliance import EntityRef
from coi_compliance.schemas.enums import ComplianceStatus, NotificationStatus, NotificationType
from coi_compliance.schemas.notifications import (
    NotificationPlan,
    NotificationSnapshot,
    SchedulePlan,
)

ESCALATION_SOURCES = frozenset({
    NotificationType.GAP_NOTIFICATION,
    NotificationType.EXPIRATION_WARNING,
    NotificationType.FOLLOW_UP_REMINDER,
})

CONTACT_TYPES = frozenset({NotificationType.GAP_NOTIFICATION, NotificationType.FOLLOW_UP_REMINDER})

ESCALATING_STATUSES = frozenset({ComplianceStatus.NON_COMPLIANT, ComplianceStatus.EXPIRED})


def plan_expiration_warnings(
    entity: EntityRef,
    certificate_id: Optional[UUID],
    expiration: Optional[date],
    today: date,
    lead_days: Iterable[int],
) -> List[NotificationPlan]:
    """One warning per lead time before ``expiration``.

    Lead times whose send date already passed collapse into a single
    catch-up warning scheduled today. Its dedup key is the passed lead's own
    target date, so later runs recognise it.
    """
    if expiration is None or expiration < today:
        return []

    leads = sorted({lead for lead in lead_days if lead >= 0}, reverse=True)
    upcoming = [lead for lead in leads if expiration - timedelta(days=lead) >= today]
    passed = [lead for lead in leads if expiration - timedelta(days=lead) < today]

    def plan(lead: int, scheduled: date) -> NotificationPlan:
        return NotificationPlan(
            entity=entity,
            type=NotificationType.EXPIRATION_WARNING,
            target_date=expiration - timedelta(days=lead),
            scheduled_date=scheduled,
            certificate_id=certificate_id,
            expiration_date=expiration,
            lead_days=lead,
        )

    plans = []
    if passed:
        plans.append(plan(min(passed), today))
    plans.extend(plan(lead, expiration - timedelta(days=lead)) for lead in upcoming)
    return plans


def should_send_gap_notification(
    previous_status: Optional[ComplianceStatus],
    new_status: ComplianceStatus,
) -> bool:
    """Only the move into non_compliant or expired triggers a gap notification.

    Staying in either state, or moving between them, is handled by the
    follow-up cycle instead.
    """
    return new_status in ESCALATING_STATUSES and previous_status not in ESCALATING_STATUSES


def plan_gap_notification(
    entity: EntityRef,
    certificate_id: Optional[UUID],
    gaps: Sequence[str],
    today: date,
) -> NotificationPlan:
    return NotificationPlan(
        entity=entity,
        type=NotificationType.GAP_NOTIFICATION,
        target_date=today,
        scheduled_date=today,
        certificate_id=certificate_id,
        gaps=list(gaps),
    )


def last_contact_date(history: Sequence[NotificationSnapshot]) -> Optional[date]:
    """Most recent gap notice or follow-up, by send date or else scheduled date."""
    dates = [
        n.sent_date.date() if n.sent_date is not None else n.scheduled_date
        for n in history
        if n.type in CONTACT_TYPES and n.status != NotificationStatus.CANCELLED
    ]
    return max(dates, default=None)


def plan_follow_up(
    entity: EntityRef,
    status: ComplianceStatus,
    certificate_id: Optional[UUID],
    gaps: Sequence[str],
    history: Sequence[NotificationSnapshot],
    today: date,
    interval_days: int,
) -> Optional[NotificationPlan]:
    """Repeat the gap notice every ``interval_days`` while the entity stays out of compliance.

    With no earlier contact on record the first notice is a gap notification;
    later ones are follow-up reminders. Keyed on ``today`` so one run per day
    creates at most one row.
    """
    if status not in ESCALATING_STATUSES or interval_days <= 0:
        return None
    if any(n.type in CONTACT_TYPES and n.status == NotificationStatus.SCHEDULED for n in history):
        return None

    last = last_contact_date(history)
    if last is None:
        return plan_gap_notification(entity, certificate_id, gaps, today)
    if (today - last).days < interval_days:
        return None
    return NotificationPlan(
        entity=entity,
        type=NotificationType.FOLLOW_UP_REMINDER,
        target_date=today,
        scheduled_date=today,
        certificate_id=certificate_id,
        gaps=list(gaps),
    )


def superseded_warnings(
    history: Sequence[NotificationSnapshot],
    latest_certificate_id: Optional[UUID],
    latest_expiration: Optional[date],
) -> List[UUID]:
    """Scheduled warnings made obsolete by a renewed certificate.

    A warning is obsolete when it belongs to an older certificate and the
    latest one expires later or carries no expiration at all.
    """
    if latest_certificate_id is None:
        return []

    obsolete = []
    for notification in history:
        if notification.type != NotificationType.EXPIRATION_WARNING:
            continue
        if notification.status != NotificationStatus.SCHEDULED:
            continue
        if notification.certificate_id == latest_certificate_id:
            continue
        if (
            latest_expiration is None
            or notification.expiration_date is None
            or latest_expiration > notification.expiration_date
        ):
            obsolete.append(notification.id)
    return obsolete


def count_escalation_cycles(
    history: Sequence[NotificationSnapshot],
    last_compliant_at: Optional[datetime],
) -> int:
    """Sent gap, expiration and follow-up notices since the last escalation or compliant certificate."""
    cutoff = last_compliant_at
    for notification in history:
        if notification.type != NotificationType.ESCALATION or notification.sent_date is None:
            continue
        if notification.status != NotificationStatus.SENT:
            continue
        if cutoff is None or notification.sent_date > cutoff:
            cutoff = notification.sent_date

    return sum(
        1
        for notification in history
        if notification.type in ESCALATION_SOURCES
        and notification.status == NotificationStatus.SENT
        and notification.sent_date is not None
        and (cutoff is None or notification.sent_date > cutoff)
    )


def plan_escalation(
    entity: EntityRef,
    status: ComplianceStatus,
    certificate_id: Optional[UUID],
    history: Sequence[NotificationSnapshot],
    last_compliant_at: Optional[datetime],
    threshold: int,
    today: date,
) -> Optional[NotificationPlan]:
    """Escalate once ``threshold`` notices went unanswered."""
    if status not in ESCALATING_STATUSES or threshold <= 0:
        return None
    pending = any(
        n.type == NotificationType.ESCALATION and n.status == NotificationStatus.SCHEDULED
        for n in history
    )
    if pending or count_escalation_cycles(history, last_compliant_at) < threshold:
        return None
    return NotificationPlan(
        entity=entity,
        type=NotificationType.ESCALATION,
        target_date=today,
        scheduled_date=today,
        certificate_id=certificate_id,
    )


def plan_notifications(
    entity: EntityRef,
    previous_status: Optional[ComplianceStatus],
    new_status: ComplianceStatus,
    certificate_id: Optional[UUID],
    earliest_expiration: Optional[date],
    gaps: Sequence[str],
    history: Sequence[NotificationSnapshot],
    last_compliant_at: Optional[datetime],
    today: date,
    lead_days: Iterable[int],
    escalation_threshold: int,
    notifications_paused: bool = False,
    follow_up_interval_days: int = 14,
) -> SchedulePlan:
    """Everything that should change after an entity was (re-)evaluated.

    Obsolete warnings are cancelled even while notifications are paused;
    nothing new is planned for a paused entity.
    """
    plan = SchedulePlan(
        to_cancel=superseded_warnings(history, certificate_id, earliest_expiration)
    )
    if notifications_paused or certificate_id is None:
        return plan

    plan.to_create.extend(
        plan_expiration_warnings(entity, certificate_id, earliest_expiration, today, lead_days)
    )
    if should_send_gap_notification(previous_status, new_status):
        plan.to_create.append(plan_gap_notification(entity, certificate_id, gaps, today))
    else:
        follow_up = plan_follow_up(
            entity, new_status, certificate_id, gaps, history, today, follow_up_interval_days
        )
        if follow_up is not None:
            plan.to_create.append(follow_up)

    escalation = plan_escalation(
        entity, new_status, certificate_id, history, last_compliant_at, escalation_threshold, today
    )
    if escalation is not None:
        plan.to_create.append(escalation)
    return plan
