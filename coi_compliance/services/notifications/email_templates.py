"""Notification email copy. Tone scales with urgency."""

from dataclasses import dataclass
from datetime import date
from html import escape
from typing import List, Optional, Sequence

from coi_compliance.schemas.enums import NotificationType


@dataclass(frozen=True)
class EmailFields:
    entity_name: str
    property_name: str
    portal_link: str
    expiration_date: Optional[date] = None
    days_until_expiration: Optional[int] = None
    gaps: Sequence[str] = ()
    is_expired: bool = False


@dataclass(frozen=True)
class EmailContent:
    subject: str
    body: str


def format_date(value: Optional[date]) -> str:
    return value.strftime("%b %d, %Y") if value else "N/A"


def _paragraph(text: str) -> str:
    return f'<p style="font-size:14px;color:#334155;line-height:1.6;">{text}</p>'


def _gap_list(gaps: Sequence[str]) -> str:
    items = "".join(f"<li>{escape(gap)}</li>" for gap in gaps)
    return f'<ul style="background:#f8fafc;border-radius:6px;padding:14px 32px;">{items}</ul>'


def _button(link: str) -> str:
    return (
        f'<p><a href="{escape(link, quote=True)}" style="background:#059669;color:#ffffff;'
        f'padding:12px 24px;border-radius:6px;text-decoration:none;font-weight:600;">'
        f"Upload Your Certificate</a></p>"
    )


def _wrap(fields: EmailFields, parts: List[str]) -> str:
    greeting = _paragraph(f"Hi {escape(fields.entity_name)},")
    footer = (
        '<p style="font-size:11px;color:#64748b;">This is an automated message. '
        "Please do not reply directly to this email.</p>"
    )
    return "\n".join([greeting, *parts, _button(fields.portal_link), footer])


def expiration_warning(fields: EmailFields) -> EmailContent:
    prop = escape(fields.property_name)
    expires = format_date(fields.expiration_date)
    days = fields.days_until_expiration or 0
    if days > 20:
        message = (
            f"Your certificate of insurance for <strong>{prop}</strong> expires on "
            f"<strong>{expires}</strong>, about {days} days from now. Please start the "
            f"renewal process with your insurance broker so we can keep your file up to date."
        )
    else:
        plural = "" if days == 1 else "s"
        message = (
            f"Your certificate of insurance for <strong>{prop}</strong> expires on "
            f"<strong>{expires}</strong>, just <strong>{days} day{plural} away</strong>. "
            f"Please upload an updated certificate as soon as possible to avoid a lapse in compliance."
        )
    return EmailContent(
        subject=f"Your Certificate of Insurance for {fields.property_name} Expires Soon",
        body=_wrap(fields, [_paragraph(message)]),
    )


def _gap_parts(fields: EmailFields, intro: str) -> List[str]:
    parts = []
    if fields.is_expired:
        parts.append(
            _paragraph(
                f"Your certificate of insurance for <strong>{escape(fields.property_name)}</strong> "
                f"expired on <strong>{format_date(fields.expiration_date)}</strong>. "
                f"An updated certificate is needed immediately."
            )
        )
    parts.append(_paragraph(intro))
    if fields.gaps:
        parts.append(_gap_list(fields.gaps))
    parts.append(
        _paragraph(
            "Please forward this email to your insurance broker and ask them to issue an "
            "updated certificate with these changes, then upload it using the button below."
        )
    )
    return parts


def gap_notification(fields: EmailFields) -> EmailContent:
    intro = (
        f"We reviewed your certificate of insurance for <strong>{escape(fields.property_name)}</strong> "
        f"and found a few items that need to be updated:"
    )
    return EmailContent(
        subject=f"Action Needed: Certificate of Insurance Update for {fields.property_name}",
        body=_wrap(fields, _gap_parts(fields, intro)),
    )


def follow_up_reminder(fields: EmailFields) -> EmailContent:
    intro = (
        f"We wanted to follow up on your certificate of insurance for "
        f"<strong>{escape(fields.property_name)}</strong>."
    )
    if fields.gaps:
        intro += " We still need an updated certificate that addresses the following:"
    return EmailContent(
        subject=f"Friendly Reminder: Updated Certificate Needed for {fields.property_name}",
        body=_wrap(fields, _gap_parts(fields, intro)),
    )


def escalation(fields: EmailFields) -> EmailContent:
    intro = (
        f"We have contacted you several times about your certificate of insurance for "
        f"<strong>{escape(fields.property_name)}</strong> and still have not received an "
        f"updated certificate. This matter has been escalated to the property manager."
    )
    return EmailContent(
        subject=f"Urgent: Certificate of Insurance Still Outstanding for {fields.property_name}",
        body=_wrap(fields, _gap_parts(fields, intro)),
    )


def portal_upload(fields: EmailFields) -> EmailContent:
    """In-app notice for the property manager; never emailed."""
    return EmailContent(
        subject=f"{fields.entity_name} uploaded a new certificate for {fields.property_name}",
        body=f"{fields.entity_name} uploaded a certificate through the upload portal.",
    )


RENDERERS = {
    NotificationType.EXPIRATION_WARNING: expiration_warning,
    NotificationType.GAP_NOTIFICATION: gap_notification,
    NotificationType.FOLLOW_UP_REMINDER: follow_up_reminder,
    NotificationType.ESCALATION: escalation,
    NotificationType.PORTAL_UPLOAD: portal_upload,
}


def render(notification_type: NotificationType, fields: EmailFields) -> EmailContent:
    return RENDERERS[notification_type](fields)
