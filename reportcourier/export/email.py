"""Rendering of report delivery emails.

Two variants exist: one embeds the exported PNG inline as
``cid:report-image``; the other carries only links to the dashboard.
"""

from __future__ import annotations

import base64
import html
import string

import msgspec

from reportcourier.common.time import utcnow

DEFAULT_PRIMARY_COLOR = "#0891b2"
INLINE_IMAGE_CID = "report-image"

_IMAGE_BLOCK = string.Template(
    """\
<p style="color:#374151;font-size:16px;margin:0 0 30px 0;">
  Here is the latest capture of your report <strong>"$dashboard"</strong>:
</p>
<div style="background-color:#f9fafb;border-radius:8px;padding:20px;\
margin-bottom:30px;text-align:center;">
  <img src="cid:$cid" alt="$dashboard" style="max-width:100%;height:auto;" />
</div>
"""
)

_LINK_BLOCK = string.Template(
    """\
<p style="color:#374151;font-size:16px;margin:0 0 30px 0;">
  Your report <strong>"$dashboard"</strong> is ready to view.
</p>
<p style="color:#6b7280;font-size:14px;text-align:center;margin:0 0 10px 0;">
  Or open it directly in Power BI:
</p>
<p style="text-align:center;margin:0 0 30px 0;">
  <a href="$powerbi_link" style="color:$color;font-size:14px;">$powerbi_link</a>
</p>
"""
)

_LAYOUT = string.Template(
    """\
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="margin:0;padding:0;font-family:'Segoe UI',Tahoma,sans-serif;\
background-color:#f4f4f5;">
<table width="100%" cellpadding="0" cellspacing="0" style="padding:40px 20px;">
<tr><td align="center">
<table width="$width" cellpadding="0" cellspacing="0" \
style="background-color:#ffffff;border-radius:12px;">
<tr><td style="background:$color;padding:30px 40px;text-align:center;">
  <h1 style="color:#ffffff;margin:0;font-size:24px;">$company</h1>
</td></tr>
<tr><td style="padding:40px;">
<p style="color:#374151;font-size:16px;margin:0 0 20px 0;">Hello$greeting_name,</p>
$body
<p style="text-align:center;padding-bottom:20px;">
  <a href="$dashboard_link" style="display:inline-block;background:$color;\
color:#ffffff;text-decoration:none;padding:16px 40px;border-radius:8px;">\
Open dashboard</a>
</p>
<p style="color:#9ca3af;font-size:13px;margin:0;">
  This is an automated delivery configured in $company.
  If you do not recognise this email, please ignore it.
</p>
</td></tr>
<tr><td style="background-color:#f9fafb;padding:20px 40px;text-align:center;">
  <p style="color:#9ca3af;font-size:12px;margin:0;">&copy; $year $company</p>
</td></tr>
</table>
</td></tr>
</table>
</body>
</html>
"""
)

_TEXT = string.Template(
    """\
Hello$greeting_name,

Your report "$dashboard" is ready to view.

Open the dashboard: $dashboard_link

Or open it directly in Power BI: $powerbi_link

This is an automated delivery configured in $company.
"""
)


class ReportEmailContext(msgspec.Struct, kw_only=True, frozen=True):
    """Values shared by every recipient of one delivery."""

    company_name: str
    dashboard_name: str
    dashboard_link: str
    powerbi_link: str
    primary_color: str = DEFAULT_PRIMARY_COLOR


class InlineImage(msgspec.Struct, kw_only=True, frozen=True):
    """Inline attachment referenced from the HTML body by content id."""

    content_type: str
    filename: str
    content_id: str
    base64_content: str

    @classmethod
    def png(cls, data: bytes) -> InlineImage:
        """Wrap exported PNG bytes as the report image attachment."""
        return cls(
            content_type="image/png",
            filename="report.png",
            content_id=INLINE_IMAGE_CID,
            base64_content=base64.b64encode(data).decode("ascii"),
        )


class EmailMessage(msgspec.Struct, kw_only=True, frozen=True):
    """Provider-neutral representation of one outgoing email."""

    to_email: str
    to_name: str
    subject: str
    html_body: str
    text_body: str
    inline_images: tuple[InlineImage, ...] = ()


def render_report_email(
    context: ReportEmailContext,
    *,
    recipient_email: str,
    recipient_name: str | None = None,
    image_png: bytes | None = None,
) -> EmailMessage:
    """Render the delivery email for one recipient.

    Parameters
    ----------
    context
        Delivery-wide values (company, dashboard and links).
    recipient_email
        Destination address.
    recipient_name
        Optional display name used in the greeting.
    image_png
        Exported report image. When present the HTML body embeds it and the
        message carries it as an inline attachment; otherwise the body links
        to the report in Power BI.

    Returns
    -------
    EmailMessage
        Rendered message ready for a mail provider.

    """
    esc = html.escape
    greeting_name = f" {recipient_name}" if recipient_name else ""
    if image_png is not None:
        body = _IMAGE_BLOCK.substitute(
            dashboard=esc(context.dashboard_name), cid=INLINE_IMAGE_CID
        )
        width = "800"
    else:
        body = _LINK_BLOCK.substitute(
            dashboard=esc(context.dashboard_name),
            powerbi_link=esc(context.powerbi_link),
            color=esc(context.primary_color),
        )
        width = "600"

    html_body = _LAYOUT.substitute(
        width=width,
        color=esc(context.primary_color),
        company=esc(context.company_name),
        greeting_name=f" <strong>{esc(recipient_name)}</strong>"
        if recipient_name
        else "",
        body=body,
        dashboard_link=esc(context.dashboard_link),
        year=utcnow().year,
    )
    text_body = _TEXT.substitute(
        greeting_name=greeting_name,
        dashboard=context.dashboard_name,
        dashboard_link=context.dashboard_link,
        powerbi_link=context.powerbi_link,
        company=context.company_name,
    )
    images = (InlineImage.png(image_png),) if image_png is not None else ()
    return EmailMessage(
        to_email=recipient_email,
        to_name=recipient_name or recipient_email,
        subject=f"Report: {context.dashboard_name}",
        html_body=html_body,
        text_body=text_body,
        inline_images=images,
    )
