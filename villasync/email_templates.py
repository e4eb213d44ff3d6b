"""
MJML Email Templates
Sync notification e-mails rendered with MJML for responsive, cross-client compatibility
"""

from typing import Optional

# App theme colors - Teal/Slate color scheme
THEME = {
    "primary": "#14b8a6",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success": "#14b8a6",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="40px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="12px" color="#94a3b8" padding="0">
              You're receiving this because calendar sync is enabled for your villas.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _stat_row(label: str, value, color: str) -> str:
    return f"""
    <mj-text padding="4px 0">
      {label}: <strong style="color: {color};">{value}</strong>
    </mj-text>
    """


def sync_completed_template(
    platform: str,
    new_bookings: int,
    updated_bookings: int,
    error_count: int,
    dashboard_url: Optional[str] = None,
) -> str:
    """Single integration sync summary"""
    content = f"""
    <mj-text color="{THEME['text_muted']}" padding="0 0 24px 0">
      Your {platform} bookings were synchronized.
    </mj-text>
    {_stat_row("New bookings", new_bookings, THEME["success"])}
    {_stat_row("Updated bookings", updated_bookings, THEME["text_primary"])}
    {_stat_row("Errors", error_count, THEME["danger"] if error_count else THEME["text_muted"])}
    """

    return get_base_template(
        title=f"{platform} sync completed",
        preview_text=f"{new_bookings} new, {updated_bookings} updated bookings from {platform}",
        content_sections=content,
        cta_url=dashboard_url,
        cta_label="View bookings",
    )


def sync_report_template(
    total_integrations: int,
    successful: int,
    failed: int,
    new_bookings: int,
    updated_bookings: int,
    errors: list[str],
) -> str:
    """Full sync batch report for administrators"""
    error_items = ""
    if errors:
        lines = "<br/>".join(f"• {message}" for message in errors[:20])
        error_items = f"""
        <mj-text font-weight="600" color="{THEME['danger']}" padding="24px 0 8px 0">
          Errors
        </mj-text>
        <mj-text font-size="14px" padding="0 0 0 12px">
          {lines}
        </mj-text>
        """

    content = f"""
    <mj-text color="{THEME['text_muted']}" padding="0 0 24px 0">
      Scheduled full synchronization finished.
    </mj-text>
    {_stat_row("Integrations processed", total_integrations, THEME["text_primary"])}
    {_stat_row("Successful", successful, THEME["success"])}
    {_stat_row("Failed", failed, THEME["danger"] if failed else THEME["text_muted"])}
    {_stat_row("New bookings", new_bookings, THEME["success"])}
    {_stat_row("Updated bookings", updated_bookings, THEME["text_primary"])}
    {error_items}
    """

    return get_base_template(
        title="Full sync report",
        preview_text=f"{successful}/{total_integrations} integrations synced, {new_bookings} new bookings",
        content_sections=content,
    )
