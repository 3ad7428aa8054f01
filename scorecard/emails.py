"""HTML rendering for scorecard result emails."""

from datetime import datetime
from html import escape
from typing import List, Sequence, Tuple

from scorecard.scoring import (
    DimensionResult,
    ScoreResult,
    priority_action,
    round_half_up,
    stage_description,
    top_priorities,
)

LOGO_URL = "https://apexdigitalafrica.com/wp-content/uploads/2025/09/cropped-cropped-apex-_logo.png"
CTA_URL = "https://apexdigitalafrica.com/contact"

_PRIORITY_BACKGROUNDS = ("#fef3c7", "#fee2e2", "#fef9c3")
_PRIORITY_BORDERS = ("#f59e0b", "#ef4444", "#eab308")


def score_color(percentage: float) -> str:
    if percentage >= 80:
        return "#10b981"
    if percentage >= 60:
        return "#3b82f6"
    if percentage >= 40:
        return "#f59e0b"
    return "#ef4444"


def results_subject(total_score: int, stage: str) -> str:
    return f"Your Growth Score: {total_score}/100 - {stage} Stage"


def _dimension_block(dimension: DimensionResult) -> str:
    color = score_color(dimension.percentage)
    return (
        '<div style="margin-bottom: 20px;">'
        '<div style="display: flex; justify-content: space-between; margin-bottom: 8px;">'
        f'<span style="color: #374151; font-weight: 600;">{escape(dimension.name)}</span>'
        f'<span style="color: {color}; font-weight: bold;">{dimension.percentage}%</span>'
        "</div>"
        '<div style="background-color: #e5e7eb; height: 10px; border-radius: 5px; overflow: hidden;">'
        f'<div style="background-color: {color}; height: 10px; width: {dimension.percentage}%;"></div>'
        "</div>"
        '<div style="color: #6b7280; font-size: 12px; margin-top: 5px;">'
        f"Weight: {round_half_up(dimension.weight * 100)}% | Contribution: {round_half_up(dimension.weighted_score)} points"
        "</div>"
        "</div>"
    )


def _priority_block(index: int, dimension: DimensionResult) -> str:
    background = _PRIORITY_BACKGROUNDS[index] if index < len(_PRIORITY_BACKGROUNDS) else "#f3f4f6"
    border = _PRIORITY_BORDERS[index] if index < len(_PRIORITY_BORDERS) else "#9ca3af"
    return (
        f'<div style="background-color: {background}; border-left: 4px solid {border}; '
        'padding: 15px; margin-bottom: 15px; border-radius: 8px;">'
        '<div style="color: #92400e; font-weight: bold; margin-bottom: 5px;">'
        f"{index + 1}. {escape(dimension.name)} ({dimension.percentage}%)"
        "</div>"
        f'<div style="color: #78350f; font-size: 14px;">{priority_action(dimension.percentage)}</div>'
        "</div>"
    )


def render_results_email(
    company: str,
    score_result: ScoreResult,
    stage: str,
    *,
    year: int | None = None,
) -> Tuple[str, str]:
    """Return ``(subject, html)`` for the results email."""
    year = year or datetime.utcnow().year
    dimensions: Sequence[DimensionResult] = score_result.dimension_scores
    priorities: List[DimensionResult] = top_priorities(score_result)
    dimension_html = "".join(_dimension_block(dimension) for dimension in dimensions)
    priority_html = "".join(_priority_block(index, dimension) for index, dimension in enumerate(priorities))

    html = f"""<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"><meta name="viewport" content="width=device-width, initial-scale=1.0"></head>
<body style="margin: 0; padding: 0; font-family: Arial, sans-serif; background-color: #f3f4f6;">
  <table width="100%" cellpadding="0" cellspacing="0" style="padding: 40px 20px;">
    <tr><td align="center">
      <table width="600" cellpadding="0" cellspacing="0" style="background-color: #ffffff; border-radius: 16px;">
        <tr><td style="background: #2563eb; padding: 40px; text-align: center;">
          <img src="{LOGO_URL}" alt="Apex Digital Africa" style="height: 60px; margin-bottom: 20px;">
          <h1 style="color: #ffffff; margin: 0; font-size: 32px;">Your Growth Score Results</h1>
        </td></tr>
        <tr><td style="padding: 40px;">
          <h2 style="color: #1f2937; margin: 0 0 10px 0;">Hi {escape(company)} Team!</h2>
          <p style="color: #6b7280;">Thank you for completing the Apex Growth Scorecard. Here are your results:</p>
          <div style="background: #3b82f6; border-radius: 12px; padding: 30px; text-align: center;">
            <div style="font-size: 56px; font-weight: bold; color: #ffffff;">{score_result.total_score}/100</div>
            <div style="font-size: 24px; color: #e0e7ff;">{escape(stage)} Stage</div>
            <div style="font-size: 14px; color: #bfdbfe;">{escape(stage_description(stage))}</div>
          </div>
          <h3 style="color: #1f2937;">Your Dimension Scores</h3>
          {dimension_html}
          <h3 style="color: #1f2937;">Your Top 3 Priorities</h3>
          {priority_html}
          <div style="text-align: center; margin: 40px 0;">
            <a href="{CTA_URL}" style="background-color: #2563eb; color: #ffffff; padding: 16px 32px; border-radius: 8px;">Book Your Free Strategy Session</a>
          </div>
        </td></tr>
        <tr><td style="background-color: #f9fafb; padding: 30px; text-align: center;">
          <p style="color: #9ca3af; font-size: 12px;">&copy; {year} Apex Digital Africa. All rights reserved.</p>
        </td></tr>
      </table>
    </td></tr>
  </table>
</body>
</html>
"""
    return results_subject(score_result.total_score, stage), html
