"""
Signup Analytics — Coaching Recommendations
=============================================

Sends a dashboard summary to the configured LLM and returns short daily
and weekly action items for the sales team:

    {"current_week": [...3 items...], "next_week": [...3 items...]}

The model is asked for a JSON object. When the reply holds no parseable
object, the raw text is sliced into one item per list. Items touching
compensation or management topics are dropped before returning.
"""
from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from scripts.lib.ai_provider import ai_complete
from scripts.lib.logger import get_logger

logger = get_logger("recommendations")

DASHBOARD_TYPES = ("freesignup", "compare", "whatsapp")

FALLBACK_SLICE = 200
JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")

OFF_LIMITS_KEYWORDS = (
    "bonus", "reward", "gamify", "gamification", "incentive", "compensation",
    "salary", "pay", "money", "financial", "prize", "competition", "contest",
    "management", "hr", "policy", "decision", "admin", "administrative",
)
# Keywords match at word starts, so "pay" covers "payment" but "hr" skips "three"
OFF_LIMITS_PATTERN = re.compile(
    r"\b(?:" + "|".join(map(re.escape, OFF_LIMITS_KEYWORDS)) + ")", re.IGNORECASE,
)

SYSTEM_PROMPT = """You are a motivational marketing and sales coach for an education sales team.
Analyze the team's figures and give exactly 3 realistic daily action items and 3 weekly goals.
Target conversion rate: 5%. Use encouraging language.

Return ONLY a JSON object:
{
  "currentWeek": ["Today: ...", "Today: ...", "Today: ..."],
  "nextWeek": ["This week: ...", "This week: ...", "This week: ..."]
}

Realistic capacity for one 8-hour day:
- 15-25 calls, 2-4 demos (30-45 minutes each), 10-15 WhatsApp follow-ups
- each item completable in 2-3 hours, quality over quantity
- 2-5% conversion is normal for education sales

Every item must carry concrete numbers and time allocation, e.g.
"Today: Make 15 calls (2 hours), schedule 2 demos (1 hour), complete 1 demo (45 minutes)".

Only cover call targets, demo scheduling and completion, parent follow-ups,
weekly sales targets and conversation approaches. Never mention bonuses,
rewards, gamification, management or HR matters, incentives or pay.
Keep each item to 1-2 sentences."""


def _num(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return 0


def _most_used(data: Dict[str, Any]):
    top = data.get("most_used_language") or data.get("mostUsedLanguage") or []
    name = top[0] if len(top) > 0 else "N/A"
    count = top[1] if len(top) > 1 else 0
    return name, count


def build_prompt(dashboard_type: str, data: Dict[str, Any]) -> str:
    """User prompt carrying the figures for one dashboard view."""
    data = data or {}
    languages = json.dumps(data.get("languages") or {})

    if dashboard_type == "freesignup":
        rate = _num(data, "conversion_rate", "conversionRate")
        requested = _num(data, "demo_requested", "demoRequested")
        completed = _num(data, "demo_completed", "demoCompleted")
        assigned = _num(data, "assigned_contacts", "assignedContacts")
        unassigned = _num(data, "unassigned_contacts", "unassignedContacts")
        return (
            "EDUCATION SALES TEAM PERFORMANCE DATA:\n"
            f"- Total Parent Contacts: {_num(data, 'total_contacts', 'totalContacts')}\n"
            f"- Demo Requested by Parents: {requested}\n"
            f"- Demo Completed with Parents: {completed}\n"
            f"- Enrollments Closed: {_num(data, 'sales_count', 'salesCount')}\n"
            f"- Parent Conversion Rate: {rate}%\n"
            f"- Assigned Parent Contacts: {assigned}\n"
            f"- Unassigned Parent Contacts: {unassigned}\n"
            f"- Parent Languages: {languages}\n"
            f"- Average Daily Parent Contacts: {_num(data, 'avg_daily_contacts', 'avgDailyContacts')}\n\n"
            f"Focus on the current {rate}% conversion rate and concrete ways to raise it. "
            f"Look at language performance ({languages}), assignment coverage "
            f"({assigned} assigned vs {unassigned} unassigned) and demo effectiveness "
            f"({requested} requested, {completed} completed)."
        )

    if dashboard_type == "compare":
        lines = ["EDUCATION SALES TEAM COMPARISON DATA:"]
        for name, figures in data.items():
            lines.append(f"- {name}'s Parent Conversion: {json.dumps(figures or {})}")
        members = " and ".join(data) or "the team members"
        lines.append(
            f"\nFocus on comparing {members}: who converts better, who completes "
            "more demos, which languages work for whom, and how to lift the weaker areas."
        )
        return "\n".join(lines)

    if dashboard_type == "whatsapp":
        rate = _num(data, "demo_completion_rate", "demoConversionRate")
        requested = _num(data, "demo_requested", "demoRequested")
        completed = _num(data, "demo_completed", "demoCompleted")
        lang, lang_count = _most_used(data)
        return (
            "WHATSAPP EDUCATION SALES PERFORMANCE DATA:\n"
            f"- Total Parent Contacts: {_num(data, 'total_contacts', 'totalContacts')}\n"
            f"- Demo Requested by Parents: {requested}\n"
            f"- Demo Completed with Parents: {completed}\n"
            f"- Parent Demo Conversion Rate: {rate}%\n"
            f"- Parent Languages: {languages}\n"
            f"- Most Used Parent Language: {lang} ({lang_count} parents)\n"
            f"- Average Daily Parent Contacts: {_num(data, 'avg_daily_contacts', 'avgDailyContacts')}\n\n"
            f"Focus on the {rate}% demo conversion rate and how to raise it to 20-30%. "
            f"Look at language performance, the most effective language ({lang} with "
            f"{lang_count} users) and demo completion ({requested} requested, {completed} completed)."
        )

    return f"Analyze this education sales data: {json.dumps(data, default=str)}"


def parse_recommendations(text: str) -> Dict[str, List[str]]:
    """Extract ``{current_week, next_week}`` from model output."""
    match = JSON_OBJECT_PATTERN.search(text or "")
    if match:
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            logger.warning("Model returned malformed JSON: %s", e)
        else:
            if isinstance(parsed, dict):
                return {
                    "current_week": _string_list(
                        parsed.get("currentWeek", parsed.get("current_week"))
                    ),
                    "next_week": _string_list(
                        parsed.get("nextWeek", parsed.get("next_week"))
                    ),
                }

    logger.warning("No JSON object in model output, using text slices")
    text = text or ""
    return {
        "current_week": [text[:FALLBACK_SLICE] + "..."],
        "next_week": [text[FALLBACK_SLICE:FALLBACK_SLICE * 2] + "..."],
    }


def _string_list(value) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


def filter_off_limits(recommendations: Dict[str, List[str]]) -> Dict[str, List[str]]:
    """Drop items mentioning any OFF_LIMITS_KEYWORDS (word start, case-insensitive)."""
    def keep(item: str) -> bool:
        return not OFF_LIMITS_PATTERN.search(item)

    return {
        "current_week": [r for r in recommendations.get("current_week", []) if keep(r)],
        "next_week": [r for r in recommendations.get("next_week", []) if keep(r)],
    }


async def generate_recommendations(
    dashboard_type: str,
    data: Dict[str, Any],
    *,
    month: Optional[str] = None,
    provider: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Ask the LLM for coaching items for one dashboard view.

    Args:
        dashboard_type: "freesignup", "compare" or "whatsapp".
        data: Summary figures (snake_case or camelCase keys); for "compare"
            a mapping of assignee name to that assignee's figures.
        month: Period label echoed back in the response.
        provider: Force "groq" or "claude".

    Returns:
        Dict with ``recommendations``, ``timestamp``, ``dashboard_type`` and ``month``.
    """
    response = await ai_complete(
        task="recommendations",
        system_prompt=SYSTEM_PROMPT,
        user_prompt=build_prompt(dashboard_type, data),
        provider=provider,
        dashboard_type=dashboard_type,
        json_mode=True,
    )
    recommendations = filter_off_limits(parse_recommendations(response.content))
    logger.info(
        "Recommendations for %s: %d daily, %d weekly",
        dashboard_type,
        len(recommendations["current_week"]),
        len(recommendations["next_week"]),
    )
    return {
        "recommendations": recommendations,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "dashboard_type": dashboard_type,
        "month": month,
    }
