"""
Content Service
Weighted variant selection and placeholder rendering for sequence templates.
"""
import random
from typing import List, Dict, Any, Optional

from app.shared.core.constants import DEFAULT_STEP_TEMPLATE

PLACEHOLDER_DEFAULTS = {
    "firstName": "there",
    "lastName": "",
    "fullName": "there",
    "company": "your company",
    "title": "your role",
}


def pick_variant(variants: List[Dict[str, Any]], rng: Optional[random.Random] = None) -> Optional[Dict[str, Any]]:
    """Weighted random choice among active variants with a positive weight."""
    candidates = [v for v in variants if v.get("is_active", True) and (v.get("weight") or 0) > 0]
    if not candidates:
        return None
    chooser = rng or random
    return chooser.choices(candidates, weights=[v["weight"] for v in candidates], k=1)[0]


def render_template(template: Optional[str], lead: Dict[str, Any]) -> str:
    """Replace {firstName}, {lastName}, {fullName}, {company}, {title}."""
    text = template or DEFAULT_STEP_TEMPLATE
    values = {
        "firstName": lead.get("first_name"),
        "lastName": lead.get("last_name"),
        "fullName": lead.get("full_name") or _join_name(lead),
        "company": lead.get("company"),
        "title": lead.get("title"),
    }
    for key, value in values.items():
        text = text.replace("{" + key + "}", value or PLACEHOLDER_DEFAULTS[key])
    return text


def build_step_content(variants: List[Dict[str, Any]], lead: Dict[str, Any]) -> str:
    """Render a weighted pick of the step's variants (or the default template) for a lead."""
    variant = pick_variant(variants)
    return render_template(variant["content"] if variant else None, lead)


def _join_name(lead: Dict[str, Any]) -> Optional[str]:
    parts = [lead.get("first_name"), lead.get("last_name")]
    joined = " ".join(p for p in parts if p)
    return joined or None
