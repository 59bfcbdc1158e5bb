"""
Answer scoring and per-category result derivation.

All scores are on a 0..10 scale before the question weight is applied.
"""
from __future__ import annotations

import re
from typing import Any

_WORD_RE = re.compile(r"\b(\w+)\b")


def _text_score(text: str) -> int:
    n = len(text)
    if n > 200:
        length_score = 5
    elif n > 150:
        length_score = 4
    elif n > 100:
        length_score = 3
    elif n > 50:
        length_score = 2
    elif n > 0:
        length_score = 1
    else:
        length_score = 0
    unique_words = set(_WORD_RE.findall(text.lower()))
    complexity_score = min(5, len(unique_words) // 5)
    return min(10, length_score + complexity_score)


def score_answer(question_type: str, value: Any, *, weight: float = 1.0, options: list[str] | None = None) -> float:
    if value is None:
        return 0.0
    response = str(value).strip()
    if not response:
        return 0.0

    if question_type == "scale":
        m = re.match(r"^[+-]?\d+", response)
        return float(int(m.group(0)) * weight) if m else 0.0

    if question_type == "boolean":
        return (10 if response.lower() in ("yes", "true") else 5) * weight

    if question_type == "multiple_choice":
        if options is not None:
            if response not in options:
                return 0.0
            return min(10, (options.index(response) + 1) * 2) * weight
        return 5 * weight

    # text and anything unrecognised
    return _text_score(response) * weight


def priority_for(score: float) -> str:
    if score < 5:
        return "high"
    if score < 7:
        return "medium"
    return "low"


def strengths_for(category_name: str, score: float) -> list[str]:
    if score >= 8:
        return [f"Strong foundation in {category_name}", "Well-positioned for AI implementation"]
    if score >= 6:
        return [f"Good progress in {category_name}", "Some solid foundations in place"]
    return ["Opportunity for growth identified"]


def improvements_for(category_name: str, score: float) -> list[str]:
    if score < 5:
        return [f"Significant improvement needed in {category_name}", "Focus area for immediate attention"]
    if score < 7:
        return [f"Room for improvement in {category_name}", "Consider targeted initiatives"]
    return ["Continue current positive momentum"]


def recommendations_for(category_name: str, score: float) -> dict:
    rec: dict[str, Any] = {"priority": priority_for(score), "actions": [], "resources": []}
    name = category_name.lower()
    if name in ("current ai understanding", "ai readiness"):
        if score < 5:
            rec["actions"] += ["Conduct AI literacy training for your team", "Develop an AI strategy roadmap"]
            rec["resources"].append("AI Strategy Guide")
        elif score < 7:
            rec["actions"].append("Pilot small AI projects to build experience")
            rec["resources"].append("AI Implementation Checklist")
    elif name in ("data & information", "data management"):
        if score < 5:
            rec["actions"] += ["Audit your current data infrastructure", "Implement data governance policies"]
    else:
        rec["actions"] += ["Review current practices in this area", "Identify specific improvement opportunities"]
    return rec


def category_score(scored: list[tuple[float, float]]) -> float:
    """Weighted mean of (score, weight) pairs, back on the 0..10 scale."""
    total_weight = sum(w for _, w in scored)
    if total_weight <= 0:
        return 0.0
    return sum(sc for sc, _ in scored) / total_weight
