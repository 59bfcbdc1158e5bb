"""Default AI-readiness questionnaire, seeded idempotently by scripts/init_db.py."""
from __future__ import annotations

from typing import TYPE_CHECKING

from app.aigency.modules.assessments.models import AssessmentCategory, AssessmentQuestion

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


# Three scored categories; tool recommendations key off the last two by name.
DEFAULT_QUESTIONNAIRE: list[dict] = [
    {
        "name": "Current AI Understanding",
        "description": "Understanding your team's familiarity with AI capabilities",
        "icon": "brain",
        "questions": [
            ("On a scale of 1-10, how familiar are you with what AI can actually do for businesses like yours?", "scale", None),
            ("Have you or anyone on your team used AI tools before (like ChatGPT, Claude, or other AI assistants)?", "boolean", None),
            (
                "What's the main reason you're interested in AI for your business right now?",
                "multiple_choice",
                [
                    "Want to save time on routine tasks",
                    "Looking to improve customer service",
                    "Need to make better decisions from data",
                    "Trying to stay ahead of competitors",
                    "Heard about AI and want to explore possibilities",
                    "Other (please explain below)",
                ],
            ),
        ],
    },
    {
        "name": "Business Operations",
        "description": "Understanding your business structure and processes",
        "icon": "users",
        "questions": [
            (
                "How many people work in your business?",
                "multiple_choice",
                ["Just me (solopreneur)", "2-10 employees", "11-50 employees", "51-200 employees", "More than 200 employees"],
            ),
            (
                "What type of work takes up most of your team's time?",
                "multiple_choice",
                [
                    "Answering customer questions",
                    "Doing paperwork and admin tasks",
                    "Finding and managing information",
                    "Creating reports and documents",
                    "Scheduling and coordinating",
                    "All of the above",
                ],
            ),
            ("On a scale of 1-10, how urgently does your business need to work smarter, not harder?", "scale", None),
        ],
    },
    {
        "name": "Data & Information",
        "description": "Understanding how you manage business information",
        "icon": "database",
        "questions": [
            (
                "How do you currently keep track of important business information?",
                "multiple_choice",
                [
                    "Mostly in my head or notes",
                    "Paper files and folders",
                    "Spreadsheets (Excel, Google Sheets)",
                    "Simple software (QuickBooks, etc.)",
                    "Business software with reports",
                    "We don't really track it systematically",
                ],
            ),
            ("Do you have customer information (emails, phone numbers, purchase history) that you could use better?", "boolean", None),
        ],
    },
]


def ensure_default_questionnaire(s: "Session") -> int:
    """Create missing categories/questions. Returns the number of questions added."""
    added = 0
    order = 0
    for cat_order, entry in enumerate(DEFAULT_QUESTIONNAIRE, start=1):
        cat = s.query(AssessmentCategory).filter(AssessmentCategory.name == entry["name"]).one_or_none()
        if not cat:
            cat = AssessmentCategory(
                name=entry["name"],
                description=entry["description"],
                icon=entry["icon"],
                sort_order=cat_order,
                is_active=True,
            )
            s.add(cat)
            s.flush()
        existing = {q.question_text for q in s.query(AssessmentQuestion).filter(AssessmentQuestion.category_id == cat.id).all()}
        for text, qtype, options in entry["questions"]:
            order += 1
            if text in existing:
                continue
            s.add(
                AssessmentQuestion(
                    category_id=cat.id,
                    question_text=text,
                    question_type=qtype,
                    options=options,
                    weight=1.0,
                    sort_order=order,
                    is_required=True,
                    is_active=True,
                )
            )
            added += 1
    s.flush()
    return added
