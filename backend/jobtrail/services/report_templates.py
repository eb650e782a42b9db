"""
System report templates seeded at startup
"""
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from jobtrail.core.logging_config import LoggingConfig
from jobtrail.models.report import ReportConfig

logger = LoggingConfig.get_logger(__name__)

SYSTEM_TEMPLATES: List[Dict[str, Any]] = [
    {
        "name": "Weekly Progress",
        "description": "Applications sent this week, current pipeline and what needs a follow-up",
        "template_category": "progress",
        "metrics": {
            "total_applications": True,
            "applications_by_status": True,
            "application_trend": True,
            "follow_up_needed": True,
        },
        "date_range": {"type": "last7days"},
        "filters": {"exclude_archived": True},
        "visualizations": {"application_trend": "line", "applications_by_status": "bar"},
    },
    {
        "name": "Monthly Summary",
        "description": "A month of activity across companies and industries",
        "template_category": "summary",
        "metrics": {
            "total_applications": True,
            "applications_by_status": True,
            "applications_by_industry": True,
            "top_companies": True,
            "interview_conversion_rate": True,
            "average_response_time": True,
            "application_trend": True,
            "ghosted_applications": True,
        },
        "date_range": {"type": "last30days"},
        "filters": {"exclude_archived": True},
        "visualizations": {"applications_by_industry": "pie", "application_trend": "line"},
    },
    {
        "name": "Conversion Funnel",
        "description": "How applications move from applied to interview to offer",
        "template_category": "conversion",
        "metrics": {
            "total_applications": True,
            "interview_conversion_rate": True,
            "offer_conversion_rate": True,
            "status_distribution": True,
            "interview_trend": True,
        },
        "date_range": {"type": "last90days"},
        "filters": {"exclude_archived": False},
        "visualizations": {"status_distribution": "funnel"},
    },
    {
        "name": "Industry Focus",
        "description": "Where applications go and which industries respond",
        "template_category": "industry",
        "metrics": {
            "applications_by_industry": True,
            "top_industries": True,
            "top_companies": True,
            "interview_conversion_rate": True,
        },
        "date_range": {"type": "thisYear"},
        "filters": {"exclude_archived": True},
        "visualizations": {"top_industries": "bar"},
    },
]


def seed_report_templates(db: Session) -> int:
    """
    Insert missing system templates, matched by name

    Returns:
        Number of templates created
    """
    existing = {
        name for (name,) in db.query(ReportConfig.name).filter(ReportConfig.is_template.is_(True)).all()
    }
    created = 0
    for template in SYSTEM_TEMPLATES:
        if template["name"] in existing:
            continue
        db.add(ReportConfig(user_id=None, is_template=True, is_public=True, **template))
        created += 1
    if created:
        db.commit()
        logger.info(f"Seeded {created} report templates")
    return created
