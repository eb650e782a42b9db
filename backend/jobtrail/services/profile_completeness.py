"""
Profile completeness scoring

Scores a profile record across seven weighted sections, then derives
prioritized suggestions, achievement badges and an industry comparison.
Everything here is a pure function of its inputs.
"""
import json
from typing import Any, Callable, Dict, List, Mapping, Optional

from jobtrail.core.logging_config import LoggingConfig
from jobtrail.utils.numbers import round_half_up

logger = LoggingConfig.get_logger(__name__)

DEFAULT_INDUSTRY = "Technology"

INDUSTRY_BENCHMARKS: Dict[str, Dict[str, int]] = {
    "Technology": {"average": 75, "excellent": 90},
    "Healthcare": {"average": 70, "excellent": 85},
    "Finance": {"average": 72, "excellent": 88},
    "Education": {"average": 68, "excellent": 82},
    "Construction": {"average": 65, "excellent": 80},
    "Real Estate": {"average": 67, "excellent": 83},
}

# Must total 100
SECTION_WEIGHTS: Dict[str, int] = {
    "basic_info": 20,
    "professional_info": 15,
    "employment": 20,
    "education": 15,
    "skills": 15,
    "projects": 10,
    "certifications": 5,
}

SECTION_TIPS: Dict[str, Dict[str, Any]] = {
    "basic_info": {
        "title": "Basic Information",
        "tips": [
            "Use a professional profile picture with good lighting",
            "Provide a valid phone number for better networking opportunities",
            "Include your city and state to help with local opportunities",
            "Add professional social media links (LinkedIn, GitHub, personal website)",
        ],
    },
    "professional_info": {
        "title": "Professional Information",
        "tips": [
            'Craft a compelling headline that summarizes your expertise '
            '(e.g., "Senior Full-Stack Developer | React & Node.js Expert")',
            "Write a bio that highlights your unique value proposition in 2-3 sentences",
            "Select the industry that best matches your expertise",
            "Be honest about your experience level - it helps with matching opportunities",
        ],
    },
    "employment": {
        "title": "Employment History",
        "tips": [
            "List at least 2-3 recent positions for a complete work history",
            "Include detailed descriptions of your responsibilities and achievements",
            "Use action verbs and quantify accomplishments when possible",
            'Keep current position marked as "Current Position" for accuracy',
        ],
    },
    "education": {
        "title": "Education",
        "tips": [
            "Add at least one education entry, even if self-taught",
            "Include relevant coursework, honors, and achievements",
            "If you have a strong GPA (3.5+), consider making it public",
            "List online certifications and bootcamps under education",
        ],
    },
    "skills": {
        "title": "Skills",
        "tips": [
            "Aim for 8-12 skills to show breadth without overwhelming",
            "Organize skills by category (Technical, Soft Skills, Languages)",
            "Be honest about proficiency levels - they help set expectations",
            "Include both hard skills (technical) and soft skills (communication, leadership)",
        ],
    },
    "projects": {
        "title": "Projects",
        "tips": [
            "Showcase 2-4 of your best projects to demonstrate practical experience",
            "Include project descriptions, technologies used, and your role",
            "Add live demo links or GitHub repositories when available",
            "Highlight projects that align with your career goals",
        ],
    },
    "certifications": {
        "title": "Certifications",
        "tips": [
            "Add industry-recognized certifications to boost credibility",
            "Keep certifications up-to-date and renew before expiration",
            "Include certification IDs for verification purposes",
            "Upload certificate documents for authenticity",
        ],
    },
}

BASIC_INFO_FIELDS = [
    ("name", 30, True),
    ("email", 30, True),
    ("picture", 15, False),
    ("phone", 10, False),
    ("location", 10, False),
    ("linkedin", 2.5, False),
    ("github", 2.5, False),
    ("website", 5, False),
]

PROFESSIONAL_INFO_FIELDS = [
    ("headline", 35, True),
    ("industry", 25, True),
    ("experience_level", 25, True),
    ("bio", 15, False),
]

FIELD_DISPLAY_NAMES = {
    "name": "Full Name",
    "email": "Email Address",
    "picture": "Profile Picture",
    "phone": "Phone Number",
    "location": "Location",
    "headline": "Professional Headline",
    "bio": "Professional Bio",
    "industry": "Industry",
    "experience_level": "Experience Level",
    "linkedin": "LinkedIn Profile",
    "github": "GitHub Profile",
    "website": "Personal Website",
    "employment": "Employment History",
    "education": "Education",
    "skills": "Skills",
    "projects": "Projects",
    "certifications": "Certifications",
}

PROFILE_STRENGTH_LEVELS = [
    (90, "Excellent", "green"),
    (75, "Strong", "blue"),
    (50, "Good", "yellow"),
    (25, "Fair", "orange"),
]


class Badge:
    """Achievement badge awarded by score threshold or by a predicate"""

    def __init__(
        self,
        badge_id: str,
        name: str,
        description: str,
        icon: str,
        threshold: Optional[int] = None,
        check: Optional[Callable[[Dict[str, List[Any]]], bool]] = None,
    ):
        self.id = badge_id
        self.name = name
        self.description = description
        self.icon = icon
        self.threshold = threshold
        self.check = check

    def is_earned(self, score: float, collections: Dict[str, List[Any]]) -> bool:
        if self.check is not None:
            return self.check(collections)
        return score >= self.threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "threshold": self.threshold if self.check is None else "custom",
        }


BADGES = [
    Badge("profile-starter", "Profile Starter",
          "Complete your basic profile information", "🌱", threshold=25),
    Badge("halfway-there", "Halfway There",
          "Reach 50% profile completion", "📈", threshold=50),
    Badge("almost-complete", "Almost Complete",
          "Reach 75% profile completion", "🎯", threshold=75),
    Badge("profile-master", "Profile Master",
          "Complete your entire profile (90%+)", "🏆", threshold=90),
    Badge("work-history", "Work History Pro",
          "Add at least 3 employment entries", "💼",
          check=lambda c: len(c["employment"]) >= 3),
    Badge("skill-master", "Skill Master",
          "Add at least 10 skills", "⚡",
          check=lambda c: len(c["skills"]) >= 10),
    Badge("project-showcase", "Project Showcase",
          "Add at least 3 projects", "🚀",
          check=lambda c: len(c["projects"]) >= 3),
    Badge("certified-professional", "Certified Professional",
          "Add at least 2 certifications", "📜",
          check=lambda c: len(c["certifications"]) >= 2),
]


def _has_value(value: Any) -> bool:
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)) and value == 0:
        return False
    return len(str(value).strip()) > 0


def _entry_value(entry: Any, key: str) -> Any:
    if isinstance(entry, Mapping):
        return entry.get(key)
    return getattr(entry, key, None)


def _text_length(value: Any) -> int:
    return len(value) if isinstance(value, str) else 0


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def _load_stored_list(storage: Optional[Mapping[str, Any]], key: str) -> List[Any]:
    """Read a JSON-encoded list from a key-value store; malformed data reads as empty"""
    if not storage:
        return []
    raw = storage.get(key)
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return list(raw)
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring malformed stored '{key}' list")
        return []
    return parsed if isinstance(parsed, list) else []


def _resolve_collection(record: Mapping[str, Any], storage, key: str) -> List[Any]:
    if record.get(key) is not None:
        return _as_list(record.get(key))
    return _load_stored_list(storage, key)


def _score_fields(record: Mapping[str, Any], fields) -> Dict[str, Any]:
    score = 0.0
    missing = []
    optional = []
    for key, weight, required in fields:
        if _has_value(record.get(key)):
            score += weight
        elif required:
            missing.append({"field": key, "weight": weight})
        else:
            optional.append({"field": key, "weight": weight})
    return {"score": min(100.0, score), "missing": missing, "optional": optional}


def _empty_section(field: str, required: bool) -> Dict[str, Any]:
    item = [{"field": field, "weight": 100}]
    return {
        "score": 0,
        "missing": item if required else [],
        "optional": [] if required else item,
    }


def _employment_score(employment: List[Any]) -> Dict[str, Any]:
    if not employment:
        return _empty_section("employment", required=True)

    score = 40.0
    optional = []
    count = len(employment)
    if count >= 2:
        score += 20
    if count >= 3:
        score += 15

    described = [e for e in employment if _text_length(_entry_value(e, "description")) > 50]
    score += min(25.0, len(described) / count * 25)

    if count - len(described) > 0:
        optional.append({"field": "employment descriptions", "count": count - len(described), "weight": 25})
    if count < 2:
        optional.append({"field": "additional employment entries", "count": 2 - count, "weight": 20})

    return {"score": min(100.0, score), "missing": [], "optional": optional}


def _education_score(education: List[Any]) -> Dict[str, Any]:
    if not education:
        return _empty_section("education", required=True)

    score = 60.0
    optional = []
    count = len(education)
    if count >= 2:
        score += 20

    with_achievements = [e for e in education if _text_length(_entry_value(e, "achievements")) > 20]
    score += min(20.0, len(with_achievements) / count * 20)

    if count < 2:
        optional.append({"field": "additional education entries", "count": 2 - count, "weight": 20})
    if count - len(with_achievements) > 0:
        optional.append({
            "field": "education achievements/honors",
            "count": count - len(with_achievements),
            "weight": 20,
        })

    return {"score": min(100.0, score), "missing": [], "optional": optional}


def _skills_score(skills: List[Any]) -> Dict[str, Any]:
    if not skills:
        return _empty_section("skills", required=True)

    score = 30.0
    optional = []
    count = len(skills)
    if count >= 5:
        score += 20
    if count >= 8:
        score += 20
    if count >= 12:
        score += 15

    # Uncategorized skills share one bucket
    categories = {_entry_value(s, "category") for s in skills}
    score += min(15, len(categories) * 5)

    if count < 8:
        optional.append({"field": "skills", "count": 8 - count, "weight": 40})
    if len(categories) < 3:
        optional.append({"field": "skill categories", "count": 3 - len(categories), "weight": 15})

    return {"score": min(100.0, score), "missing": [], "optional": optional}


def _projects_score(projects: List[Any]) -> Dict[str, Any]:
    if not projects:
        return _empty_section("projects", required=False)

    score = 40.0
    optional = []
    count = len(projects)
    if count >= 2:
        score += 30
    if count >= 3:
        score += 20

    with_urls = [p for p in projects if _text_length(_entry_value(p, "project_url")) > 0]
    score += min(10.0, len(with_urls) / count * 10)

    if count < 3:
        optional.append({"field": "additional projects", "count": 3 - count, "weight": 50})

    return {"score": min(100.0, score), "missing": [], "optional": optional}


def _certifications_score(certifications: List[Any]) -> Dict[str, Any]:
    if not certifications:
        return _empty_section("certifications", required=False)

    score = 50.0
    optional = []
    count = len(certifications)
    if count >= 2:
        score += 30
    if count >= 3:
        score += 20

    if count < 2:
        optional.append({"field": "additional certifications", "count": 2 - count, "weight": 50})

    return {"score": min(100.0, score), "missing": [], "optional": optional}


def _suggestion_impact(weight: float, section_key: str) -> float:
    return round_half_up(weight * SECTION_WEIGHTS[section_key] / 100, 1)


def generate_suggestions(sections: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Turn section gaps into suggestions.

    Required gaps come first, then optional ones; within a priority
    the highest impact (score points gained) leads.
    """
    suggestions = []
    for section_key, section in sections.items():
        section_info = SECTION_TIPS[section_key]

        for item in section["missing"]:
            suggestions.append({
                "priority": "high",
                "section": section_key,
                "section_title": section_info["title"],
                "field": item["field"],
                "message": f"Add {format_field_name(item['field'])} (Required)",
                "impact": _suggestion_impact(item["weight"], section_key),
                "tips": list(section_info["tips"]),
            })

        for item in section["optional"]:
            field_name = format_field_name(item["field"])
            if item.get("count"):
                field_name = f"{item['count']} more {field_name}"
            suggestions.append({
                "priority": "medium",
                "section": section_key,
                "section_title": section_info["title"],
                "field": item["field"],
                "message": f"Add {field_name} (Optional)",
                "impact": _suggestion_impact(item["weight"], section_key),
                "tips": list(section_info["tips"]),
            })

    return sorted(suggestions, key=lambda s: (s["priority"] != "high", -s["impact"]))


def resolve_benchmark(industry: Optional[str]) -> Dict[str, Any]:
    """Benchmark for an industry; unset or unknown industries use Technology"""
    name = industry if industry in INDUSTRY_BENCHMARKS else DEFAULT_INDUSTRY
    return {"industry": name, **INDUSTRY_BENCHMARKS[name]}


def compare_to_industry(score: float, benchmark: Mapping[str, Any]) -> str:
    if score >= benchmark["excellent"]:
        return "Excellent"
    if score >= benchmark["average"]:
        return "Above Average"
    return "Below Average"


def calculate_profile_completeness(
    user_data: Optional[Mapping[str, Any]],
    storage: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Score a profile record.

    Args:
        user_data: Profile fields (``name``, ``email``, ``headline``,
            ``experience_level``...) plus lists ``employment``, ``education``,
            ``skills``, ``projects`` and ``certifications``. Every key is
            optional; ``None`` is scored as an empty profile.
        storage: Optional key-value store holding JSON-encoded ``projects``
            and ``certifications`` lists, consulted only when the record
            does not carry those lists itself.

    Returns:
        Dict with ``overall_score`` (int 0-100), ``sections``,
        ``suggestions``, ``earned_badges``, ``industry``,
        ``industry_comparison``, ``benchmark`` and ``strength``.

    Raises:
        TypeError: If ``user_data`` is neither None nor a mapping.
    """
    if user_data is None:
        user_data = {}
    if not isinstance(user_data, Mapping):
        raise TypeError(f"Profile record must be a mapping, got {type(user_data).__name__}")

    collections = {
        "employment": _as_list(user_data.get("employment")),
        "education": _as_list(user_data.get("education")),
        "skills": _as_list(user_data.get("skills")),
        "projects": _resolve_collection(user_data, storage, "projects"),
        "certifications": _resolve_collection(user_data, storage, "certifications"),
    }

    sections = {
        "basic_info": _score_fields(user_data, BASIC_INFO_FIELDS),
        "professional_info": _score_fields(user_data, PROFESSIONAL_INFO_FIELDS),
        "employment": _employment_score(collections["employment"]),
        "education": _education_score(collections["education"]),
        "skills": _skills_score(collections["skills"]),
        "projects": _projects_score(collections["projects"]),
        "certifications": _certifications_score(collections["certifications"]),
    }
    for key, section in sections.items():
        section["title"] = SECTION_TIPS[key]["title"]
        section["weight"] = SECTION_WEIGHTS[key]

    weighted = sum(
        section["score"] / 100 * SECTION_WEIGHTS[key]
        for key, section in sections.items()
    )
    overall_score = round_half_up(weighted)

    benchmark = resolve_benchmark(user_data.get("industry"))
    earned_badges = [
        badge.to_dict() for badge in BADGES
        if badge.is_earned(overall_score, collections)
    ]

    return {
        "overall_score": overall_score,
        "sections": sections,
        "suggestions": generate_suggestions(sections),
        "earned_badges": earned_badges,
        "industry": benchmark["industry"],
        "industry_comparison": compare_to_industry(overall_score, benchmark),
        "benchmark": {"average": benchmark["average"], "excellent": benchmark["excellent"]},
        "strength": get_profile_strength(overall_score),
    }


def get_profile_strength(score: float) -> Dict[str, str]:
    """Label a completeness score: Excellent, Strong, Good, Fair or Needs Work"""
    for threshold, label, color in PROFILE_STRENGTH_LEVELS:
        if score >= threshold:
            return {"label": label, "color": color}
    return {"label": "Needs Work", "color": "red"}


def format_field_name(field: str) -> str:
    """Display name for a field key; unknown keys are returned unchanged"""
    return FIELD_DISPLAY_NAMES.get(field, field)
