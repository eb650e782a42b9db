"""
Tests for profile completeness scoring
"""
import copy

import pytest

from jobtrail.services.profile_completeness import (
    BADGES, INDUSTRY_BENCHMARKS, calculate_profile_completeness, format_field_name,
    get_profile_strength)


def _full_profile():
    return {
        "name": "Jordan Smith",
        "email": "jordan@example.com",
        "headline": "Senior Backend Engineer",
        "industry": "Technology",
        "experience_level": "Senior",
        "employment": [{
            "title": "Engineer",
            "company": "Acme",
            "description": "Built and operated the payments platform serving millions of requests a day.",
        }],
        "education": [{
            "institution": "State University",
            "achievements": "Graduated with honors, dean's list",
        }],
        "skills": [
            {"name": "Python", "category": "Technical"},
            {"name": "SQL", "category": "Technical"},
            {"name": "Mentoring", "category": "Soft Skills"},
        ],
        "projects": [{"name": "Open source CLI", "project_url": "https://example.com/cli"}],
        "certifications": [{"name": "AWS Solutions Architect"}],
    }


def test_empty_profile_scores_in_range_with_suggestions():
    """An empty record scores within bounds and gets advice"""
    result = calculate_profile_completeness({})
    assert 0 <= result["overall_score"] <= 100
    assert result["suggestions"]
    assert result["suggestions"][0]["priority"] == "high"


def test_none_profile_is_scored_as_empty():
    assert calculate_profile_completeness(None) == calculate_profile_completeness({})


def test_required_fields_increase_score():
    empty = calculate_profile_completeness({})["overall_score"]
    full = calculate_profile_completeness(_full_profile())["overall_score"]
    assert full > empty


def test_input_is_not_mutated_and_result_is_stable():
    record = _full_profile()
    snapshot = copy.deepcopy(record)
    first = calculate_profile_completeness(record)
    second = calculate_profile_completeness(record)
    assert record == snapshot
    assert first == second


def test_section_weights_and_titles_present():
    sections = calculate_profile_completeness(_full_profile())["sections"]
    assert sum(section["weight"] for section in sections.values()) == 100
    assert sections["employment"]["title"] == "Employment History"


def test_profile_strength_labels():
    assert get_profile_strength(95)["label"] == "Excellent"
    assert get_profile_strength(80)["label"] == "Strong"
    assert get_profile_strength(60)["label"] == "Good"
    assert get_profile_strength(30)["label"] == "Fair"
    assert get_profile_strength(10)["label"] == "Needs Work"


def test_format_field_name():
    assert format_field_name("email") == "Email Address"
    assert format_field_name("favorite_color") == "favorite_color"


def test_industry_comparison_excellent_only_at_benchmark():
    result = calculate_profile_completeness(_full_profile())
    excellent = INDUSTRY_BENCHMARKS["Technology"]["excellent"]
    assert (result["industry_comparison"] == "Excellent") == (result["overall_score"] >= excellent)


def test_unknown_industry_uses_technology_benchmark():
    result = calculate_profile_completeness({"industry": "Underwater Basket Weaving"})
    assert result["industry"] == "Technology"
    assert result["benchmark"] == {"average": 75, "excellent": 90}


def test_stored_projects_used_when_record_has_none():
    storage = {"projects": '[{"name": "a"}, {"name": "b"}, {"name": "c"}]'}
    result = calculate_profile_completeness({}, storage=storage)
    assert result["sections"]["projects"]["score"] == 90
    badges = {badge["id"] for badge in result["earned_badges"]}
    assert "project-showcase" in badges


def test_malformed_storage_reads_as_empty():
    result = calculate_profile_completeness({}, storage={"certifications": "{not json"})
    assert result["sections"]["certifications"]["score"] == 0


def test_full_profile_section_and_overall_scores():
    result = calculate_profile_completeness(_full_profile())
    scores = {key: section["score"] for key, section in result["sections"].items()}
    assert scores == {
        "basic_info": 60,
        "professional_info": 85,
        "employment": 65,
        "education": 80,
        "skills": 40,
        "projects": 50,
        "certifications": 50,
    }
    assert result["overall_score"] == 63
    assert result["strength"]["label"] == "Good"
    assert result["industry_comparison"] == "Below Average"


def test_empty_profile_suggestion_order_and_impact():
    suggestions = calculate_profile_completeness({})["suggestions"]
    order = [(s["priority"], s["field"], s["impact"]) for s in suggestions]
    assert order == [
        ("high", "employment", 20.0),
        ("high", "education", 15.0),
        ("high", "skills", 15.0),
        ("high", "name", 6.0),
        ("high", "email", 6.0),
        ("high", "headline", 5.3),
        ("high", "industry", 3.8),
        ("high", "experience_level", 3.8),
        ("medium", "projects", 10.0),
        ("medium", "certifications", 5.0),
        ("medium", "picture", 3.0),
        ("medium", "bio", 2.3),
        ("medium", "phone", 2.0),
        ("medium", "location", 2.0),
        ("medium", "website", 1.0),
        ("medium", "linkedin", 0.5),
        ("medium", "github", 0.5),
    ]


def test_suggestion_messages_and_tips():
    suggestions = calculate_profile_completeness(_full_profile())["suggestions"]
    by_field = {s["field"]: s for s in suggestions}
    assert by_field["skills"]["message"] == "Add 5 more Skills (Optional)"
    assert by_field["picture"]["message"] == "Add Profile Picture (Optional)"
    assert by_field["skills"]["section_title"] == "Skills"
    assert len(by_field["skills"]["tips"]) == 4

    required = calculate_profile_completeness({})["suggestions"][0]
    assert required["message"] == "Add Employment History (Required)"


@pytest.mark.parametrize("badge_id,threshold", [
    ("profile-starter", 25),
    ("halfway-there", 50),
    ("almost-complete", 75),
    ("profile-master", 90),
])
def test_threshold_badges(badge_id, threshold):
    badge = next(b for b in BADGES if b.id == badge_id)
    empty = {"employment": [], "skills": [], "projects": [], "certifications": []}
    assert badge.is_earned(threshold, empty)
    assert not badge.is_earned(threshold - 1, empty)
    assert badge.to_dict()["threshold"] == threshold


def test_full_profile_earns_only_reached_thresholds():
    result = calculate_profile_completeness(_full_profile())
    assert [badge["id"] for badge in result["earned_badges"]] == ["profile-starter", "halfway-there"]


def test_collection_badges():
    record = _full_profile()
    record["employment"] = record["employment"] * 3
    record["skills"] = [{"name": f"skill {i}", "category": "Technical"} for i in range(10)]
    record["certifications"] = [{"name": "AWS"}, {"name": "CKA"}]
    badges = {badge["id"]: badge for badge in calculate_profile_completeness(record)["earned_badges"]}
    for badge_id in ("work-history", "skill-master", "certified-professional"):
        assert badges[badge_id]["threshold"] == "custom"

    record["employment"] = record["employment"][:2]
    record["skills"] = record["skills"][:9]
    record["certifications"] = record["certifications"][:1]
    badges = {badge["id"] for badge in calculate_profile_completeness(record)["earned_badges"]}
    assert not badges & {"work-history", "skill-master", "certified-professional"}


@pytest.mark.parametrize("score,label", [
    (90, "Excellent"),
    (89, "Strong"),
    (75, "Strong"),
    (74, "Good"),
    (50, "Good"),
    (49, "Fair"),
    (25, "Fair"),
    (24, "Needs Work"),
])
def test_profile_strength_boundaries(score, label):
    assert get_profile_strength(score)["label"] == label
