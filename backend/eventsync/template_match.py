"""Score how well a workspace template fits an event."""

from __future__ import annotations

from collections.abc import Iterable

from .schemas import Event, Template, TemplateCategory, TemplateComplexity, TemplateRecommendation

DEFAULT_CAPACITY = 100
MIN_RECOMMENDATION_SCORE = 30
MAX_RECOMMENDATIONS = 10
_SECONDS_PER_DAY = 24 * 60 * 60


def event_duration_days(event: Event) -> float:
    """Length of the event in days; 1 when there is no end date."""
    if event.end_date is None:
        return 1
    return (event.end_date - event.start_date).total_seconds() / _SECONDS_PER_DAY


def match_template(event: Event, template: Template) -> TemplateRecommendation:
    """
    Add up size (30), category (25), complexity (20), provenance (15) and
    track record (10) points. Every check runs; the total is capped at 100.
    """
    score = 0
    reasons: list[str] = []
    suggestions: list[str] = []

    # size
    capacity = event.capacity or DEFAULT_CAPACITY
    size = template.event_size_range
    if size.min <= capacity <= size.max:
        score += 30
        reasons.append("Event size matches template range")
    elif capacity < size.min:
        score += 15
        reasons.append("Event is smaller than template range")
        suggestions.append("Consider reducing team size and task complexity")
    else:
        score += 10
        reasons.append("Event is larger than template range")
        suggestions.append("Consider adding more team roles and tasks")

    # category: any specific category counts as a full match
    if template.category == TemplateCategory.GENERAL:
        score += 15
        reasons.append("General template suitable for most events")
    else:
        score += 25
        reasons.append(f"Template designed for {template.category.value} events")

    # complexity vs duration
    duration = event_duration_days(event)
    if duration <= 1 and template.complexity == TemplateComplexity.SIMPLE:
        score += 20
        reasons.append("Simple template matches single-day event")
    elif duration <= 3 and template.complexity == TemplateComplexity.MODERATE:
        score += 20
        reasons.append("Moderate template matches multi-day event")
    elif duration > 3 and template.complexity == TemplateComplexity.COMPLEX:
        score += 20
        reasons.append("Complex template matches extended event")
    else:
        score += 10
        suggestions.append("Adjust template complexity to match event duration")

    # provenance
    org_id = template.metadata.organization_id
    if org_id is not None and org_id == event.organization_id:
        score += 15
        reasons.append("Template from same organization")
    elif template.metadata.is_public:
        score += 10
        reasons.append("Public template available")

    # track record
    rate = template.effectiveness.completion_rate
    if rate > 80:
        score += 10
        reasons.append("High success rate template")
    elif rate > 60:
        score += 5
        reasons.append("Good success rate template")

    return TemplateRecommendation(
        template=template,
        match_score=min(100, score),
        match_reasons=reasons,
        customization_suggestions=suggestions,
    )


def recommend_templates(
    event: Event,
    templates: Iterable[Template],
    limit: int = MAX_RECOMMENDATIONS,
) -> list[TemplateRecommendation]:
    """Scores above 30, best first, at most ``limit``."""
    scored = [match_template(event, t) for t in templates]
    kept = [r for r in scored if r.match_score > MIN_RECOMMENDATION_SCORE]
    kept.sort(key=lambda r: r.match_score, reverse=True)
    return kept[:limit]
