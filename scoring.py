"""
Survey scoring rules.

A survey holds four 1-5 sub-scores. The overall score is their mean rounded
to two places and the recommendation score alone decides the NPS bucket.
"""
from collections import namedtuple

from errors import ValidationError

MIN_SCORE = 1
MAX_SCORE = 5

PROMOTER = 'Promoter'
PASSIVE = 'Passive'
DETRACTOR = 'Detractor'

SCORE_FIELDS = (
    ('satisfaction', 'Satisfaction'),
    ('usefulness', 'Usefulness'),
    ('instructor', 'Instructor'),
    ('recommendation', 'Recommendation'),
)

SurveyScores = namedtuple(
    'SurveyScores',
    ['satisfaction', 'usefulness', 'instructor', 'recommendation', 'overall', 'category'],
)

ScoreSummary = namedtuple(
    'ScoreSummary',
    ['count', 'average_overall', 'promoters', 'passives', 'detractors', 'nps'],
)


def _coerce_score(label, value):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f'{label} score is required.')
    if isinstance(value, bool):
        raise ValidationError(f'{label} score must be a number.')
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f'{label} score must be a number.')
    if not number.is_integer():
        raise ValidationError(f'{label} score must be a whole number.')
    return max(MIN_SCORE, min(MAX_SCORE, int(number)))


def nps_category(recommendation):
    if recommendation >= 4:
        return PROMOTER
    if recommendation == 3:
        return PASSIVE
    return DETRACTOR


def score_survey(satisfaction, usefulness, instructor, recommendation):
    """Validate and clamp the four sub-scores and derive overall + category.

    Raises ValidationError when a score is missing or not numeric.
    """
    raw = dict(
        satisfaction=satisfaction,
        usefulness=usefulness,
        instructor=instructor,
        recommendation=recommendation,
    )
    scores = {name: _coerce_score(label, raw[name]) for name, label in SCORE_FIELDS}
    overall = round(sum(scores.values()) / 4, 2)
    return SurveyScores(
        overall=overall,
        category=nps_category(scores['recommendation']),
        **scores
    )


def summarize_scores(surveys):
    """Aggregate surveys (anything with .overall and .category) for reporting."""
    count = 0
    total = 0.0
    buckets = {PROMOTER: 0, PASSIVE: 0, DETRACTOR: 0}
    for survey in surveys:
        count += 1
        total += survey.overall
        buckets[survey.category] = buckets.get(survey.category, 0) + 1

    if not count:
        return ScoreSummary(0, 0.0, 0, 0, 0, 0.0)

    nps = round((buckets[PROMOTER] - buckets[DETRACTOR]) * 100.0 / count, 1)
    return ScoreSummary(
        count=count,
        average_overall=round(total / count, 2),
        promoters=buckets[PROMOTER],
        passives=buckets[PASSIVE],
        detractors=buckets[DETRACTOR],
        nps=nps,
    )
