"""
Crisis Resource Catalogue

Built-in offline resources: hotlines and text lines per jurisdiction,
grounding and breathing scripts, the safety-plan template and the
static pages that must open without a network.

LEGAL_REVIEW_REQUIRED: Verify all numbers before production. The
catalogue can be replaced at runtime from a JSON file.
"""

import json
from pathlib import Path
from typing import Union

from astral.config.logging_config import get_logger
from astral.domain.models.resource_models import CrisisResource

logger = get_logger(__name__)

CRISIS_FEATURES = frozenset({
    "crisis-hotline",
    "crisis-text-line",
    "grounding-exercises",
    "breathing-exercises",
    "safety-plan",
})

BUILT_IN_CATALOGUE: tuple[CrisisResource, ...] = (
    # United States
    CrisisResource(
        resource_id="us-emergency",
        resource_type="hotline",
        title="Emergency Services",
        description="Immediate danger to life",
        content="911",
        priority=1,
        crisis=True,
        features=("crisis-hotline",),
        country_code="US",
    ),
    CrisisResource(
        resource_id="us-988",
        resource_type="hotline",
        title="988 Suicide & Crisis Lifeline",
        description="National suicide prevention lifeline",
        content="988",
        priority=1,
        crisis=True,
        features=("crisis-hotline",),
        country_code="US",
    ),
    CrisisResource(
        resource_id="us-crisis-text-line",
        resource_type="text",
        title="Crisis Text Line",
        description="Text-based crisis support",
        content="Text HOME to 741741",
        priority=2,
        crisis=True,
        features=("crisis-text-line",),
        country_code="US",
    ),
    CrisisResource(
        resource_id="us-samhsa",
        resource_type="hotline",
        title="SAMHSA National Helpline",
        description="Substance use and mental health",
        content="1-800-662-4357",
        priority=3,
        crisis=True,
        features=("crisis-hotline",),
        country_code="US",
    ),
    # United Kingdom
    CrisisResource(
        resource_id="gb-emergency",
        resource_type="hotline",
        title="Emergency Services",
        description="Immediate danger to life",
        content="999",
        priority=1,
        crisis=True,
        features=("crisis-hotline",),
        country_code="GB",
    ),
    CrisisResource(
        resource_id="gb-samaritans",
        resource_type="hotline",
        title="Samaritans",
        description="Emotional support for anyone in distress",
        content="116 123",
        priority=1,
        crisis=True,
        features=("crisis-hotline",),
        country_code="GB",
    ),
    CrisisResource(
        resource_id="gb-shout",
        resource_type="text",
        title="SHOUT",
        description="Text-based mental health support",
        content="Text SHOUT to 85258",
        priority=2,
        crisis=True,
        features=("crisis-text-line",),
        country_code="GB",
    ),
    # International
    CrisisResource(
        resource_id="intl-iasp",
        resource_type="hotline",
        title="International Association for Suicide Prevention",
        description="Directory of crisis centres worldwide",
        content="https://www.iasp.info/resources/Crisis_Centres/",
        priority=2,
        crisis=True,
        features=("crisis-hotline",),
    ),
    CrisisResource(
        resource_id="intl-befrienders",
        resource_type="hotline",
        title="Befrienders Worldwide",
        description="Emotional support centres globally",
        content="https://www.befrienders.org/",
        priority=3,
        crisis=True,
        features=("crisis-hotline",),
    ),
    # Techniques
    CrisisResource(
        resource_id="technique-54321",
        resource_type="technique",
        title="5-4-3-2-1 Grounding",
        description="Bring attention back to the present moment",
        content=(
            "Name 5 things you can see, 4 things you can touch, "
            "3 things you can hear, 2 things you can smell and 1 thing you can taste."
        ),
        priority=1,
        crisis=True,
        features=("grounding-exercises",),
    ),
    CrisisResource(
        resource_id="technique-box-breathing",
        resource_type="technique",
        title="Box Breathing",
        description="Slow, even breathing to calm the body",
        content="Breathe in for 4, hold for 4, breathe out for 4, hold for 4. Repeat four times.",
        priority=1,
        crisis=True,
        features=("breathing-exercises",),
    ),
    CrisisResource(
        resource_id="technique-478",
        resource_type="technique",
        title="4-7-8 Breathing",
        description="Longer exhale to slow the heart rate",
        content="Breathe in for 4, hold for 7, breathe out slowly for 8.",
        priority=2,
        crisis=True,
        features=("breathing-exercises",),
    ),
    CrisisResource(
        resource_id="technique-progressive-relaxation",
        resource_type="technique",
        title="Progressive Muscle Relaxation",
        description="Tense and release muscle groups in turn",
        content="Starting at your feet, tense each muscle group for 5 seconds, then release.",
        priority=4,
    ),
    CrisisResource(
        resource_id="safety-plan-template",
        resource_type="safety-plan",
        title="My Safety Plan",
        description="Personal plan for moments of crisis",
        content=(
            "1. Warning signs\n2. Things I can do to cope\n3. People and places that distract me\n"
            "4. People I can ask for help\n5. Professionals I can contact\n6. Making my environment safe"
        ),
        priority=1,
        crisis=True,
        features=("safety-plan",),
    ),
    # Static pages
    CrisisResource(
        resource_id="page-crisis", resource_type="page", title="Crisis Support",
        content="/crisis", priority=1, crisis=True,
    ),
    CrisisResource(
        resource_id="page-emergency", resource_type="page", title="Emergency",
        content="/emergency", priority=1, crisis=True,
    ),
    CrisisResource(
        resource_id="page-988", resource_type="page", title="988 Lifeline",
        content="/988", priority=1, crisis=True, country_code="US",
    ),
    CrisisResource(
        resource_id="page-help", resource_type="page", title="Get Help",
        content="/help", priority=1, crisis=True,
    ),
    CrisisResource(
        resource_id="page-breathing", resource_type="page", title="Breathing Exercises",
        content="/breathing", priority=1, crisis=True, features=("breathing-exercises",),
    ),
    CrisisResource(
        resource_id="page-grounding", resource_type="page", title="Grounding Exercises",
        content="/grounding", priority=1, crisis=True, features=("grounding-exercises",),
    ),
    CrisisResource(
        resource_id="page-safety-plan", resource_type="page", title="Safety Plan",
        content="/safety-plan", priority=1, crisis=True, features=("safety-plan",),
    ),
    CrisisResource(
        resource_id="page-mood-tracker", resource_type="page", title="Mood Tracker",
        content="/mood-tracker", priority=3, features=("mood-tracking",),
    ),
    CrisisResource(
        resource_id="page-wellness", resource_type="page", title="Wellness",
        content="/wellness", priority=4, features=("wellness-content",),
    ),
    CrisisResource(
        resource_id="page-journal", resource_type="page", title="Journal",
        content="/journal", priority=5, features=("journaling",),
    ),
    CrisisResource(
        resource_id="page-community", resource_type="page", title="Community",
        content="/community", priority=6, features=("community",),
    ),
)


def load_catalogue(path: Union[str, Path]) -> tuple[CrisisResource, ...]:
    """
    Load a resource catalogue from JSON.

    Accepts either a list of resources or an object with a
    ``resources`` list.

    Raises:
        OSError, ValueError, KeyError: Unreadable or malformed file
    """
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    records = data.get("resources", []) if isinstance(data, dict) else data
    if not isinstance(records, list):
        raise ValueError("Catalogue must contain a list of resources")
    resources = tuple(CrisisResource.from_dict(r) for r in records)
    logger.info("Loaded resource catalogue", path=str(path), resource_count=len(resources))
    return resources
