from typing import List, Optional

from context_engine.domain.models import AgentProfile
from .prompts import (
    ADAPTIVE_LENGTH_RULE,
    age_rule,
    fixed_length_rule,
    gender_rule,
    interests_rule,
    language_rule,
    personality_rule,
    sentiment_rule,
)


def config_rules(profile: Optional[AgentProfile]) -> List[str]:
    """Behavior rules derived from an agent's profile values.

    Order is fixed: language, response length, age, gender, personality,
    sentiment, interests. Unset values contribute nothing.
    """

    if profile is None:
        return []

    rules: List[str] = []

    if profile.language:
        rules.append(language_rule(profile.language))

    if profile.response_length:
        if profile.response_length == "adapt":
            rules.append(ADAPTIVE_LENGTH_RULE)
        else:
            rules.append(fixed_length_rule(profile.response_length))

    if profile.age is not None:
        rules.append(age_rule(profile.age))

    if profile.gender:
        rules.append(gender_rule(profile.gender))

    if profile.personality:
        rules.append(personality_rule(profile.personality))

    if profile.sentiment:
        rules.append(sentiment_rule(profile.sentiment))

    interests = [i for i in profile.interests if i and i.strip()]
    if interests:
        rules.append(interests_rule(interests))

    return rules
