"""
Reading Composition

Builds the text of a birth chart reading from questionnaire answers:
the prompt sent to the language model, and the template used when no
model is configured or the model call fails.
"""

from typing import Optional

from mira_oracle.domain.models import QuestionnaireCreate


READING_TITLE = "Your Sacred Birth Chart Reading"

TEMPLATE = (
    "Welcome to your cosmic blueprint, {name}! As a {zodiac_sign}, your celestial "
    "journey began on {birth_date} in {birth_city}, {birth_country}. The stars have "
    "aligned to reveal profound insights about your spiritual path and life purpose. "
    "Your birth chart shows strong influences in the realm of {spiritual_goals}, "
    "while your relationships have taught you valuable lessons about "
    "{relationship_history}. The universe calls you to focus on {life_intentions} "
    "as you move forward on your sacred journey."
)


def _or(value: Optional[str], fallback: str) -> str:
    return value.strip() if value and value.strip() else fallback


def render_template_reading(answers: QuestionnaireCreate, name: str) -> str:
    """Deterministic reading text."""
    content = TEMPLATE.format(
        name=name,
        zodiac_sign=answers.zodiac_sign,
        birth_date=answers.birth_date,
        birth_city=answers.birth_city,
        birth_country=answers.birth_country,
        spiritual_goals=_or(answers.spiritual_goals, "inner growth"),
        relationship_history=_or(answers.relationship_history, "love and connection"),
        life_intentions=_or(answers.life_intentions, "your highest purpose"),
    )
    if answers.specific_questions and answers.specific_questions.strip():
        content += (
            " As for the question you carry, "
            f"\"{answers.specific_questions.strip()}\", "
            "trust that the answer is already unfolding within you."
        )
    return content


def build_reading_prompt(answers: QuestionnaireCreate, name: str) -> str:
    """Prompt describing the seeker for the language model."""
    lines = [
        f"Seeker: {name}",
        f"Sun sign: {answers.zodiac_sign}",
        f"Born: {answers.birth_date} at {answers.birth_time}",
        f"Birthplace: {answers.birth_city}, {answers.birth_country}",
    ]
    if answers.personality_traits:
        lines.append(f"Personality traits: {', '.join(answers.personality_traits)}")
    if answers.spiritual_goals:
        lines.append(f"Spiritual goals: {answers.spiritual_goals}")
    if answers.relationship_history:
        lines.append(f"Relationship history: {answers.relationship_history}")
    if answers.life_intentions:
        lines.append(f"Life intentions: {answers.life_intentions}")
    if answers.specific_questions:
        lines.append(f"Questions for the oracle: {answers.specific_questions}")

    return "Write a birth chart reading for this seeker.\n\n" + "\n".join(lines)
