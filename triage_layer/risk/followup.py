from __future__ import annotations

"""
Clarifying follow-up question selection.

Design intent:
- Template lookup by (condition type, urgency), generic fallback otherwise.
- Symptom probes layered on top; age routes to pediatric/geriatric sets.
- One prioritization pass dedupes and orders safety-critical questions first.
"""

from typing import Iterable, Optional, Sequence

from ..internal_core.escalation import normalize_level

PEDIATRIC_AGE = 18
GERIATRIC_AGE = 65
DEFAULT_MAX_QUESTIONS = 5

FOLLOW_UP_TEMPLATES: dict[str, dict[str, tuple[str, ...]]] = {
    "cardiovascular": {
        "EMERGENCY": (
            "Are you experiencing crushing, squeezing, or tight chest pain?",
            "Is the pain radiating to your arm, neck, jaw, or back?",
            "Do you have shortness of breath, sweating, or nausea with the pain?",
            "When did the chest pain start exactly?",
        ),
        "URGENT": (
            "How would you describe the chest pain - sharp, dull, or pressure-like?",
            "Does the pain get worse with activity or improve with rest?",
            "Have you had similar episodes before?",
            "Any family history of heart problems or heart attacks?",
        ),
        "NON_URGENT": (
            "What activities or situations trigger the symptoms?",
            "How long have you been experiencing these symptoms?",
            "Any changes in your exercise tolerance or daily activities?",
            "Are you taking any heart medications currently?",
        ),
    },
    "respiratory": {
        "EMERGENCY": (
            "Are you having severe difficulty breathing right now?",
            "Is your breathing getting worse rapidly?",
            "Are your lips or fingernails blue or gray?",
            "Can you speak in full sentences?",
        ),
        "URGENT": (
            "How long have you been short of breath?",
            "Does the breathing difficulty come on with activity or at rest?",
            "Are you coughing up blood or colored sputum?",
            "Any chest pain with breathing?",
        ),
        "NON_URGENT": (
            "What makes your breathing better or worse?",
            "Do you have seasonal allergies or asthma?",
            "Any recent upper respiratory illness or cold?",
            "How is your breathing during sleep?",
        ),
    },
    "neurological": {
        "EMERGENCY": (
            "When exactly did these symptoms start?",
            "Are you experiencing facial drooping or arm weakness?",
            "Any problems with speech or understanding words?",
            "Have you lost consciousness or had a seizure?",
        ),
        "URGENT": (
            "How severe is your headache on a scale of 1-10?",
            "Any nausea, vomiting, or sensitivity to light?",
            "Have you had similar headaches before?",
            "Any recent head trauma or injuries?",
        ),
        "NON_URGENT": (
            "What triggers seem to bring on these symptoms?",
            "How long do the episodes typically last?",
            "Any patterns you've noticed with timing or activities?",
            "Are you taking any medications for this condition?",
        ),
    },
    "gastrointestinal": {
        "EMERGENCY": (
            "Are you vomiting blood or having bloody stools?",
            "Is the abdominal pain severe and constant?",
            "Any signs of dehydration like dizziness or dry mouth?",
            "When did you last have a bowel movement?",
        ),
        "URGENT": (
            "Where exactly is the pain located in your abdomen?",
            "Does the pain move or radiate anywhere?",
            "Any fever, nausea, or changes in bowel habits?",
            "How long has this been going on?",
        ),
        "NON_URGENT": (
            "What foods or activities seem to trigger symptoms?",
            "How are your regular bowel habits?",
            "Any recent dietary changes or new medications?",
            "Do antacids or other remedies help?",
        ),
    },
    "mental_health": {
        "EMERGENCY": (
            "Are you having thoughts of hurting yourself or others?",
            "Do you have a specific plan or means to harm yourself?",
            "Is there anyone with you right now for support?",
            "Have you been using alcohol or drugs?",
        ),
        "URGENT": (
            "How long have you been feeling this way?",
            "What triggered these feelings or thoughts?",
            "Do you have support from family or friends?",
            "Are you currently seeing a mental health professional?",
        ),
        "NON_URGENT": (
            "What coping strategies have you tried?",
            "How is this affecting your daily activities?",
            "Any recent major life changes or stressors?",
            "Are you interested in counseling or support resources?",
        ),
    },
    "autoimmune": {
        "EMERGENCY": (
            "Are you experiencing sudden worsening of multiple symptoms?",
            "Any difficulty breathing or swallowing?",
            "Signs of severe infection like high fever or confusion?",
            "Any new neurological symptoms like weakness or vision changes?",
        ),
        "URGENT": (
            "How do your current symptoms compare to your usual baseline?",
            "Any new or worsening joint pain, swelling, or stiffness?",
            "Changes in skin rashes or new skin lesions?",
            "Are your current medications controlling your condition?",
        ),
        "NON_URGENT": (
            "What helps manage your symptoms day-to-day?",
            "Any recent changes in stress levels or lifestyle?",
            "How often do you see your rheumatologist or specialist?",
            "Are you having any medication side effects?",
        ),
    },
    "pediatric": {
        "EMERGENCY": (
            "What is the child's age?",
            "Is the child responsive and alert?",
            "Any difficulty breathing or blue color around lips?",
            "When did you first notice these symptoms?",
        ),
        "URGENT": (
            "How is the child's activity level compared to normal?",
            "Is the child eating and drinking normally?",
            "Any fever and what was the highest temperature?",
            "How long have these symptoms been present?",
        ),
        "NON_URGENT": (
            "Are there any other children in the family with similar symptoms?",
            "Any recent changes in behavior or development?",
            "Is the child up to date with vaccinations?",
            "Any concerns about growth or development milestones?",
        ),
    },
    "geriatric": {
        "EMERGENCY": (
            "Has there been a sudden change in mental status or confusion?",
            "Any recent falls or injuries?",
            "Difficulty breathing or chest pain?",
            "Is the person able to care for themselves today?",
        ),
        "URGENT": (
            "How do these symptoms compare to baseline functioning?",
            "Any recent medication changes or new prescriptions?",
            "Changes in appetite, weight, or sleep patterns?",
            "Is there adequate support at home?",
        ),
        "NON_URGENT": (
            "What daily activities are becoming more difficult?",
            "Any concerns about memory or thinking abilities?",
            "How is mobility and risk of falling?",
            "Are there social connections and support systems in place?",
        ),
    },
}

GENERIC_QUESTIONS: dict[str, tuple[str, ...]] = {
    "EMERGENCY": (
        "When did these symptoms start?",
        "Are the symptoms getting worse rapidly?",
        "Are you having any difficulty breathing?",
        "Do you need emergency medical attention right now?",
    ),
    "URGENT": (
        "How long have you been experiencing these symptoms?",
        "Have you had similar symptoms before?",
        "What makes the symptoms better or worse?",
        "Are you taking any medications for this?",
    ),
    "NON_URGENT": (
        "Can you describe your symptoms in more detail?",
        "What prompted you to seek medical advice today?",
        "Have you tried any home remedies or treatments?",
        "Any other symptoms you haven't mentioned?",
    ),
}

PRIORITY_ORDER: tuple[str, ...] = (
    "are you having thoughts of hurting yourself",
    "difficulty breathing",
    "chest pain",
    "when did",
    "how severe",
    "any fever",
    "what makes",
    "how long",
)


def symptom_probes(symptom_names: Iterable[str], urgency: str) -> list[str]:
    level = normalize_level(urgency)
    names = [str(name).strip().lower() for name in symptom_names]
    questions: list[str] = []

    if any("pain" in name for name in names):
        if level == "EMERGENCY":
            questions.append("On a scale of 1-10, how severe is your pain?")
            questions.append("Is the pain constant or does it come and go?")
        else:
            questions.append("What makes the pain better or worse?")
            questions.append("How long have you had this pain?")

    if "fever" in names:
        questions.append("What was the highest temperature you recorded?")
        questions.append("How long have you had the fever?")
        if level != "EMERGENCY":
            questions.append("What symptoms are you having along with the fever?")

    if "nausea" in names or "vomiting" in names:
        questions.append("Are you able to keep fluids down?")
        if level == "EMERGENCY":
            questions.append("Are you vomiting blood or coffee-ground material?")

    if "headache" in names:
        if level == "EMERGENCY":
            questions.append("Is this the worst headache of your life?")
        questions.append("Where exactly is the headache located?")
        questions.append("What type of pain - throbbing, sharp, or pressure-like?")
    return questions


def template_questions(condition_type: Optional[str], urgency: str) -> Optional[list[str]]:
    templates = FOLLOW_UP_TEMPLATES.get(str(condition_type or "").strip().lower())
    if templates is None:
        return None
    return list(templates.get(normalize_level(urgency), templates["NON_URGENT"]))


def prioritize_questions(
    question_sets: Iterable[Sequence[str]],
    max_questions: int = DEFAULT_MAX_QUESTIONS,
) -> list[str]:
    unique: list[str] = []
    seen: set[str] = set()
    for questions in question_sets:
        for question in questions:
            normalized = str(question or "").strip()
            if normalized and normalized not in seen:
                seen.add(normalized)
                unique.append(normalized)

    prioritized: list[str] = []
    remaining = list(unique)
    for priority in PRIORITY_ORDER:
        matching = [q for q in remaining if priority in q.lower()]
        prioritized.extend(matching)
        remaining = [q for q in remaining if q not in matching]
        if len(prioritized) >= max_questions:
            break
    prioritized.extend(remaining)
    return prioritized[: max(0, max_questions)]


def select_follow_up(
    condition_type: Optional[str],
    urgency: str,
    symptoms: Iterable[str],
    age: Optional[float] = None,
    *,
    extra: Sequence[Sequence[str]] = (),
    max_questions: int = DEFAULT_MAX_QUESTIONS,
) -> list[str]:
    """Pick up to `max_questions` clarifying questions.

    `extra` carries question lists from other sources (e.g. condition matches);
    they are merged before the prioritization pass.
    """
    names = list(symptoms)
    sets: list[Sequence[str]] = []

    if age is not None and age < PEDIATRIC_AGE:
        sets.append(template_questions("pediatric", urgency) or [])
    elif age is not None and age >= GERIATRIC_AGE:
        sets.append(template_questions("geriatric", urgency) or [])

    base = template_questions(condition_type, urgency)
    if base is None:
        base = list(GENERIC_QUESTIONS[normalize_level(urgency)])
    sets.append(base)
    sets.append(symptom_probes(names, urgency))
    sets.extend(extra)
    return prioritize_questions(sets, max_questions)
