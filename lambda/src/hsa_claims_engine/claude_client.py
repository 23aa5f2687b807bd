"""Claude API client for classifying service descriptions the catalog cannot resolve."""

import json
import logging
from dataclasses import dataclass

import anthropic
from anthropic.types import TextBlock

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-haiku-4-5-20251001"
DEFAULT_TIMEOUT_SECONDS = 10.0
FALLBACK_CONFIDENCE = 40

SYSTEM_PROMPT = """\
You are a healthcare expense eligibility expert specializing in Health Savings Account (HSA) \
reimbursement according to IRS Publication 502 and current tax guidelines.

Respond with a JSON object containing exactly these fields:
- "eligible": boolean, true if the expense qualifies for HSA reimbursement
- "confidence": integer from 0 to 100, how certain you are of the determination
- "explanation": string, 1-2 sentences explaining why it is or isn't eligible
- "suggestedAlternative": if not eligible, a similar HSA-eligible option as a string, otherwise null

HSA-ELIGIBLE expenses (typically 85-100 confidence):
- Medical care: doctor visits, surgeries, treatments, hospital stays
- Dental care: cleanings, fillings, extractions, orthodontics
- Vision care: eye exams, glasses, contacts, laser eye surgery
- Prescription medications and insulin
- Medical equipment: wheelchairs, crutches, hearing aids
- Mental health services: therapy, counseling
- Preventive care: annual physicals, vaccinations
- Medical supplies: bandages, blood pressure monitors

NOT HSA-ELIGIBLE (typically 85-100 confidence that it is not eligible):
- Cosmetic procedures (unless medically necessary)
- General health items: vitamins, toothpaste, soap
- Fitness: gym memberships, personal trainers (unless prescribed)
- Insurance premiums (except COBRA, long-term care, Medicare)
- Over-the-counter medications (unless prescribed)
- Cosmetics and personal care items

UNCERTAIN cases (40-70 confidence):
- Medical procedures that could be cosmetic or medical
- Alternative treatments not widely accepted
- Items that might require prescription or medical necessity

Respond ONLY with the JSON object, no other text."""


@dataclass(frozen=True)
class ClassifierResult:
    eligible: bool
    confidence: int
    explanation: str
    suggested_alternative: str | None = None


def fallback_result(query: str) -> ClassifierResult:
    """The result used whenever the classifier cannot give a usable answer."""
    return ClassifierResult(
        eligible=False,
        confidence=FALLBACK_CONFIDENCE,
        explanation=(
            f'Could not verify if "{query}" is HSA-eligible. '
            "Please consult with a healthcare professional or tax advisor."
        ),
        suggested_alternative=None,
    )


def classify_service(
    api_key: str | None,
    query: str,
    model: str = DEFAULT_MODEL,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> ClassifierResult:
    """Ask Claude whether a service description is HSA-eligible.

    Never raises: a missing key, transport error, timeout or unparseable reply all
    resolve to fallback_result(query). The call is made once, without retries.
    """
    if not api_key:
        logger.warning("No classifier API key configured, using fallback result")
        return fallback_result(query)

    client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

    logger.info("Calling Claude API: model=%s, query=%r", model, query)

    try:
        response = client.messages.create(
            model=model,
            max_tokens=300,
            temperature=0.2,
            system=SYSTEM_PROMPT,
            messages=[
                {
                    "role": "user",
                    "content": f'Is "{query}" eligible for HSA reimbursement? Respond with the JSON object.',
                }
            ],
        )
    except anthropic.APIError:
        logger.exception("Claude API call failed for %r", query)
        return fallback_result(query)

    response_text = ""
    for block in response.content:
        if isinstance(block, TextBlock):
            response_text = block.text
            break

    logger.info("Claude response: %s", response_text)

    try:
        return parse_classifier_response(response_text)
    except ValueError:
        logger.exception("Could not parse classifier response for %r", query)
        return fallback_result(query)


def parse_classifier_response(response_text: str) -> ClassifierResult:
    """Parse a classifier reply into a ClassifierResult.

    Raises ValueError when the reply is empty, not JSON, or not the expected shape.
    """
    stripped = response_text.strip()
    if not stripped:
        raise ValueError("Classifier returned an empty response")

    # Strip markdown code fences if present
    if stripped.startswith("```"):
        lines = stripped.split("\n")
        lines = [line for line in lines[1:] if line.strip() != "```"]
        stripped = "\n".join(lines)

    try:
        data = json.loads(stripped)
    except json.JSONDecodeError as e:
        raise ValueError(f"Classifier response is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("Classifier response is not a JSON object")

    eligible = data.get("eligible")
    confidence = data.get("confidence")
    explanation = data.get("explanation")
    alternative = data.get("suggestedAlternative")

    if not isinstance(eligible, bool):
        raise ValueError(f"Invalid 'eligible' value: {eligible!r}")
    # bool is an int subclass, so reject it explicitly
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise ValueError(f"Invalid 'confidence' value: {confidence!r}")
    if not 0 <= confidence <= 100:
        raise ValueError(f"Confidence out of range: {confidence!r}")
    if not isinstance(explanation, str):
        raise ValueError(f"Invalid 'explanation' value: {explanation!r}")
    if alternative is not None and not isinstance(alternative, str):
        raise ValueError(f"Invalid 'suggestedAlternative' value: {alternative!r}")

    return ClassifierResult(
        eligible=eligible,
        confidence=round(confidence),
        explanation=explanation,
        suggested_alternative=alternative or None,
    )
