"""Prompt text for the diagnostic session actions."""

import json
from typing import List

from circuitiq_core.models import ProbableCause, SessionState, SuggestedTest

TEAMMATE_SYSTEM = """You are an experienced engineer with 20+ years troubleshooting aircraft, automotive and marine electrical systems.
You are working alongside a technician as a teammate, not a chatbot.
Think out loud, connect each observation to the current theory, ask a specific question when you need information, and say so when you are unsure.
Keep replies brief (2-5 sentences) and practical."""

TEAMMATE_FORMAT = """Respond with a single JSON object, nothing else:
{
    "message": "Your conversational reply to the technician (2-5 sentences)",
    "diagnosticData": {
        "currentHypothesis": "What you currently believe is wrong",
        "confidence": 0-100,
        "reasoning": "Why the evidence so far points there",
        "alternativeTheories": ["Other explanations still in play"]
    },
    "testProcedure": {
        "action": "What to test next",
        "tool": "What tool to use",
        "location": "Specific location",
        "expectedResult": "What a healthy circuit shows",
        "safety": "Any precautions"
    },
    "highlightComponents": ["Component names to highlight on the diagram"],
    "quickSuggestions": ["Short replies the technician might send next"]
}
Omit testProcedure when you are only asking a question."""

DIAGRAM_ANALYST_SYSTEM = """You're an expert wiring diagram analyst helping troubleshoot electrical systems.
When looking at a wiring diagram or a photo of a harness, you should:
- Identify the visible components (relays, switches, connectors, fuses, grounds)
- Read wire labels, colors and gauge sizes
- Trace circuit paths and connections
- Point out visible issues or concerns and relate them to likely failures

Be specific and technical but conversational. Reference actual component names and wire numbers you see."""

EXPLAIN_SYSTEM = """You're explaining a troubleshooting claim to a teammate.
Ground the explanation in the vehicle, the symptom and the current theory you are given.
Be clear and practical; use an analogy if it helps. Do not change the diagnosis."""

DIAGNOSIS_SYSTEM = """You are an expert diagnostic technician.

1. Identify the most likely failure modes for the reported symptom on this vehicle.
2. Suggest a logical step-by-step troubleshooting procedure.
3. Return your response as a single JSON object, nothing else.

Format:
{
    "thoughtProcess": "Brief analysis of the situation...",
    "probableCauses": [
        { "cause": "Description", "likelihood": "High/Medium/Low", "reason": "Why?" }
    ],
    "suggestedTests": [
        { "step": 1, "title": "Check Power", "instruction": "Measure voltage at...", "expected": "12V" }
    ],
    "initialResponse": "A conversational message to the technician summarizing the plan."
}"""

PHOTO_SUBMITTED_NOTE = "[Photo submitted for review]"

REASSESS_INSTRUCTION = (
    "The current theory is not holding up. Reassess the diagnosis from scratch "
    "using everything in this conversation, including the test results reported "
    "so far, and return a complete replacement set of probable causes and tests."
)


def _dump(items: List) -> str:
    if not items:
        return "none yet"
    return json.dumps([item.model_dump(mode="json") for item in items], indent=2)


def describe_theory(causes: List[ProbableCause], tests: List[SuggestedTest]) -> str:
    return f"Current probable causes:\n{_dump(causes)}\n\nSuggested tests so far:\n{_dump(tests)}"


def session_framing(state: SessionState) -> str:
    """Vehicle, symptom and accumulated theory, in that order"""
    lines = [f"Vehicle: {state.vehicle.describe()}"]
    if state.symptom:
        lines.append(f"Reported symptom: {state.symptom}")
    lines.append("")
    lines.append(describe_theory(state.probable_causes, state.suggested_tests))
    return "\n".join(lines)


def continuation_system(state: SessionState) -> str:
    return f"{TEAMMATE_SYSTEM}\n\n{TEAMMATE_FORMAT}\n\n{session_framing(state)}"


def vision_system(state: SessionState) -> str:
    return f"{DIAGRAM_ANALYST_SYSTEM}\n\n{session_framing(state)}"


def vision_query(state: SessionState, comment: str = None) -> str:
    subject = state.symptom or "this electrical system"
    if comment:
        return f"We're troubleshooting: {subject}\nTech says: \"{comment}\""
    return (
        f"We're troubleshooting: {subject}\n"
        "Look at this image and tell me:\n"
        "1. What major components do you see?\n"
        "2. What is the main circuit flow?\n"
        "3. What could cause failures here?\n"
        "4. Any specific areas of concern?"
    )


def explain_system(state: SessionState) -> str:
    return f"{EXPLAIN_SYSTEM}\n\n{session_framing(state)}"


def explain_query(topic: str) -> str:
    return f"Explain why: {topic}"


def diagnosis_system(state: SessionState) -> str:
    return f"{DIAGNOSIS_SYSTEM}\n\nVehicle: {state.vehicle.describe()}"


def diagnosis_query(symptom: str) -> str:
    return f"User complaint: {symptom}"


def reassess_system(state: SessionState) -> str:
    return f"{DIAGNOSIS_SYSTEM}\n\n{session_framing(state)}"
