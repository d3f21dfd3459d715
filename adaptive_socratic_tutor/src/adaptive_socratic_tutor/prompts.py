"""
Prompt Builders

System prompt and per-turn guidance sent to the completion service.
Guidance is assembled from the assessment, the chosen question type and the
dialogue state; the model only renders wording.
"""

from typing import List, Optional, Sequence

from adaptive_socratic_tutor.dialogue_types import SocraticAssessment, SocraticQuestionType

LEARNING_OBJECTIVES = (
    ("algebra", "Understand how to isolate variables through inverse operations"),
    ("geometry", "Apply appropriate formulas and understand spatial relationships"),
    ("calculus", "Understand rates of change and accumulation"),
    ("arithmetic", "Apply basic mathematical operations accurately"),
)
DEFAULT_LEARNING_OBJECTIVE = "Develop problem-solving strategies and mathematical reasoning"

QUESTION_TYPE_GUIDES = {
    SocraticQuestionType.CLARIFICATION: "Help the student pin down what the problem is asking and what would count as done.",
    SocraticQuestionType.ASSUMPTIONS: "Surface what the student is taking for granted and whether it always holds.",
    SocraticQuestionType.EVIDENCE: "Ask what supports the student's claim and how they know it is true.",
    SocraticQuestionType.PERSPECTIVE: "Invite another way of looking at or approaching the problem.",
    SocraticQuestionType.IMPLICATIONS: "Explore what follows if the student's idea is right.",
    SocraticQuestionType.META_QUESTIONING: "Ask how the student decided on their approach and what made it tricky.",
}


def generate_learning_objective(concepts: Sequence[str]) -> str:
    for domain, objective in LEARNING_OBJECTIVES:
        if domain in concepts:
            return objective
    return DEFAULT_LEARNING_OBJECTIVE


def determine_student_level(mastery_scores: Sequence[float]) -> str:
    """novice / intermediate / advanced from past mastery (intermediate without history)."""
    if not mastery_scores:
        return "intermediate"
    average = sum(mastery_scores) / len(mastery_scores)
    if average < 0.4:
        return "novice"
    if average > 0.7:
        return "advanced"
    return "intermediate"


def build_system_prompt(problem: str, student_level: str, concepts: List[str]) -> str:
    """Build the session system prompt for a Socratic problem."""
    concepts_text = ", ".join(concepts) if concepts else "general problem solving"
    return f"""You are a warm, patient Socratic math tutor. Guide the student to discover the solution through short, well-timed questions.

RULES:
1. Never give the answer or a worked solution to the problem.
2. Always respond with a question, 1-2 sentences maximum, ending with a question mark.
3. Never suggest a specific operation, formula or step.
4. Refer to the structure of the actual problem. No metaphors or "imagine" scenarios.
5. You may restate the goal or the given facts when the student is stuck, but never how to solve it.
6. When the student is correct, probe why before moving on.

CURRENT CONTEXT:
Student Level: {student_level}
Problem: {problem}
Key Concepts: {concepts_text}
Learning Goal: {generate_learning_objective(concepts)}"""


def build_opening_instruction(question_type: SocraticQuestionType) -> str:
    return (
        f"Use {question_type.value} questioning approach. {QUESTION_TYPE_GUIDES[question_type]} "
        "Keep response to 1-2 sentences maximum. Ask an indirect, exploratory question rather than a direct one."
    )


def build_turn_guidance(
    assessment: SocraticAssessment,
    question_type: SocraticQuestionType,
    student_input: str,
    current_depth: int,
    struggling_turns: int,
    is_understanding_check: bool = False,
    should_deepen_inquiry: bool = False,
    metacognitive_prompt: Optional[str] = None,
    suggested_question: Optional[str] = None,
) -> str:
    """
    Per-turn system guidance.

    Args:
        assessment: Assessment of the student's latest utterance
        question_type: Question type chosen for this turn
        student_input: The utterance itself (truncated in the prompt)
        current_depth: Dialogue depth after this turn's transition
        struggling_turns: Running struggle counter
        is_understanding_check: This turn probes for real understanding
        should_deepen_inquiry: Student is ready for more sophisticated questions
        metacognitive_prompt: Optional reflection question to weave in
        suggested_question: Example question from the question bank for this turn

    Returns:
        Guidance text appended as the final system message
    """
    confidence_pct = round(assessment.confidence_level * 100)
    lines = [
        f'IMMEDIATE CONTEXT: The student just said: "{student_input[:100]}"',
        f"RESPOND AS: {question_type.value.upper()} question type. {QUESTION_TYPE_GUIDES[question_type]}",
        "",
    ]

    if assessment.confidence_level < 0.3:
        lines.append(f"STUDENT STATE: Struggling (confidence: {confidence_pct}%)")
        lines.append("APPROACH: Supportive scaffolding. You may restate the goal or the given facts.")
    elif assessment.confidence_level > 0.8:
        lines.append(f"STUDENT STATE: Confident (confidence: {confidence_pct}%)")
        lines.append("APPROACH: Reference what they said and ask them to explain the principle behind it.")
    else:
        lines.append(f"STUDENT STATE: Building understanding (confidence: {confidence_pct}%)")
        lines.append("APPROACH: Nudge them toward what finding the goal actually means here.")

    lines.append(f"CONVERSATION DEPTH: Level {current_depth}/5")
    if current_depth >= 3:
        lines.append("DEPTH STRATEGY: Probe why their approach works or how principles connect.")

    if assessment.misconceptions:
        lines.append("ALERT: Possible misconception detected. Ask them to test their idea on this problem.")
    if struggling_turns > 2:
        lines.append(
            f"ALERT: Student has struggled for {struggling_turns} turns. Restate the goal or the given "
            "facts, then ask what that suggests. Still never say how to solve it."
        )
    if is_understanding_check:
        lines.append(
            "UNDERSTANDING CHECK: Ask a question that reveals whether the student truly grasps the idea."
        )
    if should_deepen_inquiry:
        lines.append("Ready to deepen the inquiry with more sophisticated questions.")
    if metacognitive_prompt:
        lines.append(f'You may build on this reflection question: "{metacognitive_prompt}"')
    if suggested_question:
        lines.append(f'Here\'s a good question to consider (you may adapt or use directly): "{suggested_question}"')

    lines.append("")
    lines.append("Ask exactly one short question. Do not mention specific numbers or operations. RESPOND NOW:")
    return "\n".join(lines)


def build_assessment_prompt(problem: str) -> str:
    return f"""You are a learning assessment tutor. The student will provide a direct answer to this problem:

"{problem}"

ASSESSMENT MODE BEHAVIOR:
1. Accept their direct answer first
2. Then ask them to explain their reasoning
3. Do not guide them to the answer like in tutoring mode
4. If they're stuck, ask if they want help or want to review prerequisite concepts
5. Keep responses short and focused (1-2 sentences)"""
