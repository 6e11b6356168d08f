"""Turns a user's analysis preferences into a prompt instruction block.

The block is empty for inactive preferences and for the defaults
(apply + intermediate + takeaways/accuracy), so users who never touched
their settings get unmodified prompts.
"""

from __future__ import annotations

from src.models.content import AnalysisMode, AnalysisPreferences, ExpertiseLevel

_MODE_INSTRUCTIONS: dict[AnalysisMode, tuple[str, str]] = {
    AnalysisMode.LEARN: (
        "The user wants to understand this content deeply. Frame takeaways as concepts "
        "to study. Define technical terms when they appear. Action items should guide "
        'further learning (e.g., "research X," "study Y"), not immediate implementation.',
        "Weight educational value and depth of explanation more heavily than practical "
        "actionability.",
    ),
    AnalysisMode.APPLY: (
        "The user wants practical, actionable output. Focus on what can be implemented "
        "this week. Assess ROI and feasibility. Action items should be concrete steps "
        '(e.g., "implement X," "try Y approach").',
        "Weight actionability and practical value most heavily.",
    ),
    AnalysisMode.EVALUATE: (
        "The user wants to assess this content critically. Scrutinize evidence, "
        "methodology, and sourcing. Highlight gaps, counterarguments, and unstated "
        'assumptions. Action items should guide verification (e.g., "verify X," '
        '"compare with Y").',
        "Weight credibility, evidence quality, and intellectual rigor most heavily.",
    ),
    AnalysisMode.DISCOVER: (
        "The user wants a concise, accessible overview. Focus on the most interesting "
        "and surprising points. Entertainment value and novelty matter. Keep action "
        "items minimal; the user is browsing, not building.",
        "Weight how genuinely interesting and novel the content is.",
    ),
    AnalysisMode.CREATE: (
        "The user is a content creator studying this for craft insights. Analyze "
        "structure, narrative techniques, and audience engagement strategies. Highlight "
        "what makes this content effective or ineffective. Action items should be "
        'creative techniques to adopt (e.g., "use X hook technique," "structure like Y").',
        "Weight craft quality, production value, and transferable creative techniques.",
    ),
}

_EXPERTISE_INSTRUCTIONS: dict[ExpertiseLevel, str] = {
    ExpertiseLevel.BEGINNER: (
        "Provide extra context for domain-specific concepts. Define technical terms. "
        "Use accessible language. Give longer explanations where clarity requires it."
    ),
    ExpertiseLevel.INTERMEDIATE: (
        "Standard depth. Only explain niche or uncommon terms. Assume general familiarity "
        "with common concepts."
    ),
    ExpertiseLevel.EXPERT: (
        "Skip foundational explanations. Focus on nuances, edge cases, and advanced "
        "critique. Be concise and dense; the user has deep domain knowledge."
    ),
}

_FOCUS_INSTRUCTIONS: dict[str, str] = {
    "accuracy": "Scrutinize claims and sources closely. Flag unsourced or dubious assertions.",
    "takeaways": 'Emphasize memorable insights. Focus key takeaways on "so what?" value.',
    "efficiency": "Keep all sections concise. Prioritize the verdict and essentials.",
    "depth": "Be thorough in your analysis. Longer, more detailed output is fine.",
    "bias": "Highlight author perspective, unstated assumptions, and conflicts of interest.",
    "novelty": "Flag derivative content. Highlight genuinely original ideas and fresh perspectives.",
}


def _is_default(prefs: AnalysisPreferences) -> bool:
    return (
        prefs.analysis_mode is AnalysisMode.APPLY
        and prefs.expertise_level is ExpertiseLevel.INTERMEDIATE
        and sorted(prefs.focus_areas) == ["accuracy", "takeaways"]
    )


def build_preference_block(prefs: AnalysisPreferences | None) -> str:
    """Return the ``{{PREFERENCES}}`` block for *prefs*, or ``""``."""
    if prefs is None or not prefs.is_active or _is_default(prefs):
        return ""

    directive, scoring = _MODE_INSTRUCTIONS[prefs.analysis_mode]
    lines = [
        "USER PREFERENCES (adjust your evaluation accordingly):",
        f"- Analysis mode: {prefs.analysis_mode.value.upper()}: {directive}",
        f"- Expertise: {prefs.expertise_level.value.upper()}: "
        f"{_EXPERTISE_INSTRUCTIONS[prefs.expertise_level]}",
    ]
    focus = [
        f"{area.upper()} ({_FOCUS_INSTRUCTIONS[area]})"
        for area in prefs.focus_areas
        if area in _FOCUS_INSTRUCTIONS
    ]
    if focus:
        lines.append(f"- Priorities: {' and '.join(focus)}")
    lines.append("")
    lines.append(f"When scoring signal_noise_score, {scoring}")
    return "\n" + "\n".join(lines) + "\n"
