"""Supported analysis languages and the prompt directive for each.

Every section prompt receives a ``{{LANGUAGE}}`` directive so the model
writes its whole output in the requested language.  English is the
default and the only language available on the free tier (see
:mod:`src.config.tiers`).
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_LANGUAGE = "en"


@dataclass(frozen=True)
class LanguageConfig:
    code: str
    name: str
    native_name: str
    rtl: bool = False


SUPPORTED_LANGUAGES: dict[str, LanguageConfig] = {
    lang.code: lang
    for lang in (
        LanguageConfig("en", "English", "English"),
        LanguageConfig("ar", "Arabic", "العربية", rtl=True),
        LanguageConfig("es", "Spanish", "Español"),
        LanguageConfig("fr", "French", "Français"),
        LanguageConfig("de", "German", "Deutsch"),
        LanguageConfig("pt", "Portuguese", "Português"),
        LanguageConfig("ja", "Japanese", "日本語"),
        LanguageConfig("ko", "Korean", "한국어"),
        LanguageConfig("zh", "Chinese", "中文"),
        LanguageConfig("it", "Italian", "Italiano"),
        LanguageConfig("nl", "Dutch", "Nederlands"),
    )
}


def is_supported_language(code: str) -> bool:
    return code in SUPPORTED_LANGUAGES


def language_directive(code: str) -> str:
    """Return the instruction telling the model which language to write in.

    Unknown codes fall back to the English directive.
    """
    config = SUPPORTED_LANGUAGES.get(code)
    if config is None or config.code == DEFAULT_LANGUAGE:
        return "Write your analysis in English."
    return (
        f"Write your ENTIRE analysis output in {config.name} ({config.native_name}). "
        f"ALL headers, bullets, descriptions, and prose MUST be in {config.name}. "
        "Do not mix languages except for proper nouns and technical terms."
    )
