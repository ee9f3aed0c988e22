"""Translation support for user-facing messages."""

# Current language
_current_language = "en"

# Translation dictionaries
_translations = {
    "de": {
        # Balance factors
        "gender": "Geschlecht",
        "academic": "Leistungsniveau",
        "behavioral": "Verhalten",
        "special_needs": "Förderbedarf",

        # Priorities
        "required": "verpflichtend",
        "high": "hoch",
        "medium": "mittel",
        "low": "niedrig",

        # Constraint violations
        "Required": "Erforderlich",
        "Preference": "Wunsch",
        "Balance": "Ausgewogenheit",
        "Students {students} must be placed in the same class but are split across {sections} ({reason})":
            "Schüler {students} müssen in dieselbe Klasse, sind aber auf {sections} verteilt ({reason})",
        "Students {students} must be placed in different classes but share {section} ({reason})":
            "Schüler {students} müssen in verschiedene Klassen, sind aber gemeinsam in {section} ({reason})",
        "Student {student} should be placed with teacher {teacher} but is in {section} ({reason})":
            "Schüler {student} soll zu Lehrkraft {teacher}, ist aber in {section} ({reason})",
        "Student {student} should not be placed with teacher {teacher} ({reason})":
            "Schüler {student} soll nicht zu Lehrkraft {teacher} ({reason})",
        "Classes should have balanced distribution for {factor} ({reason})":
            "Klassen sollen ausgewogen nach {factor} verteilt sein ({reason})",
        "Class sizes differ by {difference} (at most {tolerance} allowed) ({reason})":
            "Klassengrößen unterscheiden sich um {difference} (höchstens {tolerance} erlaubt) ({reason})",
        "unassigned": "nicht zugeordnet",

        # Distribution warnings
        "Student {student} is listed in keep-together constraints #{kept} and #{dropped}; kept with #{kept}":
            "Schüler {student} steht in den Zusammen-Einschränkungen #{kept} und #{dropped}; bleibt bei #{kept}",
    },
}


def set_language(lang: str):
    """Set the current language."""
    global _current_language
    _current_language = lang


def get_language() -> str:
    """Get the current language."""
    return _current_language


def tr(text: str) -> str:
    """Translate a string to the current language."""
    if _current_language == "en":
        return text

    translations = _translations.get(_current_language, {})
    return translations.get(text, text)


def available_languages() -> list[tuple[str, str]]:
    """Get list of available languages as (code, name) tuples."""
    return [
        ("en", "English"),
        ("de", "Deutsch"),
    ]
