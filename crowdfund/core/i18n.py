"""Translation lookup for user-facing messages."""

from typing import Callable, Dict, Optional

from crowdfund.core.config import settings

Translator = Callable[[str], str]

MESSAGES: Dict[str, Dict[str, str]] = {
    "de": {
        "api/unexpected": "Ein unerwarteter Fehler ist aufgetreten.",
        "api/membership/reduced/alreadyHas": "Sie haben bereits eine Mitgliedschaft. Eine Reduktion ist nur beim ersten Kauf möglich.",
        "api/pledge/alreadyPaid": "Diese Unterstützung wurde bereits bezahlt.",
        "api/unauthorized": "Sie sind nicht berechtigt, diese Aktion auszuführen.",
        "api/pledge/notFound": "Unterstützung nicht gefunden.",
        "api/crowdfunding/notFound": "Crowdfunding nicht gefunden.",
        "api/feed/notFound": "Feed nicht gefunden.",
    },
    "en": {
        "api/unexpected": "An unexpected error occurred.",
        "api/membership/reduced/alreadyHas": "You already have a membership. A reduced price is only available on your first pledge.",
        "api/pledge/alreadyPaid": "This pledge has already been paid.",
        "api/unauthorized": "You are not allowed to perform this action.",
        "api/pledge/notFound": "Pledge not found.",
        "api/crowdfunding/notFound": "Crowdfunding not found.",
        "api/feed/notFound": "Feed not found.",
    },
}


def resolve_locale(accept_language: Optional[str]) -> str:
    """Pick the first supported locale from an Accept-Language header."""
    if accept_language:
        for part in accept_language.split(","):
            tag = part.split(";")[0].strip().lower()
            lang = tag.split("-")[0]
            if lang in MESSAGES:
                return lang
    return settings.DEFAULT_LOCALE if settings.DEFAULT_LOCALE in MESSAGES else "de"


def translator(locale: Optional[str] = None) -> Translator:
    """Return t(key) for the locale; unknown keys translate to themselves."""
    table = MESSAGES.get(locale or "", MESSAGES.get(settings.DEFAULT_LOCALE, MESSAGES["de"]))

    def t(key: str) -> str:
        return table.get(key, key)

    return t
