# src/rchat/services/profanity.py
"""Profanity filter for channel messages and names, backed by better-profanity."""

from __future__ import annotations

from functools import lru_cache

from better_profanity import Profanity

from rchat.core.settings import settings


@lru_cache(maxsize=8)
def _censor_for(extra_words: tuple[str, ...]) -> Profanity:
    censor = Profanity()
    words = [word.strip() for word in extra_words if word.strip()]
    if words:
        censor.add_censor_words(words)
    return censor


def _censor() -> Profanity:
    return _censor_for(tuple(settings.profanity_words))


def filter_profanity(text: str) -> tuple[str, bool]:
    """Return ``(censored_text, contained_profanity)``.

    Flagged words, including common letter-for-symbol spellings, are replaced
    by ``****``. Text without a match is returned unchanged.
    """
    censored = _censor().censor(text)
    return censored, censored != text


def contains_profanity(text: str) -> bool:
    return _censor().contains_profanity(text)
