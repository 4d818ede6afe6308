"""Denylist and substitution tables used to sanitize submitted text."""

import re

REMOVED = "[removed]"

# Profanity → sanitized replacement. Mild terms get a softer synonym,
# severe terms are redacted.
PROFANITY: dict[str, str] = {
    "damn": "darn",
    "damned": "darned",
    "hell": "heck",
    "crap": "junk",
    "crappy": "poor",
    "sucks": "is disappointing",
    "suck": "disappoint",
    "piss": "annoy",
    "pissed": "annoyed",
    "bloody": "very",
    "idiot": "person",
    "idiots": "people",
    "moron": "person",
    "shit": REMOVED,
    "shitty": REMOVED,
    "bullshit": REMOVED,
    "fuck": REMOVED,
    "fucking": REMOVED,
    "fucked": REMOVED,
    "bitch": REMOVED,
    "bastard": REMOVED,
    "asshole": REMOVED,
    "cunt": REMOVED,
}

# Negative-intensity wording → neutral alternative
NEGATIVE_TERMS: dict[str, str] = {
    "terrible": "needs improvement",
    "awful": "could be better",
    "horrible": "disappointing",
    "horrendous": "disappointing",
    "dreadful": "below expectations",
    "atrocious": "below expectations",
    "worst": "least satisfying",
    "hate": "dislike",
    "hated": "disliked",
    "useless": "not very helpful",
    "pathetic": "inadequate",
    "disgusting": "unpleasant",
    "stupid": "unclear",
    "garbage": "low quality",
    "rubbish": "low quality",
    "incompetent": "inexperienced",
}


def _compile(table: dict[str, str]) -> re.Pattern:
    # Longest first so "bullshit" wins over "shit"
    words = sorted(table, key=len, reverse=True)
    return re.compile(r"\b(" + "|".join(re.escape(w) for w in words) + r")\b", re.IGNORECASE)


_PROFANITY_RE = _compile(PROFANITY)
_NEGATIVE_RE = _compile(NEGATIVE_TERMS)


def find_profanity(text: str) -> list[str]:
    """Denylisted words in order of appearance, case-folded."""
    return [m.group(1).lower() for m in _PROFANITY_RE.finditer(text)]


def find_negative_terms(text: str) -> list[str]:
    return [m.group(1).lower() for m in _NEGATIVE_RE.finditer(text)]


def sanitize(text: str) -> str:
    """Replace every denylisted word with its sanitized form."""
    return _substitute(_PROFANITY_RE, PROFANITY, text)


def soften(text: str) -> str:
    """Replace negative-intensity wording (and profanity) with neutral phrasing."""
    return sanitize(_substitute(_NEGATIVE_RE, NEGATIVE_TERMS, text))


def _substitute(pattern: re.Pattern, table: dict[str, str], text: str) -> str:
    def repl(match: re.Match) -> str:
        word = match.group(1)
        replacement = table[word.lower()]
        if replacement != REMOVED and word[0].isupper():
            replacement = replacement[0].upper() + replacement[1:]
        return replacement

    return pattern.sub(repl, text)
