"""Heuristic contact-field extraction from free-form voice transcripts.

Every field is produced by an ordered table of rules. The first rule that
yields a value wins and later rules are never consulted for that field, so a
given transcript always produces the same draft.
"""
import re
from dataclasses import asdict, dataclass
from re import Match, Pattern
from typing import Callable, Dict, List, Optional

from loguru import logger

MAX_INPUT_LENGTH = 1000

_INJECTION_CHARS = re.compile(r"[<>'\"&]")
_DISALLOWED_CHARS = re.compile(r"[^\w\s@.-]")


@dataclass(frozen=True)
class ContactDraft:
    """Best-effort contact fields; unmatched fields are empty strings.

    ``notes`` always carries the sanitized transcript so nothing said is lost
    even when no field could be extracted.
    """

    name: str = ""
    phone: str = ""
    email: str = ""
    company: str = ""
    notes: str = ""

    def as_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class Rule:
    """One pattern in an ordered extraction table."""

    name: str
    pattern: Pattern[str]
    build: Callable[[Match[str]], Optional[str]]


def sanitize_input(text: Optional[str], preserve_email: bool = False) -> str:
    """Strip HTML-significant characters and cap the length.

    The strict mode also removes everything except word characters,
    whitespace, ``@``, ``.`` and ``-``; ``preserve_email`` keeps characters
    such as ``+`` and ``%`` that are legal in e-mail addresses.
    """
    if not text or not isinstance(text, str):
        return ""
    cleaned = _INJECTION_CHARS.sub("", text)
    if not preserve_email:
        cleaned = _DISALLOWED_CHARS.sub("", cleaned)
    return cleaned[:MAX_INPUT_LENGTH].strip()


def _first_value(rules: List[Rule], text: str, field: str) -> str:
    for rule in rules:
        match = rule.pattern.search(text)
        if not match:
            continue
        value = rule.build(match)
        if value:
            logger.debug(f"{field} matched rule '{rule.name}'")
            return value
    return ""


# --- Phone ---

_PHONE_PATTERN = re.compile(
    r"(?<![0-9])(\+?1?[-.\s]?)?\(?([0-9]{3})\)?[-.\s]?([0-9]{3})[-.\s]?([0-9]{4})(?![0-9])"
)

# Homophones ("to", "for", "ate") are deliberately included: speech engines
# frequently emit them inside dictated numbers.
DIGIT_WORDS = {
    "zero": "0", "oh": "0",
    "one": "1",
    "two": "2", "to": "2", "too": "2",
    "three": "3",
    "four": "4", "for": "4",
    "five": "5",
    "six": "6",
    "seven": "7",
    "eight": "8", "ate": "8",
    "nine": "9",
}

_DIGIT_WORD = r"(?:%s)\b" % "|".join(sorted(DIGIT_WORDS, key=len, reverse=True))
_DIGIT_WORD_RUN = re.compile(r"\b%s(?:[\s-]+%s)*" % (_DIGIT_WORD, _DIGIT_WORD), re.IGNORECASE)


def normalize_phone(digits: str) -> str:
    """Prefix a bare 10-digit (or 1-prefixed 11-digit) number with ``+1``."""
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    return digits


def extract_phone(text: str) -> str:
    match = _PHONE_PATTERN.search(text)
    if match:
        return normalize_phone(re.sub(r"\D", "", match.group(0)))

    for run in _DIGIT_WORD_RUN.finditer(text):
        words = re.split(r"[\s-]+", run.group(0))
        if len(words) < 10:
            continue
        # Trailing homophones ("... seven for the quote") extend the run; keep the first ten
        digits = "".join(DIGIT_WORDS[word.lower()] for word in words[:10])
        logger.debug("phone matched spoken digit words")
        return f"+1{digits}"
    return ""


# --- Email ---

_TLDS = r"(?:com|net|org|edu|gov|co\.uk|io|mil|biz|info)"
_LETTER = r"\b[a-zA-Z]\b"
_SPACED = rf"{_LETTER}(?:\s+{_LETTER})*"
_HYPHENATED = r"[a-zA-Z](?:[-\s][a-zA-Z])*"


def _squash(*parts: str) -> str:
    return "".join(re.sub(r"[-\s]+", "", part) for part in parts)


def _spelled_email(match: Match[str]) -> str:
    username, domain, tld = match.groups()
    return f"{_squash(username)}@{_squash(domain)}.{_squash(tld)}"


EMAIL_RULES = [
    Rule(
        "standard",
        re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"),
        lambda m: m.group(0),
    ),
    Rule(
        "spoken at/dot",
        re.compile(rf"([a-zA-Z0-9._%+-]+)\s+at\s+([a-zA-Z0-9.-]+)\s+dot\s+({_TLDS})\b", re.IGNORECASE),
        lambda m: f"{m.group(1)}@{m.group(2)}.{m.group(3)}",
    ),
    Rule(
        "spoken at with dotted domain",
        re.compile(r"([a-zA-Z0-9._%+-]+)\s+at\s+([a-zA-Z0-9.-]+\.[a-zA-Z]{2,})", re.IGNORECASE),
        lambda m: f"{m.group(1)}@{m.group(2)}",
    ),
    Rule(
        "letters separated by spaces",
        re.compile(
            rf"({_LETTER}(?:\s+{_LETTER})+)\s+at\s+({_SPACED})\s+dot\s+({_SPACED}|[a-zA-Z]{{2,}}\b)",
            re.IGNORECASE,
        ),
        _spelled_email,
    ),
    Rule(
        "spelled after 'email is'",
        re.compile(
            rf"email\s+is\s+({_HYPHENATED})\s+at\s+({_HYPHENATED})\s+dot\s+({_HYPHENATED})\b",
            re.IGNORECASE,
        ),
        _spelled_email,
    ),
]


def extract_email(text: str) -> str:
    return _first_value(EMAIL_RULES, text, "email").lower()


# --- Name ---

_WORD = r"[A-Z][a-zA-Z-]*[a-z]\b"
_INTRO = r"\b(?i:my name is|name is|this is|i am|i'?m)\s+"

GREETING_STOPLIST = {
    "hello", "hi", "hey", "yes", "no", "okay", "ok", "please", "thank",
    "thanks", "sorry", "excuse", "good", "well", "so", "um", "uh",
}


def _first_and_last(match: Match[str]) -> str:
    first, last = match.group(1), match.group(2)
    return f"{first} {last}" if last else first


def _leading_words(match: Match[str]) -> Optional[str]:
    candidate = match.group(1)
    if any(word.lower() in GREETING_STOPLIST for word in candidate.split()):
        return None
    return candidate


NAME_RULES = [
    Rule(
        "first name / last name",
        re.compile(
            rf"\b(?i:first name|first)\s+(?i:is\s+)?({_WORD})"
            rf"(?:.*?\b(?i:last name|last)\s+(?i:is\s+)?({_WORD}))?"
        ),
        _first_and_last,
    ),
    Rule(
        "introduction with full name",
        re.compile(rf"{_INTRO}({_WORD}\s+{_WORD}(?:\s+{_WORD})?)"),
        lambda m: m.group(1),
    ),
    Rule(
        "introduction with single name",
        re.compile(rf"{_INTRO}({_WORD})"),
        lambda m: m.group(1),
    ),
    Rule(
        "with/for/meeting",
        re.compile(
            rf"\b(?i:speaking with|talking to|on behalf of|meeting|with|for)\s+({_WORD}(?:\s+{_WORD})?)"
        ),
        lambda m: m.group(1),
    ),
    Rule(
        "greeting then here/calling",
        re.compile(rf"\b(?i:hello|hi),?\s+({_WORD}(?:\s+{_WORD})?)\s+(?i:here|calling|speaking)\b"),
        lambda m: m.group(1),
    ),
    Rule(
        "contact name is",
        re.compile(rf"\b(?i:contact name|name for contact|contact)\s+(?i:is\s+)?({_WORD}(?:\s+{_WORD})?)"),
        lambda m: m.group(1),
    ),
    Rule(
        "leading capitalized words",
        re.compile(rf"^({_WORD}(?:\s+{_WORD})?)"),
        _leading_words,
    ),
]


def extract_name(text: str) -> str:
    return _first_value(NAME_RULES, text, "name")


# --- Company ---

COMPANY_MIN_LENGTH = 3
COMPANY_MAX_LENGTH = 25
COMPANY_MAX_WORDS = 3

TRAILING_FILLER = {
    "and", "please", "thanks", "thank", "you", "so", "um", "uh", "okay", "ok",
    "phone", "email", "number", "contact", "my", "is",
}
COMPANY_STOPWORDS = {
    "a", "an", "and", "or", "but", "so", "is", "it", "its", "my", "our", "your",
    "i", "we", "you", "they", "that", "this", "not", "no", "just", "very",
    "really", "also", "called", "the", "with", "to", "for", "about", "in",
    "on", "at", "from", "me", "us",
}

_CAPITALIZED_PHRASE = r"[A-Z][\w.-]*(?:\s+(?:of\s+|and\s+|the\s+)?[A-Z][\w.-]*){0,3}"
_SUFFIXES = (
    r"Incorporated|Inc|LLC|Corporation|Corp|Company|Co|Ltd|Limited|Solutions|"
    r"Services|Group|Associates|Partners|Consulting"
)
_BUSINESS_TYPES = (
    r"Law Firm|Real Estate|Realty|Insurance|Dental|Medical|Construction|Plumbing|"
    r"Roofing|Landscaping|Technologies|Tech|Systems|Software|Digital|Media|Labs|"
    r"Enterprises|Industries|International|Global|Worldwide|Holdings|Ventures"
)


def _trim(value: str) -> str:
    return value.strip().rstrip(".-").strip()


def validate_company(candidate: str) -> Optional[str]:
    """Return a cleaned company name, or ``None`` when it does not look like one."""
    words = _trim(candidate).split()
    while words and words[-1].lower().strip(".") in TRAILING_FILLER:
        words.pop()
    if not words:
        return None
    name = _trim(" ".join(words))
    if not COMPANY_MIN_LENGTH <= len(name) <= COMPANY_MAX_LENGTH:
        return None
    if words[0].lower() in COMPANY_STOPWORDS:
        return None
    if len(words) > COMPANY_MAX_WORDS:
        return None
    return name


COMPANY_RULES = [
    Rule(
        "explicit company mention",
        re.compile(
            r"\b(?:company name|company|organization|organisation|business|employer)\s+"
            r"(?:is\s+)?(?:called\s+)?"
            r"([a-z0-9][a-z0-9.\s-]*?)"
            r"(?=\s+(?:and|please|phone|email|number|contact|my|i|we)\b|[.!?](?:\s|$)|$)",
            re.IGNORECASE,
        ),
        lambda m: validate_company(m.group(1)),
    ),
    Rule(
        "work at/for",
        re.compile(rf"\b(?i:i work|working|work|employed)\s+(?i:at|for|with)\s+({_CAPITALIZED_PHRASE})"),
        lambda m: _trim(m.group(1)),
    ),
    Rule(
        "i'm with/from",
        re.compile(rf"\b(?i:i'?m|i am)\s+(?i:with|from)\s+({_CAPITALIZED_PHRASE})"),
        lambda m: _trim(m.group(1)),
    ),
    Rule(
        "corporate suffix",
        re.compile(rf"\b((?:[A-Z][\w-]*\s+){{1,3}}(?:{_SUFFIXES}))\b"),
        lambda m: _trim(m.group(1)),
    ),
    Rule(
        "business type",
        re.compile(rf"\b((?:[A-Z][\w-]*\s+){{1,3}}(?:{_BUSINESS_TYPES}))\b"),
        lambda m: _trim(m.group(1)),
    ),
]


def extract_company(text: str) -> str:
    return _first_value(COMPANY_RULES, text, "company")


def extract_contact(transcript: str) -> ContactDraft:
    """Map a raw transcript to a :class:`ContactDraft`. Never raises."""
    clean = sanitize_input(transcript)
    email_text = sanitize_input(transcript, preserve_email=True)

    return ContactDraft(
        name=extract_name(clean),
        phone=extract_phone(clean),
        email=extract_email(email_text),
        company=extract_company(clean),
        notes=clean,
    )
