"""
Governance Rules
================
Deterministic rules applied after classification to correct known
classifier drift. Every function here is pure.

Rules:
- Title normalization (abbreviations, capitalization, comma-only punctuation)
- Title keyword -> job level rank
- Title keyword -> function row
- Confidence -> intent signal
- LinkedIn profile / employer matching
"""

import re
from typing import Optional, List, Iterable

from ..models.schemas import IntentSignal, EvidenceFragment, Location
from ..config.settings import (
    TITLE_ABBREVIATIONS,
    TITLE_LOWERCASE_WORDS,
    LEVEL_KEYWORD_CLASSES,
    DEFAULT_LEVEL_RANK,
    FUNCTION_KEYWORDS,
    MARKETING_TITLE_PATTERN,
    INTENT_THRESHOLDS,
    COUNTRY_REGION_MAP,
    COUNTRY_ALIASES,
    STATE_COUNTRY_MAP,
    REGIONS,
)

_LEVEL_PATTERNS = [
    (rank, [re.compile(p, re.IGNORECASE) for p in patterns])
    for rank, patterns in LEVEL_KEYWORD_CLASSES
]

_FUNCTION_PATTERNS = {
    f0: [re.compile(p, re.IGNORECASE) for p in patterns]
    for f0, patterns in FUNCTION_KEYWORDS.items()
}

_MARKETING = re.compile(MARKETING_TITLE_PATTERN, re.IGNORECASE)

_LINKEDIN_PROFILE = re.compile(
    r"https?://(?:[a-z]{2,3}\.)?linkedin\.com/in/[A-Za-z0-9\-_%]+/?",
    re.IGNORECASE,
)

# Seniority phrases that lead a canonical title, longest first
_SENIORITY_PHRASES = [
    "Executive Vice President",
    "Senior Vice President",
    "Assistant Vice President",
    "Vice President",
    "Executive Director",
    "Managing Director",
    "Senior Director",
    "President",
    "Director",
]

_LOCATION_WORDS = (
    {name.lower() for name in COUNTRY_REGION_MAP}
    | set(COUNTRY_ALIASES)
    | set(STATE_COUNTRY_MAP)
    | {region.lower() for region in REGIONS}
    | {"emea", "latam", "north america", "south america", "global", "asia pacific"}
)

_FIRM_SUFFIXES = {
    "inc", "incorporated", "corp", "corporation", "co", "company", "llc", "ltd",
    "limited", "plc", "gmbh", "ag", "sa", "group", "holdings", "the",
}


# =============================================================================
# Title normalization
# =============================================================================

def normalize_title(raw_title: Optional[str]) -> str:
    """
    Normalize a job title into canonical institutional form.

    Abbreviations are expanded, words are capitalized, commas are the only
    punctuation kept and segments are ordered Seniority, Department, Location.

    Example:
        "SVP - sales & marketing / EMEA" -> "Senior Vice President, Sales and Marketing, EMEA"
    """
    if not raw_title or not raw_title.strip():
        return ""

    text = raw_title.strip()

    # Separators become segment boundaries
    text = re.sub(r"\s*[/|;]\s*", ",", text)
    text = re.sub(r"\s+[-–—]+\s+", ",", text)
    text = re.sub(r"\s*\(\s*", ",", text)
    text = text.replace(")", "")

    segments = []
    for segment in text.split(","):
        words = _expand_words(segment)
        if words:
            segments.append(words)

    ordered: List[str] = []
    locations: List[str] = []
    for index, words in enumerate(segments):
        phrase = _capitalize(words, first_segment=(index == 0))
        if phrase.lower() in _LOCATION_WORDS:
            locations.append(phrase)
            continue
        phrase, peeled = _peel_locations(phrase)
        locations.extend(peeled)
        ordered.extend(_split_seniority(phrase))

    return ", ".join(ordered + locations)


def _expand_words(segment: str) -> List[str]:
    words: List[str] = []
    for token in segment.split():
        key = token.lower().strip(".:")
        if key in TITLE_ABBREVIATIONS:
            words.extend(TITLE_ABBREVIATIONS[key].split())
            continue
        token = token.replace("&", " and ")
        token = re.sub(r"(?<=\w)-(?=\w)", " ", token)
        for piece in token.split():
            piece = re.sub(r"[^\w]", "", piece)
            if not piece:
                continue
            expanded = TITLE_ABBREVIATIONS.get(piece.lower())
            words.extend(expanded.split() if expanded else [piece])
    return words


def _capitalize(words: List[str], first_segment: bool) -> str:
    out = []
    for index, word in enumerate(words):
        lower = word.lower()
        if lower in TITLE_LOWERCASE_WORDS and not (first_segment and index == 0):
            out.append(lower)
        elif word.isupper() and 1 < len(word) <= 4:
            # Acronyms such as SEO or EMEA stay upper case
            out.append(word)
        else:
            out.append(word[:1].upper() + word[1:].lower())
    return " ".join(out)


def _split_seniority(phrase: str) -> List[str]:
    """Move a leading or trailing seniority phrase into its own segment"""
    if "Chief" in phrase.split():
        return [phrase]
    for seniority in _SENIORITY_PHRASES:
        if phrase == seniority:
            return [phrase]
        if phrase.startswith(seniority + " "):
            rest = phrase[len(seniority):].strip()
            rest = re.sub(r"^(of|for|and)\s+", "", rest, flags=re.IGNORECASE)
            return [seniority, _upper_first(rest)] if rest else [seniority]
        if phrase.endswith(" " + seniority):
            rest = phrase[: -len(seniority)].strip()
            return [seniority, _upper_first(rest)]
    return [phrase]


def _upper_first(text: str) -> str:
    return text[:1].upper() + text[1:]


def _peel_locations(phrase: str):
    """Split leading and trailing location words off a phrase, e.g. "EMEA Marketing Director" """
    words = phrase.split()
    peeled: List[str] = []
    for size in (2, 1):
        head = " ".join(words[:size])
        if len(words) > size and len(head) > 2 and head.lower() in _LOCATION_WORDS:
            peeled.append(head)
            words = words[size:]
            break
    for size in (2, 1):
        tail = " ".join(words[-size:])
        if len(words) > size and len(tail) > 2 and tail.lower() in _LOCATION_WORDS:
            peeled.append(tail)
            words = words[:-size]
            break
    if peeled:
        while len(words) > 1 and words[-1].lower() in TITLE_LOWERCASE_WORDS:
            words.pop()
    return _upper_first(" ".join(words)), peeled


# =============================================================================
# Level & function rules
# =============================================================================

def level_rank_for_title(*titles: Optional[str]) -> int:
    """
    Map title keyword classes to a fixed rank.

    Founder/Owner/Board/C-level -> 1, President/EVP/SVP/VP -> 2,
    (Executive) Director -> 3, anything else -> 4. Each title is ranked on
    its own and the most senior result wins, so only pass titles that
    describe the same role.
    """
    ranks = [_matched_rank(t) for t in titles if t]
    matched = [rank for rank in ranks if rank is not None]
    return min(matched) if matched else DEFAULT_LEVEL_RANK


def _matched_rank(title: str) -> Optional[int]:
    text = title.lower()
    for rank, patterns in _LEVEL_PATTERNS:
        if any(p.search(text) for p in patterns):
            return rank
    return None


def is_marketing_title(*titles: Optional[str]) -> bool:
    return any(t and _MARKETING.search(t) for t in titles)


def function_f0_for_title(*titles: Optional[str]) -> Optional[str]:
    """Best master function for a title, or None when nothing matches"""
    text = " ".join(t for t in titles if t)
    if not text:
        return None
    if _MARKETING.search(text):
        return "Marketing"
    best, best_hits = None, 0
    for f0, patterns in _FUNCTION_PATTERNS.items():
        hits = sum(1 for p in patterns if p.search(text))
        if hits > best_hits:
            best, best_hits = f0, hits
    return best


# =============================================================================
# Intent
# =============================================================================

def clamp_confidence(value: Optional[float]) -> float:
    """Clamp to 0-100 without rounding; thresholds compare the raw score"""
    if value is None:
        return 0.0
    return max(0.0, min(100.0, float(value)))


def intent_signal_for(confidence: float) -> IntentSignal:
    """> 70 High, 40-70 Medium, < 40 Low"""
    if confidence > INTENT_THRESHOLDS["high_above"]:
        return IntentSignal.HIGH
    if confidence >= INTENT_THRESHOLDS["medium_min"]:
        return IntentSignal.MEDIUM
    return IntentSignal.LOW


# =============================================================================
# LinkedIn
# =============================================================================

def canonical_linkedin_url(url: Optional[str]) -> Optional[str]:
    """Return the normalized profile URL, or None if it is not a /in/ profile"""
    if not url:
        return None
    match = _LINKEDIN_PROFILE.search(url.strip())
    if not match:
        return None
    slug = match.group(0).rstrip("/").rsplit("/in/", 1)[1]
    return f"https://www.linkedin.com/in/{slug}"


def find_linkedin_urls(text: str) -> List[str]:
    seen: List[str] = []
    for match in _LINKEDIN_PROFILE.finditer(text or ""):
        url = canonical_linkedin_url(match.group(0))
        if url and url not in seen:
            seen.append(url)
    return seen


def firm_tokens(firm_name: str) -> List[str]:
    words = re.findall(r"[a-z0-9]+", (firm_name or "").lower())
    return [w for w in words if w not in _FIRM_SUFFIXES]


def mentions_firm(firm_name: str, text: Optional[str]) -> bool:
    """True when every distinctive word of the firm name appears in text"""
    tokens = firm_tokens(firm_name)
    if not tokens or not text:
        return False
    haystack = set(re.findall(r"[a-z0-9]+", text.lower()))
    return all(token in haystack for token in tokens)


def linkedin_employer_matches(
    url: str,
    firm_name: str,
    fragments: Iterable[EvidenceFragment],
    reported_employer: Optional[str] = None,
) -> bool:
    """
    A profile URL may only be attributed to the lead when its evidence names
    the current firm. A reported employer that differs from the firm always
    disqualifies the URL.
    """
    if reported_employer:
        return mentions_firm(firm_name, reported_employer)
    for fragment in fragments:
        if canonical_linkedin_url(fragment.url) != url:
            continue
        text = " ".join(filter(None, [fragment.title, fragment.snippet]))
        if _current_employer_text(text, firm_name):
            return True
    return False


def _current_employer_text(text: str, firm_name: str) -> bool:
    if not mentions_firm(firm_name, text):
        return False
    # "former X at Acme" / "ex-Acme" / "previously at Acme" do not count.
    # The marker must reach the firm within one clause of at most four words.
    lowered = text.lower()
    firm = firm_tokens(firm_name)[0]
    former = re.search(
        r"\b(?:former(?:ly)?|ex|previously|past)\b[\s-]+(?:(?!now\b)[\w&'-]+\s+){0,4}?" + re.escape(firm) + r"\b",
        lowered,
    )
    return former is None


# =============================================================================
# Location
# =============================================================================

def canonical_country(name: Optional[str]) -> Optional[str]:
    """Canonical country name for a known country or alias, else None"""
    if not name or not name.strip():
        return None
    key = name.strip().lower()
    if key in COUNTRY_ALIASES:
        return COUNTRY_ALIASES[key]
    for country in COUNTRY_REGION_MAP:
        if country.lower() == key:
            return country
    return None


def country_for_state(state: Optional[str]) -> Optional[str]:
    if not state:
        return None
    return STATE_COUNTRY_MAP.get(state.strip().lower())


def parse_headquarters(text: Optional[str]) -> Location:
    """
    Split a free-text headquarters address into location fields.

    Handles "City, ST 12345, Country", "City, State, Country" and
    "City, ST" shapes; anything else lands in city.
    """
    if not text or not text.strip():
        return Location()

    parts = [p.strip() for p in text.split(",") if p.strip()]
    country = None
    if len(parts) > 1 and canonical_country(parts[-1]):
        country = canonical_country(parts.pop())

    state, zip_code = None, None
    if len(parts) > 1:
        last = parts.pop()
        match = re.match(r"^(.*?)\s*(\d{4,6}(?:-\d{4})?)$", last)
        if match:
            state = match.group(1) or None
            zip_code = match.group(2)
        else:
            state = last

    city = parts[-1] if parts else None
    return Location(city=city, state=state, country=country, zip=zip_code)
