"""String similarity helpers for comparing venue names and addresses."""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCTUATION_RE = re.compile(r"[^\w\s]")
# UK pub-naming noise; "&" never survives punctuation stripping but stays listed.
_NOISE_TOKENS_RE = re.compile(r"\b(pub|inn|bar|the|&|ltd|co|company)\b")
_NON_DIGIT_RE = re.compile(r"\D")


def normalise_string(value: str | None) -> str:
    if not value:
        return ""
    text = _WHITESPACE_RE.sub(" ", value.lower().strip())
    text = _PUNCTUATION_RE.sub("", text)
    text = _NOISE_TOKENS_RE.sub("", text)
    return text.strip()


def extract_tokens(value: str | None) -> list[str]:
    if not value:
        return []
    return [token for token in value.lower().strip().split() if token]


def token_overlap(a: str | None, b: str | None) -> int:
    return len(set(extract_tokens(a)) & set(extract_tokens(b)))


def jaro_distance(s1: str, s2: str) -> float:
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    match_window = max(len(s1), len(s2)) // 2 - 1
    if match_window < 0:
        return 0.0

    s1_matches = [False] * len(s1)
    s2_matches = [False] * len(s2)
    matches = 0

    for i, char in enumerate(s1):
        start = max(0, i - match_window)
        end = min(i + match_window + 1, len(s2))
        for j in range(start, end):
            if s2_matches[j] or s2[j] != char:
                continue
            s1_matches[i] = True
            s2_matches[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    transpositions = 0
    k = 0
    for i, char in enumerate(s1):
        if not s1_matches[i]:
            continue
        while not s2_matches[k]:
            k += 1
        if char != s2[k]:
            transpositions += 1
        k += 1

    return (
        matches / len(s1)
        + matches / len(s2)
        + (matches - transpositions / 2) / matches
    ) / 3


def jaro_winkler(s1: str, s2: str) -> float:
    jaro = jaro_distance(s1, s2)
    if jaro < 0.7:
        return jaro

    prefix_length = 0
    for a, b in zip(s1[:4], s2[:4]):
        if a != b:
            break
        prefix_length += 1

    return jaro + 0.1 * prefix_length * (1 - jaro)


def extract_digits(value: str | None) -> str:
    if not value:
        return ""
    return _NON_DIGIT_RE.sub("", value)


def extract_email_local(email: str | None) -> str:
    if not email:
        return ""
    at_index = email.find("@")
    return email[:at_index].lower() if at_index > 0 else ""


def normalise_postcode_key(postcode: str | None) -> str:
    """Whitespace-free uppercase postcode used purely as an equality key."""
    if not postcode:
        return ""
    return _WHITESPACE_RE.sub("", postcode).upper()
