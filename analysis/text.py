from __future__ import annotations

import html
import re

# Words that never carry topical signal on their own.
STOP_WORDS = frozenset(
    "the a an and or but in on at to for of is it this that with from by as "
    "are was were be been being has have had do does did will would can could may "
    "might shall should must not no so if then than too also just about up its my "
    "your his her our their what which who whom how when where why all each "
    "every both few more most other some such only own same into over after "
    "before between through during above below out off again further once "
    "here there these those am i me we they them he she you it's i'm don't "
    "very now any like using use used get got getting one two new first "
    "really need want think know see end top try http https www com org net "
    "reddit comments deleted removed amp nbsp quot etc something anything "
    "question update please thanks guys anyone".split()
)

_URL_RE = re.compile(r"https?://\S+")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_WORD_RE = re.compile(r"[a-z0-9]+(?:'[a-z]+)?")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+|\n+")
_TAG_RE = re.compile(r"<[^>]+>")
_MD_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_MD_FORMAT_RE = re.compile(r"[*_~`#>]")
_INLINE_SPACE_RE = re.compile(r"[ \t\r\f\v]+")


def normalize_title(title: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    cleaned = _NON_ALNUM_RE.sub(" ", title.lower())
    return " ".join(cleaned.split())


def tokenize(text: str) -> list[str]:
    """Lowercased word tokens with URLs removed; stop-words are kept."""
    return _WORD_RE.findall(_URL_RE.sub(" ", text.lower()))


def content_tokens(text: str) -> list[str]:
    """Tokens longer than two characters that are not stop-words."""
    cleaned = _NON_ALNUM_RE.sub(" ", _URL_RE.sub(" ", text.lower()))
    return [w for w in cleaned.split() if len(w) > 2 and w not in STOP_WORDS]


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_SPLIT_RE.split(text or "") if s and s.strip()]


def truncate(text: str, limit: int) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def clean_markup(text: str, keep_newlines: bool = False) -> str:
    """Strip HTML tags, markdown links/formatting and collapse whitespace."""
    text = html.unescape(_TAG_RE.sub(" ", text or ""))
    text = _MD_LINK_RE.sub(r"\1", text)
    text = _MD_FORMAT_RE.sub("", text)
    if keep_newlines:
        lines = (_INLINE_SPACE_RE.sub(" ", line).strip() for line in text.split("\n"))
        return "\n".join(line for line in lines if line)
    return " ".join(text.split())
