"""
Spelling Pattern Library.

A static catalog of spelling rules. Each pattern has:
- A coaching template (explanation, contrast pairs, quiz question/answer)
- A region detector mapping a lowercase word to half-open [start, end) ranges
  where the rule applies

Catalog order matters: it breaks ties in the matcher, and the first pattern
whose detector fires is the word's "simple" pattern.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

Region = tuple[int, int]
Detector = Callable[[str], list[Region]]


@dataclass(frozen=True)
class Pattern:
    """A named spelling rule plus its region detector."""
    id: str
    explanation: str
    contrast: tuple[str, ...]
    question: str
    answer: str
    detector: Detector

    def regions(self, word: str) -> list[Region]:
        return self.detector(word.lower())

    def matches(self, word: str) -> bool:
        return bool(self.regions(word))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "explanation": self.explanation,
            "contrast": list(self.contrast),
            "question": self.question,
            "answer": self.answer,
        }


def _spans(regex: str, group: int = 0) -> Detector:
    """Detector returning the span of every match of `regex`."""
    compiled = re.compile(regex)

    def detect(word: str) -> list[Region]:
        return [m.span(group) for m in compiled.finditer(word)]

    return detect


def _silent_e(word: str) -> list[Region]:
    n = len(word)
    if n <= 3 or not word.endswith("e") or word.endswith("ee"):
        return []
    # vowel-consonant-e: the e works on the vowel two letters back
    if re.search(r"[aeiouy][^aeiouy]e$", word):
        return [(n - 3, n)]
    return [(n - 1, n)]


def _min_length(detector: Detector, length: int) -> Detector:
    def detect(word: str) -> list[Region]:
        return detector(word) if len(word) >= length else []

    return detect


PATTERNS: tuple[Pattern, ...] = (
    Pattern(
        id="silent-e",
        explanation="The silent-e changes the vowel sound.",
        contrast=("cap → cape", "tap → tape"),
        question='Which one says /ā/ like "tape"?',
        answer="tape",
        detector=_silent_e,
    ),
    Pattern(
        id="tion-sion",
        explanation="The -tion and -sion endings sound similar but are spelled differently.",
        contrast=("action → /ak-shun/", "mission → /mish-un/"),
        question="Which ending makes the /shun/ sound?",
        answer="tion",
        detector=_spans(r"[ts]ion"),
    ),
    Pattern(
        id="double-consonant",
        explanation="Sometimes we double consonants to keep the vowel sound short.",
        contrast=("hop → hopped", "tap → tapped"),
        question='Why do we double the "p" in "hopped"?',
        answer='To keep the "o" short',
        detector=_spans(r"([b-df-hj-np-tv-z])\1"),
    ),
    Pattern(
        id="ck-ending",
        explanation='After a short vowel, we use "ck" instead of just "k".',
        contrast=("back", "pack", "duck"),
        question='What comes after the short vowel in "back"?',
        answer="ck",
        detector=_spans(r"ck"),
    ),
    Pattern(
        id="ee-ea",
        explanation='Both "ee" and "ea" can make the long /ē/ sound.',
        contrast=("see → sea", "meet → meat"),
        question='Which spelling makes the /ē/ sound in "sea"?',
        answer="ea",
        detector=_spans(r"e[ea]"),
    ),
    Pattern(
        id="igh",
        explanation='The letters "igh" work together to say the long /ī/ sound; the g and h are silent.',
        contrast=("hi → high", "nit → night"),
        question='Which letters make the /ī/ sound in "light"?',
        answer="igh",
        detector=_spans(r"igh"),
    ),
    Pattern(
        id="ie-ei",
        explanation='"i" usually comes before "e", except after "c" or when it sounds like /ā/.',
        contrast=("friend", "receive", "their"),
        question='Which comes first in "believe": i or e?',
        answer="i",
        detector=_spans(r"ie|ei"),
    ),
    Pattern(
        id="ou-ow",
        explanation='"ou" and "ow" can both say /ow/; "ow" is common at the end of a word.',
        contrast=("out → cow", "loud → crowd"),
        question='Which spelling ends the word "now"?',
        answer="ow",
        detector=_spans(r"o[uw]"),
    ),
    Pattern(
        id="ai-ay",
        explanation='"ai" and "ay" both say /ā/; "ay" usually comes at the end of a word.',
        contrast=("rain → ray", "pail → play"),
        question='Which spelling ends the word "day"?',
        answer="ay",
        detector=_spans(r"a[iy]"),
    ),
    Pattern(
        id="oi-oy",
        explanation='"oi" and "oy" both say /oy/; "oy" usually comes at the end of a word.',
        contrast=("coin → boy", "soil → toy"),
        question='Which spelling is in the middle of "point"?',
        answer="oi",
        detector=_spans(r"o[iy]"),
    ),
    Pattern(
        id="ph",
        explanation='The letters "ph" make the /f/ sound.',
        contrast=("fone → phone", "foto → photo"),
        question='Which letters make the /f/ sound in "graph"?',
        answer="ph",
        detector=_spans(r"ph"),
    ),
    Pattern(
        id="silent-letters",
        explanation="Some letter pairs hide a silent letter you still have to write.",
        contrast=("nee → knee", "rite → write", "lam → lamb"),
        question='Which letter is silent in "knot"?',
        answer="k",
        detector=_spans(r"^(?:kn|wr|gn)|mb$"),
    ),
    Pattern(
        id="wh",
        explanation='Many question words start with "wh" even though you only hear /w/.',
        contrast=("wen → when", "wy → why"),
        question='Which letters start the word "where"?',
        answer="wh",
        detector=_spans(r"^wh"),
    ),
    Pattern(
        id="soft-c",
        explanation='When "c" comes before e, i or y it usually says /s/.',
        contrast=("cat → city", "cone → cent"),
        question='What sound does the "c" make in "cent"?',
        answer="/s/",
        detector=_spans(r"c(?=[eiy])"),
    ),
    Pattern(
        id="soft-g",
        explanation='When "g" comes before e, i or y it often says /j/.',
        contrast=("go → gem", "gum → giant"),
        question='What sound does the "g" make in "gem"?',
        answer="/j/",
        detector=_spans(r"g(?=[eiy])"),
    ),
    Pattern(
        id="le-ending",
        explanation='Many words end in a consonant plus "le", like "table".',
        contrast=("tabel → table", "littel → little"),
        question='How does the word "candle" end?',
        answer="le",
        detector=_spans(r"[b-df-hj-np-tv-z](le)$", group=1),
    ),
    Pattern(
        id="tch",
        explanation='After a short vowel, the /ch/ sound is usually spelled "tch".',
        contrast=("much → match", "rich → ditch"),
        question='Which letters end the word "catch"?',
        answer="tch",
        detector=_spans(r"tch"),
    ),
    Pattern(
        id="dge",
        explanation='After a short vowel, the /j/ sound is usually spelled "dge".',
        contrast=("age → edge", "huge → fudge"),
        question='Which letters end the word "bridge"?',
        answer="dge",
        detector=_spans(r"dge"),
    ),
    Pattern(
        id="qu",
        explanation='The letter "q" is almost always followed by "u".',
        contrast=("qick → quick", "qeen → queen"),
        question='Which letter always follows "q"?',
        answer="u",
        detector=_spans(r"qu"),
    ),
    Pattern(
        id="r-controlled",
        explanation='When a vowel is followed by "r", the r changes the vowel sound.',
        contrast=("cat → car", "hen → her", "fist → first"),
        question='Which vowel comes before the "r" in "bird"?',
        answer="i",
        detector=_spans(r"[aeiou]r"),
    ),
    Pattern(
        id="ed-ending",
        explanation='The past-tense ending is spelled "ed" even when it sounds like /t/ or /d/.',
        contrast=("jumpt → jumped", "playd → played"),
        question='How do you spell the ending of "walked"?',
        answer="ed",
        detector=_min_length(_spans(r"ed$"), 4),
    ),
    Pattern(
        id="ing-ending",
        explanation='The ending "ing" keeps the same spelling on every word.',
        contrast=("jump → jumping", "read → reading"),
        question='Which letters end the word "singing"?',
        answer="ing",
        detector=_min_length(_spans(r"ing$"), 5),
    ),
    Pattern(
        id="ly-ful-suffix",
        explanation='The suffixes "-ly" and "-ful" are added to the end of a base word; "-ful" has only one l.',
        contrast=("sad → sadly", "help → helpful"),
        question='How many l\'s are in the ending of "careful"?',
        answer="one",
        detector=_min_length(_spans(r"(?:ly|ful)$"), 5),
    ),
)

_BY_ID: dict[str, Pattern] = {pattern.id: pattern for pattern in PATTERNS}


def get_pattern(pattern_id: str) -> Pattern | None:
    return _BY_ID.get(pattern_id)


def detect_pattern(word: str) -> Pattern | None:
    """First catalog pattern whose detector fires on `word`, ignoring errors."""
    for pattern in PATTERNS:
        if pattern.matches(word):
            return pattern
    return None
