"""
Spelling lessons.

Components:
- PATTERNS: rule catalog with region detectors
- find_best_pattern: picks the rule whose regions overlap the learner's errors
- generate_lesson: turns a mini-set's misses into one short lesson
"""
from speller.lessons.generator import Lesson, MissedWord, generate_lesson
from speller.lessons.matcher import PatternMatch, find_best_pattern
from speller.lessons.patterns import PATTERNS, Pattern, detect_pattern, get_pattern

__all__ = [
    "Lesson",
    "MissedWord",
    "generate_lesson",
    "PatternMatch",
    "find_best_pattern",
    "PATTERNS",
    "Pattern",
    "detect_pattern",
    "get_pattern",
]
