import re
from typing import Callable, NamedTuple, Optional

from vaderSentiment.vaderSentiment import NEGATE, SentimentIntensityAnalyzer

analyzer = SentimentIntensityAnalyzer()

POSITIVE = "Positive"
SLIGHTLY_POSITIVE = "Slightly Positive"
NEUTRAL = "Neutral"
SLIGHTLY_NEGATIVE = "Slightly Negative"
NEGATIVE = "Negative"

MOOD_LABELS = (POSITIVE, SLIGHTLY_POSITIVE, NEUTRAL, SLIGHTLY_NEGATIVE, NEGATIVE)

_TOKEN = re.compile(r"[a-z']+")
_NEGATIONS = frozenset(NEGATE)


class MoodResult(NamedTuple):
    label: str
    score: int


def lexicon_score(text: str) -> int:
    """Additive polarity of the words found in the VADER lexicon.

    A word directly after a negation ("not", "never", "don't", ...) counts with
    its sign flipped. The sum is rounded to an integer.
    """
    total = 0.0
    previous = None
    for token in _TOKEN.findall((text or "").lower()):
        valence = analyzer.lexicon.get(token)
        if valence is not None:
            if previous is not None and (previous in _NEGATIONS or previous.endswith("n't")):
                valence = -valence
            total += valence
        previous = token
    return int(round(total))


def label_for_score(score: int) -> str:
    if score > 2:
        return POSITIVE
    if score > 0:
        return SLIGHTLY_POSITIVE
    if score == 0:
        return NEUTRAL
    if score >= -2:
        return SLIGHTLY_NEGATIVE
    return NEGATIVE


def classify(text: str, scorer: Optional[Callable[[str], int]] = None) -> MoodResult:
    """Map text to a mood label. Never raises for string input; "" is Neutral."""
    score = int((scorer or lexicon_score)(text or ""))
    return MoodResult(label=label_for_score(score), score=score)
