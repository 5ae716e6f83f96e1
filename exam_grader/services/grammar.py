"""
Grammar of scoring-oracle replies.

The prompts we send ask the oracle to answer in a fixed textual shape, and
this module is the only place that reads that shape back. Version 1:

    SCORE: <number>/<scale>
    Question <n>: <verdict> - Correct answer: <text> - <explanation>

``<number>`` and ``<scale>`` accept ``.`` or ``,`` as the decimal mark.
``<verdict>`` is one of correct / incorrect / unanswered. The Vietnamese
keywords used by the first prompt generation (``ĐIỂM SỐ``, ``Câu``,
``Đúng`` / ``Sai`` / ``Chưa trả lời``, ``Đáp án đúng``) are accepted as
well. Keywords are case-insensitive and may be wrapped in markdown bold.
Each verdict occupies exactly one line, optionally behind a list marker
such as ``-`` or ``1.``; text on the following lines is never part of it.
"""

import logging
import re
from dataclasses import dataclass

from exam_grader.core.errors import ParseMismatch

logger = logging.getLogger(__name__)

GRAMMAR_VERSION = 1

_NUMBER = r"\d+(?:[.,]\d+)?"
_SCORE_KEYWORDS = r"(?:SCORE|ĐIỂM\s+SỐ|DIEM\s+SO)"
_QUESTION_KEYWORDS = r"(?:Question|Câu)"
_CORRECT_KEYWORDS = r"(?:Correct\s+answer|Đáp\s+án\s+đúng)"
_VERDICTS = r"(?:correct|incorrect|unanswered|Đúng|Sai|Chưa\s+trả\s+lời)"

_SCORE_RE = re.compile(
    rf"^[\s*#>]*{_SCORE_KEYWORDS}\s*\**\s*:\s*\**\s*(?P<value>{_NUMBER})\s*/\s*(?P<scale>{_NUMBER})",
    re.IGNORECASE | re.MULTILINE,
)

_VERDICT_ALIASES = {
    "correct": "correct",
    "đúng": "correct",
    "incorrect": "incorrect",
    "sai": "incorrect",
    "unanswered": "unanswered",
    "chưa trả lời": "unanswered",
}


@dataclass(frozen=True)
class ScoreLine:
    value: float
    scale: float

    def normalized(self, to_scale: float) -> float:
        """Rescale onto ``to_scale`` and clamp into [0, to_scale]."""
        if self.scale <= 0:
            return 0.0
        value = self.value if self.scale == to_scale else self.value * to_scale / self.scale
        return min(max(value, 0.0), float(to_scale))


@dataclass(frozen=True)
class Verdict:
    question_number: int
    status: str
    correct_answer: str
    explanation: str


def _to_float(raw: str) -> float:
    return float(raw.replace(",", "."))


def parse_score_line(reply: str) -> ScoreLine:
    match = _SCORE_RE.search(reply or "")
    if not match:
        raise ParseMismatch("No SCORE line found in oracle reply")
    return ScoreLine(value=_to_float(match.group("value")), scale=_to_float(match.group("scale")))


def extract_score(reply: str, expected_scale: float | None = None) -> float:
    """
    Score from the ``SCORE:`` line, or 0 when the reply has none.

    With ``expected_scale`` the value is clamped into [0, expected_scale];
    the scale written in the reply is not used for rescaling here.
    """
    try:
        line = parse_score_line(reply)
    except ParseMismatch:
        logger.warning("Oracle reply has no SCORE line; recording 0")
        return 0.0
    if expected_scale is None:
        return line.value
    return min(max(line.value, 0.0), float(expected_scale))


def _verdict_re(question_number: int) -> re.Pattern:
    return re.compile(
        rf"^[ \t*#>-]*(?:\d+[.)][ \t]*)?[ \t*]*"
        rf"{_QUESTION_KEYWORDS}[ \t]*{question_number}[ \t]*\**[ \t]*:[ \t]*\**[ \t]*(?P<verdict>{_VERDICTS})\**"
        rf"[ \t]+-[ \t]+\**{_CORRECT_KEYWORDS}[ \t]*\**[ \t]*:[ \t]*(?P<correct>[^\r\n]+?)"
        rf"(?:[ \t]+-[ \t]+(?P<explanation>[^\r\n]+?))?"
        rf"[ \t\r]*$",
        re.IGNORECASE | re.MULTILINE,
    )


def parse_verdict(reply: str, question_number: int) -> Verdict:
    """Find the verdict line for 1-based ``question_number``."""
    match = _verdict_re(question_number).search(reply or "")
    if not match:
        raise ParseMismatch(f"No verdict line for question {question_number}")
    verdict_key = re.sub(r"\s+", " ", match.group("verdict").strip().lower())
    return Verdict(
        question_number=question_number,
        status=_VERDICT_ALIASES.get(verdict_key, "unanswered"),
        correct_answer=match.group("correct").strip().strip("*").strip(),
        explanation=(match.group("explanation") or "").strip(),
    )


def find_verdicts(reply: str, question_count: int) -> dict[int, Verdict]:
    """Verdicts keyed by 1-based question number; missing questions are left out."""
    verdicts: dict[int, Verdict] = {}
    for number in range(1, question_count + 1):
        try:
            verdicts[number] = parse_verdict(reply, number)
        except ParseMismatch:
            logger.warning("Oracle reply has no verdict for question %s", number)
    return verdicts
