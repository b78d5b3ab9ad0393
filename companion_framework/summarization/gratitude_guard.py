"""
Local gratitude counter that corrects model undercounting.

This is a coarse same-line heuristic: a negation anywhere on a line removes
one match from that line. It is not negation-scope analysis.
"""

import re
from typing import Iterable, List, Union

from ..models.data_models import DEFAULT_ASSISTANT_LABEL, DEFAULT_USER_LABEL, Speaker, Transcript
from ..utils.logging_config import get_logger

logger = get_logger("gratitude_guard")

GRATITUDE_PATTERN = re.compile(
    r"\b(?:grateful|gratitude|thank\s+you|thanks|thankful|appreciate|appreciation)\b",
    re.IGNORECASE,
)
NEGATION_PATTERN = re.compile(
    r"\b(?:not|nothing|don't|didn't|isn't|ain't)\b",
    re.IGNORECASE,
)


def reconcile(model_reported: int, heuristic: int) -> int:
    """The guard only ever raises the model's count."""
    return max(max(0, int(model_reported)), max(0, int(heuristic)))


class GratitudeHeuristicGuard:
    """
    Counts gratitude expressions on user-attributed transcript lines.

    In rendered text a `Label:` prefix sets the speaker and an unlabelled
    line continues the previous speaker's turn (the user's before any
    label). Assistant lines are never counted.
    """

    def __init__(self,
                 assistant_label: str = DEFAULT_ASSISTANT_LABEL,
                 user_label: str = DEFAULT_USER_LABEL):
        self.assistant_label = assistant_label
        self.user_label = user_label
        self._assistant_prefix = re.compile(rf"^\s*{re.escape(assistant_label)}\s*:", re.IGNORECASE)
        self._user_prefix = re.compile(rf"^\s*{re.escape(user_label)}\s*:", re.IGNORECASE)

    def user_lines(self, transcript_text: str) -> List[str]:
        lines = []
        speaker = Speaker.USER
        for line in transcript_text.splitlines():
            if self._assistant_prefix.match(line):
                speaker = Speaker.ASSISTANT
            elif self._user_prefix.match(line):
                speaker = Speaker.USER
            if speaker == Speaker.USER and line.strip():
                lines.append(line)
        return lines

    @staticmethod
    def count_line(line: str) -> int:
        normalized = line.replace("’", "'")
        hits = len(GRATITUDE_PATTERN.findall(normalized))
        if hits and NEGATION_PATTERN.search(normalized):
            hits -= 1
        return max(0, hits)

    def count(self, transcript: Union[str, Transcript]) -> int:
        if isinstance(transcript, Transcript):
            return self.count_lines(
                line for text in transcript.user_texts() for line in text.splitlines()
            )
        return self.count_lines(self.user_lines(transcript))

    def count_lines(self, lines: Iterable[str]) -> int:
        return sum(self.count_line(line) for line in lines)

    def apply(self, transcript: Union[str, Transcript], model_reported: int) -> int:
        """Return `max(model_reported, heuristic count)` for rendered text or a Transcript."""
        heuristic = self.count(transcript)
        final = reconcile(model_reported, heuristic)
        if final > model_reported:
            logger.info(f"🙏 Gratitude count raised from {model_reported} to {final} by local heuristic")
        return final
