"""
Transcript chunking for the summarization map step.
"""

from dataclasses import dataclass, field
from typing import Iterable, List

from ..models.data_models import Turn, DEFAULT_USER_LABEL, DEFAULT_ASSISTANT_LABEL

DEFAULT_CHUNK_BUDGET = 8000


@dataclass
class TranscriptChunk:
    """Contiguous run of turns; boundaries only fall between turns."""
    turns: List[Turn] = field(default_factory=list)
    rendered_length: int = 0
    user_label: str = DEFAULT_USER_LABEL
    assistant_label: str = DEFAULT_ASSISTANT_LABEL

    def render(self) -> str:
        return "".join(t.render(self.user_label, self.assistant_label) + "\n" for t in self.turns)

    def __len__(self) -> int:
        return len(self.turns)


def chunk_transcript(turns: Iterable[Turn],
                     budget: int = DEFAULT_CHUNK_BUDGET,
                     user_label: str = DEFAULT_USER_LABEL,
                     assistant_label: str = DEFAULT_ASSISTANT_LABEL) -> List[TranscriptChunk]:
    """
    Greedily pack turns into chunks of at most `budget` rendered characters.

    A turn is never split: one that alone exceeds the budget gets a chunk of
    its own. Always returns at least one (possibly empty) chunk.

    Raises:
        ValueError: If budget < 1
    """
    if budget < 1:
        raise ValueError(f"Chunk budget must be at least 1 character, got {budget}")

    chunks: List[TranscriptChunk] = []
    current = TranscriptChunk(user_label=user_label, assistant_label=assistant_label)

    for turn in turns:
        length = turn.rendered_length(user_label, assistant_label)
        if current.turns and current.rendered_length + length > budget:
            chunks.append(current)
            current = TranscriptChunk(user_label=user_label, assistant_label=assistant_label)
        current.turns.append(turn)
        current.rendered_length += length

    if current.turns or not chunks:
        chunks.append(current)
    return chunks
