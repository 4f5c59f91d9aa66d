"""Lookup from ASR time pairs to recognized words."""

from __future__ import annotations

from storysense.ingestion.models import RawSegment, RawTranscript, RecognizedWord


class WordIndex:
    """Maps ``(start_time, end_time)`` to the best-alternative word.

    When two items share a time pair the first one wins.
    """

    def __init__(self, words: dict[tuple[str, str], RecognizedWord]) -> None:
        self._words = words

    @classmethod
    def build(cls, transcript: RawTranscript) -> WordIndex:
        words: dict[tuple[str, str], RecognizedWord] = {}
        for item in transcript.items:
            if item.start_time is None or item.end_time is None:
                continue
            words.setdefault(
                (item.start_time, item.end_time),
                RecognizedWord(
                    content=item.content,
                    confidence=item.confidence,
                    start_time=item.start_time,
                    end_time=item.end_time,
                ),
            )
        return cls(words)

    def __len__(self) -> int:
        return len(self._words)

    def resolve(self, segment: RawSegment) -> list[RecognizedWord]:
        """Return the segment's words in reference order.

        References with no matching item are alignment gaps and are skipped.
        """
        resolved: list[RecognizedWord] = []
        for ref in segment.item_refs:
            word = self._words.get(ref)
            if word is not None:
                resolved.append(word)
        return resolved
