"""Tests for provider payload parsing and utterance assembly."""

from __future__ import annotations

from voicekeeper.ingestion.models import TranscriptSegment, Utterance, Word
from voicekeeper.ingestion.parsers import (
    merge_segments,
    parse_final_transcript,
    parse_provider_word,
    parse_realtime_messages,
    parse_utterances,
    parse_words,
)


def _final(text: str, speaker: str | None, start_ms: int) -> dict:
    words = [
        {"text": t, "start": start_ms + i * 500, "end": start_ms + i * 500 + 400, "confidence": 0.9, "speaker": speaker}
        for i, t in enumerate(text.split())
    ]
    return {"message_type": "FinalTranscript", "text": text, "words": words}


class TestParseProviderWord:
    def test_milliseconds_to_seconds(self) -> None:
        word = parse_provider_word({"text": "hi", "start": 1500, "end": 1900, "confidence": 0.75, "speaker": "B"})
        assert word == Word(text="hi", start_seconds=1.5, end_seconds=1.9, confidence=0.75, speaker="B")

    def test_defaults(self) -> None:
        word = parse_provider_word({"text": "hi"})
        assert word.start_seconds == 0.0
        assert word.confidence == 1.0
        assert word.speaker == "A"


class TestParseFinalTranscript:
    def test_partial_ignored(self) -> None:
        assert parse_final_transcript({"message_type": "PartialTranscript", "text": "hel"}) is None

    def test_empty_final_ignored(self) -> None:
        assert parse_final_transcript({"message_type": "FinalTranscript", "text": "  "}) is None

    def test_final_parsed(self) -> None:
        segment = parse_final_transcript(_final("Good morning.", "B", 0))
        assert segment is not None
        assert segment.speaker == "B"
        assert [w.text for w in segment.words] == ["Good", "morning."]


class TestMergeSegments:
    def test_consecutive_same_speaker_merged(self) -> None:
        a1 = TranscriptSegment("A", "Hi.", (Word("Hi.", 0.0, 0.4, speaker="A"),))
        a2 = TranscriptSegment("A", "Again.", (Word("Again.", 1.0, 1.4, speaker="A"),))
        b = TranscriptSegment("B", "Hello.", (Word("Hello.", 2.0, 2.4, speaker="B"),))
        a3 = TranscriptSegment("A", "Bye.", (Word("Bye.", 3.0, 3.4, speaker="A"),))

        utterances = merge_segments([a1, a2, b, a3])

        assert [u.speaker for u in utterances] == ["A", "B", "A"]
        assert utterances[0].text == "Hi. Again."
        assert (utterances[0].start_seconds, utterances[0].end_seconds) == (0.0, 1.4)
        assert len(utterances[0].words) == 2

    def test_segment_without_words_uses_running_bounds(self) -> None:
        a = TranscriptSegment("A", "Hi.", (Word("Hi.", 0.0, 0.4),))
        b = TranscriptSegment("B", "Hmm.")
        utterances = merge_segments([a, b])
        assert (utterances[1].start_seconds, utterances[1].end_seconds) == (0.4, 0.4)

    def test_missing_speaker_defaults(self) -> None:
        utterances = merge_segments([TranscriptSegment(None, "Hi.")])
        assert utterances[0].speaker == "A"


class TestParseRealtimeMessages:
    def test_collapses_log(self) -> None:
        messages = [
            {"message_type": "SessionBegins"},
            _final("We should book the venue.", "A", 0),
            {"message_type": "PartialTranscript", "text": "sure"},
            _final("Sure, for June.", "B", 3000),
        ]
        words, utterances = parse_realtime_messages(messages)
        assert len(words) == 8
        assert [u.speaker for u in utterances] == ["A", "B"]
        assert utterances[1].start_seconds == 3.0


class TestStoredRows:
    def test_word_round_trip_keys(self) -> None:
        word = Word("hi", 1.0, 1.5, 0.8, "A")
        assert Word.from_dict(word.to_dict()) == word

    def test_word_zero_confidence_preserved(self) -> None:
        assert Word.from_dict({"text": "x", "start": 0, "end": 1, "confidence": 0}).confidence == 0.0

    def test_parse_words_skips_malformed(self) -> None:
        words = parse_words([{"text": "ok", "start": 0, "end": 1}, {"text": "bad", "start": "soon"}])
        assert [w.text for w in words] == ["ok"]

    def test_parse_utterances_none_when_empty(self) -> None:
        assert parse_utterances([]) is None
        assert parse_utterances(None) is None

    def test_parse_utterances_from_rows(self) -> None:
        utterance = Utterance("B", "Hello.", 1.0, 2.0, (Word("Hello.", 1.0, 2.0, speaker="B"),))
        parsed = parse_utterances([utterance.to_dict()])
        assert parsed == [utterance]
