from __future__ import annotations

from pathlib import Path
import tempfile
from typing import Any
import unittest

from vaultscribe.adapters.factory import ProviderFactory
from vaultscribe.components.chunking import Chunker
from vaultscribe.components.vault import encrypt
from vaultscribe.contracts.artifacts import PipelineOptions, Segment, SummarizationResult, TranscriptionResult
from vaultscribe.contracts.errors import (
    ChunkOperationFailedError,
    DecryptionFailedError,
    ExternalToolUnavailableError,
    InputTypeMismatchError,
    InputValidationError,
    IOFailureError,
    MissingCapabilityError,
    OperationCancelledError,
    PipelineError,
)
from vaultscribe.pipeline.media_pipeline import Account, Pipeline, classify_input, slice_media
from vaultscribe.utils.cancellation import CancellationToken


class _FakeTranscriber:
    def __init__(
        self,
        *,
        max_size: int = 1_000_000,
        fail_on_call: int | None = None,
        cancel_after_first: CancellationToken | None = None,
    ) -> None:
        self.max_size = max_size
        self.fail_on_call = fail_on_call
        self.cancel_after_first = cancel_after_first
        self.calls: list[Path] = []
        self.error = RuntimeError("provider exploded")

    def name(self) -> str:
        return "fake"

    def max_file_size(self) -> int:
        return self.max_size

    def transcribe(self, path: Path, *, cancel: CancellationToken | None = None) -> TranscriptionResult:
        self.calls.append(path)
        if self.fail_on_call is not None and len(self.calls) - 1 == self.fail_on_call:
            raise self.error
        if self.cancel_after_first is not None:
            self.cancel_after_first.cancel()
        n = len(self.calls)
        return TranscriptionResult(
            text=f"part{n}",
            segments=[Segment(0.0, 1.0, f"part{n}")],
            language="en",
            duration_s=10.0,
            provider="fake",
        )


class _FakeSummarizer:
    def __init__(self) -> None:
        self.texts: list[str] = []

    def name(self) -> str:
        return "fake-summary"

    def summarize(self, text: str, *, cancel: CancellationToken | None = None) -> SummarizationResult:
        self.texts.append(text)
        return SummarizationResult(summary="A short summary.", key_points=["Point one"], provider="fake")


class _FakeFfmpeg:
    def __init__(self, *, available: bool = True, duration_s: float = 25.0) -> None:
        self.available = available
        self.duration_s = duration_s
        self.extracted = 0

    def is_available(self) -> bool:
        return self.available

    def probe_duration(self, input_path, *, cancel=None) -> float:  # type: ignore[no-untyped-def]
        return self.duration_s

    def extract_segment(self, input_path, output_path, start_s, duration_s, *, cancel=None) -> None:  # type: ignore[no-untyped-def]
        self.extracted += 1
        Path(output_path).write_bytes(b"c" * 10)

    def compact_audio(self, input_path, output_path, *, cancel=None) -> None:  # type: ignore[no-untyped-def]
        raise AssertionError("chunks in these tests are never oversized")


class _ExplodingChunker:
    max_file_size = 10

    def needs_chunking(self, path: Path) -> bool:
        raise RuntimeError("unexpected internal failure")


class _RecordingFactory(ProviderFactory):
    def __init__(self) -> None:
        super().__init__(ffmpeg=_FakeFfmpeg())
        self.keys: list[str] = []

    def openai_client(self, api_key: str, base_url: str | None) -> Any:
        self.keys.append(api_key)
        return object()

    def anthropic_client(self, api_key: str, base_url: str | None) -> Any:
        self.keys.append(api_key)
        return object()


class PipelineTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_dir = Path(self._tmp.name)
        self.work_dir = self.tmp_dir / "work"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _file(self, name: str, data: bytes = b"x" * 20) -> Path:
        path = self.tmp_dir / name
        path.write_bytes(data)
        return path

    def _chunker(self, ffmpeg: _FakeFfmpeg | None = None, *, max_file_size: int = 50) -> Chunker:
        return Chunker(
            ffmpeg=ffmpeg or _FakeFfmpeg(),
            max_file_size=max_file_size,
            chunk_seconds=10,
            work_dir=self.work_dir,
        )

    def _chunk_dirs(self) -> list[Path]:
        return list(self.work_dir.iterdir()) if self.work_dir.exists() else []


class ClassifyInputTests(unittest.TestCase):
    def test_classification_by_extension(self) -> None:
        self.assertEqual(classify_input(Path("a.MP3")), "audio")
        self.assertEqual(classify_input(Path("a.aac")), "audio")
        self.assertEqual(classify_input(Path("a.mov")), "video")
        self.assertEqual(classify_input(Path("a.srt")), "text")
        self.assertEqual(classify_input(Path("a.pdf")), "unknown")
        self.assertEqual(classify_input(Path("README")), "unknown")


class ValidationTests(PipelineTestCase):
    def test_summarize_video_without_transcription_is_type_mismatch(self) -> None:
        summarizer = _FakeSummarizer()
        pipeline = Pipeline(summarizer=summarizer)

        with self.assertRaises(InputTypeMismatchError) as ctx:
            pipeline.process(self._file("clip.mp4"), PipelineOptions(summarize=True))

        self.assertEqual(ctx.exception.kind, "video")
        self.assertIn("add transcription", str(ctx.exception))
        self.assertEqual(summarizer.texts, [])
        self.assertEqual(ctx.exception.steps["validate"].status, "failed")

    def test_transcribe_text_is_type_mismatch(self) -> None:
        pipeline = Pipeline(transcriber=_FakeTranscriber(), chunker=self._chunker())
        with self.assertRaises(InputTypeMismatchError) as ctx:
            pipeline.process(self._file("notes.txt"), PipelineOptions(transcribe=True))
        self.assertEqual(ctx.exception.kind, "text")

    def test_missing_summarizer_fails_before_transcription(self) -> None:
        transcriber = _FakeTranscriber()
        pipeline = Pipeline(transcriber=transcriber, chunker=self._chunker())
        source = self._file("talk.mp3")

        with self.assertRaises(MissingCapabilityError):
            pipeline.process(source, PipelineOptions(transcribe=True, summarize=True))

        self.assertEqual(transcriber.calls, [])
        self.assertFalse((self.tmp_dir / "talk.transcript.md").exists())

    def test_missing_transcriber(self) -> None:
        pipeline = Pipeline(summarizer=_FakeSummarizer())
        with self.assertRaises(MissingCapabilityError):
            pipeline.process(self._file("talk.mp3"), PipelineOptions(transcribe=True))

    def test_capabilities_are_rechecked_when_validation_is_bypassed(self) -> None:
        class _LenientPipeline(Pipeline):
            def validate(self, input_path, options):  # type: ignore[no-untyped-def]
                return "audio"

        with self.assertRaises(MissingCapabilityError) as ctx:
            _LenientPipeline().process(self._file("talk.mp3"), PipelineOptions(transcribe=True))
        self.assertEqual(ctx.exception.steps["transcribe"].status, "failed")

        with self.assertRaises(MissingCapabilityError) as ctx:
            _LenientPipeline().process(self._file("notes.txt"), PipelineOptions(summarize=True))
        self.assertEqual(ctx.exception.steps["summarize"].status, "failed")

    def test_type_mismatch_is_checked_before_capabilities(self) -> None:
        pipeline = Pipeline()
        with self.assertRaises(InputTypeMismatchError):
            pipeline.process(self._file("clip.mp4"), PipelineOptions(summarize=True))

    def test_nothing_requested(self) -> None:
        pipeline = Pipeline(summarizer=_FakeSummarizer())
        with self.assertRaises(InputValidationError):
            pipeline.process(self._file("notes.txt"), PipelineOptions())

    def test_missing_input_file(self) -> None:
        pipeline = Pipeline(summarizer=_FakeSummarizer())
        with self.assertRaises(IOFailureError):
            pipeline.process(self.tmp_dir / "absent.txt", PipelineOptions(summarize=True))


class DirectPathTests(PipelineTestCase):
    def test_transcribe_and_summarize_small_file(self) -> None:
        transcriber = _FakeTranscriber()
        summarizer = _FakeSummarizer()
        ffmpeg = _FakeFfmpeg()
        pipeline = Pipeline(transcriber=transcriber, summarizer=summarizer, chunker=self._chunker(ffmpeg))
        source = self._file("talk.mp3")

        result = pipeline.process(source, PipelineOptions(transcribe=True, summarize=True))

        self.assertEqual(transcriber.calls, [source])
        self.assertEqual(ffmpeg.extracted, 0)
        self.assertEqual(result.chunk_count, 1)
        self.assertEqual(result.transcript_path, self.tmp_dir / "talk.transcript.md")
        self.assertEqual(result.summary_path, self.tmp_dir / "talk.summary.md")
        self.assertEqual(summarizer.texts, ["part1"])

        transcript_md = result.transcript_path.read_text(encoding="utf-8")
        self.assertTrue(transcript_md.startswith("# Transcript: talk.mp3\n"))
        self.assertIn("[00:00:00] part1", transcript_md)
        summary_md = result.summary_path.read_text(encoding="utf-8")
        self.assertIn("1. Point one", summary_md)
        self.assertIn("# Summary: talk.transcript.md", summary_md)

        statuses = {name: step.status for name, step in result.steps.items()}
        self.assertEqual(
            statuses,
            {
                "validate": "success",
                "transcribe": "success",
                "write_transcript": "success",
                "summarize": "success",
                "write_summary": "success",
            },
        )

    def test_summarize_text_file(self) -> None:
        summarizer = _FakeSummarizer()
        pipeline = Pipeline(summarizer=summarizer)
        source = self._file("notes.txt", "meeting notes".encode("utf-8"))

        result = pipeline.process(source, PipelineOptions(summarize=True))

        self.assertEqual(summarizer.texts, ["meeting notes"])
        self.assertIsNone(result.transcript_path)
        self.assertEqual(result.summary_path, self.tmp_dir / "notes.summary.md")
        self.assertEqual(result.steps["transcribe"].status, "skipped")

    def test_summarizing_existing_transcript_drops_transcript_suffix(self) -> None:
        pipeline = Pipeline(summarizer=_FakeSummarizer())
        source = self._file("talk.transcript.md", b"# Transcript\n\nhello")

        result = pipeline.process(source, PipelineOptions(summarize=True))

        self.assertEqual(result.summary_path, self.tmp_dir / "talk.summary.md")

    def test_transcribe_only(self) -> None:
        pipeline = Pipeline(transcriber=_FakeTranscriber(), chunker=self._chunker())

        result = pipeline.process(self._file("clip.mkv"), PipelineOptions(transcribe=True))

        self.assertTrue(result.transcript_path.is_file())
        self.assertIsNone(result.summary_path)
        self.assertEqual(result.steps["summarize"].status, "skipped")

    def test_unknown_failure_is_wrapped_in_pipeline_error(self) -> None:
        pipeline = Pipeline(transcriber=_FakeTranscriber(), chunker=_ExplodingChunker())  # type: ignore[arg-type]

        with self.assertRaises(PipelineError) as ctx:
            pipeline.process(self._file("talk.mp3"), PipelineOptions(transcribe=True))

        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)
        step = ctx.exception.steps["transcribe"]
        self.assertEqual(step.status, "failed")
        self.assertIn("traceback", step.error)


class ChunkedPathTests(PipelineTestCase):
    def test_large_file_is_split_transcribed_in_order_and_merged(self) -> None:
        transcriber = _FakeTranscriber(max_size=50)
        summarizer = _FakeSummarizer()
        pipeline = Pipeline(transcriber=transcriber, summarizer=summarizer, chunker=self._chunker())
        source = self._file("long.mp3", b"x" * 200)

        result = pipeline.process(source, PipelineOptions(transcribe=True, summarize=True))

        self.assertEqual(result.chunk_count, 3)
        self.assertEqual([p.name for p in transcriber.calls], ["chunk_0000.mp3", "chunk_0001.mp3", "chunk_0002.mp3"])
        self.assertEqual([seg.start_s for seg in result.transcript.segments], [0.0, 10.0, 20.0])
        self.assertEqual(result.transcript.text, "part1 part2 part3")
        self.assertEqual(summarizer.texts, ["part1 part2 part3"])
        self.assertEqual(self._chunk_dirs(), [])
        self.assertIn("[00:00:20] part3", result.transcript_path.read_text(encoding="utf-8"))

    def test_failing_chunk_aborts_and_cleans_up(self) -> None:
        transcriber = _FakeTranscriber(max_size=50, fail_on_call=1)
        pipeline = Pipeline(transcriber=transcriber, summarizer=_FakeSummarizer(), chunker=self._chunker())
        source = self._file("long.mp3", b"x" * 200)

        with self.assertRaises(ChunkOperationFailedError) as ctx:
            pipeline.process(source, PipelineOptions(transcribe=True, summarize=True))

        self.assertEqual(ctx.exception.chunk_index, 1)
        self.assertEqual(ctx.exception.chunk_path.name, "chunk_0001.mp3")
        self.assertIs(ctx.exception.__cause__.__cause__, transcriber.error)
        self.assertEqual(len(transcriber.calls), 2)
        self.assertEqual(self._chunk_dirs(), [])
        self.assertFalse((self.tmp_dir / "long.transcript.md").exists())
        self.assertEqual(ctx.exception.steps["transcribe"].error_type, "ChunkOperationFailedError")

    def test_cancellation_between_chunks_cleans_up(self) -> None:
        token = CancellationToken()
        transcriber = _FakeTranscriber(max_size=50, cancel_after_first=token)
        pipeline = Pipeline(transcriber=transcriber, chunker=self._chunker())

        with self.assertRaises(OperationCancelledError):
            pipeline.process(self._file("long.mp3", b"x" * 200), PipelineOptions(transcribe=True), cancel=token)

        self.assertEqual(len(transcriber.calls), 1)
        self.assertEqual(self._chunk_dirs(), [])

    def test_large_file_without_ffmpeg(self) -> None:
        transcriber = _FakeTranscriber(max_size=50)
        pipeline = Pipeline(transcriber=transcriber, chunker=self._chunker(_FakeFfmpeg(available=False)))

        with self.assertRaises(ExternalToolUnavailableError) as ctx:
            pipeline.process(self._file("long.mp3", b"x" * 200), PipelineOptions(transcribe=True))

        self.assertIn("ffmpeg", str(ctx.exception))
        self.assertEqual(transcriber.calls, [])


class FromAccountTests(PipelineTestCase):
    def test_openai_account_gets_both_capabilities(self) -> None:
        factory = _RecordingFactory()
        account = Account(name="work", provider="openai", api_key=encrypt("sk-live", "2468"))

        pipeline = Pipeline.from_account(account, "2468", factory=factory)

        self.assertTrue(pipeline.can_transcribe)
        self.assertTrue(pipeline.can_summarize)
        self.assertEqual(factory.keys, ["sk-live", "sk-live"])

    def test_summary_only_provider_cannot_transcribe(self) -> None:
        account = Account(name="claude", provider="anthropic", api_key="plain:sk-ant")
        pipeline = Pipeline.from_account(account, None, factory=_RecordingFactory())

        self.assertFalse(pipeline.can_transcribe)
        with self.assertRaises(MissingCapabilityError):
            pipeline.process(self._file("talk.mp3"), PipelineOptions(transcribe=True, summarize=True))

    def test_wrong_pin_propagates_unchanged(self) -> None:
        factory = _RecordingFactory()
        account = Account(name="work", provider="openai", api_key=encrypt("sk-live", "2468"))

        with self.assertRaises(DecryptionFailedError):
            Pipeline.from_account(account, "1357", factory=factory)
        self.assertEqual(factory.keys, [])

    def test_chunker_threshold_comes_from_transcriber(self) -> None:
        pipeline = Pipeline.from_account(
            Account(name="work", provider="openai", api_key="plain:sk"),
            None,
            factory=_RecordingFactory(),
            ffmpeg=_FakeFfmpeg(),
        )
        self.assertEqual(pipeline._chunker.max_file_size, 25 * 1024 * 1024)
        self.assertTrue(pipeline._chunker.converts(Path("talk.aac")))
        self.assertFalse(pipeline._chunker.converts(Path("talk.m4a")))

    def test_long_unsupported_format_is_chunked_before_conversion(self) -> None:
        pipeline = Pipeline.from_account(
            Account(name="work", provider="openai", api_key="plain:sk"),
            None,
            factory=_RecordingFactory(),
            ffmpeg=_FakeFfmpeg(duration_s=3600.0),
        )
        # A small file whose MP3 re-encode would still exceed the upload limit.
        self.assertTrue(pipeline._chunker.needs_chunking(self._file("lecture.aac")))
        self.assertFalse(pipeline._chunker.needs_chunking(self._file("lecture.mp3")))


class SliceMediaTests(PipelineTestCase):
    def test_slicing_leaves_chunks_on_disk(self) -> None:
        source = self._file("talk.mp3")

        with self.assertLogs("vaultscribe.pipeline.media_pipeline", level="INFO") as logs:
            chunks = slice_media(source, self._chunker())

        self.assertEqual([c.index for c in chunks], [0, 1, 2])
        self.assertEqual([(c.start_s, c.end_s) for c in chunks], [(0, 10), (10, 20), (20, 25.0)])
        self.assertTrue(all(c.path.is_file() for c in chunks))
        self.assertEqual(self._chunk_dirs(), [chunks[0].path.parent])
        self.assertTrue(any("slicing anyway" in line for line in logs.output))

    def test_slicing_text_is_type_mismatch(self) -> None:
        ffmpeg = _FakeFfmpeg()
        with self.assertRaises(InputTypeMismatchError) as ctx:
            slice_media(self._file("notes.txt"), self._chunker(ffmpeg))

        self.assertEqual(ctx.exception.kind, "text")
        self.assertEqual(ffmpeg.extracted, 0)

    def test_slicing_requires_ffmpeg(self) -> None:
        with self.assertRaises(ExternalToolUnavailableError) as ctx:
            slice_media(self._file("talk.mp3"), self._chunker(_FakeFfmpeg(available=False)))

        self.assertIn("slicing requires ffmpeg", str(ctx.exception))
        self.assertEqual(self._chunk_dirs(), [])

    def test_slicing_missing_input(self) -> None:
        with self.assertRaises(IOFailureError):
            slice_media(self.tmp_dir / "gone.mp3", self._chunker())


if __name__ == "__main__":
    unittest.main()
