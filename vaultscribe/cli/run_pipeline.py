from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence, TypeAlias

from vaultscribe.adapters.factory import SUMMARIZATION_PROVIDERS, ProviderFactory
from vaultscribe.adapters.ffmpeg import FfmpegAdapter, SubprocessFfmpeg
from vaultscribe.adapters.openai_transcription import OPENAI_MAX_FILE_SIZE, OPENAI_NATIVE_EXTENSIONS
from vaultscribe.components.chunking import DEFAULT_CHUNK_SECONDS, Chunker
from vaultscribe.components.markdown import format_timestamp
from vaultscribe.components.vault import encrypt
from vaultscribe.contracts.artifacts import Chunk, PipelineOptions
from vaultscribe.contracts.errors import ConfigurationError
from vaultscribe.pipeline.media_pipeline import Account, Pipeline, slice_media


Argv: TypeAlias = Sequence[str]

PIN_ENV_VAR = "VAULTSCRIBE_PIN"
API_KEY_ENV_VAR = "VAULTSCRIBE_API_KEY"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True, slots=True)
class CliRunResult:
    transcript_path: Path | None
    summary_path: Path | None


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid int value: {value}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be > 0")
    return parsed


def _positive_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid number: {value}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be > 0")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--log-level", choices=LOG_LEVELS, default="INFO", help="Logging verbosity.")

    parser = argparse.ArgumentParser(description="Transcribe and summarize media files with a PIN-protected API key.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    encrypt_parser = subparsers.add_parser("encrypt", parents=[common], help="Encrypt an API key under a 4-digit PIN.")
    encrypt_parser.add_argument("--pin", default=None, help=f"4-digit PIN (default: ${PIN_ENV_VAR}).")
    encrypt_parser.add_argument("--secret", default=None, help=f"Secret to encrypt (default: ${API_KEY_ENV_VAR}).")

    process_parser = subparsers.add_parser("process", parents=[common], help="Transcribe and/or summarize one file.")
    process_parser.add_argument("--input", dest="input_path", type=Path, required=True, help="Input media or text file.")
    process_parser.add_argument(
        "--provider",
        choices=sorted(SUMMARIZATION_PROVIDERS),
        required=True,
        help="AI provider for this account.",
    )
    process_parser.add_argument(
        "--api-key",
        default=None,
        help=f"Encrypted API key, or 'plain:<key>' (default: ${API_KEY_ENV_VAR}).",
    )
    process_parser.add_argument("--pin", default=None, help=f"PIN that decrypts the API key (default: ${PIN_ENV_VAR}).")
    process_parser.add_argument("--transcribe", action="store_true", help="Transcribe audio/video input.")
    process_parser.add_argument("--summarize", action="store_true", help="Summarize the transcript or text input.")
    process_parser.add_argument("--model", default=None, help="Summarization model.")
    process_parser.add_argument("--transcription-model", default=None, help="Transcription model.")
    process_parser.add_argument("--base-url", default=None, help="Custom API base URL.")
    process_parser.add_argument("--language", default=None, help="Transcription language code (e.g. en).")
    process_parser.add_argument(
        "--chunk-seconds",
        type=_positive_int,
        default=DEFAULT_CHUNK_SECONDS,
        help="Chunk length in seconds for oversized files.",
    )
    process_parser.add_argument(
        "--max-duration-seconds",
        type=_positive_float,
        default=None,
        help="Also chunk files longer than this many seconds.",
    )

    slice_parser = subparsers.add_parser(
        "slice",
        parents=[common],
        help="Split audio/video into transcription-ready chunks without calling a provider.",
    )
    slice_parser.add_argument("--input", dest="input_path", type=Path, required=True, help="Input audio or video file.")
    slice_parser.add_argument(
        "--chunk-seconds",
        type=_positive_int,
        default=DEFAULT_CHUNK_SECONDS,
        help="Chunk length in seconds.",
    )
    slice_parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory that receives the chunk folder (default: next to the input).",
    )
    return parser


def parse_args(argv: Argv | None = None) -> argparse.Namespace:
    return build_parser().parse_args(list(argv) if argv is not None else None)


def _env(env: Mapping[str, str] | None) -> Mapping[str, str]:
    return os.environ if env is None else env


def build_account(args: argparse.Namespace, *, env: Mapping[str, str] | None = None) -> Account:
    api_key = args.api_key or _env(env).get(API_KEY_ENV_VAR)
    if not api_key:
        raise ConfigurationError(f"API key not provided: pass --api-key or set {API_KEY_ENV_VAR}")
    return Account(
        name=args.provider,
        provider=args.provider,
        api_key=api_key,
        model=args.model,
        transcription_model=args.transcription_model,
        base_url=args.base_url,
        language=args.language,
    )


def run_encrypt(args: argparse.Namespace, *, env: Mapping[str, str] | None = None) -> str:
    effective_env = _env(env)
    secret = args.secret or effective_env.get(API_KEY_ENV_VAR)
    if not secret:
        raise ConfigurationError(f"nothing to encrypt: pass --secret or set {API_KEY_ENV_VAR}")
    pin = args.pin or effective_env.get(PIN_ENV_VAR) or ""
    return encrypt(secret, pin)


def run_from_args(
    args: argparse.Namespace,
    *,
    factory: ProviderFactory | None = None,
    env: Mapping[str, str] | None = None,
) -> CliRunResult:
    account = build_account(args, env=env)
    pin = args.pin or _env(env).get(PIN_ENV_VAR)
    pipeline = Pipeline.from_account(
        account,
        pin,
        factory=factory,
        chunk_seconds=int(args.chunk_seconds),
        max_duration_s=args.max_duration_seconds,
    )
    result = pipeline.process(
        Path(args.input_path),
        PipelineOptions(transcribe=bool(args.transcribe), summarize=bool(args.summarize)),
    )
    return CliRunResult(transcript_path=result.transcript_path, summary_path=result.summary_path)


def run_slice(args: argparse.Namespace, *, ffmpeg: FfmpegAdapter | None = None) -> list[Chunk]:
    input_path = Path(args.input_path)
    chunker = Chunker(
        ffmpeg=ffmpeg if ffmpeg is not None else SubprocessFfmpeg(),
        max_file_size=OPENAI_MAX_FILE_SIZE,
        chunk_seconds=int(args.chunk_seconds),
        work_dir=args.output_dir if args.output_dir is not None else input_path.parent,
        native_extensions=OPENAI_NATIVE_EXTENSIONS,
    )
    return slice_media(input_path, chunker)


def main(argv: Argv | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        if args.command == "encrypt":
            print(run_encrypt(args))
            return 0
        if args.command == "slice":
            chunks = run_slice(args)
            print(f"chunk_dir={chunks[0].path.parent}")
            for chunk in chunks:
                print(f"chunk={chunk.path} start={format_timestamp(chunk.start_s)} end={format_timestamp(chunk.end_s)}")
            return 0
        result = run_from_args(args)
    except Exception as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if result.transcript_path is not None:
        print(f"transcript_path={result.transcript_path}")
    if result.summary_path is not None:
        print(f"summary_path={result.summary_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
