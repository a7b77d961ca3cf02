"""CLI entry point for article narration."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from narration import __version__
from narration.lib.config import (
    get_generation_config,
    get_server_config,
    get_storage_config,
    get_synthesis_config,
)
from narration.lib.exceptions import (
    ConfigError,
    GenerationFailedError,
    NarrationError,
    PersistenceError,
    ValidationError,
)
from narration.services.articles import extract_text_for_audio
from narration.services.audio.orchestrator import ResilientAudioGenerator
from narration.services.storage import create_artifact_store
from narration.services.storage.keys import article_namespace
from narration.services.synthesis import create_synthesis_client


# Exit codes per CLI contract
EXIT_SUCCESS = 0
EXIT_USAGE_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_VALIDATION_ERROR = 3
EXIT_SYNTHESIS_ERROR = 4
EXIT_INTERNAL_ERROR = 5


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the CLI and server."""
    level = logging.DEBUG if verbose else logging.INFO
    format_str = "[%(asctime)s] %(levelname)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=format_str,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="narrate-audio",
        description="Generate narrated audio for articles, chunk by chunk",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  narrate-audio generate my-post ./posts/my-post.txt
  narrate-audio generate my-post ./posts/article.json --passes 3 -o my-post.mp3
  narrate-audio status my-post
  narrate-audio invalidate my-post
  narrate-audio serve --port 8000
        """,
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show debug logging",
    )

    parser.add_argument(
        "-V", "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    generate = subparsers.add_parser("generate", help="Run generation passes for an article")
    generate.add_argument("article_id", help="Article id (storage namespace)")
    generate.add_argument("text_file", help="Article text (.txt, .md) or structured article (.json)")
    generate.add_argument(
        "-p", "--provider",
        default="workers-ai",
        choices=["workers-ai", "mock"],
        help="Synthesis provider (default: workers-ai)",
    )
    generate.add_argument(
        "--passes",
        type=int,
        default=1,
        help="Maximum generation passes to run back to back (default: 1)",
    )
    generate.add_argument(
        "-o", "--output",
        default=None,
        help="Write the complete audio or playable prefix to this file",
    )

    status = subparsers.add_parser("status", help="Show chunk status for an article")
    status.add_argument("article_id", help="Article id (storage namespace)")

    invalidate = subparsers.add_parser("invalidate", help="Delete all audio for an article")
    invalidate.add_argument("article_id", help="Article id (storage namespace)")

    serve = subparsers.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", default=None, help="Bind address (default: SERVER_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: SERVER_PORT)")

    return parser


def read_article_text(path: Path) -> str:
    """Read narration text from a plain text or structured JSON article file."""
    if not path.exists():
        raise ValidationError(f"Input file not found: {path}", field="text_file")
    if not path.is_file():
        raise ValidationError(f"Path is not a file: {path}", field="text_file")

    raw = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        try:
            article = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid article JSON: {e}", field="text_file")
        if not isinstance(article, dict):
            raise ValidationError("Article JSON must be an object", field="text_file")
        return extract_text_for_audio(article)
    return raw


def build_generator(provider: str = "workers-ai", require_credentials: bool = True) -> ResilientAudioGenerator:
    """Create a generator from environment configuration."""
    synthesis_config = get_synthesis_config()
    if provider == "workers-ai" and require_credentials:
        synthesis_config.validate_credentials()

    store = create_artifact_store(get_storage_config())
    client = create_synthesis_client(synthesis_config, provider)
    return ResilientAudioGenerator(store, client, get_generation_config())


async def _generate(args: argparse.Namespace, namespace: str) -> int:
    if args.passes < 1:
        raise ValidationError("--passes must be at least 1", field="passes")

    text = read_article_text(Path(args.text_file))
    generator = build_generator(args.provider)

    result = None
    for _ in range(args.passes):
        result = await generator.generate(namespace, text)
        print(
            f"{result.status}: {len(result.available_indices)}/{result.total_chunks} chunks"
            + (f", failed {result.failed_indices}" if result.failures else "")
        )
        if result.is_complete:
            break

    if args.output and result.audio:
        Path(args.output).write_bytes(result.audio)
        print(f"  Audio: {args.output} ({len(result.audio)} bytes)")

    return EXIT_SUCCESS


async def _status(namespace: str) -> int:
    generator = build_generator(require_credentials=False)
    status = await generator.status(namespace)

    if status.finalized:
        print(f"{namespace}: complete ({len(status.assembled_prefix)} bytes)")
    elif status.never_started:
        print(f"{namespace}: not started")
    else:
        missing = ",".join(str(index) for index in status.missing_indices) or "none"
        print(
            f"{namespace}: partial, {len(status.available_indices)}/{status.total_chunks} chunks, "
            f"{status.contiguous_count} playable, missing {missing}"
        )
    return EXIT_SUCCESS


async def _invalidate(namespace: str) -> int:
    generator = build_generator(require_credentials=False)
    await generator.invalidate(namespace)
    print(f"{namespace}: invalidated")
    return EXIT_SUCCESS


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    server_config = get_server_config()
    uvicorn.run(
        "narration.api.app:create_app",
        factory=True,
        host=args.host or server_config.host,
        port=args.port or server_config.port,
    )
    return EXIT_SUCCESS


def run(args: argparse.Namespace) -> int:
    """
    Run a CLI command with the given arguments.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    if args.command is None:
        create_parser().print_usage(sys.stderr)
        return EXIT_USAGE_ERROR

    try:
        if args.command == "serve":
            return _serve(args)

        namespace = article_namespace(args.article_id, get_storage_config().key_prefix)

        if args.command == "generate":
            return asyncio.run(_generate(args, namespace))
        if args.command == "status":
            return asyncio.run(_status(namespace))
        if args.command == "invalidate":
            return asyncio.run(_invalidate(namespace))

    except ConfigError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    except ValidationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    except GenerationFailedError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        for hint in e.details.get("recommendations", []):
            print(f"  - {hint}", file=sys.stderr)
        return EXIT_SYNTHESIS_ERROR

    except PersistenceError as e:
        print(f"Error: Storage error: {e.message}", file=sys.stderr)
        return EXIT_INTERNAL_ERROR

    except NarrationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_INTERNAL_ERROR

    except Exception as e:
        print(f"Error: Unexpected error: {e}", file=sys.stderr)
        return EXIT_INTERNAL_ERROR

    print(f"Error: Unknown command: {args.command}", file=sys.stderr)
    return EXIT_USAGE_ERROR


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    return run(args)


if __name__ == "__main__":
    sys.exit(main())
