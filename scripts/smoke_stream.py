#!/usr/bin/env python3
"""Smoke test for end-to-end streaming against a real provider.

Usage:
  python scripts/smoke_stream.py --provider ollama --model llama3
  python scripts/smoke_stream.py --provider anthropic --message "Say hi"

Provider credentials come from the same environment / .env settings the
library uses (OPENAI_API_KEY, ANTHROPIC_API_KEY, GEMINI_API_KEY, ...).
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Add repo root to sys.path if not already present
repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from llmbridge.config.settings import settings
from llmbridge.core.errors import ProviderError
from llmbridge.core.logging import setup_logging
from llmbridge.core.performance import MonitoredProvider, PerformanceMonitor
from llmbridge.providers.registry import create_provider
from llmbridge.providers.schemas import ChatMessage, CompletionRequest


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="llmbridge streaming smoke test")
    parser.add_argument("--provider", default="ollama")
    parser.add_argument("--model", default=None)
    parser.add_argument("--message", default="Smoke test: reply with one short sentence")
    parser.add_argument("--max-tokens", type=int, default=64)
    parser.add_argument("--test-connection", action="store_true", help="Run test_connection first")
    parser.add_argument("--quiet", action="store_true")
    return parser.parse_args()


def exit_with(message: str, code: int = 1) -> None:
    print(message, file=sys.stderr)
    raise SystemExit(code)


async def run(args: argparse.Namespace) -> None:
    monitor = PerformanceMonitor()
    provider = create_provider(args.provider, settings.provider_options(args.provider))
    monitored = MonitoredProvider(provider, monitor)

    model = args.model
    if not model:
        models = monitored.get_models()
        if not models:
            exit_with(f"No models configured for provider {args.provider}")
        model = models[0].id

    if not args.quiet:
        print(f"Using provider={args.provider} model={model}")

    try:
        if args.test_connection:
            await monitored.test_connection(model)
            if not args.quiet:
                print("Connection test passed")

        request = CompletionRequest(
            model=model,
            messages=[ChatMessage(role="user", content=args.message)],
            max_tokens=args.max_tokens,
            stream=True,
        )

        saw_delta = False
        async for chunk in monitored.chat_stream(request):
            if chunk.content:
                saw_delta = True
                if not args.quiet:
                    sys.stdout.write(chunk.content)
                    sys.stdout.flush()
    except ProviderError as exc:
        exit_with(f"{exc.code.value}: {exc}")
    finally:
        await provider.aclose()

    if not args.quiet:
        print("")

    if not saw_delta:
        exit_with("No delta chunks received")

    stats = monitor.get_stats()
    print(
        f"OK: {stats.total_requests} request(s), "
        f"{stats.average_duration:.0f} ms, {stats.total_tokens} tokens"
    )


def main() -> None:
    args = parse_args()
    setup_logging(settings.log_level, json_output=settings.log_json, log_file=settings.log_file or None)
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
