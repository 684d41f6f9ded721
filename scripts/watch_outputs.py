#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Translation CLI - drive and watch translation runs over the HTTP API

Usage:
    python scripts/watch_outputs.py create --file doc.html --title "Spring campaign"
    python scripts/watch_outputs.py translate <translation_id> fr de ja
    python scripts/watch_outputs.py rerun <translation_id> fr
    python scripts/watch_outputs.py status <translation_id>
    python scripts/watch_outputs.py watch <translation_id>
"""

import sys
import asyncio
import argparse
from pathlib import Path
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import httpx

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import settings
from pipeline.progress import OutputPoller, PollingSession


def new_session() -> PollingSession:
    return PollingSession(
        interval=settings.poll_interval_seconds,
        stale_after=timedelta(minutes=settings.stale_after_minutes),
    )


def format_duration(ms: Optional[int]) -> str:
    """Format a millisecond duration"""
    if ms is None:
        return "-"
    seconds = ms / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    return f"{seconds/60:.1f}m"


def print_outputs(records: List[Dict[str, Any]], session: PollingSession) -> None:
    """Print one line per language"""
    now = datetime.now().strftime("%H:%M:%S")
    print(f"\n[{now}]")
    print(f"{'LANG':<6} {'STATE':<10} {'TRANSLATION':<13} {'PROOFREAD':<20} {'T-TIME':<8} {'P-TIME':<8}")
    print("-" * 70)
    for record in records:
        print(
            f"{record['language_code']:<6} {session.state_of(record):<10} "
            f"{record['translation_status']:<13} {record['proofread_status']:<20} "
            f"{format_duration(record.get('translation_duration_ms')):<8} "
            f"{format_duration(record.get('proofread_duration_ms')):<8}"
        )
        if record.get("error_message"):
            print(f"       ! {record['error_message']}")


async def cmd_create(client: httpx.AsyncClient, args) -> int:
    """Upload a source document"""
    path = Path(args.file)
    if not path.exists():
        print(f"❌ File not found: {path}")
        return 1

    response = await client.post(
        "/api/translations",
        json={"title": args.title or path.stem, "source_text": path.read_text(encoding="utf-8")},
    )
    response.raise_for_status()
    translation = response.json()
    print("✅ Translation created")
    print(f"   ID: {translation['id']}")
    print(f"   Title: {translation['title']}")
    return 0


async def _start(client: httpx.AsyncClient, path: str, payload: Dict[str, Any], args) -> int:
    response = await client.post(path, json=payload)
    if response.status_code != 202:
        print(f"❌ {response.status_code}: {response.json().get('detail')}")
        return 1

    accepted = response.json()
    codes = ", ".join(output["language_code"] for output in accepted["outputs"])
    print(f"🚀 Started: {codes}")

    if args.watch:
        return await _watch(client, args.translation_id, args.max_polls)
    return 0


async def cmd_translate(client: httpx.AsyncClient, args) -> int:
    """Translate into several languages"""
    payload = {
        "translation_id": args.translation_id,
        "language_codes": args.languages,
        "model_id": args.model,
        "proofread": not args.no_proofread,
    }
    return await _start(client, "/api/translate", payload, args)


async def cmd_rerun(client: httpx.AsyncClient, args) -> int:
    """Run one language again (recovers a stopped output)"""
    payload = {
        "translation_id": args.translation_id,
        "language_code": args.language,
        "model_id": args.model,
        "proofread": not args.no_proofread,
    }
    return await _start(client, "/api/translate-single", payload, args)


async def cmd_status(client: httpx.AsyncClient, args) -> int:
    """Show outputs once"""
    poller = OutputPoller(client, args.translation_id, session=new_session())
    records = await poller.fetch()
    if not records:
        print("No outputs yet.")
        return 0
    poller.session.observe(records)
    print_outputs(records, poller.session)
    return 0


async def _watch(client: httpx.AsyncClient, translation_id: str, max_polls: Optional[int]) -> int:
    session = new_session()
    poller = OutputPoller(
        client,
        translation_id,
        session=session,
        max_polls=max_polls,
        on_update=lambda records: print_outputs(records, session),
    )
    records = await poller.poll()

    failed = [r for r in records if session.state_of(r) in ("failed", "stopped")]
    if failed:
        print(f"\n⚠️  {len(failed)} language(s) need attention: "
              f"{', '.join(r['language_code'] for r in failed)}")
        return 1

    running = [r for r in records if session.state_of(r) in ("running", "pending")]
    if running:
        print(f"\n⏳ Still running after {max_polls} polls: "
              f"{', '.join(r['language_code'] for r in running)}")
        return 1
    print("\n✅ All languages finished")
    return 0


async def cmd_watch(client: httpx.AsyncClient, args) -> int:
    """Poll until nothing is running"""
    return await _watch(client, args.translation_id, args.max_polls)


async def run(args) -> int:
    commands = {
        'create': cmd_create,
        'translate': cmd_translate,
        'rerun': cmd_rerun,
        'status': cmd_status,
        'watch': cmd_watch,
    }
    handler = commands[args.command]
    async with httpx.AsyncClient(base_url=args.url, timeout=30.0) as client:
        try:
            return await handler(client, args)
        except httpx.HTTPStatusError as e:
            print(f"❌ {e.response.status_code}: {e.response.text}")
            return 1
        except httpx.HTTPError as e:
            print(f"❌ Cannot reach {args.url}: {e}")
            return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Babellion translation CLI',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('--url', default=settings.api_base_url, help='API base URL')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    create_parser = subparsers.add_parser('create', help='Create a translation from a file')
    create_parser.add_argument('--file', '-f', required=True, help='Source text/HTML file')
    create_parser.add_argument('--title', '-t', help='Title (defaults to file name)')

    for name, help_text in (('translate', 'Translate into languages'), ('rerun', 'Rerun one language')):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('translation_id', help='Translation ID')
        if name == 'translate':
            sub.add_argument('languages', nargs='+', help='Language codes')
        else:
            sub.add_argument('language', help='Language code')
        sub.add_argument('--model', '-m', help='AI model id (default model if omitted)')
        sub.add_argument('--no-proofread', action='store_true', help='Skip proofreading')
        sub.add_argument('--watch', '-w', action='store_true', help='Watch until finished')
        sub.add_argument('--max-polls', type=int, help='Stop watching after N polls')

    status_parser = subparsers.add_parser('status', help='Show output status')
    status_parser.add_argument('translation_id', help='Translation ID')

    watch_parser = subparsers.add_parser('watch', help='Poll until nothing is running')
    watch_parser.add_argument('translation_id', help='Translation ID')
    watch_parser.add_argument('--max-polls', type=int, help='Stop after N polls')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
