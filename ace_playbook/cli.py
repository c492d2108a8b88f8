"""ACE playbook CLI entrypoint."""

import argparse
import asyncio
import json
import sys
from typing import Any, NoReturn

from ace_playbook import __version__
from ace_playbook.core.config import ACEConfig, load_config
from ace_playbook.utils import setup_logging

# Vectors are noise on a terminal
NO_EMBEDDINGS = {"sections": {"__all__": {"bullets": {"__all__": {"embedding"}}}}}


def read_json_input(path_or_stdin: str | None) -> Any:
    """Read JSON from file path or stdin."""
    if path_or_stdin and path_or_stdin != "-":
        with open(path_or_stdin, encoding="utf-8") as f:
            return json.load(f)
    else:
        return json.load(sys.stdin)


def print_output(data: Any, as_json: bool) -> None:
    """Print output as JSON or human-readable format."""
    if as_json:
        json.dump(data, sys.stdout, indent=2, default=str, ensure_ascii=False)
        print()
    else:
        if isinstance(data, dict):
            for key, value in data.items():
                print(f"{key}: {value}")
        elif isinstance(data, list):
            for item in data:
                print(item)
        else:
            print(data)


def _pipeline(config: ACEConfig):
    from ace_playbook.pipeline import PlaybookPipeline

    return PlaybookPipeline.from_config(config)


def cmd_show(args: argparse.Namespace) -> None:
    """Print the whole playbook for a work."""
    from ace_playbook.core.render import (
        TEXT_MAX_TOKENS,
        render_playbook_as_text,
        render_playbook_for_curator,
    )

    async def run() -> None:
        config = load_config()
        pipeline = _pipeline(config)
        try:
            playbook = await pipeline.store.load(args.work_id)
            if args.json:
                print_output(playbook.model_dump(mode="json", exclude=NO_EMBEDDINGS), as_json=True)
            elif args.curator:
                budget = args.max_tokens or config.render.curator_max_tokens
                print(render_playbook_for_curator(playbook, budget))
            else:
                print(render_playbook_as_text(playbook, args.max_tokens or TEXT_MAX_TOKENS))
        finally:
            pipeline.store.close()

    asyncio.run(run())


def cmd_retrieve(args: argparse.Namespace) -> None:
    """Preview the bullets a query would select, without counting hits."""

    async def run() -> None:
        config = load_config()
        pipeline = _pipeline(config)
        try:
            playbook = await pipeline.store.load(args.work_id)
            selection = await pipeline.retriever.select(playbook, args.query, args.top_k)
        finally:
            pipeline.store.close()

        if args.json:
            print_output(
                [
                    {
                        "id": s.bullet.id,
                        "section": s.section_key,
                        "score": s.score,
                        "content": s.bullet.content,
                    }
                    for s in selection
                ],
                as_json=True,
            )
        else:
            print(f"Found {len(selection)} bullets:")
            for s in selection:
                b = s.bullet
                print(f"\n[{b.id}] ({s.section_key})")
                print(f"  {b.content}")
                print(
                    f"  Hits: {b.hit_count} | Helpful: {b.helpful_count}"
                    f" | Harmful: {b.harmful_count}"
                )

    asyncio.run(run())


def cmd_addon(args: argparse.Namespace) -> None:
    """Build the system prompt addon for a query (counts hits)."""

    async def run() -> None:
        config = load_config()
        pipeline = _pipeline(config)
        try:
            addon = await pipeline.get_system_prompt_addon(args.work_id, args.query, args.top_k)
            await pipeline.store.wait_for_pending_saves()
        finally:
            pipeline.store.close()
        if args.json:
            print_output(addon.to_dict(), as_json=True)
        else:
            print(addon.text)

    asyncio.run(run())


def cmd_apply(args: argparse.Namespace) -> None:
    """Apply ADD operations from a JSON file (a list, or an object with "operations")."""

    async def run() -> None:
        data = read_json_input(args.ops)
        operations = data.get("operations") if isinstance(data, dict) else data
        config = load_config()
        pipeline = _pipeline(config)
        try:
            result = await pipeline.commit(args.work_id, operations)
        finally:
            pipeline.store.close()
        print_output(
            {"work_id": result.playbook.work_id, "added": result.added, "merged": result.merged},
            as_json=args.json,
        )

    asyncio.run(run())


def cmd_tag(args: argparse.Namespace) -> None:
    """Tag a bullet as helpful or harmful."""

    async def run() -> None:
        tag = "helpful" if args.helpful else "harmful"
        config = load_config()
        pipeline = _pipeline(config)
        try:
            updated = await pipeline.tag(
                args.work_id, [{"id": args.bullet_id, "tag": tag}] * args.count
            )
        finally:
            pipeline.store.close()
        print_output(
            {"bullet_id": args.bullet_id, "tag": tag, "updated": updated}, as_json=args.json
        )

    asyncio.run(run())


def cmd_reset(args: argparse.Namespace) -> None:
    """Replace a work's playbook with an empty one."""
    if not args.yes:
        print("Refusing to reset without --yes")
        sys.exit(1)

    async def run() -> None:
        config = load_config()
        pipeline = _pipeline(config)
        try:
            playbook = await pipeline.reset(args.work_id)
        finally:
            pipeline.store.close()
        print_output({"work_id": playbook.work_id, "status": "reset"}, as_json=args.json)

    asyncio.run(run())


def cmd_version(args: argparse.Namespace) -> None:
    """Print the package version."""
    print(__version__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ace-playbook",
        description="Evolving per-work playbook memory for an AI writing assistant",
    )
    parser.add_argument("--log-level", default=None, help="Override logging level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--work-id", default="work-default", help="Work whose playbook to use")
        p.add_argument("--json", action="store_true", help="Output as JSON")

    version_parser = subparsers.add_parser("version", help="Print the version")
    version_parser.set_defaults(func=cmd_version)

    show_parser = subparsers.add_parser("show", help="Print the whole playbook")
    add_common(show_parser)
    show_parser.add_argument("--curator", action="store_true", help="Include usage counters")
    show_parser.add_argument("--max-tokens", type=int, default=None, help="Token budget")
    show_parser.set_defaults(func=cmd_show)

    retrieve_parser = subparsers.add_parser("retrieve", help="Preview bullets for a query")
    add_common(retrieve_parser)
    retrieve_parser.add_argument("query", nargs="?", default="", help="Query string")
    retrieve_parser.add_argument("--top-k", type=int, default=10, help="Number of results")
    retrieve_parser.set_defaults(func=cmd_retrieve)

    addon_parser = subparsers.add_parser("addon", help="Render the prompt addon for a query")
    add_common(addon_parser)
    addon_parser.add_argument("query", nargs="?", default="", help="Query string")
    addon_parser.add_argument("--top-k", type=int, default=None, help="Number of bullets")
    addon_parser.set_defaults(func=cmd_addon)

    apply_parser = subparsers.add_parser("apply", help="Apply ADD operations")
    add_common(apply_parser)
    apply_parser.add_argument("--ops", help="Path to operations JSON (or '-' for stdin)")
    apply_parser.set_defaults(func=cmd_apply)

    tag_parser = subparsers.add_parser("tag", help="Tag bullet as helpful or harmful")
    add_common(tag_parser)
    tag_parser.add_argument("bullet_id", help="Bullet ID to tag")
    tag_group = tag_parser.add_mutually_exclusive_group(required=True)
    tag_group.add_argument("--helpful", action="store_true", help="Mark as helpful")
    tag_group.add_argument("--harmful", action="store_true", help="Mark as harmful")
    tag_parser.add_argument("--count", type=int, default=1, help="Number of times to tag")
    tag_parser.set_defaults(func=cmd_tag)

    reset_parser = subparsers.add_parser("reset", help="Reset a work's playbook")
    add_common(reset_parser)
    reset_parser.add_argument("--yes", action="store_true", help="Confirm the reset")
    reset_parser.set_defaults(func=cmd_reset)

    return parser


def main(argv: list[str] | None = None) -> NoReturn:
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config()
    setup_logging(
        level=args.log_level or config.logging.level,
        json_format=config.logging.format == "json",
    )

    args.func(args)
    sys.exit(0)


if __name__ == "__main__":
    main()
