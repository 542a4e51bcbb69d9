from __future__ import annotations

import argparse
import asyncio
import logging
from collections.abc import Sequence

from adstudio.config.settings import Settings, get_settings
from adstudio.models import StudioSnapshot
from adstudio.studio import Studio


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="adstudio",
        description="Turn ad briefs into production specs and track video generation jobs.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (defaults to ADSTUDIO_LOG_LEVEL or INFO).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API with uvicorn.")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address.")
    serve.add_argument("--port", type=int, default=8000, help="Bind port.")

    demo = subparsers.add_parser(
        "demo", help="Run one brief end to end in process and print the results."
    )
    demo.add_argument("text", help="Ad brief text.")
    demo.add_argument(
        "--type",
        dest="ad_type",
        choices=["text_poster", "ecommerce"],
        default=None,
        help="Ad type (defaults to settings).",
    )
    demo.add_argument(
        "--model",
        choices=["seedance", "veo3"],
        default=None,
        help="Video model (defaults to settings).",
    )
    demo.add_argument("--versions", type=int, default=1, help="Number of versions to generate.")
    demo.add_argument(
        "--language", choices=["zh", "en"], default=None, help="Specification language."
    )
    demo.add_argument("--no-export", action="store_true", help="Skip the aggregate export.")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    if args.command == "serve":
        import uvicorn

        uvicorn.run("adstudio.api.main:app", host=args.host, port=args.port)
        return 0
    return asyncio.run(_run_demo(args, settings))


async def _run_demo(args: argparse.Namespace, settings: Settings) -> int:
    studio = Studio(settings=settings)
    if args.language:
        studio.set_preferences(language=args.language)
    studio.subscribe(_progress_printer())

    parse = studio.submit(args.text, ad_type=args.ad_type, model=args.model)
    if parse is None:
        print("Brief was empty; nothing to do.")
        return 2
    spec_turn = await parse
    if spec_turn is None:
        print(studio.workflow.last_error)
        return 1

    print(spec_turn.content)
    print()
    created = studio.commit(args.versions)
    print(f"Queued {len(created)} generation job(s).")
    await studio.tasks.wait_idle()

    for task in studio.tasks.list_tasks():
        detail = task.result_url if task.status == "completed" else task.error
        print(f"  - {task.task_id} {task.status} {detail or ''}".rstrip())

    if not args.no_export:
        result = await studio.export_all()
        print(f"Export {result.outcome}: {len(result.exported_task_ids)} video(s)")
        if result.outcome == "failed":
            await studio.shutdown()
            return 1
    await studio.shutdown()
    return 0


def _progress_printer():
    seen: dict[str, tuple[str, int | None]] = {}

    def _print(snapshot: StudioSnapshot) -> None:
        for task in snapshot.tasks:
            current = (task.status, task.progress)
            if seen.get(task.task_id) == current:
                continue
            seen[task.task_id] = current
            print(f"[{task.task_id[:8]}] {task.status:<10} {task.progress or 0:>3}%")

    return _print


if __name__ == "__main__":
    raise SystemExit(main())
