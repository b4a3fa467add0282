from __future__ import annotations

import argparse
import asyncio
from datetime import date
from pathlib import Path
from typing import List, Optional

from loguru import logger

from cubox_tidy.config import AppConfig, configure_logging, get_config
from cubox_tidy.errors import CuboxTidyError
from cubox_tidy.frontmatter import stamp_created
from cubox_tidy.plugin import CuboxPlugin, build_plugin
from cubox_tidy.workspace import VaultWatcher


def build_argparser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="cubox-tidy", description="Tidy Cubox notes and add LLM summaries")
    ap.add_argument("--vault", default=None, help="Vault root (default: config / current directory)")
    ap.add_argument("--config", default=None, help="Optional YAML config")
    ap.add_argument("--settings", default=None, help="Settings JSON file (default: <vault>/.cubox-tidy/data.json)")
    ap.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")

    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("strip", help="Strip Cubox annotations from a note")
    p.add_argument("path")
    p.add_argument("--force", action="store_true", help="Skip the target folder check")

    p = sub.add_parser("summarize", help="Summarize a note into its summary section")
    p.add_argument("path")

    p = sub.add_parser("stamp", help="Add a created date to a note's front matter")
    p.add_argument("path")

    p = sub.add_parser("watch", help="Watch the target folder for new notes")
    p.add_argument("--interval", type=float, default=None, help="Polling interval in seconds")
    p.add_argument("--rounds", type=int, default=None, help="Stop after this many polls")

    p = sub.add_parser("settings", help="Show or update persisted settings")
    p.add_argument("--target-folder", default=None)
    p.add_argument("--api-key", default=None)

    return ap


def load_cli_config(args: argparse.Namespace) -> AppConfig:
    cfg = AppConfig.from_yaml(Path(args.config)) if args.config else get_config()
    if args.vault:
        cfg.vault.root = Path(args.vault)
    if args.settings:
        cfg.vault.settings_path = Path(args.settings).resolve()
    if args.log_level:
        cfg.log_level = args.log_level.upper()
    return cfg


def cmd_strip(plugin: CuboxPlugin, args: argparse.Namespace) -> int:
    plugin.vault.set_active(args.path)
    if args.force:
        changed = plugin.format_note(args.path)
    else:
        changed = plugin.format_active_note()
        if changed is None:
            return 1
    print(f"{'Formatted' if changed else 'Unchanged'}: {plugin.vault.relative(args.path)}")
    return 0


def cmd_summarize(plugin: CuboxPlugin, args: argparse.Namespace) -> int:
    plugin.vault.set_active(args.path)
    summary = asyncio.run(plugin.summarize_active_note())
    if summary is None:
        return 1
    print(summary)
    return 0


def cmd_stamp(plugin: CuboxPlugin, args: argparse.Namespace) -> int:
    content = plugin.vault.read(args.path)
    stamped = stamp_created(content, date.today())
    if stamped != content:
        plugin.vault.modify(args.path, stamped)
    print(f"Stamped: {plugin.vault.relative(args.path)}")
    return 0


async def _watch(plugin: CuboxPlugin, interval: float, rounds: Optional[int]) -> None:
    plugin.on_load()
    folder = plugin.settings.target_folder
    if not folder:
        plugin.notifier.warn("No target folder configured; new notes will be ignored")
    watcher = VaultWatcher(plugin.vault, folder=folder, interval=interval)
    logger.info(f"Watching {plugin.vault.root / folder} every {interval}s")
    try:
        await watcher.run(stop_after=rounds)
        await plugin.scheduler.drain()
    finally:
        plugin.on_unload()


def cmd_watch(plugin: CuboxPlugin, args: argparse.Namespace) -> int:
    interval = args.interval if args.interval is not None else plugin.config.vault.watch_interval
    try:
        asyncio.run(_watch(plugin, interval, args.rounds))
    except KeyboardInterrupt:
        logger.info("Stopped watching")
    return 0


def cmd_settings(plugin: CuboxPlugin, args: argparse.Namespace) -> int:
    store = plugin.settings_store
    if args.target_folder is not None or args.api_key is not None:
        store.update(target_folder=args.target_folder, api_key=args.api_key)
    view = store.public_view()
    for key, value in view.items():
        print(f"{key}: {value}")
    return 0


COMMANDS = {
    "strip": cmd_strip,
    "summarize": cmd_summarize,
    "stamp": cmd_stamp,
    "watch": cmd_watch,
    "settings": cmd_settings,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_argparser().parse_args(argv)
    cfg = load_cli_config(args)
    configure_logging(cfg.log_level)

    plugin = build_plugin(cfg)
    try:
        plugin.settings_store.load()
        return COMMANDS[args.command](plugin, args)
    except (CuboxTidyError, FileNotFoundError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
