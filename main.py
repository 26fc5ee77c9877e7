import sys
import asyncio
import argparse
import logging
import os

from rich.console import Console

from cli_shell import CommandShell
from config_manager import Settings
from constants import DEFAULT_CONFIG_PATH
from logger_config import setup_logging
from transfer_manager import TransferSessionManager
from ui_presenter import TerminalPresenter

logger = logging.getLogger("Main")
console = Console()

async def main():
    args = parse_args()

    if not os.path.exists(args.config):
        console.print(f"[red]❌ Error: Config file '{args.config}' not found.[/]")
        return 1

    try:
        settings = Settings(args.config)
    except (ValueError, OSError) as e:
        console.print(f"[red]❌ Error: {e}[/]")
        return 1

    log_cfg = settings.logging
    setup_logging(
        log_filename=log_cfg.file_path,
        debug_mode=args.verbose or log_cfg.debug,
        max_size_mb=log_cfg.max_size_mb,
        backup_count=log_cfg.backup_count,
    )

    ui = TerminalPresenter(console=console, dev_mode=args.verbose)
    try:
        manager = TransferSessionManager.instance(settings)
    except Exception as e:
        logger.exception("Failed to start transfer engine")
        console.print(f"[red]❌ Failed to start engine: {e}[/]")
        return 1

    manager.subscribe(ui)
    try:
        await CommandShell(manager, ui, settings, args.config, console=console).run()
    finally:
        manager.shutdown()
    return 0

def parse_args():
    parser = argparse.ArgumentParser(description="SeedDrop P2P File Transfer")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("-c", "--config", type=str, default=DEFAULT_CONFIG_PATH, help=f"Path to configuration file (default: {DEFAULT_CONFIG_PATH})")
    return parser.parse_args()

def run():
    try: sys.exit(asyncio.run(main()))
    except KeyboardInterrupt: pass

if __name__ == "__main__":
    run()
