# cli_shell.py
import asyncio
import shlex
import os
import uuid
import questionary
from functools import partial
from typing import Dict, Callable
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from prompt_toolkit import PromptSession
from prompt_toolkit.completion import NestedCompleter
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.styles import Style

from config_manager import ConfigEditor
from errors import TransferError

CONFIG_KEYS = {
    "save_path": "storage",
    "temp_path": "storage",
    "creator": "descriptor",
    "listen_interfaces": "engine",
    "enable_dht": "engine",
}

def new_request_id():
    return uuid.uuid4().hex[:12]

class CommandShell:
    def __init__(self, manager, ui, settings, config_path, console=None):
        self.manager = manager
        self.ui = ui
        self.settings = settings
        self.config_path = config_path
        self.editor = ConfigEditor(config_path)
        self.console = console if console else Console()
        self.commands: Dict[str, dict] = {}

        self.register_command("seed", self.cmd_seed, "Seed a file and print its magnet link")
        self.register_command("download", self.cmd_download, "Download from a magnet link")
        self.register_command("list", self.cmd_list, "Show active transfers")
        self.register_command("cancel", self.cmd_cancel, "Cancel a transfer")
        self.register_command("config", self.cmd_config, "View/Edit config")
        self.register_command("help", self.cmd_help, "Show help")
        self.register_command("clear", self.cmd_clear, "Clear screen")
        self.register_command("exit", self.cmd_exit, "Exit")

    def register_command(self, name: str, func: Callable, help_text: str):
        self.commands[name] = {'func': func, 'help': help_text}

    def _get_completer(self):
        return NestedCompleter.from_nested_dict({
            "seed": None, "download": None, "list": None, "cancel": None,
            "clear": None, "help": None, "exit": None,
            "config": {"show": None, "set": {key: None for key in CONFIG_KEYS}}
        })

    async def run(self):
        style = Style.from_dict({'prompt': 'bg:#00aa00 #000000 bold', 'count': '#00ff00 bold'})
        session = PromptSession(completer=self._get_completer(), style=style)

        self.ui.print_banner()
        self.ui.print_system(f"Config: [bold cyan]{self.config_path}[/]")
        self.ui.print_system(f"Downloads: [bold cyan]{self.settings.storage.save_path}[/]")

        while True:
            try:
                with patch_stdout():
                    active = len(self.manager.active_transfers())
                    notify = f" (<count>{active} active</count>)" if active else ""
                    text = await session.prompt_async(HTML(f"<prompt> SeedDrop </prompt>{notify} > "))

                if not text.strip(): continue
                parts = shlex.split(text)
                await self.execute(parts[0].lower(), parts[1:])
            except (KeyboardInterrupt, EOFError): break
            except Exception as e: self.console.print(f"[red]❌ Shell Error: {e}[/]")

    async def execute(self, cmd_name, args):
        if cmd_name in self.commands:
            await self.commands[cmd_name]['func'](args)
        else:
            self.console.print(f"[red]❌ Unknown command: '{cmd_name}'[/]")

    # --- Commands ---
    async def cmd_seed(self, args):
        path = args[0] if args else await questionary.path("File:", default=os.getcwd() + os.sep).ask_async()
        if not path: return
        path = os.path.expanduser(path)
        request_id = args[1] if len(args) > 1 else new_request_id()

        self.ui.track(request_id, path)
        loop = asyncio.get_running_loop()
        try:
            # Hashing pieces is blocking work
            locator = await loop.run_in_executor(None, partial(self.manager.start_seeding, path, request_id))
        except TransferError as e:
            self.ui.untrack(request_id)
            self.console.print(f"[red]❌ Seed failed: {e}[/]")
            return
        self.console.print(Panel(locator, title=f"🧲 {request_id}", border_style="green", expand=False))

    async def cmd_download(self, args):
        locator = args[0] if args else await questionary.text("Magnet link:").ask_async()
        if not locator: return
        save_dir = args[1] if len(args) > 1 else self.settings.storage.save_path
        request_id = args[2] if len(args) > 2 else new_request_id()

        self.ui.track(request_id, request_id)
        try:
            self.manager.start_download(locator, save_dir, request_id)
        except TransferError as e:
            self.ui.untrack(request_id)
            self.console.print(f"[red]❌ Download failed: {e}[/]")
            return
        self.console.print(f"[green]⬇ Downloading into {save_dir} as {request_id}[/]")

    async def cmd_list(self, args):
        transfers = self.manager.active_transfers()
        if not transfers: return self.console.print("[dim]No active transfers.[/]")
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Request"); table.add_column("Content Hash", style="green")
        for request_id, entry in transfers.items(): table.add_row(request_id, entry.content_hash)
        self.console.print(table)

    async def cmd_cancel(self, args):
        transfers = self.manager.active_transfers()
        if not args and not transfers: return self.console.print("[dim]No active transfers.[/]")
        request_id = args[0] if args else await questionary.select("Cancel:", choices=list(transfers.keys())).ask_async()
        if request_id and self.manager.cancel(request_id):
            self.console.print(f"[yellow]🛑 Cancelled {request_id}[/]")
        else:
            self.console.print(f"[red]❌ Not found[/]")

    async def cmd_config(self, args):
        if not args or args[0] == "show":
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    self.console.print(Panel(f.read().strip(), title=f"📄 {self.config_path}", border_style="blue"))
            except OSError as e: self.console.print(f"[red]Error: {e}[/]")
            return

        if args[0] == "set" and len(args) >= 3:
            key, value = args[1], args[2]
            section = CONFIG_KEYS.get(key)
            if not section: return self.console.print(f"[red]❌ Unknown key: {key}[/]")
            if key == "enable_dht": value = value.lower() in ("1", "true", "yes", "on")

            success, msg = self.editor.update_key(section, key, value)
            if success: self.console.print(f"[green]✔ {msg} (applies on restart)[/]")
            else: self.console.print(f"[red]❌ Failed: {msg}[/]")
            return

        self.console.print("[yellow]Usage: config [show | set <key> <value>][/]")

    async def cmd_help(self, args):
        table = Table(title="Available Commands", box=None)
        table.add_column("Command", style="cyan bold"); table.add_column("Description", style="dim")
        for name, data in self.commands.items(): table.add_row(name, data['help'])
        self.console.print(table)

    async def cmd_clear(self, args): self.console.clear()
    async def cmd_exit(self, args): self.console.print("[bold red]Bye![/]"); raise EOFError
