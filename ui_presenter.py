import sys
import os
import time
import threading
import statistics
import psutil
from rich.console import Console
from rich.panel import Panel
from events import TransferObserver
from utility import draw_progress_line, format_bytes

class ResourceMonitor:
    """Monitors system resources (Background Thread)"""
    def __init__(self, pid):
        self.process = psutil.Process(pid)
        self.running = False
        self.samples = {'cpu': [], 'memory': []}
        self.thread = None

    def start(self):
        self.running = True
        self.thread = threading.Thread(target=self._monitor_loop, daemon=True)
        self.thread.start()

    def stop(self):
        self.running = False
        if self.thread and self.thread.is_alive():
            self.thread.join(timeout=1.0)

    def _monitor_loop(self):
        self.process.cpu_percent()
        while self.running:
            try:
                cpu = self.process.cpu_percent(interval=None)
                mem = self.process.memory_info().rss
                self.samples['cpu'].append(cpu)
                self.samples['memory'].append(mem)
                time.sleep(0.5)
            except (psutil.NoSuchProcess, psutil.AccessDenied): break

    def get_stats(self):
        if not self.samples['cpu']: return None
        return {
            'avg_cpu': statistics.mean(self.samples['cpu']),
            'avg_mem': statistics.mean(self.samples['memory'])
        }

class TerminalPresenter(TransferObserver):
    """
    Plain text presenter for transfer notifications.
    Notifications arrive on the router thread, so every method only prints.
    """
    def __init__(self, console=None, dev_mode=False):
        self.console = console if console else Console()
        self.dev_mode = dev_mode
        self.task_meta = {}
        self.monitor = None
        self._lock = threading.Lock()

    def print_banner(self):
        art = """
      ( (
       ) )
    ........
    |      |]  [bold green]SeedDrop[/]
    \\      /   [dim]libtorrent core[/]
     `----'
    """
        self.console.print(Panel(art, border_style="green", expand=False))

    def print_system(self, msg):
        self.console.print(f"[bold cyan][System][/] {msg}")

    def track(self, request_id, label):
        """Remember a display label for a transfer the shell just started."""
        with self._lock:
            if self.dev_mode and self.monitor is None:
                self.monitor = ResourceMonitor(os.getpid())
                self.monitor.start()
            self.task_meta[request_id] = {
                'label': os.path.basename(label) or label,
                'start_time': time.time(),
                'bytes': 0,
            }

    def untrack(self, request_id):
        """Forget a transfer that never started."""
        self._finish(request_id)

    def _finish(self, request_id):
        with self._lock:
            meta = self.task_meta.pop(request_id, None)
            if not self.task_meta and self.monitor:
                self.monitor.stop()
                stats = self.monitor.get_stats()
                self.monitor = None
                if stats:
                    print(f"   [Dev] CPU: {stats['avg_cpu']:.1f}% | Mem: {format_bytes(stats['avg_mem'])}")
        return meta

    def on_progress(self, notification):
        meta = self.task_meta.get(notification.request_id)
        label = meta['label'] if meta else notification.request_id
        if meta:
            meta['bytes'] = notification.bytes_transferred
        draw_progress_line(f"{notification.phase}: {label}", notification.percent,
                           notification.bytes_transferred, notification.summary)

    def on_completed(self, notification):
        sys.stdout.write("\n")
        meta = self._finish(notification.request_id)
        if meta:
            total_time = time.time() - meta['start_time']
            avg_speed = meta['bytes'] / total_time if total_time > 0 else 0
            print(f"✔ Completed: {meta['label']}")
            print(f"   Time:  {total_time:.2f}s")
            print(f"   Avg Speed: {format_bytes(avg_speed)}/s")
        else:
            print(f"✔ Completed task: {notification.request_id}")

    def on_failed(self, notification):
        sys.stdout.write("\n")
        self._finish(notification.request_id)
        print(f"✘ Failed ({notification.request_id}): {notification.message}")
