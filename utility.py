import shutil
import sys

def format_bytes(size):
    power = 2**10
    n = 0
    power_labels = {0 : '', 1: 'K', 2: 'M', 3: 'G', 4: 'T'}
    while size > power and n < 4:
        size /= power
        n += 1
    return f"{size:.2f} {power_labels[n]}B"

def shorten(name, width=15):
    if len(name) > width:
        return name[:width - 3] + "..."
    return name

def draw_progress_line(label, percent, transferred, summary):
    term_width = shutil.get_terminal_size().columns
    bar_width = max(10, term_width - 75)

    percent = max(0, min(100, percent))
    filled_len = bar_width * percent // 100
    bar = "█" * filled_len + "░" * (bar_width - filled_len)

    output = (
        f"\r{shorten(label)} "
        f"[{bar}] {percent}% "
        f"| {format_bytes(transferred)} "
        f"| {summary}"
    )

    padding = " " * max(0, term_width - len(output) - 1)
    sys.stdout.write(output + padding)
    sys.stdout.flush()
