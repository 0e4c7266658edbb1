from __future__ import annotations
from pathlib import Path
import time

from pydantic import ValidationError
from rich.console import Console
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from schema_agent.config import settings
from schema_agent.model import SQLDialect
from schema_agent.run import run_compile

console = Console()


class Handler(FileSystemEventHandler):
    """Recompiles the schema file whenever it is saved."""

    def __init__(
        self,
        schema_path: Path,
        out_dir: Path | None = None,
        dialect: SQLDialect | None = None,
        theme: str | None = None,
        debounce: float | None = None,
    ):
        self.schema_path = schema_path.resolve()
        self.out_dir = out_dir
        self.dialect = dialect
        self.theme = theme
        self.debounce = settings.watch_debounce if debounce is None else debounce
        self._last: float | None = None

    def on_any_event(self, event):
        if event.is_directory:
            return
        paths = {Path(event.src_path).resolve()}
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.add(Path(dest).resolve())
        if self.schema_path not in paths:
            return

        # editors write in bursts
        now = time.monotonic()
        if self._last is not None and now - self._last < self.debounce:
            return
        self._last = now

        try:
            run_compile(self.schema_path, out_dir=self.out_dir, dialect=self.dialect, theme=self.theme)
        except (ValidationError, OSError) as e:
            console.print(f"[red]Could not compile {self.schema_path.name}:[/red] {e}")


def watch(
    schema_path: Path,
    out_dir: Path | None = None,
    dialect: SQLDialect | None = None,
    theme: str | None = None,
) -> None:
    handler = Handler(schema_path, out_dir, dialect, theme)
    obs = Observer()
    obs.schedule(handler, str(handler.schema_path.parent), recursive=False)
    obs.start()
    console.print(f"Watching [bold]{handler.schema_path}[/bold] (Ctrl+C to stop)")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        obs.stop()
        obs.join()
