"""Executable Textual app that hosts the keen editing core."""

from __future__ import annotations

import argparse
from dataclasses import replace
from types import MappingProxyType
from typing import List, Mapping, Optional, Sequence, Tuple

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.widgets import Footer, Static

from keen import __version__
from keen.buffer import RenderSnapshot, SequenceStore
from keen.config import Settings
from keen.editor import Editor
from keen.errors import DocumentLoadError
from keen.language import HighlightCategory
from keen.runtime import telemetry

from .controller import TextualEditorAdapter, TextualUIHooks

CATEGORY_STYLES: Mapping[HighlightCategory, str] = MappingProxyType(
    {
        HighlightCategory.VARIABLE: "#9cdcfe",
        HighlightCategory.FUNCTION: "#dcdcaa",
        HighlightCategory.METHOD: "#dcdcaa",
        HighlightCategory.CLASS: "#4ec9b0",
        HighlightCategory.ENUM: "#4ec9b0",
        HighlightCategory.COMMENT: "#6a9955",
        HighlightCategory.KEYWORD: "#569cd6",
        HighlightCategory.LITERAL: "#ce9178",
        HighlightCategory.MACRO: "#c586c0",
        HighlightCategory.PREPROCESSOR: "#c586c0",
        HighlightCategory.PRIMITIVE: "#569cd6",
    }
)
GUTTER_STYLE = "dim"
BRACKET_STYLE = "bold underline"
SELECTION_STYLE = "on #264f78"
CARET_STYLE = "reverse"

# (first, last, index): view offsets [first, last) start at ``index`` in the Text.
_Segment = Tuple[int, int, int]


def _stylize(
    output: Text, segments: Sequence[_Segment], start: int, end: int, style: str
) -> None:
    for first, last, index in segments:
        low, high = max(start, first), min(end, last)
        if low < high:
            output.stylize(style, index + low - first, index + high - first)


def render_snapshot_text(snapshot: Optional[RenderSnapshot], columns: int) -> Text:
    """Lay a snapshot out as gutter plus visible text, one row per line."""

    output = Text(no_wrap=True, overflow="crop")
    if snapshot is None:
        return output
    lines = SequenceStore.from_text(snapshot.text)
    width = max(1, columns - snapshot.margin_width)
    caret = snapshot.caret + snapshot.caret_trailing
    segments: List[_Segment] = []

    for row, number in enumerate(snapshot.line_numbers):
        if row >= lines.len_lines():
            break
        if row:
            output.append("\n")
        gutter = str(number).rjust(max(snapshot.margin_width - 1, 0)) + " "
        output.append(gutter, style=GUTTER_STYLE)
        line_start = lines.line_to_char(row)
        length = lines.line_content_length(row)
        first = line_start + min(snapshot.column_offset, length)
        last = line_start + min(snapshot.column_offset + width, length)
        index = len(output)
        output.append(snapshot.text[first:last])
        if caret == last and last == line_start + length:
            output.append(" ")
            segments.append((first, last + 1, index))
        else:
            segments.append((first, last, index))

    for span in snapshot.spans:
        style = CATEGORY_STYLES.get(span.category)
        if style:
            _stylize(output, segments, span.start, span.end, style)
    if snapshot.brackets is not None:
        for offset in snapshot.brackets:
            _stylize(output, segments, offset, offset + 1, BRACKET_STYLE)
    if snapshot.selection is not None:
        start, length = snapshot.selection
        _stylize(output, segments, start, start + length, SELECTION_STYLE)
    if snapshot.caret_visible:
        _stylize(output, segments, caret, caret + 1, CARET_STYLE)
    return output


class KeenApp(App[None]):
    """Terminal host: one buffer view and a status line."""

    CSS = """
	Screen {
		layout: vertical;
	}

	#buffer-view {
		height: 1fr;
		padding: 0;
		content-align: left top;
	}

	#status-line {
		height: 1;
		background: $surface-darken-1;
		padding: 0 1;
	}
	"""

    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self, paths: Sequence[str] = (), *, settings: Optional[Settings] = None
    ) -> None:
        super().__init__()
        self.paths = tuple(paths)
        self.editor = Editor(settings=settings or Settings.from_env())
        self.adapter: TextualEditorAdapter | None = None
        self._view: Static | None = None
        self._status: Static | None = None

    def compose(self) -> ComposeResult:
        self._view = Static("", id="buffer-view")
        self._status = Static("", id="status-line")
        yield self._view
        yield self._status
        yield Footer()

    def on_mount(self) -> None:
        for path in self.paths:
            try:
                self.editor.open_file(path)
            except DocumentLoadError as exc:
                self.editor.status = str(exc)
        hooks = TextualUIHooks(
            update_view=self._update_view,
            update_status=self._update_status,
            log=self._log_line,
        )
        self.adapter = TextualEditorAdapter(self.editor, hooks)
        self.call_after_refresh(self._sync_size)
        interval = min(self.editor.settings.caret_blink_ms / 1000.0, 0.05)
        self.set_interval(interval, self._tick)

    def on_unmount(self) -> None:
        self.editor.shutdown()

    def _sync_size(self) -> None:
        if self.adapter and self._view:
            size = self._view.size
            self.adapter.resize(max(size.height, 1), max(size.width, 1))

    def on_resize(self, event: events.Resize) -> None:
        self.call_after_refresh(self._sync_size)

    def _tick(self) -> None:
        if self.adapter:
            self.adapter.tick()

    async def on_key(self, event: events.Key) -> None:
        if not self.adapter:
            return
        key, text, modifiers = self._normalize_key(event)
        if self.adapter.handle_textual_key(key, text=text, modifiers=modifiers):
            event.stop()

    def on_mouse_down(self, event: events.MouseDown) -> None:
        offset = self._content_offset(event)
        if self.adapter and offset is not None:
            chain = int(getattr(event, "chain", 1) or 1)
            self.adapter.handle_mouse_down(
                offset[0], offset[1], shift=event.shift, chain=chain
            )
            self.capture_mouse(self._view)

    def on_mouse_up(self, event: events.MouseUp) -> None:
        if self.adapter:
            self.adapter.handle_mouse_up()
        self.capture_mouse(None)

    def on_mouse_move(self, event: events.MouseMove) -> None:
        offset = self._content_offset(event)
        if self.adapter and offset is not None:
            self.adapter.handle_mouse_move(offset[0], offset[1])

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        if self.adapter:
            self.adapter.handle_scroll(-1)

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        if self.adapter:
            self.adapter.handle_scroll(1)

    def _content_offset(self, event: events.MouseEvent) -> Optional[Tuple[int, int]]:
        if self._view is None:
            return None
        offset = event.get_content_offset(self._view)
        if offset is None:
            return None
        return (offset.x, offset.y)

    def _update_view(self, snapshot: Optional[RenderSnapshot]) -> None:
        if self._view:
            columns = max(self._view.size.width, 1)
            self._view.update(render_snapshot_text(snapshot, columns))

    def _update_status(self, status: str) -> None:
        if self._status:
            self._status.update(status)

    def _log_line(self, line: str) -> None:
        telemetry.record_event("ui.input", level="debug", data={"line": line})

    @staticmethod
    def _normalize_key(
        event: events.Key,
    ) -> Tuple[str, Optional[str], Tuple[str, ...]]:
        parts = event.key.split("+")
        key = parts[-1]
        modifiers = tuple(parts[:-1])
        text = event.character if event.is_printable else None
        if text and len(text) == 1 and "shift" in modifiers:
            modifiers = tuple(mod for mod in modifiers if mod != "shift")
        return (key, text, modifiers)


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="keen", description="Edit files with the keen terminal editor."
    )
    parser.add_argument("paths", nargs="*", help="Files to open")
    parser.add_argument(
        "--no-lsp",
        action="store_true",
        help="Do not start language servers",
    )
    parser.add_argument(
        "--indent-width",
        type=int,
        default=None,
        help="Spaces per indent level (default: KEEN_INDENT_WIDTH or 4)",
    )
    parser.add_argument(
        "--log-preset",
        choices=("development", "production", "performance"),
        default=None,
        help="telelog preset to use instead of the KEEN_LOG_* environment",
    )
    parser.add_argument("--version", action="version", version=__version__)
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    if args.no_lsp:
        settings = replace(settings, lsp_enabled=False)
    if args.indent_width is not None:
        settings = replace(settings, indent_width=args.indent_width)
    return settings


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)
    # Console logging would draw over the terminal UI.
    telemetry.configure(preset=args.log_preset or "production")
    app = KeenApp(args.paths, settings=build_settings(args))
    app.run()


if __name__ == "__main__":  # pragma: no cover - manual launch
    main()
