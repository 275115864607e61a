"""Executable Textual app that hosts the overlay engine."""

from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Optional, Sequence

try:  # pragma: no cover - imported only when demo is run
    from textual.app import App, ComposeResult
    from textual.containers import Horizontal, VerticalScroll
    from textual.widgets import Footer, Header, Static
except ModuleNotFoundError as exc:  # pragma: no cover - friendly error for missing dep
    raise RuntimeError(
        "Install the 'textual' package to use overlay_engine.adapters.textual.app"
    ) from exc

from overlay_engine.document import (
    DocumentNode,
    DocumentTree,
    Transaction,
    TransactionBuilder,
    paragraph,
    parse_markdown,
)
from overlay_engine.runtime.config import EngineConfig, RebuildPolicy
from overlay_engine.widgets import WidgetContainer

from .controller import TextualOverlayAdapter, TextualOverlayHooks, TextualTicker

DEFAULT_DOCUMENT = """\
# Code runner demo

Each python block gets a runner panel on the right.

```python
print("hello")
```

```go
fmt.Println("not runnable")
```

- up/down select a block
- t toggles the language of a code block

```py
total = sum(range(10))
```
"""


class OverlayDemoApp(App[None]):
    """Document view on the left, persistent runner panels on the right."""

    CSS = """
	#document {
		width: 2fr;
		border: round $accent;
		padding: 0 1;
	}

	#runners {
		width: 1fr;
		border: round $secondary;
	}

	.runner {
		border: tall $surface-lighten-2;
		padding: 0 1;
		margin-bottom: 1;
	}

	#status-line {
		height: 1;
		background: $surface-darken-1;
		padding: 0 1;
	}
	"""

    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
        ("up", "select(-1)", "Prev"),
        ("down", "select(1)", "Next"),
        ("p", "prepend", "Prepend paragraph"),
        ("t", "toggle_language", "Toggle language"),
        ("x", "delete_block", "Delete block"),
        ("r", "run_block", "Run"),
    ]

    def __init__(
        self, *, source: str = DEFAULT_DOCUMENT, config: Optional[EngineConfig] = None
    ) -> None:
        super().__init__()
        self._source = source
        self._config = config or EngineConfig()
        self.adapter: TextualOverlayAdapter | None = None
        self._tree = DocumentTree()
        self._selected = 0
        self._panel_counter = 0
        self._document_widget: Static | None = None
        self._runner_area: VerticalScroll | None = None
        self._status_widget: Static | None = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Horizontal():
            self._document_widget = Static("", id="document", markup=False)
            yield self._document_widget
            self._runner_area = VerticalScroll(id="runners")
            yield self._runner_area
        self._status_widget = Static("", id="status-line", markup=False)
        yield self._status_widget
        yield Footer()

    def on_mount(self) -> None:
        hooks = TextualOverlayHooks(
            mount_widget=self._mount_panel,
            update_widget=self._update_panel,
            unmount_widget=self._unmount_panel,
            update_status=self._update_status,
            log=self.log.info,
        )
        self.adapter = TextualOverlayAdapter(
            hooks, ticker=TextualTicker(self), config=self._config
        )
        self._tree = parse_markdown(self._source)
        self.adapter.load(self._tree)
        self._refresh_document()

    def on_unmount(self) -> None:
        if self.adapter:
            self.adapter.close()
            self.adapter = None

    def action_select(self, delta: int) -> None:
        if not self._tree.children:
            return
        self._selected = (self._selected + delta) % len(self._tree.children)
        self._dispatch(
            Transaction.selection_only(self._tree, self._selected_position())
        )

    def action_prepend(self) -> None:
        with TransactionBuilder(self._tree, label="prepend") as tx:
            tx.insert_node(0, paragraph("Inserted paragraph."))
        self._selected += 1
        self._dispatch(tx.build())

    def action_toggle_language(self) -> None:
        node = self._selected_node()
        if node is None or node.kind not in self._config.block_kinds:
            self._update_status("selection is not a code block")
            return
        runnable = node.language in self._config.languages
        language = "go" if runnable else self._config.languages[0]
        with TransactionBuilder(self._tree, label="set_language") as tx:
            tx.set_node_attrs(self._selected_position(), language=language)
        self._dispatch(tx.build())

    def action_delete_block(self) -> None:
        if self._selected_node() is None:
            return
        with TransactionBuilder(self._tree, label="delete_block") as tx:
            tx.delete_node(self._selected_position())
        self._selected = max(0, self._selected - 1)
        self._dispatch(tx.build())

    def action_run_block(self) -> None:
        node = self._selected_node()
        if node is None or self.adapter is None:
            return
        anchor = self._selected_position() + node.size
        if anchor not in self.adapter.engine.cache:
            self._update_status("no runner widget for this block")
            return
        self.adapter.run(anchor)

    def _dispatch(self, transaction: Transaction) -> None:
        if self.adapter is None:
            return
        self.adapter.dispatch(transaction)
        self._tree = transaction.after
        self._refresh_document()

    def _selected_node(self) -> Optional[DocumentNode]:
        if 0 <= self._selected < len(self._tree.children):
            return self._tree.children[self._selected]
        return None

    def _selected_position(self) -> int:
        return sum(child.size for child in self._tree.children[: self._selected])

    def _refresh_document(self) -> None:
        if self._document_widget is None:
            return
        lines = []
        for index, node in enumerate(self._tree.children):
            marker = ">" if index == self._selected else " "
            label = node.kind if node.language is None else f"{node.kind}:{node.language}"
            preview = node.text_content.replace("\n", " | ")[:60]
            lines.append(f"{marker} [{label}] {preview}")
        self._document_widget.update("\n".join(lines))
        self._update_status(
            f"version {self._tree.version} | widgets {len(self.adapter.engine.cache) if self.adapter else 0}"
        )

    def _mount_panel(self, container: WidgetContainer) -> None:
        self._panel_counter += 1
        panel = Static(
            "", id=f"runner-{self._panel_counter}", classes="runner", markup=False
        )
        container.handle = panel
        if self._runner_area is not None:
            self._runner_area.mount(panel)

    def _update_panel(self, container: WidgetContainer, text: str) -> None:
        panel = container.handle
        if isinstance(panel, Static):
            panel.update(text)

    def _unmount_panel(self, container: WidgetContainer) -> None:
        panel = container.handle
        container.handle = None
        if isinstance(panel, Static):
            panel.remove()

    def _update_status(self, status: str) -> None:
        if self._status_widget:
            self._status_widget.update(status)


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the overlay engine Textual demo.")
    parser.add_argument(
        "document",
        nargs="?",
        type=Path,
        help="Markdown file to load (default: built-in sample)",
    )
    parser.add_argument(
        "--languages",
        default=os.environ.get("OVERLAY_ENGINE_LANGUAGES", "python,py"),
        help="Comma separated runnable languages (default: python,py)",
    )
    parser.add_argument(
        "--rebuild-policy",
        choices=[policy.value for policy in RebuildPolicy],
        default=os.environ.get("OVERLAY_ENGINE_REBUILD_POLICY", RebuildPolicy.ANY_CHANGE.value),
        help="Rescan on any content change or only when code blocks are touched",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)
    source = args.document.read_text(encoding="utf-8") if args.document else DEFAULT_DOCUMENT
    languages = tuple(item.strip() for item in args.languages.split(",") if item.strip())
    config = EngineConfig(
        languages=languages, rebuild_policy=RebuildPolicy.parse(args.rebuild_policy)
    )
    OverlayDemoApp(source=source, config=config).run()


if __name__ == "__main__":  # pragma: no cover - manual demo
    main()
