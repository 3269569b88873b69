"""proctree - Textual process tree viewer."""

import logging

from pydantic import ValidationError
from rich.markup import escape
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.logging import TextualHandler
from textual.widgets import Footer, Static, Tree
from textual.widgets.tree import TreeNode

from proctree.config import FetchOptions, Settings
from proctree.errors import EnumerationError
from proctree.fetcher import ProcessInfoFetcher
from proctree.models import ProcessNode

logger = logging.getLogger(__name__)


def format_label(node: ProcessNode) -> str:
    """Format a forest node as a tree label."""
    name = escape(node.name) if node.name is not None else "[dim]<exited>[/dim]"
    label = f"{name} [dim]#{node.pid}[/dim]"
    if node.is_service:
        label += " [yellow]service[/yellow]"
    if node.fetched_attributes:
        values = " ".join(value for value in node.fetched_attributes if value)
        if values:
            label += f" [dim]{escape(values[:60])}[/dim]"
    return label


class ProcessTreeView(Container):
    """Container for the process tree widget."""

    DEFAULT_CSS = """
    ProcessTreeView {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._node_count: int = 0

    @property
    def node_count(self) -> int:
        return self._node_count

    def compose(self) -> ComposeResult:
        tree: Tree[ProcessNode] = Tree("processes", id="process-tree")
        tree.show_root = False
        yield tree

    def update_forest(self, roots: list[ProcessNode]) -> None:
        """Replace the tree contents with a new forest."""
        tree = self.query_one("#process-tree", Tree)
        tree.clear()
        self._node_count = 0
        for root in roots:
            self._add(tree.root, root)
        tree.root.expand_all()

    def _add(self, parent: TreeNode, node: ProcessNode) -> None:
        self._node_count += 1
        label = format_label(node)
        if not node.children:
            parent.add_leaf(label, data=node)
            return
        branch = parent.add(label, data=node)
        for child in node.children:
            self._add(branch, child)


class ProcessTreeApp(App):
    """Main proctree application."""

    TITLE = "proctree"
    SUB_TITLE = "Process Tree"

    CSS = """
    Screen {
        layout: vertical;
    }

    #status {
        dock: top;
        height: 1;
        padding: 0 1;
        background: $surface;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "rebuild", "Refresh"),
        ("s", "toggle_services", "Services"),
    ]

    def __init__(self, fetcher: ProcessInfoFetcher | None = None) -> None:
        super().__init__()
        self._fetcher = fetcher or ProcessInfoFetcher(FetchOptions.from_env())
        self._exclude_services = self._fetcher.options.exclude_services

    @property
    def exclude_services(self) -> bool:
        return self._exclude_services

    def compose(self) -> ComposeResult:
        yield Static("Loading processes...", id="status")
        yield ProcessTreeView()
        yield Footer()

    def on_mount(self) -> None:
        self.action_rebuild()

    def action_rebuild(self) -> None:
        """Take a new snapshot and redraw the tree."""
        try:
            roots = self._fetcher.get_processes_tree_structure(
                exclude_services=self._exclude_services,
            )
        except EnumerationError as exc:
            logger.error("Snapshot failed: %s", exc)
            self.notify(str(exc), title="Snapshot failed", severity="error")
            return

        view = self.query_one(ProcessTreeView)
        view.update_forest(roots)
        services = "shown" if not self._exclude_services else "hidden"
        self.query_one("#status", Static).update(
            f"{view.node_count} nodes, {len(roots)} roots, services {services}"
        )

    def action_toggle_services(self) -> None:
        self._exclude_services = not self._exclude_services
        self.action_rebuild()


def main() -> None:
    """Entry point for the proctree application."""
    try:
        settings = Settings()
    except ValidationError as exc:
        raise SystemExit(f"Invalid proctree configuration:\n{exc}") from exc

    logging.basicConfig(level=settings.log_level, handlers=[TextualHandler()])
    app = ProcessTreeApp(ProcessInfoFetcher(settings.to_options()))
    app.run()


if __name__ == "__main__":
    main()
