import logging
from typing import List, Optional

from rich.markup import escape
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Footer, Header, Label, LoadingIndicator, Markdown, Tree

from depaudit.__version__ import __version__
from depaudit.core.auditor import DependencyAuditor
from depaudit.core.model import CheckResult, Dependency, Severity, Status, Vulnerability

SEVERITY_COLORS = {
    Severity.CRITICAL: "magenta",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "cyan",
}


def node_label(node: Dependency) -> str:
    """Rich markup for one dependency row."""
    safe_name = escape(node.name)
    safe_ver = escape(node.version)

    child_count = len(node.children)
    count_suffix = f" [dim]↳[/] {child_count}" if child_count > 0 else ""
    kind = "" if node.direct else " [dim](transitive)[/]"

    if node.vulnerable:
        color = SEVERITY_COLORS.get(node.severity, "red")
        summary = escape(f"{node.severity.value}, {len(node.vulnerabilities)} vulns")
        return f"[bold {color}](!) {safe_name}[/] [dim]{safe_ver}[/] [{color}]({summary})[/]{kind}{count_suffix}"
    return f"[green](•) {safe_name} [dim]{safe_ver}[/]{kind}{count_suffix}"


def has_vulnerable_descendant(node: Dependency) -> bool:
    if node.vulnerable:
        return True
    return any(has_vulnerable_descendant(child) for child in node.children)


def vulnerability_report(vulns: List[Vulnerability]) -> str:
    md_output = []

    for vuln in vulns:
        md_output.append(f"# (X) {vuln.id}\n")
        md_output.append(f"**{vuln.description or 'No description available.'}**\n")
        md_output.append(f"- **Severity**: {vuln.severity.value} (CVSS {vuln.cvss:.1f})")
        if vuln.published:
            md_output.append(f"- **Published**: {vuln.published.isoformat()}")
        if vuln.fixed:
            md_output.append(f"- **Fixed in**: {vuln.fixed}")

        osv_url = f"https://osv.dev/vulnerability/{vuln.id}"
        md_output.append(f"- **OSV Database**: [{osv_url}]({osv_url})")
        md_output.append("\n---\n")

    if not md_output:
        return "No vulnerability data found."

    return "\n".join(md_output)


class VulnerabilityScreen(ModalScreen):
    """Modal to display vulnerability details in a clean view."""

    DEFAULT_CSS = """
    VulnerabilityScreen {
        align: center middle;
        background: rgba(0, 0, 0, 0.8);
    }
    #dialog {
        padding: 0 1;
        width: 85%;
        height: 85%;
        border: heavy $error;
        background: $surface;
        layout: vertical;
    }
    #title {
        text-align: center;
        text-style: bold;
        background: $error;
        color: white;
        width: 100%;
        padding: 1;
    }
    #content-scroll {
        height: 1fr;
        margin: 1 0;
        overflow-y: auto;
    }
    #close-btn {
        width: 100%;
        dock: bottom;
    }
    """

    def __init__(self, node: Dependency) -> None:
        super().__init__()
        self.node = node

    def compose(self) -> ComposeResult:
        yield Vertical(
            Label(f"[!] {escape(self.node.name)} v{escape(self.node.version)}", id="title"),
            VerticalScroll(
                Markdown(vulnerability_report(self.node.vulnerabilities)),
                id="content-scroll"
            ),
            Button("Close (Esc)", variant="error", id="close-btn"),
            id="dialog",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss()

    def key_escape(self) -> None:
        self.dismiss()


class AuditApp(App):
    TITLE = "depaudit"
    SUB_TITLE = f"v{__version__}"

    DEFAULT_CSS = """
    Screen { layout: vertical; }

    #info-bar {
        height: 3;
        dock: top;
        background: $surface;
        border-bottom: solid $primary;
        align: left middle;
        padding: 0 1;
    }

    .info-label {
        width: auto;
        height: 1;
        padding: 0 2;
        color: $text;
    }

    #tree-container {
        height: 1fr;
        border: none;
        margin: 0 1;
    }
    Tree { padding: 1; background: $surface; }

    #loading-container { height: 100%; align: center middle; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
        Binding("l", "expand_node", "Expand"),
        Binding("h", "collapse_node", "Collapse"),
        Binding("v", "toggle_filter", "Vuln Only"),
    ]

    show_only_vulnerable: bool = False

    def __init__(self, path: str, auditor: Optional[DependencyAuditor] = None) -> None:
        super().__init__()
        self.path = path
        self.auditor = auditor or DependencyAuditor()
        self.result: Optional[CheckResult] = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)

        with Horizontal(id="info-bar"):
            yield Label("[b]Ecosystem:[/b] [cyan]...[/]", id="lbl-context", classes="info-label")
            yield Label("[b]Total:[/b] [blue]0[/]", id="lbl-total", classes="info-label")
            yield Label("[b]Vuln:[/b] [red]0[/]", id="lbl-vuln", classes="info-label")
            yield Label("[b]Score:[/b] [green]-[/]", id="lbl-score", classes="info-label")

        with Container(id="main-area"):
            with Container(id="loading-container"):
                yield LoadingIndicator()
                yield Label("Auditing dependencies...", id="status-label")

            with Container(id="tree-container"):
                yield Tree("Root", id="dep-tree")

        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#tree-container").display = False
        self.scan_project()

    # --- ACTIONS ---

    def action_cursor_down(self) -> None:
        self.query_one("#dep-tree").action_cursor_down()

    def action_cursor_up(self) -> None:
        self.query_one("#dep-tree").action_cursor_up()

    def action_expand_node(self) -> None:
        tree = self.query_one("#dep-tree")
        if tree.cursor_node:
            tree.cursor_node.expand()

    def action_collapse_node(self) -> None:
        tree = self.query_one("#dep-tree")
        node = tree.cursor_node
        if node:
            if node.is_expanded:
                node.collapse()
            elif node.parent:
                tree.select_node(node.parent)
                node.parent.collapse()

    def on_tree_node_selected(self, event: Tree.NodeSelected) -> None:
        node_data = event.node.data
        if node_data is not None and node_data.vulnerable:
            self.push_screen(VulnerabilityScreen(node_data))

    def action_toggle_filter(self) -> None:
        self.show_only_vulnerable = not self.show_only_vulnerable
        msg = "Showing vulnerable branches only." if self.show_only_vulnerable else "Showing all packages."
        self.notify(msg, severity="warning" if self.show_only_vulnerable else "information")

        if self.result is not None and self.result.tree is not None:
            self.render_tree(self.result.tree.root)

    # --- LOGIC ---

    @work(thread=True, exclusive=True)
    def scan_project(self) -> None:
        logging.info("Worker started.")
        result = self.auditor.check(self.path)
        self.call_from_thread(self.show_result, result)

    def show_result(self, result: CheckResult) -> None:
        self.result = result
        tree = result.tree

        color = "green" if result.status is Status.PASS else "red"
        self.query_one("#lbl-context", Label).update(f"[b]Ecosystem:[/b] [cyan]{escape(result.ecosystem)}[/]")
        self.query_one("#lbl-total", Label).update(f"[b]Total:[/b] [blue]{tree.total if tree else 0}[/]")
        self.query_one("#lbl-vuln", Label).update(f"[b]Vuln:[/b] [red]{tree.vulnerable if tree else 0}[/]")
        self.query_one("#lbl-score", Label).update(f"[b]Score:[/b] [{color}]{result.score}[/]")

        if tree is None:
            self.query_one("#status-label", Label).update(f"[bold {color}]{escape(result.message)}[/]")
            self.query_one(LoadingIndicator).display = False
            return

        self.notify(result.message, severity="information" if result.passed else "error")
        self.render_tree(tree.root)

    def render_tree(self, root_node: Dependency) -> None:
        tree = self.query_one("#dep-tree")
        tree.clear()
        tree.root.data = root_node
        tree.root.label = f"📂 {escape(self.path)}"
        tree.root.expand()

        def add_nodes(tree_node, data_node):
            for child in data_node.children:
                if self.show_only_vulnerable and not has_vulnerable_descendant(child):
                    continue

                if not child.children:
                    tree_node.add_leaf(node_label(child), data=child)
                    continue

                new_node = tree_node.add(node_label(child), expand=self.show_only_vulnerable, data=child)
                add_nodes(new_node, child)

        add_nodes(tree.root, root_node)
        self.query_one("#loading-container").display = False
        self.query_one("#tree-container").display = True
        tree.focus()
