# src/ui/app.py

"""Terminal product search screen with an online/offline indicator."""

import logging
from typing import cast

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.widgets import (
    DataTable,
    Footer,
    Header,
    Input,
    Static,
)

from src.models.product import EnrichedProduct
from src.models.search_mode import SearchMode
from src.services.remote_search_client import RemoteSearchClient
from src.services.search_orchestrator import (
    SearchOrchestrator,
    SearchResult,
)
from src.storage.product_cache_db import ProductCacheDB

logger = logging.getLogger("pharma_search.ui")

_IDLE_HINT = "Start typing to search products..."


class ProductSearchApp(App[object]):
    """Live product lookup backed by the hybrid search orchestrator.

    Every keystroke starts a new search.  Answers are tagged with a
    generation number and anything older than the latest keystroke is
    dropped, since the orchestrator does not cancel in-flight queries.
    """

    CSS = """
    #search_bar { height: auto; }
    #search_input { width: 1fr; }
    #mode_indicator { width: 12; content-align: center middle; }
    #status { height: auto; padding: 0 1; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("m", "reprobe", "Re-check mode"),
    ]

    def __init__(
        self, orchestrator: SearchOrchestrator | None = None,
    ) -> None:
        super().__init__()
        self._store: ProductCacheDB | None = None
        if orchestrator is None:
            self._store = ProductCacheDB()
            orchestrator = SearchOrchestrator(
                RemoteSearchClient(), self._store,
            )
        self.orchestrator = orchestrator
        self.products: list[EnrichedProduct] = []
        self.selected_product: EnrichedProduct | None = None
        self.current_query: str = ""
        self.status_text: str = _IDLE_HINT
        self._generation: int = 0

    def compose(self) -> ComposeResult:
        """Build the widget tree for the TUI."""
        yield Header()
        yield Container(
            Static("💊 Product Search", id="title"),
            Horizontal(
                Input(
                    placeholder="Search product by name or SKU",
                    id="search_input",
                ),
                Static("…", id="mode_indicator"),
                id="search_bar",
            ),
            Static(_IDLE_HINT, id="status"),
            DataTable(
                id="results_table",
                zebra_stripes=True,
                cursor_type="row",
            ),
            id="main_container",
        )
        yield Footer()

    def on_mount(self) -> None:
        """Configure the results table and detect the mode."""
        table = self._table()
        table.add_columns("Name", "SKU", "Price", "Stock", "Category")
        self.run_worker(self._detect_mode(), group="mode")

    def on_unmount(self) -> None:
        if self._store is not None:
            self._store.close()

    async def _detect_mode(self) -> None:
        await self.orchestrator.detector.ensure_mode()
        self._update_mode_indicator()

    async def action_reprobe(self) -> None:
        """Force a fresh connectivity probe."""
        await self.orchestrator.detector.probe()
        self._update_mode_indicator()

    def _table(self) -> DataTable[str | Text]:
        return cast(
            DataTable[str | Text],
            self.query_one("#results_table", DataTable),
        )

    def _set_status(self, text: str) -> None:
        self.status_text = text
        self.query_one("#status", Static).update(text)

    def _update_mode_indicator(self) -> None:
        indicator = self.query_one("#mode_indicator", Static)
        mode = self.orchestrator.mode
        if mode is SearchMode.ONLINE:
            indicator.update(Text("● Online", style="green"))
        elif mode is SearchMode.OFFLINE:
            indicator.update(Text("● Offline", style="dark_orange"))
        else:
            indicator.update("…")

    # ── Searching ────────────────────────────────────────

    def on_input_changed(self, event: Input.Changed) -> None:
        """Search as the user types."""
        if event.input.id == "search_input":
            self._start_search(event.value)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Re-run the search on Enter."""
        if event.input.id == "search_input":
            self._start_search(event.value)

    def _start_search(self, value: str) -> None:
        self._generation += 1
        self.current_query = value
        if not value.strip():
            self.products = []
            self.populate_table()
            self._set_status(_IDLE_HINT)
            return
        self._set_status(f"🔍 Searching '{value}'...")
        self.run_worker(
            self.perform_search(value, self._generation),
            group="search",
        )

    async def perform_search(self, term: str, generation: int) -> None:
        """Run one search and render it unless a newer one started."""
        result = await self.orchestrator.search(term)
        if generation != self._generation:
            logger.debug("Dropping stale results for '%s'", term)
            return
        self.show_result(result)

    def show_result(self, result: SearchResult) -> None:
        """Render a search result and its status line."""
        self.products = list(result.products)
        self.populate_table()
        self._update_mode_indicator()

        if result.unavailable:
            self._set_status(
                "❌ Search unavailable: the offline cache could not "
                "be read"
            )
            self.notify("Search unavailable", severity="error")
        elif not self.products:
            hint = (
                "Try syncing data when online"
                if result.mode is SearchMode.OFFLINE
                else "Check spelling or try different keywords"
            )
            self._set_status(
                f'No products found for "{result.query}". {hint}'
            )
        else:
            suffix = " (offline fallback)" if result.fell_back else ""
            self._set_status(
                f"✅ Found {len(self.products)} products{suffix}"
            )

    def populate_table(self) -> None:
        """Fill the DataTable with the current products."""
        table = self._table()
        table.clear()
        for p in self.products:
            table.add_row(
                p.name[:60],
                p.sku or "",
                Text(
                    f"Rs {p.latest_retail_price:,.2f}",
                    style="bold green",
                ),
                f"{p.total_quantity:g}",
                p.category or "",
            )

    def on_data_table_row_selected(
        self, event: DataTable.RowSelected
    ) -> None:
        """Hand the selected product to whoever embeds this screen."""
        if 0 <= event.cursor_row < len(self.products):
            self.selected_product = self.products[event.cursor_row]
            self.notify(f"Selected {self.selected_product.name}")
