from __future__ import annotations

import logging
from pathlib import Path

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import Key
from textual.screen import Screen
from textual.widgets import Button, DataTable, Footer, Label, Select, Static

from portal.config import DEFAULT_PER_PAGE
from portal.models.invoice import Invoice
from portal.models.page import Page
from portal.services.exceptions import GENERIC_ERROR_MESSAGE, ApiError
from portal.tui.options import STATUS_FILTER_OPTIONS, STATUS_STYLES
from portal.utils.formatters import format_brl, format_competencia, format_documento

logger = logging.getLogger(__name__)


def _unique_path(path: Path) -> Path:
    """Return a non-conflicting path by appending _1, _2, etc. if needed."""
    if not path.exists():
        return path
    stem, suffix, parent = path.stem, path.suffix, path.parent
    counter = 1
    candidate = parent / f"{stem}_{counter}{suffix}"
    while candidate.exists():
        counter += 1
        candidate = parent / f"{stem}_{counter}{suffix}"
    return candidate


def _error_text(exc: Exception) -> str:
    if isinstance(exc, ApiError):
        return exc.message
    if isinstance(exc, KeyError):
        return "Token de acesso não configurado (PORTAL_API_TOKEN)"
    return GENERIC_ERROR_MESSAGE


class DashboardScreen(Screen):
    """Main dashboard: stats cards and the paged invoice list."""

    BINDINGS = [
        # List actions, hidden from footer (have buttons above table)
        Binding("n", "new_invoice", "Nova NFS-e", show=False),
        Binding("e", "emit_draft", "Emitir", show=False),
        Binding("x", "cancel_invoice", "Cancelar", show=False),
        Binding("p", "download_pdf", "Baixar PDF", show=False),
        Binding("d", "download_xml", "Baixar XML", show=False),
        Binding("right_square_bracket", "next_page", "Próxima", show=False),
        Binding("left_square_bracket", "prev_page", "Anterior", show=False),
        # Generic actions, shown in footer
        Binding("t", "payers", "Tomadores"),
        Binding("g", "guides", "Guias"),
        Binding("r", "refresh", "Atualizar"),
        Binding("b", "toggle_sidebar", "Menu"),
        Binding("m", "toggle_theme", "Tema"),
        Binding("h", "help", "Ajuda"),
        Binding("q", "quit", "Sair"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._invoices: dict[str, Invoice] = {}
        self._page_number = 1
        self._busy = False

    def compose(self) -> ComposeResult:
        with Horizontal(id="top-bar"):
            yield Static("Portal do Cliente", id="app-title")
            yield Label("…", id="issuer-info")
            yield Button("✉ 0", id="btn-notifications", tooltip="Notificações")
            yield Button("☼ Tema", id="btn-theme", tooltip="Alternar tema claro/escuro (m)")

        with Horizontal(id="body"):
            with Vertical(id="sidebar"):
                yield Button("Notas Fiscais", id="nav-invoices", classes="nav-item")
                yield Button("Tomadores", id="nav-payers", classes="nav-item")
                yield Button("Guias", id="nav-guides", classes="nav-item")
                yield Button("Ajuda", id="nav-help", classes="nav-item")

            with Vertical(id="main"):
                with Horizontal(id="info-bar"):
                    with Vertical(id="card-emitidas", classes="info-card"):
                        yield Label("Emitidas", classes="card-title")
                        yield Label("…", id="stat-emitidas", classes="card-value")
                    with Vertical(id="card-rascunhos", classes="info-card"):
                        yield Label("Rascunhos", classes="card-title")
                        yield Label("…", id="stat-rascunhos", classes="card-value")
                    with Vertical(id="card-faturamento", classes="info-card"):
                        yield Label("Faturamento do mês", classes="card-title")
                        yield Label("…", id="stat-faturamento", classes="card-value")

                with Horizontal(id="filter-bar"):
                    yield Static("Notas Fiscais", id="section-title")
                    yield Select(
                        STATUS_FILTER_OPTIONS,
                        value="todas",
                        allow_blank=False,
                        id="filter-status",
                        tooltip="Filtrar por situação",
                    )
                    yield Button("◀", id="btn-prev", tooltip="Página anterior ([)")
                    yield Label("", id="page-info")
                    yield Button("▶", id="btn-next", tooltip="Próxima página (])")

                with Horizontal(id="action-bar"):
                    yield Button(
                        "+ Nova NFS-e",
                        id="btn-new",
                        variant="primary",
                        tooltip="Emitir nova NFS-e (n)",
                    )
                    yield Button(
                        "↑ Emitir",
                        id="btn-emit",
                        variant="success",
                        tooltip="Emitir o rascunho selecionado (e)",
                    )
                    yield Button(
                        "✖ Cancelar",
                        id="btn-cancel",
                        variant="error",
                        tooltip="Cancelar a nota selecionada (x)",
                    )
                    yield Button("⇓ PDF", id="btn-pdf", tooltip="Baixar PDF (p)")
                    yield Button("⇓ XML", id="btn-xml", tooltip="Baixar XML (d)")

                yield DataTable(id="invoices-table", cursor_type="row")

                yield Static(
                    "Nenhuma nota fiscal encontrada.\n"
                    "Pressione [bold]n[/bold] para emitir uma nova NFS-e.",
                    id="empty-state",
                )

        yield Footer()

    def on_mount(self) -> None:
        self._apply_layout_preferences()
        self._refresh_notifications_badge()
        self._load_issuer()
        self._load_stats()
        self._load_invoices()
        self.query_one("#invoices-table", DataTable).focus()

    def on_screen_resume(self) -> None:
        self._refresh_notifications_badge()

    def on_key(self, event: Key) -> None:
        table = self.query_one("#invoices-table", DataTable)
        match event.key:
            case "j":
                table.action_cursor_down()
            case "k":
                table.action_cursor_up()
            case _:
                return
        event.prevent_default()
        event.stop()

    # --- Preferences ---

    def _apply_layout_preferences(self) -> None:
        state = self.app.ui_state  # type: ignore[attr-defined]
        self.query_one("#sidebar").display = state.sidebar_open and not state.sidebar_collapsed
        self.query_one("#info-bar").display = state.widget_visible("stats")

    def _refresh_notifications_badge(self) -> None:
        from portal.utils.preferences import unread_count

        count = unread_count(self.app.ui_state)  # type: ignore[attr-defined]
        badge = self.query_one("#btn-notifications", Button)
        badge.label = f"✉ {count}"
        badge.set_class(count > 0, "has-unread")

    def _notify_event(self, title: str, message: str, type: str = "success") -> None:
        """Toast and record in the persistent notification list."""
        from portal.utils.preferences import add_notification

        self.app.update_preferences(add_notification, title, message, type)  # type: ignore[attr-defined]
        self._refresh_notifications_badge()
        self.notify(message, title=title, timeout=4)

    # --- Data loading (threaded) ---

    @work(thread=True)
    def _load_issuer(self) -> None:
        try:
            issuer = self.app.issuer  # type: ignore[attr-defined]
            text = f"{issuer.razao_social} · CNPJ {format_documento(issuer.cnpj)}"
        except Exception as e:
            logger.warning("Could not load issuer profile: %s", e)
            text = f"Erro: {e}"
        self.app.call_from_thread(self._update_label, "issuer-info", text)

    @work(thread=True)
    def _load_stats(self) -> None:
        try:
            from portal.services.invoices import get_stats

            empresa_id = self.app.issuer.empresa_id  # type: ignore[attr-defined]
            stats = get_stats(self.app.client, empresa_id)  # type: ignore[attr-defined]
            values = {
                "stat-emitidas": str(stats.get("totalEmitidas", 0)),
                "stat-rascunhos": str(stats.get("totalRascunhos", 0)),
                "stat-faturamento": format_brl(str(stats.get("faturamentoMes", 0))),
            }
        except Exception as e:
            logger.warning("Could not load invoice stats: %s", e)
            values = {key: "erro" for key in ("stat-emitidas", "stat-rascunhos", "stat-faturamento")}
        for label_id, text in values.items():
            self.app.call_from_thread(self._update_label, label_id, text)

    def _current_filters(self) -> dict:
        filters: dict = {"page": self._page_number, "limit": DEFAULT_PER_PAGE}
        status = self.query_one("#filter-status", Select).value
        if status not in ("todas", Select.BLANK):
            filters["status"] = status
        return filters

    def _load_invoices(self) -> None:
        filters = self._current_filters()
        self._run_load_invoices(filters)

    @work(thread=True, exclusive=True, group="invoices")
    def _run_load_invoices(self, filters: dict) -> None:
        try:
            from portal.services.invoices import list_invoices

            empresa_id = self.app.issuer.empresa_id  # type: ignore[attr-defined]
            page = list_invoices(self.app.client, {**filters, "empresa_id": empresa_id})  # type: ignore[attr-defined]
            self.app.call_from_thread(self._populate_table, page)
        except Exception as e:
            if not isinstance(e, ApiError):
                logger.exception("Failed to list invoices")
            self.app.call_from_thread(self._on_error, f"Erro ao listar notas: {_error_text(e)}")

    def _populate_table(self, page: Page[Invoice]) -> None:
        table = self.query_one("#invoices-table", DataTable)
        table.clear(columns=True)
        table.add_columns("Número", "Competência", "Tomador", "Documento", "Valor", "Situação")

        self._invoices = {inv.id: inv for inv in page.items}
        for inv in page.items:
            table.add_row(
                str(inv.numero) if inv.numero is not None else "—",
                format_competencia(inv.competencia),
                inv.tomador_nome,
                format_documento(inv.tomador_documento),
                format_brl(inv.valor_servico),
                STATUS_STYLES.get(inv.status, inv.status_label),
                key=inv.id,
            )

        meta = page.meta
        self.query_one("#page-info", Label).update(
            f"Página {meta.page} de {max(meta.total_pages, 1)} · {meta.total} nota(s)"
        )
        self.query_one("#btn-prev", Button).disabled = not meta.has_prev
        self.query_one("#btn-next", Button).disabled = not meta.has_next

        has_rows = table.row_count > 0
        table.display = has_rows
        self.query_one("#empty-state", Static).display = not has_rows

    # --- Event handlers ---

    def on_select_changed(self, event: Select.Changed) -> None:
        if event.select.id == "filter-status":
            self._page_number = 1
            self._load_invoices()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-new":
                self.action_new_invoice()
            case "btn-emit":
                self.action_emit_draft()
            case "btn-cancel":
                self.action_cancel_invoice()
            case "btn-pdf":
                self.action_download_pdf()
            case "btn-xml":
                self.action_download_xml()
            case "btn-prev":
                self.action_prev_page()
            case "btn-next":
                self.action_next_page()
            case "btn-theme":
                self.action_toggle_theme()
            case "btn-notifications":
                self.action_notifications()
            case "nav-invoices":
                self.action_refresh()
            case "nav-payers":
                self.action_payers()
            case "nav-guides":
                self.action_guides()
            case "nav-help":
                self.action_help()

    def _selected_invoice(self) -> Invoice | None:
        table = self.query_one("#invoices-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return self._invoices.get(str(row_key.value))

    def _require_selection(self) -> Invoice | None:
        invoice = self._selected_invoice()
        if invoice is None:
            self.notify("Nenhuma nota selecionada", severity="warning", timeout=3)
        return invoice

    # --- Busy state ---

    def _set_busy(self, busy: bool) -> None:
        self._busy = busy
        for button in self.query("#action-bar Button").results(Button):
            if button.id != "btn-new":
                button.disabled = busy

    def _start_call(self, message: str) -> bool:
        """Mark the screen busy; False when another call is still running."""
        if self._busy:
            self.notify("Aguarde a operação em andamento", severity="warning", timeout=3)
            return False
        self._set_busy(True)
        self.notify(message, severity="information", timeout=3)
        return True

    # --- Helpers ---

    def _update_label(self, label_id: str, text: str) -> None:
        try:
            self.query_one(f"#{label_id}", Label).update(text)
        except Exception:
            pass

    def _on_error(self, msg: str) -> None:
        self._set_busy(False)
        self.notify(msg, severity="error", timeout=5)

    # --- Actions: navigation ---

    def action_new_invoice(self) -> None:
        from portal.tui.screens.new_invoice import NewInvoiceScreen

        self.app.push_screen(NewInvoiceScreen(), callback=self._on_wizard_closed)

    def _on_wizard_closed(self, created: bool | None) -> None:
        self._refresh_notifications_badge()
        if created:
            self.action_refresh()

    def action_payers(self) -> None:
        from portal.tui.screens.payers import PayersScreen

        self.app.push_screen(PayersScreen())

    def action_guides(self) -> None:
        from portal.tui.screens.guides import GuidesScreen

        self.app.push_screen(GuidesScreen())

    def action_help(self) -> None:
        from portal.tui.screens.help import HelpScreen

        self.app.push_screen(HelpScreen())

    def action_notifications(self) -> None:
        from portal.tui.screens.notifications import NotificationsScreen

        self.app.push_screen(
            NotificationsScreen(), callback=lambda _: self._refresh_notifications_badge()
        )

    def action_refresh(self) -> None:
        self._load_stats()
        self._load_invoices()

    def action_next_page(self) -> None:
        if self.query_one("#btn-next", Button).disabled:
            return
        self._page_number += 1
        self._load_invoices()

    def action_prev_page(self) -> None:
        if self._page_number <= 1:
            return
        self._page_number -= 1
        self._load_invoices()

    def action_toggle_theme(self) -> None:
        from portal.utils.preferences import toggle_theme

        self.app.update_preferences(toggle_theme)  # type: ignore[attr-defined]

    def action_toggle_sidebar(self) -> None:
        from portal.utils.preferences import toggle_sidebar

        self.app.update_preferences(toggle_sidebar)  # type: ignore[attr-defined]
        self._apply_layout_preferences()

    # --- Actions: emit ---

    def action_emit_draft(self) -> None:
        invoice = self._require_selection()
        if invoice is None:
            return
        if not invoice.is_draft:
            self.notify("Apenas rascunhos podem ser emitidos", severity="warning", timeout=3)
            return
        from portal.tui.screens.confirm import ConfirmScreen

        self.app.push_screen(
            ConfirmScreen(
                f"Emitir a nota para {invoice.tomador_nome}\n"
                f"no valor de {format_brl(invoice.valor_servico)}?\n\n"
                "A emissão gera um documento fiscal com validade\n"
                "jurídica e não pode ser desfeita.",
                confirm_label="↑ Emitir",
                title="Emitir NFS-e",
            ),
            callback=lambda ok: self._on_emit_confirmed(invoice.id, ok),
        )

    def _on_emit_confirmed(self, invoice_id: str, confirmed: bool | None) -> None:
        if confirmed and self._start_call("Emitindo NFS-e…"):
            self._run_emit(invoice_id)

    @work(thread=True)
    def _run_emit(self, invoice_id: str) -> None:
        try:
            from portal.services.invoices import emit_invoice

            invoice = emit_invoice(self.app.client, invoice_id)  # type: ignore[attr-defined]
            self.app.call_from_thread(self._on_emit_done, invoice)
        except Exception as e:
            if not isinstance(e, ApiError):
                logger.exception("Failed to emit invoice %s", invoice_id)
            self.app.call_from_thread(self._on_error, f"Erro ao emitir: {_error_text(e)}")

    def _on_emit_done(self, invoice: Invoice) -> None:
        self._set_busy(False)
        self._notify_event("NFS-e emitida", f"Nota nº {invoice.numero} emitida com sucesso")
        self.action_refresh()

    # --- Actions: cancel ---

    def action_cancel_invoice(self) -> None:
        invoice = self._require_selection()
        if invoice is None:
            return
        if not invoice.can_cancel:
            self.notify("Esta nota não pode ser cancelada", severity="warning", timeout=3)
            return
        from portal.tui.screens.cancel_invoice import CancelInvoiceScreen

        self.app.push_screen(
            CancelInvoiceScreen(invoice),
            callback=lambda reason: self._on_cancel_reason(invoice.id, reason),
        )

    def _on_cancel_reason(self, invoice_id: str, reason: str | None) -> None:
        if reason and self._start_call("Cancelando NFS-e…"):
            self._run_cancel(invoice_id, reason)

    @work(thread=True)
    def _run_cancel(self, invoice_id: str, reason: str) -> None:
        try:
            from portal.services.invoices import cancel_invoice

            invoice = cancel_invoice(self.app.client, invoice_id, reason)  # type: ignore[attr-defined]
            self.app.call_from_thread(self._on_cancel_done, invoice)
        except Exception as e:
            if not isinstance(e, (ApiError, ValueError)):
                logger.exception("Failed to cancel invoice %s", invoice_id)
            msg = str(e) if isinstance(e, ValueError) else _error_text(e)
            self.app.call_from_thread(self._on_error, f"Erro ao cancelar: {msg}")

    def _on_cancel_done(self, invoice: Invoice) -> None:
        self._set_busy(False)
        label = f"nº {invoice.numero}" if invoice.numero is not None else invoice.id
        self._notify_event("NFS-e cancelada", f"Nota {label} cancelada", "warning")
        self.action_refresh()

    # --- Actions: downloads ---

    def action_download_pdf(self) -> None:
        self._download("pdf")

    def action_download_xml(self) -> None:
        self._download("xml")

    def _download(self, kind: str) -> None:
        invoice = self._require_selection()
        if invoice is None:
            return
        if invoice.is_draft:
            self.notify("Rascunhos não possuem documento fiscal", severity="warning", timeout=3)
            return
        if self._start_call(f"Baixando {kind.upper()}…"):
            self._run_download(invoice, kind)

    @work(thread=True)
    def _run_download(self, invoice: Invoice, kind: str) -> None:
        try:
            from portal.config import get_downloads_dir
            from portal.services.invoices import download_pdf, download_xml

            fetch = download_pdf if kind == "pdf" else download_xml
            content = fetch(self.app.client, invoice.id)  # type: ignore[attr-defined]
            name = f"nfse_{invoice.numero if invoice.numero is not None else invoice.id}"
            out_dir = get_downloads_dir()
            out_dir.mkdir(parents=True, exist_ok=True)
            final_path = _unique_path(out_dir / f"{name}.{kind}")
            final_path.write_bytes(content)
            summary = ""
            if kind == "xml":
                from portal.services.nfse_xml import parse_nfse_xml

                meta = parse_nfse_xml(content)
                if meta["codigo_verificacao"]:
                    summary = f" (verificação {meta['codigo_verificacao']})"
            self.app.call_from_thread(self._on_download_done, f"{final_path}{summary}")
        except Exception as e:
            if not isinstance(e, (ApiError, ValueError)):
                logger.exception("Failed to download %s for %s", kind, invoice.id)
            msg = str(e) if isinstance(e, ValueError) else _error_text(e)
            self.app.call_from_thread(self._on_error, f"Erro ao baixar: {msg}")

    def _on_download_done(self, path: str) -> None:
        self._set_busy(False)
        self.notify(f"Arquivo salvo em: {path}", timeout=5)

    def action_quit(self) -> None:
        self.app.exit()
