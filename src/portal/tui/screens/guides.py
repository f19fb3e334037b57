from __future__ import annotations

import logging
from datetime import datetime

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Label, Select, Static

from portal.config import BRT
from portal.models.guide import Guide
from portal.services.exceptions import GENERIC_ERROR_MESSAGE, ApiError
from portal.tui.options import GUIDE_STATUS_OPTIONS, STATUS_STYLES
from portal.utils.formatters import format_brl, format_competencia, format_date_br

logger = logging.getLogger(__name__)


def _error_text(exc: Exception) -> str:
    if isinstance(exc, ApiError):
        return exc.message
    return GENERIC_ERROR_MESSAGE


class GuidesScreen(ModalScreen):
    """Tax payment guides: list, filter by status, record payment."""

    BINDINGS = [
        Binding("escape", "go_back", "Voltar"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._guides: dict[str, Guide] = {}
        self._busy = False

    def compose(self) -> ComposeResult:
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Guias", id="header-bar")
                yield Button("✕", id="btn-modal-close")
            yield Label("…", id="guides-summary")
            with Horizontal(id="filter-bar"):
                yield Select(
                    GUIDE_STATUS_OPTIONS,
                    value="todas",
                    allow_blank=False,
                    id="guides-status",
                )
            yield DataTable(id="guides-table", cursor_type="row")
            yield Static("Nenhuma guia encontrada.", id="empty-state")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Fechar", id="btn-voltar")
                yield Button("✓ Marcar como paga", id="btn-pay", variant="success")

    def on_mount(self) -> None:
        self._load_summary()
        self._load_guides()
        self.query_one("#guides-table", DataTable).focus()

    @work(thread=True)
    def _load_summary(self) -> None:
        try:
            from portal.services.guides import guides_summary, upcoming_guides

            empresa_id = self.app.issuer.empresa_id  # type: ignore[attr-defined]
            client = self.app.client  # type: ignore[attr-defined]
            summary = guides_summary(client, empresa_id)
            upcoming = upcoming_guides(client, days=7)
            text = (
                f"Pendentes: {summary.get('pendentes', 0)} · "
                f"Vencidas: {summary.get('vencidas', 0)} · "
                f"Vencendo em 7 dias: {len(upcoming)}"
            )
        except Exception as e:
            logger.warning("Could not load guides summary: %s", e)
            text = "Resumo indisponível"
        self.app.call_from_thread(self.query_one("#guides-summary", Label).update, text)

    def _load_guides(self) -> None:
        status = self.query_one("#guides-status", Select).value
        self._run_load("" if status in ("todas", Select.BLANK) else str(status))

    @work(thread=True, exclusive=True, group="guides")
    def _run_load(self, status: str) -> None:
        try:
            from portal.services.guides import list_guides, overdue_guides

            client = self.app.client  # type: ignore[attr-defined]
            if status == "vencida":
                guides = overdue_guides(client)
            else:
                empresa_id = self.app.issuer.empresa_id  # type: ignore[attr-defined]
                filters = {"empresa_id": empresa_id, "status": status or None}
                guides = list_guides(client, filters).items
            self.app.call_from_thread(self._populate_table, guides)
        except Exception as e:
            if not isinstance(e, ApiError):
                logger.exception("Failed to list guides")
            self.app.call_from_thread(
                self.notify, f"Erro ao listar guias: {_error_text(e)}", severity="error"
            )

    def _populate_table(self, guides: list[Guide]) -> None:
        table = self.query_one("#guides-table", DataTable)
        table.clear(columns=True)
        table.add_columns("Tipo", "Competência", "Vencimento", "Valor", "Situação", "Pagamento")
        self._guides = {g.id: g for g in guides}
        for g in guides:
            table.add_row(
                g.tipo,
                format_competencia(g.competencia),
                format_date_br(g.data_vencimento),
                format_brl(g.valor),
                STATUS_STYLES.get(g.status, g.status),
                format_date_br(g.data_pagamento or ""),
                key=g.id,
            )
        has_rows = table.row_count > 0
        table.display = has_rows
        self.query_one("#empty-state", Static).display = not has_rows

    def on_select_changed(self, event: Select.Changed) -> None:
        if event.select.id == "guides-status":
            self._load_guides()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-pay":
                self.action_pay_selected()
            case "btn-voltar" | "btn-modal-close":
                self.app.pop_screen()

    def _selected_guide(self) -> Guide | None:
        table = self.query_one("#guides-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return self._guides.get(str(row_key.value))

    def action_pay_selected(self) -> None:
        guide = self._selected_guide()
        if guide is None:
            self.notify("Nenhuma guia selecionada", severity="warning", timeout=3)
            return
        if not guide.is_open:
            self.notify("Esta guia não está em aberto", severity="warning", timeout=3)
            return
        from portal.tui.screens.confirm import ConfirmScreen

        self.app.push_screen(
            ConfirmScreen(
                f"Registrar pagamento da guia {guide.tipo} "
                f"({format_competencia(guide.competencia)})\n"
                f"no valor de {format_brl(guide.valor)} com data de hoje?",
                confirm_label="✓ Registrar",
                title="Pagamento de guia",
            ),
            callback=lambda ok: self._on_pay_confirmed(guide.id, ok),
        )

    def _on_pay_confirmed(self, guide_id: str, confirmed: bool | None) -> None:
        if not confirmed or self._busy:
            return
        self._busy = True
        self.query_one("#btn-pay", Button).disabled = True
        self._run_pay(guide_id)

    @work(thread=True)
    def _run_pay(self, guide_id: str) -> None:
        try:
            from portal.services.guides import pay_guide

            paid_on = datetime.now(BRT).date()
            guide = pay_guide(self.app.client, guide_id, paid_on)  # type: ignore[attr-defined]
            self.app.call_from_thread(self._on_pay_done, guide)
        except Exception as e:
            if not isinstance(e, ApiError):
                logger.exception("Failed to pay guide %s", guide_id)
            self.app.call_from_thread(self._on_pay_error, _error_text(e))

    def _on_pay_done(self, guide: Guide) -> None:
        from portal.utils.preferences import add_notification

        self._busy = False
        self.query_one("#btn-pay", Button).disabled = False
        self.app.update_preferences(  # type: ignore[attr-defined]
            add_notification,
            "Guia paga",
            f"Pagamento da guia {guide.tipo} registrado",
            "success",
        )
        self.notify(f"Pagamento da guia {guide.tipo} registrado", timeout=3)
        self._load_summary()
        self._load_guides()

    def _on_pay_error(self, msg: str) -> None:
        self._busy = False
        self.query_one("#btn-pay", Button).disabled = False
        self.notify(f"Erro ao registrar pagamento: {msg}", severity="error", timeout=5)

    def action_go_back(self) -> None:
        self.app.pop_screen()
