from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Static

from portal.models.invoice import Invoice
from portal.utils.formatters import format_brl
from portal.utils.validators import CANCEL_REASON_MAX, validate_cancel_reason


class CancelInvoiceScreen(ModalScreen[str | None]):
    """Ask for the cancellation reason; dismisses with the reason or None."""

    BINDINGS = [
        Binding("escape", "go_back", "Voltar"),
    ]

    def __init__(self, invoice: Invoice) -> None:
        super().__init__()
        self._invoice = invoice

    def compose(self) -> ComposeResult:
        inv = self._invoice
        numero = f"nº {inv.numero}" if inv.numero is not None else "sem número"
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Cancelar NFS-e", id="header-bar")
                yield Button("✕", id="btn-modal-close")
            yield Static(
                f"Nota {numero} · {inv.tomador_nome} · {format_brl(inv.valor_servico)}\n\n"
                "O cancelamento é definitivo.",
                id="cancel-summary",
            )
            yield Label("Motivo do cancelamento", classes="form-label")
            yield Input(
                placeholder="Descreva o motivo (mínimo 10 caracteres)",
                id="cancel-reason",
                max_length=CANCEL_REASON_MAX,
            )
            yield Label("", id="error-label")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Voltar", id="btn-voltar")
                yield Button("✖ Cancelar nota", id="btn-confirm-cancel", variant="error")

    def on_mount(self) -> None:
        self.query_one("#cancel-reason", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._confirm()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-confirm-cancel":
                self._confirm()
            case "btn-voltar" | "btn-modal-close":
                self.dismiss(None)

    def _confirm(self) -> None:
        try:
            reason = validate_cancel_reason(self.query_one("#cancel-reason", Input).value)
        except ValueError as e:
            self.query_one("#error-label", Label).update(str(e))
            return
        self.dismiss(reason)

    def action_go_back(self) -> None:
        self.dismiss(None)
