from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Static


class ConfirmScreen(ModalScreen[bool]):
    """Ask before an operation the backend cannot undo (emit, record payment).

    Dismisses with True only for the confirm button or ``y``.
    """

    DEFAULT_CSS = """
    ConfirmScreen #modal-dialog {
        width: 64;
        border: thick $warning;
    }
    """

    BINDINGS = [
        Binding("escape", "answer(False)", "Voltar"),
        Binding("n", "answer(False)", show=False),
        Binding("y", "answer(True)", show=False),
    ]

    def __init__(
        self,
        message: str,
        confirm_label: str = "▶ Confirmar",
        title: str = "Confirmação",
    ) -> None:
        super().__init__()
        self._message = message
        self._confirm_label = confirm_label
        self._title = title

    def compose(self) -> ComposeResult:
        with Vertical(id="modal-dialog"):
            yield Static(self._title, id="header-bar")
            yield Static(self._message, id="confirm-message")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Voltar", id="btn-cancel")
                yield Button(self._confirm_label, id="btn-confirm", variant="warning")

    def on_mount(self) -> None:
        self.query_one("#btn-cancel", Button).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.action_answer(event.button.id == "btn-confirm")

    def action_answer(self, confirmed: bool) -> None:
        self.dismiss(confirmed)
