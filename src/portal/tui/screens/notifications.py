from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Static

from portal.utils.formatters import format_date_br
from portal.utils.preferences import mark_all_read, mark_read, remove_notification

_TYPE_STYLES = {
    "info": "[blue]info[/blue]",
    "success": "[green]ok[/green]",
    "warning": "[yellow]aviso[/yellow]",
    "error": "[red]erro[/red]",
}


class NotificationsScreen(ModalScreen):
    """Notification center backed by the persisted preferences."""

    BINDINGS = [
        Binding("escape", "go_back", "Voltar"),
        Binding("a", "mark_all_read", "Marcar todas como lidas"),
        Binding("delete", "remove_selected", "Remover"),
    ]

    def compose(self) -> ComposeResult:
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Notificações", id="header-bar")
                yield Button("✕", id="btn-modal-close")
            yield DataTable(id="notifications-table", cursor_type="row")
            yield Static("Nenhuma notificação.", id="empty-state")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Fechar", id="btn-voltar")
                yield Button("✖ Remover", id="btn-remove", variant="warning")
                yield Button("✓ Marcar todas como lidas", id="btn-read-all", variant="primary")

    def on_mount(self) -> None:
        self._populate()
        self.query_one("#notifications-table", DataTable).focus()

    def _populate(self) -> None:
        table = self.query_one("#notifications-table", DataTable)
        table.clear(columns=True)
        table.add_columns("", "Data", "Tipo", "Título", "Mensagem")
        for n in self.app.ui_state.notifications:  # type: ignore[attr-defined]
            table.add_row(
                " " if n.read else "●",
                format_date_br(n.created_at[:10]),
                _TYPE_STYLES.get(n.type, n.type),
                n.title,
                n.message,
                key=n.id,
            )
        has_rows = table.row_count > 0
        table.display = has_rows
        self.query_one("#empty-state", Static).display = not has_rows

    def _selected_id(self) -> str | None:
        table = self.query_one("#notifications-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return str(row_key.value)

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        self.app.update_preferences(mark_read, str(event.row_key.value))  # type: ignore[attr-defined]
        self._populate()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-read-all":
                self.action_mark_all_read()
            case "btn-remove":
                self.action_remove_selected()
            case "btn-voltar" | "btn-modal-close":
                self.dismiss(None)

    def action_mark_all_read(self) -> None:
        self.app.update_preferences(mark_all_read)  # type: ignore[attr-defined]
        self._populate()

    def action_remove_selected(self) -> None:
        notification_id = self._selected_id()
        if notification_id is None:
            return
        self.app.update_preferences(remove_notification, notification_id)  # type: ignore[attr-defined]
        self._populate()

    def action_go_back(self) -> None:
        self.dismiss(None)
