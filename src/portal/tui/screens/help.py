from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, RichLog, Static

_SHORTCUTS = (
    ("n", "Nova NFS-e", "Abrir o assistente de emissão"),
    ("e", "Emitir", "Emitir o rascunho selecionado"),
    ("x", "Cancelar", "Cancelar a nota selecionada"),
    ("p", "Baixar PDF", "Salvar o PDF da nota"),
    ("d", "Baixar XML", "Salvar o XML da nota"),
    ("t", "Tomadores", "Buscar e cadastrar tomadores"),
    ("g", "Guias", "Guias de impostos a pagar"),
    ("r", "Atualizar", "Recarregar lista e indicadores"),
    ("[ ]", "Páginas", "Página anterior / próxima"),
    ("b", "Menu", "Recolher ou expandir o menu lateral"),
    ("m", "Tema", "Alternar tema claro/escuro"),
    ("h", "Ajuda", "Esta tela"),
    ("q", "Sair", "Encerrar aplicação"),
)


class HelpScreen(ModalScreen):
    """Help, keyboard shortcuts, and tax notes."""

    BINDINGS = [
        Binding("escape", "go_back", "Voltar"),
    ]

    def compose(self) -> ComposeResult:
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Ajuda", id="header-bar")
                yield Button("✕", id="btn-modal-close")
            yield RichLog(id="help-content", wrap=True, markup=True)
            with Horizontal(classes="button-bar"):
                yield Button("✕ Fechar", id="btn-voltar")

    def on_mount(self) -> None:
        log = self.query_one("#help-content", RichLog)

        log.write("[bold]Portal do Cliente[/bold]")
        log.write("")
        log.write(
            "Emissão de NFS-e, cadastro de tomadores e acompanhamento de guias "
            "de impostos junto ao seu escritório de contabilidade."
        )
        log.write("")

        log.write("[bold]Atalhos de teclado[/bold]")
        log.write("")
        for key, name, desc in _SHORTCUTS:
            log.write(f"  [bold cyan]{key:<5}[/bold cyan] {name:<12} {desc}")
        log.write("")
        log.write("[bold]Navegação na tabela[/bold]")
        log.write("")
        log.write("  [bold cyan]j / ↓[/bold cyan]  Próxima linha")
        log.write("  [bold cyan]k / ↑[/bold cyan]  Linha anterior")
        log.write("")

        log.write("[bold]Retenções[/bold]")
        log.write("")
        log.write(
            "IR 1,5% · PIS 0,65% · COFINS 3% · CSLL 1% · INSS 11%. "
            "O ISS é calculado pela alíquota informada e só é descontado do "
            "valor líquido quando retido pelo tomador."
        )
        log.write("")

        log.write("[bold yellow]Aviso[/bold yellow]")
        log.write("")
        log.write(
            "Notas [bold]emitidas[/bold] têm validade fiscal e só podem ser "
            "desfeitas por cancelamento. Use [bold]Salvar rascunho[/bold] ou "
            "[bold]Simular[/bold] para revisar antes de emitir. Consulte seu "
            "contador em caso de dúvida."
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id in ("btn-voltar", "btn-modal-close"):
            self.app.pop_screen()

    def action_go_back(self) -> None:
        self.app.pop_screen()
