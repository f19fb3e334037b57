from __future__ import annotations

import logging

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Input, Label, Select, Static

from portal.config import DEFAULT_PER_PAGE
from portal.models.payer import Payer
from portal.services.exceptions import GENERIC_ERROR_MESSAGE, ApiError
from portal.tui.options import TIPO_PESSOA_OPTIONS
from portal.utils.formatters import format_brl, format_documento
from portal.utils.validators import validate_cep, validate_documento, validate_email

logger = logging.getLogger(__name__)

# (widget_id, form key) for Input fields of the payer form.
_INPUT_FIELDS: tuple[tuple[str, str], ...] = (
    ("payer-documento", "documento"),
    ("payer-razao-social", "razao_social"),
    ("payer-nome-fantasia", "nome_fantasia"),
    ("payer-email", "email"),
    ("payer-telefone", "telefone"),
    ("payer-inscricao-municipal", "inscricao_municipal"),
)

_ADDRESS_FIELDS: tuple[tuple[str, str], ...] = (
    ("payer-cep", "cep"),
    ("payer-logradouro", "logradouro"),
    ("payer-numero", "numero"),
    ("payer-complemento", "complemento"),
    ("payer-bairro", "bairro"),
    ("payer-cidade", "cidade"),
    ("payer-uf", "uf"),
    ("payer-codigo-municipio", "codigo_municipio"),
)

_PLACEHOLDERS = {
    "payer-documento": "00.000.000/0000-00",
    "payer-razao-social": "Razão social ou nome completo",
    "payer-email": "financeiro@cliente.com.br",
    "payer-telefone": "(11) 99999-9999",
    "payer-cep": "00000-000",
    "payer-uf": "SP",
    "payer-codigo-municipio": "3550308",
}


def _error_text(exc: Exception) -> str:
    if isinstance(exc, ApiError):
        return exc.message
    return GENERIC_ERROR_MESSAGE


class PayersScreen(ModalScreen[Payer | None]):
    """Two-phase modal: search payers -> register a new payer.

    With ``select_mode`` the screen dismisses with the created (or already
    registered) payer so the wizard can pick it up.
    """

    BINDINGS = [
        Binding("escape", "go_back", "Voltar"),
    ]

    def __init__(self, select_mode: bool = False) -> None:
        super().__init__()
        self._select_mode = select_mode
        self._phase = "list"
        self._page_number = 1
        self._saving = False

    def compose(self) -> ComposeResult:
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Tomadores", id="header-bar")
                yield Button("✕", id="btn-modal-close")

            # Phase 1: list
            with Container(id="payers-list-container"):
                with Horizontal(classes="search-bar"):
                    yield Input(placeholder="Buscar por nome ou documento", id="payers-search")
                    yield Button("⌕ Buscar", id="btn-search")
                yield DataTable(id="payers-list", cursor_type="row")
                yield Label("", id="payers-page-info")
                with Horizontal(classes="button-bar"):
                    yield Button("✕ Fechar", id="btn-list-close")
                    yield Button("◀", id="btn-prev-page")
                    yield Button("▶", id="btn-next-page")
                    yield Button("+ Novo tomador", id="btn-new-payer", variant="primary")

            # Phase 2: form
            with VerticalScroll(id="payer-form-container"):
                yield Label("Tipo de pessoa", classes="form-label")
                yield Select(TIPO_PESSOA_OPTIONS, value="pj", allow_blank=False, id="payer-tipo")
                for widget_id, key in (*_INPUT_FIELDS, *_ADDRESS_FIELDS):
                    yield Label(key.replace("_", " ").capitalize(), classes="form-label")
                    yield Input(placeholder=_PLACEHOLDERS.get(widget_id, ""), id=widget_id)
                    if widget_id == "payer-documento":
                        yield Button(
                            "⌕ Consultar CNPJ",
                            id="btn-lookup-cnpj",
                            tooltip="Preencher dados a partir da Receita Federal",
                        )
                yield Label("", id="payer-error-label", classes="error-label")
                with Horizontal(classes="button-bar"):
                    yield Button("← Voltar", id="btn-form-back")
                    yield Button("▶ Salvar", id="btn-save-payer", variant="success")

    def on_mount(self) -> None:
        table = self.query_one("#payers-list", DataTable)
        table.add_columns("Nome", "Tipo", "Documento", "Cidade/UF", "Notas", "Faturamento")
        if self._select_mode:
            self._open_form()
        else:
            self._show_phase("list")
            self._load_payers()
            self.query_one("#payers-search", Input).focus()

    def _show_phase(self, phase: str) -> None:
        self._phase = phase
        self.query_one("#payers-list-container").display = phase == "list"
        self.query_one("#payer-form-container").display = phase == "form"

    # --- List ---

    def _load_payers(self) -> None:
        term = self.query_one("#payers-search", Input).value.strip()
        self._run_load(term, self._page_number)

    @work(thread=True, exclusive=True, group="payers")
    def _run_load(self, term: str, page_number: int) -> None:
        try:
            from portal.services.payers import search_payers

            empresa_id = self.app.issuer.empresa_id  # type: ignore[attr-defined]
            filters = {"empresa_id": empresa_id, "page": page_number, "limit": DEFAULT_PER_PAGE}
            if term:
                filters["busca"] = term
            page = search_payers(self.app.client, filters)  # type: ignore[attr-defined]
            self.app.call_from_thread(self._populate_table, page)
        except Exception as e:
            if not isinstance(e, ApiError):
                logger.exception("Failed to list payers")
            self.app.call_from_thread(
                self.notify, f"Erro ao listar tomadores: {_error_text(e)}", severity="error"
            )

    def _populate_table(self, page) -> None:
        table = self.query_one("#payers-list", DataTable)
        table.clear()
        for p in page.items:
            end = p.endereco
            table.add_row(
                p.display_name,
                p.tipo.upper(),
                format_documento(p.documento),
                f"{end.cidade}/{end.uf}" if end.cidade else "",
                str(p.total_notas),
                format_brl(p.faturamento_total),
                key=p.id,
            )
        meta = page.meta
        self.query_one("#payers-page-info", Label).update(
            f"Página {meta.page} de {max(meta.total_pages, 1)} · {meta.total} tomador(es)"
        )
        self.query_one("#btn-prev-page", Button).disabled = not meta.has_prev
        self.query_one("#btn-next-page", Button).disabled = not meta.has_next

    def on_input_submitted(self, event: Input.Submitted) -> None:
        match event.input.id:
            case "payers-search":
                self._page_number = 1
                self._load_payers()
            case "payer-documento":
                self._do_lookup()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-search":
                self._page_number = 1
                self._load_payers()
            case "btn-prev-page":
                self._page_number = max(1, self._page_number - 1)
                self._load_payers()
            case "btn-next-page":
                self._page_number += 1
                self._load_payers()
            case "btn-new-payer":
                self._open_form()
            case "btn-lookup-cnpj":
                self._do_lookup()
            case "btn-save-payer":
                self._do_save()
            case "btn-form-back":
                self.action_go_back()
            case "btn-list-close" | "btn-modal-close":
                self.dismiss(None)

    # --- Form ---

    def _open_form(self) -> None:
        for widget_id, _ in (*_INPUT_FIELDS, *_ADDRESS_FIELDS):
            self.query_one(f"#{widget_id}", Input).value = ""
        self.query_one("#payer-tipo", Select).value = "pj"
        self.query_one("#payer-error-label", Label).update("")
        self._show_phase("form")
        self.query_one("#payer-documento", Input).focus()

    def _read_form(self) -> dict:
        data: dict = {"tipo": str(self.query_one("#payer-tipo", Select).value)}
        for widget_id, key in _INPUT_FIELDS:
            data[key] = self.query_one(f"#{widget_id}", Input).value.strip()
        data["endereco"] = {
            key: self.query_one(f"#{widget_id}", Input).value.strip()
            for widget_id, key in _ADDRESS_FIELDS
        }
        return data

    def _validate_form(self, data: dict) -> list[str]:
        errors: list[str] = []
        try:
            data["documento"] = validate_documento(data["documento"], data["tipo"])
        except ValueError as e:
            errors.append(str(e))
        if not data["razao_social"]:
            errors.append("Nome/razão social obrigatório")
        if data["email"]:
            try:
                validate_email(data["email"])
            except ValueError as e:
                errors.append(str(e))
        if data["endereco"]["cep"]:
            try:
                validate_cep(data["endereco"]["cep"])
            except ValueError as e:
                errors.append(str(e))
        return errors

    def _do_lookup(self) -> None:
        if str(self.query_one("#payer-tipo", Select).value) != "pj":
            return
        documento = self.query_one("#payer-documento", Input).value.strip()
        self.query_one("#btn-lookup-cnpj", Button).disabled = True
        self.notify("Consultando CNPJ…", severity="information", timeout=3)
        self._run_lookup(documento)

    @work(thread=True, exclusive=True, group="cnpj")
    def _run_lookup(self, documento: str) -> None:
        try:
            from portal.services.cnpj_lookup import lookup_cnpj

            record = lookup_cnpj(documento)
            self.app.call_from_thread(self._fill_from_lookup, record)
        except ValueError as e:
            self.app.call_from_thread(self._on_lookup_error, str(e))
        except Exception as e:
            if not isinstance(e, ApiError):
                logger.exception("CNPJ lookup failed")
            self.app.call_from_thread(self._on_lookup_error, _error_text(e))

    def _fill_from_lookup(self, record) -> None:
        self.query_one("#btn-lookup-cnpj", Button).disabled = False
        if record is None:
            self._on_lookup_error("CNPJ não encontrado")
            return
        empresa_id = self.app.issuer.empresa_id  # type: ignore[attr-defined]
        form = record.to_payer_form(empresa_id)
        for widget_id, key in _INPUT_FIELDS:
            if form.get(key):
                self.query_one(f"#{widget_id}", Input).value = str(form[key])
        for widget_id, key in _ADDRESS_FIELDS:
            if form["endereco"].get(key):
                self.query_one(f"#{widget_id}", Input).value = str(form["endereco"][key])
        if record.situacao != "ATIVA":
            self.notify(f"Atenção: CNPJ com situação {record.situacao}", severity="warning")
        else:
            self.notify("Dados preenchidos a partir do CNPJ", timeout=3)

    def _on_lookup_error(self, msg: str) -> None:
        self.query_one("#btn-lookup-cnpj", Button).disabled = False
        self.query_one("#payer-error-label", Label).update(msg)

    def _do_save(self) -> None:
        if self._saving:
            return
        error_label = self.query_one("#payer-error-label", Label)
        error_label.update("")
        data = self._read_form()
        errors = self._validate_form(data)
        if errors:
            error_label.update(" | ".join(errors))
            return
        self._saving = True
        self.query_one("#btn-save-payer", Button).disabled = True
        self._run_save(data)

    @work(thread=True)
    def _run_save(self, data: dict) -> None:
        try:
            from portal.services.payers import create_payer, find_by_document

            empresa_id = self.app.issuer.empresa_id  # type: ignore[attr-defined]
            client = self.app.client  # type: ignore[attr-defined]
            existing = find_by_document(client, data["documento"], empresa_id)
            if existing is not None:
                self.app.call_from_thread(self._on_save_done, existing, True)
                return
            payer = create_payer(client, {**data, "empresa_id": empresa_id})
            self.app.call_from_thread(self._on_save_done, payer, False)
        except Exception as e:
            if not isinstance(e, ApiError):
                logger.exception("Failed to create payer")
            self.app.call_from_thread(self._on_save_error, _error_text(e))

    def _on_save_done(self, payer: Payer, already_registered: bool) -> None:
        self._saving = False
        self.query_one("#btn-save-payer", Button).disabled = False
        if already_registered:
            self.notify(f"Tomador já cadastrado: {payer.display_name}", severity="warning")
        else:
            self.notify(f"Tomador '{payer.display_name}' cadastrado", timeout=3)
        if self._select_mode:
            self.dismiss(payer)
            return
        self._show_phase("list")
        self._load_payers()

    def _on_save_error(self, msg: str) -> None:
        self._saving = False
        self.query_one("#btn-save-payer", Button).disabled = False
        self.query_one("#payer-error-label", Label).update(f"Erro: {msg}")

    def action_go_back(self) -> None:
        if self._phase == "form" and not self._select_mode:
            self._show_phase("list")
            self._load_payers()
        else:
            self.dismiss(None)
