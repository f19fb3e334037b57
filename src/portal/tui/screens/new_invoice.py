from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Checkbox, DataTable, Input, Label, Static

from portal.config import DEFAULT_PER_PAGE
from portal.services import wizard
from portal.services.wizard import STEP_LABELS, STEPS, Step, WizardState
from portal.tui.options import WITHHOLDING_LABELS
from portal.utils.formatters import (
    format_brl,
    format_competencia,
    format_documento,
    format_percent,
)
from portal.utils.validators import validate_date

if TYPE_CHECKING:
    from portal.models.payer import Payer

logger = logging.getLogger(__name__)

# Input widget id -> draft field
_SERVICE_INPUTS: dict[str, str] = {
    "service-description": "service_description",
    "service-value": "service_value",
    "cnae": "tax_classification_code",
    "municipal-code": "municipal_tax_code",
    "iss-rate": "iss_rate",
    "competence": "competence",
    "notes": "notes",
}

_ERROR_FIELDS = (
    "payer",
    "service_description",
    "service_value",
    "tax_classification_code",
    "iss_rate",
    "competence",
)

_SUBMIT_BUTTONS = ("btn-save-draft", "btn-simulate", "btn-emit")

# Dots as thousands separators only: 1.500, 12.345.678
_THOUSANDS = re.compile(r"\d{1,3}(?:\.\d{3})+")


def _normalize_number(text: str) -> str:
    """Accept ``4.500,00``, ``1.500`` (thousands) and ``4500.00``; empty means zero."""
    text = text.strip().replace("R$", "").strip()
    if not text:
        return "0"
    if "," in text or _THOUSANDS.fullmatch(text):
        text = text.replace(".", "").replace(",", ".")
    return text


class NewInvoiceScreen(ModalScreen[bool]):
    """Issuance wizard: Tomador -> Serviço -> Revisão, then the result.

    Dismisses with True when an invoice was persisted on the backend.
    """

    BINDINGS = [
        Binding("escape", "go_back", "Voltar"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._state: WizardState = wizard.start()
        self._payers: dict[str, Payer] = {}
        self._persisted = False
        self._finished = False

    def _init_state(self) -> None:
        try:
            issuer = self.app.issuer  # type: ignore[attr-defined]
        except Exception as e:
            logger.warning("Issuer profile unavailable, wizard starts without defaults: %s", e)
            issuer = None
        self._state = wizard.start(issuer)

    def compose(self) -> ComposeResult:
        self._init_state()
        draft = self._state.draft

        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Nova NFS-e", id="header-bar")
                yield Button("✕", id="btn-modal-close")
            yield Static("", id="step-indicator")

            # Step 1: payer
            with Container(id="step-payer"):
                with Horizontal(classes="search-bar"):
                    yield Input(placeholder="Nome, CNPJ ou CPF", id="payer-search")
                    yield Button("⌕ Buscar", id="btn-payer-search")
                    yield Button("+ Novo tomador", id="btn-payer-new")
                yield DataTable(id="payers-table", cursor_type="row")
                yield Label("Nenhum tomador selecionado", id="payer-selected")
                yield Label("", id="error-payer", classes="error-label")

            # Step 2: service
            with VerticalScroll(id="step-service"):
                yield Label("Descrição do serviço", classes="form-label")
                yield Input(
                    value=draft.service_description,
                    placeholder="Consultoria em desenvolvimento de software",
                    id="service-description",
                )
                yield Label("", id="error-service-description", classes="error-label")
                yield Label("Valor do serviço (R$)", classes="form-label")
                yield Input(
                    value=f"{draft.service_value}" if draft.service_value else "",
                    placeholder="4.500,00",
                    id="service-value",
                )
                yield Label("", id="error-service-value", classes="error-label")
                yield Label("CNAE", classes="form-label")
                yield Input(
                    value=draft.tax_classification_code,
                    placeholder="6201-5/01",
                    id="cnae",
                )
                yield Label("", id="error-tax-classification-code", classes="error-label")
                yield Label("Código de serviço municipal", classes="form-label")
                yield Input(
                    value=draft.municipal_tax_code,
                    placeholder="01.07",
                    id="municipal-code",
                )
                yield Label("Alíquota ISS (%)", classes="form-label")
                yield Input(value=f"{draft.iss_rate}", id="iss-rate")
                yield Label("", id="error-iss-rate", classes="error-label")
                yield Label("Competência (YYYY-MM-DD)", classes="form-label")
                yield Input(value=draft.competence, id="competence")
                yield Label("", id="error-competence", classes="error-label")
                yield Label("Local da prestação", classes="form-label")
                place = draft.place_of_service
                yield Static(
                    f"{place.municipio}/{place.uf}" if place.municipio else "—",
                    id="place-of-service",
                )
                yield Label("Retenções", classes="form-label")
                for name, label in WITHHOLDING_LABELS:
                    yield Checkbox(label, getattr(draft.withholding, name), id=f"wh-{name}")
                yield Label("Observações", classes="form-label")
                yield Input(value=draft.notes, id="notes")
                yield Static("", id="taxes-preview")

            # Step 3: review
            with Container(id="step-review"):
                yield DataTable(id="review-table", show_header=False)
                yield Label("", id="banner", classes="error-label")
                with Horizontal(classes="button-bar"):
                    yield Button("⤓ Salvar rascunho", id="btn-save-draft")
                    yield Button("◇ Simular", id="btn-simulate", variant="warning")
                    yield Button("↑ Emitir NFS-e", id="btn-emit", variant="primary")

            # Result
            with Container(id="step-result"):
                yield Label("", id="result-info")
                with Horizontal(classes="button-bar"):
                    yield Button("✕ Fechar", id="btn-result-close", variant="primary")

            with Horizontal(id="wizard-nav", classes="button-bar"):
                yield Button("✕ Fechar", id="btn-close")
                yield Button("← Voltar", id="btn-prev")
                yield Button("Avançar →", id="btn-next", variant="primary")

    def on_mount(self) -> None:
        table = self.query_one("#payers-table", DataTable)
        table.add_columns("Nome", "Documento", "Cidade/UF")
        self._refresh_view()
        self._load_recent_payers()
        self.query_one("#payer-search", Input).focus()

    # --- Rendering ---

    def _refresh_view(self) -> None:
        state = self._state
        on_result = self._finished
        self.query_one("#step-payer").display = not on_result and state.step is Step.PAYER
        self.query_one("#step-service").display = not on_result and state.step is Step.SERVICE
        self.query_one("#step-review").display = not on_result and state.step is Step.REVIEW
        self.query_one("#step-result").display = on_result
        self.query_one("#wizard-nav").display = not on_result

        parts = []
        for i, step in enumerate(STEPS, start=1):
            text = f"{i} {STEP_LABELS[step]}"
            parts.append(f"[bold reverse] {text} [/bold reverse]" if step is state.step else text)
        self.query_one("#step-indicator", Static).update("  ›  ".join(parts))

        self.query_one("#btn-prev", Button).disabled = state.step is Step.PAYER or state.submitting
        self.query_one("#btn-next", Button).display = state.step is not Step.REVIEW
        for button_id in _SUBMIT_BUTTONS:
            self.query_one(f"#{button_id}", Button).disabled = state.submitting

        payer = state.draft.payer
        self.query_one("#payer-selected", Label).update(
            f"Selecionado: {payer.display_name} ({format_documento(payer.documento)})"
            if payer
            else "Nenhum tomador selecionado"
        )
        self._show_errors()
        self._show_taxes()
        if state.step is Step.REVIEW:
            self._show_review()

    def _show_errors(self) -> None:
        errors = self._state.errors
        for field in _ERROR_FIELDS:
            label_id = "error-" + field.replace("_", "-")
            self.query_one(f"#{label_id}", Label).update(errors.get(field, ""))
        banner = self._state.banner or ""
        if not banner and errors and self._state.step is Step.REVIEW:
            banner = " | ".join(errors.values())
        self.query_one("#banner", Label).update(banner)

    def _show_taxes(self) -> None:
        preview = self.query_one("#taxes-preview", Static)
        try:
            taxes = self._state.taxes
        except ValueError as e:
            preview.update(str(e))
            return
        lines = [f"ISS ({format_percent(self._state.draft.iss_rate)}): {format_brl(taxes.iss_amount)}"]
        for name in self._state.draft.withholding.active():
            if name != "iss":
                lines.append(f"{name.upper()}: {format_brl(taxes.amount_for(name))}")
        lines.append(f"Total retido: {format_brl(taxes.total_withheld)}")
        lines.append(f"[bold]Valor líquido: {format_brl(taxes.net_amount)}[/bold]")
        preview.update("\n".join(lines))

    def _show_review(self) -> None:
        draft = self._state.draft
        table = self.query_one("#review-table", DataTable)
        table.clear(columns=True)
        table.add_columns("Campo", "Valor")
        if draft.payer:
            table.add_row("Tomador", draft.payer.display_name)
            table.add_row("Documento", format_documento(draft.payer.documento))
        table.add_row("Serviço", draft.service_description)
        table.add_row("CNAE", draft.tax_classification_code)
        table.add_row("Código municipal", draft.municipal_tax_code or "—")
        table.add_row("Competência", format_competencia(draft.competence))
        table.add_row("Valor do serviço", format_brl(draft.service_value))
        try:
            taxes = self._state.taxes
        except ValueError:
            return
        table.add_row(f"ISS ({format_percent(draft.iss_rate)})", format_brl(taxes.iss_amount))
        for name in draft.withholding.active():
            if name != "iss":
                table.add_row(f"{name.upper()} retido", format_brl(taxes.amount_for(name)))
        table.add_row("ISS retido", "Sim" if draft.withholding.iss else "Não")
        table.add_row("Total retido", format_brl(taxes.total_withheld))
        table.add_row("Valor líquido", format_brl(taxes.net_amount))

    # --- Payer step ---

    @work(thread=True)
    def _load_recent_payers(self) -> None:
        try:
            from portal.services.payers import recent_payers

            empresa_id = self.app.issuer.empresa_id  # type: ignore[attr-defined]
            payers = recent_payers(self.app.client, empresa_id)  # type: ignore[attr-defined]
        except Exception as e:
            logger.warning("Could not load recent payers: %s", e)
            payers = []
        self.app.call_from_thread(self._populate_payers, payers)

    @work(thread=True, exclusive=True, group="payer-search")
    def _run_payer_search(self, term: str) -> None:
        try:
            from portal.services.payers import search_payers

            empresa_id = self.app.issuer.empresa_id  # type: ignore[attr-defined]
            page = search_payers(
                self.app.client,  # type: ignore[attr-defined]
                {"empresa_id": empresa_id, "busca": term, "limit": DEFAULT_PER_PAGE},
            )
            self.app.call_from_thread(self._populate_payers, page.items)
        except Exception as e:
            from portal.services.exceptions import ApiError

            msg = e.message if isinstance(e, ApiError) else "Não foi possível buscar tomadores"
            if not isinstance(e, ApiError):
                logger.exception("Payer search failed")
            self.app.call_from_thread(self.notify, msg, severity="error", timeout=5)

    def _populate_payers(self, payers: list[Payer]) -> None:
        table = self.query_one("#payers-table", DataTable)
        table.clear()
        self._payers = {p.id: p for p in payers}
        for p in payers:
            end = p.endereco
            table.add_row(
                p.display_name,
                format_documento(p.documento),
                f"{end.cidade}/{end.uf}" if end.cidade else "",
                key=p.id,
            )

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        if event.data_table.id != "payers-table":
            return
        payer = self._payers.get(str(event.row_key.value))
        if payer is not None:
            self._state = wizard.select_payer(self._state, payer)
            self._refresh_view()

    def _open_new_payer(self) -> None:
        from portal.tui.screens.payers import PayersScreen

        self.app.push_screen(PayersScreen(select_mode=True), callback=self._on_payer_created)

    def _on_payer_created(self, payer: Payer | None) -> None:
        if payer is None:
            return
        self._payers[payer.id] = payer
        self._populate_payers(list(self._payers.values()))
        self._state = wizard.select_payer(self._state, payer)
        self._refresh_view()

    # --- Service step ---

    def _apply_service_input(self, field: str, value: str) -> str | None:
        """Parse *value* into the draft. Returns the error, leaving the draft as it was."""
        try:
            if field in ("service_value", "iss_rate"):
                value = _normalize_number(value)
            elif field == "competence" and value:
                validate_date(value)
            self._state = wizard.update_service(self._state, **{field: value})
        except ValueError as e:
            return str(e)
        return None

    def on_input_changed(self, event: Input.Changed) -> None:
        field = _SERVICE_INPUTS.get(event.input.id or "")
        if field is None:
            return
        errors = {k: v for k, v in self._state.errors.items() if k != field}
        error = self._apply_service_input(field, event.value)
        if error:
            errors[field] = error
        self._state = wizard.with_errors(self._state, errors)
        self._show_errors()
        self._show_taxes()

    def on_checkbox_changed(self, event: Checkbox.Changed) -> None:
        checkbox_id = event.checkbox.id or ""
        if not checkbox_id.startswith("wh-"):
            return
        self._state = wizard.set_withholding(self._state, checkbox_id[3:], event.value)
        self._show_taxes()

    # --- Navigation ---

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "payer-search":
            self._run_payer_search(event.value.strip())

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-payer-search":
                self._run_payer_search(self.query_one("#payer-search", Input).value.strip())
            case "btn-payer-new":
                self._open_new_payer()
            case "btn-next":
                self.action_next()
            case "btn-prev":
                self.action_previous()
            case "btn-save-draft":
                self._submit("draft")
            case "btn-simulate":
                self._submit("simulate")
            case "btn-emit":
                self._submit("emit")
            case "btn-close" | "btn-modal-close" | "btn-result-close":
                self.dismiss(self._persisted)

    def action_next(self) -> None:
        if self._state.step is Step.SERVICE and not self._state.submitting:
            # The draft keeps the last value that parsed; the inputs are what the user sees.
            parse_errors = {}
            for input_id, field in _SERVICE_INPUTS.items():
                value = self.query_one(f"#{input_id}", Input).value
                error = self._apply_service_input(field, value)
                if error:
                    parse_errors[field] = error
            if parse_errors:
                errors = wizard.validate_step(Step.SERVICE, self._state.draft)
                self._state = wizard.with_errors(self._state, {**errors, **parse_errors})
                self._refresh_view()
                return
        self._state = wizard.next_step(self._state)
        self._refresh_view()

    def action_previous(self) -> None:
        self._state = wizard.previous_step(self._state)
        self._refresh_view()

    # --- Submission ---

    def _submit(self, mode: str) -> None:
        started = wizard.begin_submission(self._state, mode)
        if started is self._state:
            return
        self._state = started
        if not started.submitting:
            self._show_errors()
            return
        self._refresh_view()
        self.notify("Enviando…", severity="information", timeout=3)
        self._run_submit(started, mode)

    @work(thread=True)
    def _run_submit(self, state: WizardState, mode: str) -> None:
        from portal.services.dispatcher import submit

        def dispatch(draft, m):
            return submit(
                draft,
                m,
                issuer=self.app.issuer,  # type: ignore[attr-defined]
                client=self.app.client,  # type: ignore[attr-defined]
            )

        new_state = wizard.dispatch_submission(state, mode, dispatch)
        self.app.call_from_thread(self._on_submit_finished, new_state)

    def _on_submit_finished(self, state: WizardState) -> None:
        self._state = state
        if state.draft.remote_id:
            self._persisted = True
        result = state.result
        if result is None or state.banner:
            self._refresh_view()
            self.notify(state.banner or "Falha no envio", severity="error", timeout=5)
            return

        invoice = result.invoice
        if result.mode == "emit":
            title, text = "NFS-e emitida", f"Nota nº {invoice.numero} emitida com sucesso"
        elif result.simulated:
            title, text = "Simulação salva", "Simulação salva como rascunho (sem validade fiscal)"
        else:
            title, text = "Rascunho salvo", "Rascunho salvo com sucesso"

        from portal.utils.preferences import add_notification

        self.app.update_preferences(add_notification, title, text, "success")  # type: ignore[attr-defined]
        info = f"{text}\n\nSituação: {invoice.status_label}\nValor líquido: {format_brl(invoice.valor_liquido)}"
        if invoice.codigo_verificacao:
            info += f"\nCódigo de verificação: {invoice.codigo_verificacao}"
        self.query_one("#result-info", Label).update(info)
        self._finished = True
        self._refresh_view()
        self.notify(text, timeout=5)

    def action_go_back(self) -> None:
        if self._state.submitting:
            return
        if not self._finished and self._state.step is not Step.PAYER:
            self.action_previous()
        else:
            self.dismiss(self._persisted)
