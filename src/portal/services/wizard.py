"""Invoice issuance wizard: Tomador -> Serviço -> Revisão.

The wizard is a value (``WizardState``) plus pure transition functions, so
any front end (the Textual screen, tests, a script) drives the same rules.
Validation only runs when moving forward or submitting; edits and backward
moves never produce errors.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum

from portal.models.invoice import (
    WITHHOLDING_NAMES,
    PlaceOfService,
    ServiceInvoiceDraft,
    WithholdingFlags,
)
from portal.models.issuer import Issuer
from portal.models.payer import Payer
from portal.services.dispatcher import MODES, SubmissionResult
from portal.services.exceptions import GENERIC_ERROR_MESSAGE, ApiError, EmissionError
from portal.services.taxes import TaxBreakdown, compute_taxes, to_decimal

logger = logging.getLogger(__name__)


class Step(Enum):
    PAYER = "payer"
    SERVICE = "service"
    REVIEW = "review"


STEPS: tuple[Step, ...] = (Step.PAYER, Step.SERVICE, Step.REVIEW)
STEP_LABELS = {Step.PAYER: "Tomador", Step.SERVICE: "Serviço", Step.REVIEW: "Revisão"}

_DECIMAL_FIELDS = ("service_value", "iss_rate")
_EDITABLE_FIELDS = frozenset({
    "service_description",
    "service_value",
    "tax_classification_code",
    "municipal_tax_code",
    "place_of_service",
    "iss_rate",
    "competence",
    "notes",
})


@dataclass(frozen=True)
class WizardState:
    step: Step = Step.PAYER
    draft: ServiceInvoiceDraft = field(default_factory=ServiceInvoiceDraft)
    errors: Mapping[str, str] = field(default_factory=dict)
    submitting: bool = False
    banner: str | None = None
    result: SubmissionResult | None = None

    @property
    def index(self) -> int:
        return STEPS.index(self.step)

    @property
    def taxes(self) -> TaxBreakdown:
        """Tax breakdown of the current draft, recomputed on every access."""
        return compute_taxes(self.draft.service_value, self.draft.iss_rate, self.draft.withholding)


def start(issuer: Issuer | None = None, today: date | None = None) -> WizardState:
    """Open the wizard with an empty draft seeded from the issuer's fiscal defaults."""
    draft = ServiceInvoiceDraft(competence=(today or date.today()).isoformat())
    if issuer is not None:
        draft = replace(
            draft,
            place_of_service=PlaceOfService(
                municipio=issuer.municipio,
                uf=issuer.uf,
                codigo_municipio=issuer.codigo_municipio,
            ),
            iss_rate=issuer.aliquota_iss,
            withholding=issuer.retencoes,
            tax_classification_code=issuer.cnae,
            municipal_tax_code=issuer.codigo_tributacao_municipal,
        )
    return WizardState(draft=draft)


# --- Editing (never validates) ---


def select_payer(state: WizardState, payer: Payer | None) -> WizardState:
    return replace(state, draft=replace(state.draft, payer=payer))


def update_service(state: WizardState, **changes: object) -> WizardState:
    """Apply service-step edits. Numeric fields accept str/int/float/Decimal.

    Raises ValueError for a value that is not a number and TypeError for an
    unknown field.
    """
    unknown = set(changes) - _EDITABLE_FIELDS
    if unknown:
        raise TypeError(f"Campos desconhecidos: {', '.join(sorted(unknown))}")
    for name in _DECIMAL_FIELDS:
        if name in changes:
            changes[name] = to_decimal(changes[name])  # type: ignore[arg-type]
    return replace(state, draft=replace(state.draft, **changes))  # type: ignore[arg-type]


def set_withholding(state: WizardState, name: str, enabled: bool) -> WizardState:
    if name not in WITHHOLDING_NAMES:
        raise ValueError(f"Retencao desconhecida: '{name}'")
    flags: WithholdingFlags = replace(state.draft.withholding, **{name: enabled})
    return replace(state, draft=replace(state.draft, withholding=flags))


def with_errors(state: WizardState, errors: Mapping[str, str]) -> WizardState:
    """Attach field errors raised outside the wizard rules (e.g. unparseable input)."""
    return replace(state, errors=dict(errors))


# --- Validation ---


def validate_step(step: Step, draft: ServiceInvoiceDraft) -> dict[str, str]:
    """Return field -> message for everything blocking *step*; empty when valid."""
    errors: dict[str, str] = {}
    if step is Step.PAYER:
        if draft.payer is None:
            errors["payer"] = "Selecione um tomador para continuar"
    elif step is Step.SERVICE:
        if not draft.service_description.strip():
            errors["service_description"] = "Informe a descrição do serviço"
        if draft.service_value <= 0:
            errors["service_value"] = "Informe o valor do serviço"
        if not draft.tax_classification_code.strip():
            errors["tax_classification_code"] = "Selecione o CNAE"
        if draft.iss_rate < 0 or draft.iss_rate > 100:
            errors["iss_rate"] = "Alíquota ISS deve estar entre 0 e 100"
    return errors


def validate_for_submission(draft: ServiceInvoiceDraft, mode: str) -> dict[str, str]:
    errors = {**validate_step(Step.PAYER, draft), **validate_step(Step.SERVICE, draft)}
    if mode != "draft" and not draft.municipal_tax_code.strip():
        errors["municipal_tax_code"] = "Informe o código de serviço municipal"
    return errors


# --- Navigation ---


def next_step(state: WizardState) -> WizardState:
    """Advance one step if the current one validates; otherwise stay and show errors."""
    if state.step is Step.REVIEW or state.submitting:
        return state
    errors = validate_step(state.step, state.draft)
    if errors:
        return replace(state, errors=errors)
    return replace(state, step=STEPS[state.index + 1], errors={}, banner=None)


def previous_step(state: WizardState) -> WizardState:
    """Go back one step. Never validates; clears errors."""
    if state.step is Step.PAYER or state.submitting:
        return state
    return replace(state, step=STEPS[state.index - 1], errors={}, banner=None)


# --- Submission ---


def begin_submission(state: WizardState, mode: str) -> WizardState:
    """Mark the review step busy before calling the backend.

    Returns *state* itself (no call must follow) outside the review step or
    while another submission is in flight. Returns a non-submitting state
    with errors when the draft is not valid for *mode*.
    """
    if mode not in MODES:
        raise ValueError(f"Modo de envio invalido: '{mode}'")
    if state.step is not Step.REVIEW or state.submitting:
        return state
    errors = validate_for_submission(state.draft, mode)
    if errors:
        return replace(state, errors=errors)
    return replace(state, submitting=True, errors={}, banner=None)


def submission_succeeded(state: WizardState, result: SubmissionResult) -> WizardState:
    draft = replace(state.draft, remote_id=result.invoice.id)
    return replace(state, draft=draft, submitting=False, banner=None, result=result)


def submission_failed(
    state: WizardState, message: str, remote_id: str | None = None
) -> WizardState:
    """Stay on review with the data intact so the user can retry."""
    draft = state.draft if remote_id is None else replace(state.draft, remote_id=remote_id)
    return replace(state, draft=draft, submitting=False, banner=message)


def dispatch_submission(
    state: WizardState,
    mode: str,
    dispatch: Callable[[ServiceInvoiceDraft, str], SubmissionResult],
) -> WizardState:
    """Call *dispatch* once for a state returned busy by begin_submission()."""
    if not state.submitting:
        return state
    try:
        result = dispatch(state.draft, mode)
    except EmissionError as exc:
        return submission_failed(state, exc.message, remote_id=exc.invoice_id)
    except ApiError as exc:
        return submission_failed(state, exc.message)
    except Exception:
        logger.exception("Unexpected error submitting invoice (mode=%s)", mode)
        return submission_failed(state, GENERIC_ERROR_MESSAGE)
    return submission_succeeded(state, result)


def run_submission(
    state: WizardState,
    mode: str,
    dispatch: Callable[[ServiceInvoiceDraft, str], SubmissionResult],
) -> WizardState:
    """begin_submission() + dispatch_submission() for synchronous callers."""
    started = begin_submission(state, mode)
    if started is state or not started.submitting:
        return started
    return dispatch_submission(started, mode, dispatch)
