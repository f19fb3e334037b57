from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime

from portal.config import BRT
from portal.models.invoice import Invoice, ServiceInvoiceDraft
from portal.models.issuer import Issuer
from portal.services.api_client import ApiClient
from portal.services.exceptions import GENERIC_ERROR_MESSAGE, ApiError, EmissionError
from portal.services.invoices import create_invoice, emit_invoice, update_invoice
from portal.services.mappers import draft_to_backend, draft_update_to_backend

logger = logging.getLogger(__name__)

MODES = ("draft", "simulate", "emit")


@dataclass(frozen=True)
class SubmissionResult:
    mode: str
    invoice: Invoice

    @property
    def simulated(self) -> bool:
        return self.mode == "simulate"


def _today_brt() -> date:
    return datetime.now(BRT).date()


def _persist_draft(
    draft: ServiceInvoiceDraft, issuer: Issuer, client: ApiClient, today: date
) -> Invoice:
    if draft.remote_id:
        return update_invoice(
            client, draft.remote_id, draft_update_to_backend(draft, issuer, today)
        )
    return create_invoice(client, draft_to_backend(draft, issuer, today))


def submit(
    draft: ServiceInvoiceDraft,
    mode: str,
    *,
    issuer: Issuer,
    client: ApiClient,
    today: date | None = None,
) -> SubmissionResult:
    """Persist *draft* through the backend according to *mode*.

    ``draft`` and ``simulate`` store the invoice as a draft (no tax validity);
    ``emit`` stores it and then emits it. A draft that already has a
    ``remote_id`` is updated instead of created again. Exactly one attempt
    per call; backend messages propagate unmodified.
    """
    if mode not in MODES:
        raise ValueError(f"Modo de envio invalido: '{mode}'")
    today = today or _today_brt()

    invoice = _persist_draft(draft, issuer, client, today)
    logger.info("Draft %s persisted (mode=%s)", invoice.id, mode)
    if mode != "emit":
        return SubmissionResult(mode=mode, invoice=invoice)

    try:
        emitted = emit_invoice(client, invoice.id)
    except ApiError as exc:
        logger.warning("Emission of %s failed: %s", invoice.id, exc.message)
        raise EmissionError(exc.message, invoice.id, exc.status_code) from exc
    except Exception as exc:
        logger.exception("Unexpected error emitting %s", invoice.id)
        raise EmissionError(GENERIC_ERROR_MESSAGE, invoice.id) from exc
    return SubmissionResult(mode=mode, invoice=emitted)
