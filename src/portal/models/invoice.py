from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from portal.models.payer import Payer

WITHHOLDING_NAMES: tuple[str, ...] = ("ir", "pis", "cofins", "csll", "inss", "iss")

STATUS_LABELS = {
    "rascunho": "Rascunho",
    "simulada": "Simulada",
    "processando": "Processando",
    "emitida": "Emitida",
    "cancelada": "Cancelada",
    "substituida": "Substituída",
    "erro": "Erro",
}


@dataclass(frozen=True)
class WithholdingFlags:
    """Which taxes the payer withholds at source."""

    ir: bool = False
    pis: bool = False
    cofins: bool = False
    csll: bool = False
    inss: bool = False
    iss: bool = False

    @classmethod
    def from_dict(cls, d: dict) -> WithholdingFlags:
        return cls(**{name: bool(d.get(name, False)) for name in WITHHOLDING_NAMES})

    def active(self) -> tuple[str, ...]:
        return tuple(name for name in WITHHOLDING_NAMES if getattr(self, name))


@dataclass(frozen=True)
class PlaceOfService:
    municipio: str = ""
    uf: str = ""
    codigo_municipio: str = ""


@dataclass(frozen=True)
class ServiceInvoiceDraft:
    """In-memory NFS-e being filled by the issuance wizard."""

    payer: Payer | None = None
    service_description: str = ""
    service_value: Decimal = Decimal("0")
    tax_classification_code: str = ""  # CNAE
    municipal_tax_code: str = ""  # código de serviço municipal
    place_of_service: PlaceOfService = field(default_factory=PlaceOfService)
    withholding: WithholdingFlags = field(default_factory=WithholdingFlags)
    iss_rate: Decimal = Decimal("5")
    competence: str = ""  # YYYY-MM-DD
    notes: str = ""
    remote_id: str | None = None


@dataclass(frozen=True)
class Invoice:
    """NFS-e as returned by the backend (read model)."""

    id: str
    status: str
    numero: int | None = None
    serie: str = ""
    tomador_nome: str = ""
    tomador_documento: str = ""
    descricao_servico: str = ""
    valor_servico: Decimal = Decimal("0")
    valor_liquido: Decimal = Decimal("0")
    valor_iss: Decimal = Decimal("0")
    iss_retido: bool = False
    competencia: str = ""
    data_emissao: str = ""
    codigo_verificacao: str = ""
    motivo_cancelamento: str = ""

    @property
    def status_label(self) -> str:
        return STATUS_LABELS.get(self.status, self.status)

    @property
    def is_draft(self) -> bool:
        return self.status == "rascunho"

    @property
    def can_cancel(self) -> bool:
        return self.status not in ("cancelada", "substituida")
