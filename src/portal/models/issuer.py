from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from portal.models.invoice import WithholdingFlags


@dataclass(frozen=True)
class Issuer:
    """Issuing company (prestador) as configured in empresa.yaml."""

    empresa_id: str
    cnpj: str
    razao_social: str
    municipio: str
    uf: str
    codigo_municipio: str
    aliquota_iss: Decimal = Decimal("5")
    cnae: str = ""
    codigo_tributacao_municipal: str = ""
    retencoes: WithholdingFlags = field(default_factory=WithholdingFlags)

    @classmethod
    def from_dict(cls, d: dict) -> Issuer:
        """Create an Issuer from a YAML-loaded dict, applying defaults for optional fields."""
        fiscal = d.get("fiscal", {})
        return cls(
            empresa_id=str(d["empresa_id"]),
            cnpj=str(d["cnpj"]),
            razao_social=d["razao_social"],
            municipio=d["municipio"],
            uf=d["uf"],
            codigo_municipio=str(d["codigo_municipio"]),
            aliquota_iss=Decimal(str(fiscal.get("aliquota_iss", "5"))),
            cnae=str(fiscal.get("cnae", "")),
            codigo_tributacao_municipal=str(fiscal.get("codigo_tributacao_municipal", "")),
            retencoes=WithholdingFlags.from_dict(fiscal.get("retencoes") or {}),
        )
