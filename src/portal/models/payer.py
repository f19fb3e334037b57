from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Address:
    cep: str = ""
    logradouro: str = ""
    numero: str = ""
    complemento: str = ""
    bairro: str = ""
    cidade: str = ""
    uf: str = ""
    codigo_municipio: str = ""

    @classmethod
    def from_dict(cls, d: dict | None) -> Address:
        d = d or {}
        return cls(
            cep=d.get("cep") or "",
            logradouro=d.get("logradouro") or "",
            numero=str(d.get("numero") or ""),
            complemento=d.get("complemento") or "",
            bairro=d.get("bairro") or "",
            cidade=d.get("cidade") or "",
            uf=d.get("uf") or "",
            codigo_municipio=str(d.get("codigo_municipio") or ""),
        )


@dataclass(frozen=True)
class Payer:
    """Service taker (tomador), the counterparty of the NFS-e."""

    id: str
    tipo: str  # "pj" | "pf"
    documento: str  # CNPJ or CPF, digits only
    razao_social: str | None = None
    nome_fantasia: str | None = None
    nome: str | None = None
    inscricao_municipal: str | None = None
    inscricao_estadual: str | None = None
    endereco: Address = field(default_factory=Address)
    email: str = ""
    telefone: str | None = None
    tags: tuple[str, ...] = ()
    ativo: bool = True
    total_notas: int = 0
    faturamento_total: str = "0"

    @property
    def display_name(self) -> str:
        return self.razao_social or self.nome or self.documento

    @classmethod
    def from_dict(cls, d: dict) -> Payer:
        """Create a Payer from a frontend-shaped dict (YAML, fixtures, TUI form)."""
        return cls(
            id=str(d["id"]),
            tipo=d.get("tipo", "pj"),
            documento=d["documento"],
            razao_social=d.get("razao_social"),
            nome_fantasia=d.get("nome_fantasia"),
            nome=d.get("nome"),
            inscricao_municipal=d.get("inscricao_municipal"),
            inscricao_estadual=d.get("inscricao_estadual"),
            endereco=Address.from_dict(d.get("endereco")),
            email=d.get("email") or "",
            telefone=d.get("telefone"),
            tags=tuple(d.get("tags") or ()),
            ativo=d.get("ativo", True),
        )
