"""Company data lookup on the public CNPJ registry (BrasilAPI).

Used to prefill the new-payer form from a CNPJ.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import requests.exceptions
from requests import get

from portal.config import API_TIMEOUT, CNPJ_LOOKUP_URL
from portal.services.exceptions import ApiConnectionError, ApiError
from portal.services.http_retry import CNPJ_LOOKUP, RetryableHTTPError, check_status, retry_call
from portal.services.mappers import only_digits
from portal.utils.validators import validate_cnpj

_SITUACOES = ("ATIVA", "BAIXADA", "INAPTA", "SUSPENSA", "NULA")


@dataclass(frozen=True)
class CompanyRecord:
    cnpj: str
    razao_social: str
    nome_fantasia: str | None
    situacao: str
    cnae_principal: str
    cnae_descricao: str
    endereco: dict = field(default_factory=dict)
    telefone: str | None = None
    email: str | None = None
    optante_simples: bool | None = None

    def to_payer_form(self, empresa_id: str) -> dict:
        """Frontend-shaped payload for payers.create_payer()."""
        return {
            "empresa_id": empresa_id,
            "tipo": "pj",
            "documento": self.cnpj,
            "razao_social": self.razao_social,
            "nome_fantasia": self.nome_fantasia,
            "email": self.email or "",
            "telefone": self.telefone,
            "endereco": self.endereco,
        }


def format_cnae(code: int | str) -> str:
    """Format a 7-digit CNAE as ``XXXX-X/XX``."""
    digits = only_digits(str(code)).zfill(7)
    return f"{digits[:4]}-{digits[4]}/{digits[5:]}"


def _map_situacao(descricao: str) -> str:
    upper = (descricao or "").upper()
    for situacao in _SITUACOES:
        if situacao in upper:
            return situacao
    return "ATIVA"


def _format_phone(ddd_phone: str | None) -> str | None:
    digits = only_digits(ddd_phone or "")
    if len(digits) < 10:
        return None
    return f"({digits[:2]}) {digits[2:-4]}-{digits[-4:]}"


def _from_brasilapi(data: dict) -> CompanyRecord:
    return CompanyRecord(
        cnpj=only_digits(data.get("cnpj") or ""),
        razao_social=data.get("razao_social") or "",
        nome_fantasia=data.get("nome_fantasia") or None,
        situacao=_map_situacao(data.get("descricao_situacao_cadastral") or ""),
        cnae_principal=format_cnae(data.get("cnae_fiscal") or 0),
        cnae_descricao=data.get("cnae_fiscal_descricao") or "",
        endereco={
            "logradouro": data.get("logradouro") or "",
            "numero": data.get("numero") or "",
            "complemento": data.get("complemento") or "",
            "bairro": data.get("bairro") or "",
            "cidade": data.get("municipio") or "",
            "uf": data.get("uf") or "",
            "cep": only_digits(data.get("cep") or ""),
            "codigo_municipio": str(data.get("codigo_municipio_ibge") or ""),
        },
        telefone=_format_phone(data.get("ddd_telefone_1")) or _format_phone(
            data.get("ddd_telefone_2")
        ),
        email=data.get("email") or None,
        optante_simples=data.get("opcao_pelo_simples"),
    )


def lookup_cnpj(cnpj: str) -> CompanyRecord | None:
    """Fetch public registry data for *cnpj*. Returns None when it is unknown.

    Raises ValueError for a malformed CNPJ and ApiError for service errors.
    """
    digits = validate_cnpj(cnpj)
    url = f"{CNPJ_LOOKUP_URL}/{digits}"

    def _do_get():
        return check_status(get(url, timeout=API_TIMEOUT), CNPJ_LOOKUP, "BrasilAPI")

    try:
        resp = retry_call(_do_get, CNPJ_LOOKUP)
    except RetryableHTTPError as exc:
        resp = exc.response
    except requests.exceptions.RequestException as exc:
        raise ApiConnectionError() from exc

    if resp.status_code == 404:
        return None
    if resp.status_code == 429:
        raise ApiError(
            "Limite de consultas excedido. Aguarde alguns segundos e tente novamente.",
            status_code=429,
        )
    if not resp.ok:
        raise ApiError(f"Erro na consulta: {resp.status_code}", status_code=resp.status_code)
    return _from_brasilapi(resp.json())
