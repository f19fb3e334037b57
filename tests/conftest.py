from __future__ import annotations

import json
from decimal import Decimal

import pytest

from portal.models.invoice import ServiceInvoiceDraft
from portal.models.issuer import Issuer
from portal.models.payer import Payer


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(
        self,
        status_code: int = 200,
        body=None,
        content: bytes | None = None,
        headers: dict | None = None,
    ):
        self.status_code = status_code
        self._body = body
        self.headers = headers or {}
        if content is not None:
            self.content = content
        elif body is not None:
            self.content = json.dumps(body).encode()
        else:
            self.content = b""

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError("no json body")
        return self._body


# --- Issuer fixtures ---


@pytest.fixture
def issuer_dict() -> dict:
    return {
        "empresa_id": "emp-1",
        "cnpj": "11222333000181",
        "razao_social": "ACME SERVICOS LTDA",
        "municipio": "Florianópolis",
        "uf": "SC",
        "codigo_municipio": "4205407",
        "fiscal": {
            "aliquota_iss": "2",
            "cnae": "6201-5/01",
            "codigo_tributacao_municipal": "01.07",
            "retencoes": {"ir": True},
        },
    }


@pytest.fixture
def issuer(issuer_dict: dict) -> Issuer:
    return Issuer.from_dict(issuer_dict)


# --- Payer fixtures ---


@pytest.fixture
def payer_dict() -> dict:
    return {
        "id": "tom-1",
        "tipo": "pj",
        "documento": "11444777000161",
        "razao_social": "CLIENTE EXEMPLO SA",
        "email": "financeiro@cliente.com.br",
        "endereco": {
            "cep": "88010000",
            "logradouro": "RUA FELIPE SCHMIDT",
            "numero": "10",
            "bairro": "CENTRO",
            "cidade": "Florianópolis",
            "uf": "SC",
            "codigo_municipio": "4205407",
        },
    }


@pytest.fixture
def payer(payer_dict: dict) -> Payer:
    return Payer.from_dict(payer_dict)


@pytest.fixture
def backend_payer() -> dict:
    return {
        "id": "tom-1",
        "tipoPessoa": "JURIDICA",
        "cpfCnpj": "11444777000161",
        "razaoSocial": "CLIENTE EXEMPLO SA",
        "email": "financeiro@cliente.com.br",
        "cep": "88010000",
        "logradouro": "RUA FELIPE SCHMIDT",
        "numero": "10",
        "bairro": "CENTRO",
        "municipioCodigo": 4205407,
        "municipio": {"nome": "Florianópolis"},
        "estado": {"sigla": "SC"},
        "ativo": True,
        "totalNotas": 3,
        "faturamentoTotal": "13500.00",
    }


# --- Invoice fixtures ---


@pytest.fixture
def backend_invoice() -> dict:
    return {
        "id": "nf-1",
        "status": "RASCUNHO",
        "numero": None,
        "serie": "1",
        "tomador": {"razaoSocial": "CLIENTE EXEMPLO SA", "cpfCnpj": "11444777000161"},
        "descricaoServico": "Desenvolvimento de software",
        "valorServico": "4500.00",
        "valorLiquido": "4432.50",
        "valorIss": "90.00",
        "issRetido": False,
        "competencia": "2024-03-01T00:00:00.000Z",
        "dataEmissao": "2024-03-15T10:00:00.000Z",
    }


@pytest.fixture
def draft(payer: Payer) -> ServiceInvoiceDraft:
    return ServiceInvoiceDraft(
        payer=payer,
        service_description="Desenvolvimento de software",
        service_value=Decimal("4500"),
        tax_classification_code="6201-5/01",
        municipal_tax_code="01.07",
        iss_rate=Decimal("2"),
        competence="2024-03-15",
    )


# --- Config dir fixture ---


@pytest.fixture
def config_dir(tmp_path, issuer_dict):
    import yaml

    cfg = tmp_path / "config"
    cfg.mkdir()
    (cfg / "empresa.yaml").write_text(yaml.dump(issuer_dict, allow_unicode=True))
    return cfg


@pytest.fixture
def fake_response():
    """Factory for FakeResponse objects: ``fake_response(200, {"data": ...})``."""
    return FakeResponse
