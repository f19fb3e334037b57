from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from portal.models.invoice import PlaceOfService, WithholdingFlags
from portal.services.mappers import (
    draft_to_backend,
    draft_update_to_backend,
    guide_from_backend,
    invoice_filters_to_backend,
    invoice_from_backend,
    only_digits,
    payer_filters_to_backend,
    payer_from_backend,
    payer_to_backend,
    payer_update_to_backend,
)

TODAY = date(2024, 3, 15)


class TestPayerMapping:
    def test_create_payload(self, payer_dict):
        payload = payer_to_backend({**payer_dict, "empresa_id": "emp-1"})
        assert payload["empresaId"] == "emp-1"
        assert payload["tipoPessoa"] == "JURIDICA"
        assert payload["cpfCnpj"] == "11444777000161"
        assert payload["razaoSocial"] == "CLIENTE EXEMPLO SA"
        assert payload["email"] == "financeiro@cliente.com.br"
        assert payload["municipioCodigo"] == 4205407
        assert payload["estadoId"] == 42
        assert payload["cep"] == "88010000"

    def test_individual_name_as_razao_social(self):
        payload = payer_to_backend(
            {"empresa_id": "e", "tipo": "pf", "documento": "529.982.247-25", "nome": "Maria"}
        )
        assert payload["tipoPessoa"] == "FISICA"
        assert payload["cpfCnpj"] == "52998224725"
        assert payload["razaoSocial"] == "Maria"

    def test_invalid_email_dropped(self):
        payload = payer_to_backend(
            {"empresa_id": "e", "documento": "11444777000161", "email": "nao-tem"}
        )
        assert "email" not in payload

    def test_phone_digits_only(self):
        payload = payer_to_backend(
            {"empresa_id": "e", "documento": "11444777000161", "telefone": "(48) 3222-1111"}
        )
        assert payload["telefone"] == "4832221111"

    def test_update_payload_is_partial(self):
        payload = payer_update_to_backend({"nome": "Maria Souza", "ativo": False})
        assert payload == {"razaoSocial": "Maria Souza", "ativo": False}

    def test_from_backend(self, backend_payer):
        payer = payer_from_backend(backend_payer)
        assert payer.id == "tom-1"
        assert payer.tipo == "pj"
        assert payer.display_name == "CLIENTE EXEMPLO SA"
        assert payer.endereco.cidade == "Florianópolis"
        assert payer.endereco.uf == "SC"
        assert payer.endereco.codigo_municipio == "4205407"
        assert payer.total_notas == 3

    def test_from_backend_minimal(self):
        payer = payer_from_backend({"id": 7, "tipoPessoa": "FISICA", "cpfCnpj": "52998224725"})
        assert payer.id == "7"
        assert payer.tipo == "pf"
        assert payer.ativo is True
        assert payer.endereco.codigo_municipio == ""

    def test_filters(self):
        params = payer_filters_to_backend(
            {"empresa_id": "e", "busca": "acme", "limit": 5, "tipo": "pf", "ativo": False}
        )
        assert params == {
            "empresaId": "e",
            "busca": "acme",
            "perPage": 5,
            "tipoPessoa": "FISICA",
            "ativo": False,
        }

    def test_empty_filters(self):
        assert payer_filters_to_backend(None) == {}


class TestDraftMapping:
    def test_create_payload(self, draft, issuer):
        payload = draft_to_backend(draft, issuer, TODAY)
        assert payload["empresaId"] == "emp-1"
        assert payload["tomadorId"] == "tom-1"
        assert payload["dataEmissao"] == "2024-03-15"
        assert payload["competencia"] == "2024-03-01"
        assert payload["valorServico"] == 4500.0
        assert payload["aliquotaIss"] == 2.0
        assert payload["codigoServico"] == "01.07"
        assert payload["issRetido"] is False

    def test_unchecked_withholdings_sent_as_zero(self, draft, issuer):
        payload = draft_to_backend(draft, issuer, TODAY)
        for key in ("aliquotaIr", "aliquotaPis", "aliquotaCofins", "aliquotaCsll", "aliquotaInss"):
            assert payload[key] == 0.0

    def test_checked_withholdings_sent_as_percent(self, draft, issuer):
        draft = replace(draft, withholding=WithholdingFlags(ir=True, pis=True, iss=True))
        payload = draft_to_backend(draft, issuer, TODAY)
        assert payload["aliquotaIr"] == 1.5
        assert payload["aliquotaPis"] == 0.65
        assert payload["aliquotaCofins"] == 0.0
        assert payload["issRetido"] is True

    def test_value_rounded_to_cents(self, draft, issuer):
        payload = draft_to_backend(replace(draft, service_value=Decimal("10.005")), issuer, TODAY)
        assert payload["valorServico"] == 10.01

    def test_place_of_service(self, draft, issuer):
        draft = replace(draft, place_of_service=PlaceOfService("São José", "SC", "4216602"))
        payload = draft_to_backend(draft, issuer, TODAY)
        assert payload["localPrestacaoMunicipioCodigo"] == 4216602

    def test_missing_competence_uses_today(self, draft, issuer):
        payload = draft_to_backend(replace(draft, competence=""), issuer, TODAY)
        assert payload["competencia"] == "2024-03-01"

    def test_requires_payer(self, draft, issuer):
        with pytest.raises(ValueError):
            draft_to_backend(replace(draft, payer=None), issuer, TODAY)

    def test_update_payload_drops_owner(self, draft, issuer):
        payload = draft_update_to_backend(draft, issuer, TODAY)
        assert "empresaId" not in payload
        assert payload["tomadorId"] == "tom-1"


class TestInvoiceMapping:
    def test_from_backend(self, backend_invoice):
        invoice = invoice_from_backend(backend_invoice)
        assert invoice.id == "nf-1"
        assert invoice.status == "rascunho"
        assert invoice.is_draft
        assert invoice.numero is None
        assert invoice.tomador_nome == "CLIENTE EXEMPLO SA"
        assert invoice.valor_servico == Decimal("4500.00")
        assert invoice.competencia == "2024-03-01"
        assert invoice.data_emissao == "2024-03-15"

    def test_emitted(self, backend_invoice):
        invoice = invoice_from_backend({**backend_invoice, "status": "EMITIDA", "numero": "17"})
        assert invoice.numero == 17
        assert invoice.status_label == "Emitida"
        assert invoice.can_cancel

    def test_filters(self):
        params = invoice_filters_to_backend(
            {"empresa_id": "e", "status": "emitida", "page": 2, "limit": 20}
        )
        assert params == {"empresaId": "e", "status": "EMITIDA", "page": 2, "perPage": 20}


class TestGuideMapping:
    def test_from_backend(self):
        guide = guide_from_backend(
            {
                "id": 3,
                "tipo": "das",
                "competencia": "2024-02-01T00:00:00Z",
                "valor": "312.40",
                "dataVencimento": "2024-03-20T00:00:00Z",
                "status": "PENDENTE",
            }
        )
        assert guide.id == "3"
        assert guide.tipo == "DAS"
        assert guide.valor == Decimal("312.40")
        assert guide.data_vencimento == "2024-03-20"
        assert guide.data_pagamento is None
        assert guide.valor_pago is None
        assert guide.is_open

    def test_paid(self):
        guide = guide_from_backend(
            {"id": "g", "status": "PAGA", "dataPagamento": "2024-03-18", "valorPago": 312.4}
        )
        assert guide.data_pagamento == "2024-03-18"
        assert guide.valor_pago == Decimal("312.4")
        assert not guide.is_open


def test_only_digits():
    assert only_digits("11.444.777/0001-61") == "11444777000161"
    assert only_digits("") == ""
