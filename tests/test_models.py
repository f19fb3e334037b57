from __future__ import annotations

from decimal import Decimal

import pytest

from portal.models.guide import Guide
from portal.models.invoice import Invoice, WithholdingFlags
from portal.models.issuer import Issuer
from portal.models.page import PageMeta
from portal.models.payer import Payer


class TestIssuer:
    def test_from_dict(self, issuer):
        assert issuer.empresa_id == "emp-1"
        assert issuer.aliquota_iss == Decimal("2")
        assert issuer.cnae == "6201-5/01"
        assert issuer.retencoes == WithholdingFlags(ir=True)

    def test_defaults_without_fiscal_block(self, issuer_dict):
        issuer_dict.pop("fiscal")
        issuer = Issuer.from_dict(issuer_dict)
        assert issuer.aliquota_iss == Decimal("5")
        assert issuer.codigo_tributacao_municipal == ""
        assert issuer.retencoes.active() == ()

    def test_numeric_yaml_values(self, issuer_dict):
        issuer_dict["codigo_municipio"] = 4205407
        issuer_dict["fiscal"]["aliquota_iss"] = 2.5
        issuer = Issuer.from_dict(issuer_dict)
        assert issuer.codigo_municipio == "4205407"
        assert issuer.aliquota_iss == Decimal("2.5")

    def test_missing_required(self, issuer_dict):
        issuer_dict.pop("cnpj")
        with pytest.raises(KeyError):
            Issuer.from_dict(issuer_dict)


class TestPayer:
    def test_from_dict(self, payer):
        assert payer.display_name == "CLIENTE EXEMPLO SA"
        assert payer.endereco.cidade == "Florianópolis"
        assert payer.ativo is True

    def test_display_name_falls_back(self):
        assert Payer(id="1", tipo="pf", documento="52998224725", nome="Maria").display_name == "Maria"
        assert Payer(id="1", tipo="pf", documento="52998224725").display_name == "52998224725"


class TestWithholdingFlags:
    def test_active_in_order(self):
        flags = WithholdingFlags.from_dict({"iss": 1, "ir": True, "pis": False})
        assert flags.active() == ("ir", "iss")


class TestInvoice:
    def test_status_label(self):
        assert Invoice(id="1", status="substituida").status_label == "Substituída"
        assert Invoice(id="1", status="desconhecido").status_label == "desconhecido"

    def test_can_cancel(self):
        assert Invoice(id="1", status="emitida").can_cancel
        assert not Invoice(id="1", status="cancelada").can_cancel


class TestGuide:
    def test_is_open(self):
        base = dict(id="g", tipo="DAS", descricao="", competencia="", valor=Decimal("1"),
                    data_vencimento="2024-03-20")
        assert Guide(status="pendente", **base).is_open
        assert Guide(status="vencida", **base).is_open
        assert not Guide(status="paga", **base).is_open


class TestPageMeta:
    def test_from_dict_computes_pages(self):
        meta = PageMeta.from_dict({"total": 45, "page": 1, "perPage": 20})
        assert meta.total_pages == 3
        assert meta.has_next is True
        assert meta.has_prev is False

    def test_limit_alias(self):
        meta = PageMeta.from_dict({"total": 5, "page": 1, "limit": 5})
        assert meta.per_page == 5
        assert meta.total_pages == 1
        assert meta.has_next is False
