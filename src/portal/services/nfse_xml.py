from __future__ import annotations

from typing import Any

from lxml import etree

NFSE_NS = "http://www.sped.fazenda.gov.br/nfse"


def _localname_xpath(path: str) -> str:
    """Turn ``a/b`` into a namespace-agnostic XPath on local names."""
    steps = [f"*[local-name()='{step}']" for step in path.split("/")]
    return ".//" + "/".join(steps)


def parse_nfse_xml(xml_bytes: bytes) -> dict[str, Any]:
    """Extract the summary fields of a downloaded NFS-e XML.

    Municipal layouts differ in namespace, so elements are matched by local
    name. Missing elements yield empty strings.
    Raises ValueError when *xml_bytes* is not well-formed XML.
    """
    try:
        root = etree.fromstring(xml_bytes)
    except etree.XMLSyntaxError as exc:
        raise ValueError(f"XML invalido: {exc}") from None

    def txt(path: str) -> str:
        found = root.xpath(_localname_xpath(path))
        if not found:
            return ""
        return (found[0].text or "").strip()

    return {
        "numero": txt("infNFSe/nNFSe") or txt("Numero"),
        "codigo_verificacao": txt("CodigoVerificacao") or txt("infNFSe/cVerif"),
        "emit_cnpj": txt("emit/CNPJ") or txt("Prestador/Cnpj"),
        "emit_nome": txt("emit/xNome") or txt("Prestador/RazaoSocial"),
        "toma_documento": txt("toma/CNPJ") or txt("toma/CPF") or txt("Tomador/Cnpj"),
        "toma_nome": txt("toma/xNome") or txt("Tomador/RazaoSocial"),
        "competencia": txt("infDPS/dCompet") or txt("Competencia"),
        "valor_servico": txt("vServPrest/vServ") or txt("ValorServicos"),
        "valor_liquido": txt("valores/vLiq") or txt("ValorLiquidoNfse"),
    }
