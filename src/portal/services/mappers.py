"""Translation between the client-side records and the backend DTOs.

The backend speaks its own vocabulary (``tipoPessoa``, ``cpfCnpj``, flat
address columns, uppercase statuses). Each function here maps one
direction for one resource so no caller has to spread dicts by hand.
"""

from __future__ import annotations

import re
from datetime import UTC, date, datetime
from decimal import Decimal

from portal.models.guide import Guide
from portal.models.invoice import Invoice, ServiceInvoiceDraft
from portal.models.issuer import Issuer
from portal.models.message import Message
from portal.models.notification import SERVER_NOTIFICATION_TYPES, ServerNotification
from portal.models.payer import Address, Payer
from portal.models.report import ReportDashboard
from portal.models.settings import UserSettings
from portal.models.ticket import TICKET_CATEGORIES, TICKET_PRIORITIES, Ticket, TicketMessage
from portal.services.taxes import WITHHOLDING_RATES, rate_percent, to_cents

_TIPO_TO_BACKEND = {"pf": "FISICA", "pj": "JURIDICA"}
_TIPO_FROM_BACKEND = {"FISICA": "pf", "JURIDICA": "pj"}

_ADDRESS_FIELDS = ("logradouro", "numero", "complemento", "bairro")


def only_digits(value: str) -> str:
    return re.sub(r"\D", "", value or "")


def _decimal(value: object) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    return Decimal(str(value))


def _datetime(value: object) -> datetime | None:
    """Parse a backend ISO timestamp; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _money(value: Decimal) -> float:
    """Serialise a monetary Decimal as a JSON number with 2 decimal places."""
    return float(to_cents(value))


# --- Payers (tomadores) ---


def _address_to_backend(endereco: dict, mapped: dict) -> None:
    for key in _ADDRESS_FIELDS:
        if endereco.get(key):
            mapped[key] = endereco[key]
    if endereco.get("cep"):
        mapped["cep"] = only_digits(endereco["cep"])
    codigo = only_digits(str(endereco.get("codigo_municipio") or ""))
    if codigo:
        municipio = int(codigo)
        mapped["municipioCodigo"] = municipio
        # First two digits of the IBGE municipality code identify the state
        mapped["estadoId"] = municipio // 100000


def _contact_to_backend(data: dict, mapped: dict) -> None:
    email = data.get("email")
    if email and "@" in email:
        mapped["email"] = email
    if data.get("telefone"):
        mapped["telefone"] = only_digits(data["telefone"])
    if data.get("tags"):
        mapped["tags"] = list(data["tags"])


def payer_to_backend(data: dict) -> dict:
    """Map a create-payer form (frontend shape) to the backend create DTO."""
    mapped: dict = {
        "empresaId": data["empresa_id"],
        "tipoPessoa": _TIPO_TO_BACKEND.get(data.get("tipo", "pj"), "JURIDICA"),
        "cpfCnpj": only_digits(data["documento"]),
        "razaoSocial": data.get("razao_social") or data.get("nome") or "",
    }
    for src, dst in (
        ("nome_fantasia", "nomeFantasia"),
        ("inscricao_municipal", "inscricaoMunicipal"),
        ("inscricao_estadual", "inscricaoEstadual"),
    ):
        if data.get(src):
            mapped[dst] = data[src]
    _contact_to_backend(data, mapped)
    if data.get("endereco"):
        _address_to_backend(data["endereco"], mapped)
    return mapped


def payer_update_to_backend(data: dict) -> dict:
    """Map a partial payer update to the backend PATCH body.

    For individuals the name travels as ``razaoSocial``.
    """
    mapped: dict = {}
    name = data.get("razao_social") or data.get("nome")
    if name:
        mapped["razaoSocial"] = name
    for src, dst in (
        ("nome_fantasia", "nomeFantasia"),
        ("inscricao_municipal", "inscricaoMunicipal"),
        ("inscricao_estadual", "inscricaoEstadual"),
    ):
        if data.get(src):
            mapped[dst] = data[src]
    if data.get("ativo") is not None:
        mapped["ativo"] = data["ativo"]
    _contact_to_backend(data, mapped)
    if data.get("endereco"):
        _address_to_backend(data["endereco"], mapped)
    return mapped


def payer_from_backend(data: dict) -> Payer:
    """Map a backend tomador record to a Payer."""
    municipio = data.get("municipio") or {}
    estado = data.get("estado") or {}
    codigo = data.get("municipioCodigo")
    return Payer(
        id=str(data["id"]),
        tipo=_TIPO_FROM_BACKEND.get(data.get("tipoPessoa", ""), "pj"),
        documento=data.get("cpfCnpj") or "",
        razao_social=data.get("razaoSocial"),
        nome_fantasia=data.get("nomeFantasia"),
        nome=data.get("razaoSocial"),
        inscricao_municipal=data.get("inscricaoMunicipal"),
        inscricao_estadual=data.get("inscricaoEstadual"),
        endereco=Address(
            cep=data.get("cep") or "",
            logradouro=data.get("logradouro") or "",
            numero=data.get("numero") or "",
            complemento=data.get("complemento") or "",
            bairro=data.get("bairro") or "",
            cidade=municipio.get("nome") or "",
            uf=estado.get("sigla") or "",
            codigo_municipio=str(codigo) if codigo is not None else "",
        ),
        email=data.get("email") or "",
        telefone=data.get("telefone"),
        tags=tuple(data.get("tags") or ()),
        ativo=data["ativo"] if data.get("ativo") is not None else True,
        total_notas=int(data.get("totalNotas") or 0),
        faturamento_total=str(data.get("faturamentoTotal") or "0"),
    )


def payer_filters_to_backend(filters: dict | None) -> dict:
    """Map payer search filters to backend query params (``limit`` -> ``perPage``)."""
    if not filters:
        return {}
    mapped: dict = {}
    for key in ("empresa_id", "page", "busca"):
        if filters.get(key):
            mapped["empresaId" if key == "empresa_id" else key] = filters[key]
    if filters.get("limit"):
        mapped["perPage"] = filters["limit"]
    if filters.get("ativo") is not None:
        mapped["ativo"] = filters["ativo"]
    if filters.get("tipo"):
        mapped["tipoPessoa"] = _TIPO_TO_BACKEND.get(filters["tipo"], "JURIDICA")
    if filters.get("documento"):
        mapped["cpfCnpj"] = only_digits(filters["documento"])
    return mapped


# --- Invoices (notas fiscais) ---


def _first_of_month(iso_date: str) -> str:
    d = date.fromisoformat(iso_date)
    return d.replace(day=1).isoformat()


def draft_to_backend(draft: ServiceInvoiceDraft, issuer: Issuer, today: date) -> dict:
    """Map a wizard draft to the backend create DTO.

    Withholding flags become percentage rates; an unchecked withholding is
    sent as rate 0 so the backend computes the same net amount.
    """
    if draft.payer is None:
        raise ValueError("Draft sem tomador")
    competence = draft.competence or today.isoformat()
    payload: dict = {
        "empresaId": issuer.empresa_id,
        "tomadorId": draft.payer.id,
        "dataEmissao": today.isoformat(),
        "competencia": _first_of_month(competence),
        "descricaoServico": draft.service_description.strip(),
        "codigoServico": draft.municipal_tax_code,
        "valorServico": _money(draft.service_value),
        "aliquotaIss": float(draft.iss_rate),
        "issRetido": draft.withholding.iss,
    }
    for name in WITHHOLDING_RATES:
        key = "aliquota" + name.capitalize()
        payload[key] = float(rate_percent(name)) if getattr(draft.withholding, name) else 0.0
    codigo = only_digits(draft.place_of_service.codigo_municipio)
    if codigo:
        payload["localPrestacaoMunicipioCodigo"] = int(codigo)
    return payload


def draft_update_to_backend(draft: ServiceInvoiceDraft, issuer: Issuer, today: date) -> dict:
    """PATCH body for an existing draft: the create DTO minus the immutable owner."""
    payload = draft_to_backend(draft, issuer, today)
    payload.pop("empresaId")
    return payload


def invoice_from_backend(data: dict) -> Invoice:
    """Map a backend nota fiscal record to an Invoice."""
    tomador = data.get("tomador") or {}
    numero = data.get("numero")
    return Invoice(
        id=str(data["id"]),
        status=str(data.get("status") or "").lower(),
        numero=int(numero) if numero is not None else None,
        serie=data.get("serie") or "",
        tomador_nome=tomador.get("razaoSocial") or "",
        tomador_documento=tomador.get("cpfCnpj") or "",
        descricao_servico=data.get("descricaoServico") or "",
        valor_servico=_decimal(data.get("valorServico")),
        valor_liquido=_decimal(data.get("valorLiquido")),
        valor_iss=_decimal(data.get("valorIss")),
        iss_retido=bool(data.get("issRetido")),
        competencia=(data.get("competencia") or "")[:10],
        data_emissao=(data.get("dataEmissao") or "")[:10],
        codigo_verificacao=data.get("codigoVerificacao") or "",
        motivo_cancelamento=data.get("motivoCancelamento") or "",
    )


def invoice_filters_to_backend(filters: dict | None) -> dict:
    """Map invoice list filters to backend query params."""
    if not filters:
        return {}
    mapped: dict = {}
    for src, dst in (
        ("empresa_id", "empresaId"),
        ("tomador_id", "tomadorId"),
        ("competencia_inicio", "competenciaInicio"),
        ("competencia_fim", "competenciaFim"),
        ("page", "page"),
        ("numero", "numero"),
    ):
        if filters.get(src):
            mapped[dst] = filters[src]
    if filters.get("limit"):
        mapped["perPage"] = filters["limit"]
    if filters.get("status"):
        mapped["status"] = str(filters["status"]).upper()
    return mapped


# --- Guides (guias) ---


def guide_from_backend(data: dict) -> Guide:
    """Map a backend guia record to a Guide."""
    valor_pago = data.get("valorPago")
    return Guide(
        id=str(data["id"]),
        tipo=str(data.get("tipo") or "").upper(),
        descricao=data.get("descricao") or "",
        competencia=(data.get("competencia") or "")[:10],
        valor=_decimal(data.get("valor")),
        data_vencimento=(data.get("dataVencimento") or "")[:10],
        status=str(data.get("status") or "").lower(),
        data_pagamento=(data.get("dataPagamento") or "")[:10] or None,
        valor_pago=_decimal(valor_pago) if valor_pago is not None else None,
        codigo_barras=data.get("codigoBarras") or "",
        linha_digitavel=data.get("linhaDigitavel") or "",
    )


# --- Tickets (suporte) ---


def ticket_to_backend(data: dict) -> dict:
    """Map the new-ticket form (assunto, descricao, categoria, prioridade)."""
    assunto = (data.get("assunto") or "").strip()
    if not assunto:
        raise ValueError("Assunto é obrigatório")
    categoria = data.get("categoria") or ""
    if categoria not in TICKET_CATEGORIES:
        raise ValueError(f"Categoria desconhecida: '{categoria}'")
    prioridade = data.get("prioridade") or "media"
    if prioridade not in TICKET_PRIORITIES:
        raise ValueError(f"Prioridade desconhecida: '{prioridade}'")
    return {
        "titulo": assunto,
        "descricao": (data.get("descricao") or "").strip(),
        "categoria": categoria,
        "prioridade": prioridade.upper(),
    }


def ticket_message_from_backend(data: dict) -> TicketMessage:
    autor = data.get("autor") or data.get("usuario") or {}
    return TicketMessage(
        id=str(data.get("id") or ""),
        conteudo=data.get("conteudo") or "",
        autor_nome=autor.get("nome") or "",
        autor_tipo=autor.get("tipo") or "",
        criado_em=data.get("criadoEm") or "",
    )


def ticket_from_backend(data: dict) -> Ticket:
    """Map a backend ticket; the list endpoint omits the thread."""
    atribuido = data.get("atribuido") or data.get("atribuidoPara") or {}
    thread = data.get("comentarios") or data.get("mensagens") or []
    return Ticket(
        id=str(data["id"]),
        assunto=data.get("titulo") or data.get("assunto") or "",
        descricao=data.get("descricao") or "",
        categoria=str(data.get("categoria") or "").lower(),
        prioridade=str(data.get("prioridade") or "media").lower(),
        status=str(data.get("status") or "").lower(),
        criado_em=_datetime(data.get("criadoEm")),
        prazo_resposta=_datetime(data.get("prazoResposta")),
        atribuido_para=atribuido.get("nome") or None,
        mensagens=tuple(ticket_message_from_backend(m) for m in thread),
    )


def ticket_filters_to_backend(filters: dict | None) -> dict:
    if not filters:
        return {}
    mapped: dict = {}
    for key in ("status", "prioridade"):
        if filters.get(key):
            mapped[key] = str(filters[key]).upper()
    if filters.get("categoria"):
        mapped["categoria"] = filters["categoria"]
    if filters.get("page"):
        mapped["page"] = filters["page"]
    if filters.get("limit"):
        mapped["perPage"] = filters["limit"]
    return mapped


# --- Messages (comunicação) ---


def message_to_backend(data: dict) -> dict:
    """Map the compose form; ``resposta_de_id`` threads a reply."""
    assunto = (data.get("assunto") or "").strip()
    conteudo = (data.get("conteudo") or "").strip()
    if not assunto or not conteudo:
        raise ValueError("Assunto e mensagem são obrigatórios")
    mapped = {
        "assunto": assunto,
        "conteudo": conteudo,
        "destinatarioId": data.get("destinatario_id") or "",
    }
    if data.get("resposta_de_id"):
        mapped["respostaDeId"] = data["resposta_de_id"]
    return mapped


def message_from_backend(data: dict) -> Message:
    remetente = data.get("remetente") or {}
    return Message(
        id=str(data["id"]),
        assunto=data.get("assunto") or "",
        conteudo=data.get("conteudo") or "",
        remetente_nome=remetente.get("nome") or "",
        remetente_tipo=remetente.get("tipo") or "",
        lida=bool(data.get("lida") or data.get("dataLeitura")),
        data_envio=data.get("dataEnvio") or data.get("criadoEm") or "",
        data_leitura=data.get("dataLeitura") or None,
        resposta_de_id=data.get("respostaDeId") or None,
    )


# --- Server notifications ---


def server_notification_from_backend(data: dict) -> ServerNotification:
    tipo = str(data.get("tipo") or "").lower()
    return ServerNotification(
        id=str(data["id"]),
        tipo=tipo if tipo in SERVER_NOTIFICATION_TYPES else "informativa",
        titulo=data.get("titulo") or "",
        mensagem=data.get("mensagem") or "",
        lida=bool(data.get("lida") or data.get("lidaEm")),
        data_envio=data.get("dataEnvio") or data.get("criadoEm") or "",
        link=data.get("link") or None,
    )


def notification_filters_to_backend(filters: dict | None) -> dict:
    if not filters:
        return {}
    mapped: dict = {}
    if filters.get("tipo"):
        mapped["tipo"] = filters["tipo"]
    if filters.get("lida") is not None:
        mapped["lida"] = "true" if filters["lida"] else "false"
    if filters.get("page"):
        mapped["page"] = filters["page"]
    if filters.get("limit"):
        mapped["perPage"] = filters["limit"]
    return mapped


# --- Settings (configurações) ---

_SETTINGS_FIELDS = (
    ("notificacoes_email", "notificacoesEmail"),
    ("notificacoes_push", "notificacoesPush"),
    ("tema_escuro", "temaEscuro"),
)


def settings_from_backend(data: dict) -> UserSettings:
    defaults = UserSettings()
    values = {
        name: bool(data.get(key, getattr(defaults, name))) for name, key in _SETTINGS_FIELDS
    }
    return UserSettings(idioma=data.get("idioma") or defaults.idioma, **values)


def settings_update_to_backend(changes: dict) -> dict:
    """Map a partial update; unknown keys raise TypeError."""
    known = {name for name, _ in _SETTINGS_FIELDS} | {"idioma"}
    unknown = set(changes) - known
    if unknown:
        raise TypeError(f"Campos desconhecidos: {', '.join(sorted(unknown))}")
    mapped: dict = {key: bool(changes[name]) for name, key in _SETTINGS_FIELDS if name in changes}
    if "idioma" in changes:
        mapped["idioma"] = changes["idioma"]
    return mapped


# --- Reports (relatórios) ---


def report_filters_to_backend(filters: dict | None) -> dict:
    if not filters:
        return {}
    mapped: dict = {}
    for src, dst in (
        ("empresa_id", "empresaId"),
        ("data_inicio", "dataInicio"),
        ("data_fim", "dataFim"),
        ("competencia", "competencia"),
    ):
        if filters.get(src):
            mapped[dst] = filters[src]
    return mapped


def report_dashboard_from_backend(data: dict) -> ReportDashboard:
    return ReportDashboard(
        faturamento_total=_decimal(data.get("faturamentoTotal")),
        faturamento_mes_anterior=_decimal(data.get("faturamentoMesAnterior")),
        variacao_faturamento=_decimal(data.get("variacaoFaturamento")),
        impostos_total=_decimal(data.get("impostosTotal")),
        impostos_mes_anterior=_decimal(data.get("impostosMesAnterior")),
        variacao_impostos=_decimal(data.get("variacaoImpostos")),
        notas_emitidas=int(data.get("notasEmitidas") or 0),
        notas_mes_anterior=int(data.get("notasMesAnterior") or 0),
        variacao_notas=_decimal(data.get("variacaoNotas")),
        guias_pendentes=int(data.get("guiasPendentes") or 0),
        guias_vencidas=int(data.get("guiasVencidas") or 0),
    )
