"""Shared Select option constants for the portal forms.

Labels put the code first where one exists.
"""

from __future__ import annotations

from portal.models.invoice import STATUS_LABELS

TIPO_PESSOA_OPTIONS: tuple[tuple[str, str], ...] = (
    ("PJ — Pessoa Jurídica", "pj"),
    ("PF — Pessoa Física", "pf"),
)

STATUS_FILTER_OPTIONS: tuple[tuple[str, str], ...] = (
    ("Todas", "todas"),
    *((label, status) for status, label in STATUS_LABELS.items()),
)

GUIDE_STATUS_OPTIONS: tuple[tuple[str, str], ...] = (
    ("Todas", "todas"),
    ("Pendentes", "pendente"),
    ("Vencidas", "vencida"),
    ("Pagas", "paga"),
    ("Canceladas", "cancelada"),
)

WITHHOLDING_LABELS: tuple[tuple[str, str], ...] = (
    ("ir", "IR (1,5%)"),
    ("pis", "PIS (0,65%)"),
    ("cofins", "COFINS (3%)"),
    ("csll", "CSLL (1%)"),
    ("inss", "INSS (11%)"),
    ("iss", "ISS retido pelo tomador"),
)

STATUS_STYLES = {
    "rascunho": "[yellow]Rascunho[/yellow]",
    "simulada": "[cyan]Simulada[/cyan]",
    "processando": "[blue]Processando[/blue]",
    "emitida": "[green]Emitida[/green]",
    "cancelada": "[red]Cancelada[/red]",
    "substituida": "[magenta]Substituída[/magenta]",
    "erro": "[bold red]Erro[/bold red]",
    "pendente": "[yellow]Pendente[/yellow]",
    "vencida": "[red]Vencida[/red]",
    "paga": "[green]Paga[/green]",
}
