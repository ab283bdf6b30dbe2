from __future__ import annotations

import html
import re
from pathlib import Path
from typing import Any, Mapping, Sequence

from .errors import DocumentRenderError, TemplateNotFoundError

PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


class SafeHtml(str):
    """Valeur déjà en HTML: injectée telle quelle, sans échappement."""


def render_text(template: str, fields: Mapping[str, Any]) -> str:
    """
    Remplace chaque {{cle}} par la valeur du champ, en une seule passe.
    - sensible à la casse
    - une valeur contenant {{...}} n'est jamais ré-interprétée
    - les clés inconnues restent telles quelles
    """

    def substitute(m: re.Match[str]) -> str:
        key = m.group(1)
        if key not in fields:
            return m.group(0)
        value = fields[key]
        if isinstance(value, SafeHtml):
            return str(value)
        return html.escape("" if value is None else str(value))

    return PLACEHOLDER.sub(substitute, template)


def load_template(template_name: str, templates_dir: Path) -> str:
    if not re.fullmatch(r"\w+", template_name):
        raise TemplateNotFoundError(template_name)

    path = Path(templates_dir) / f"{template_name}.html"
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise TemplateNotFoundError(template_name) from None
    except OSError as e:
        raise DocumentRenderError(f"Lecture du modèle {template_name} impossible: {e}") from e


def render(template_name: str, fields: Mapping[str, Any], templates_dir: Path) -> str:
    """Charge le modèle `<template_name>.html` et y injecte les champs."""
    template = load_template(template_name, templates_dir)
    return render_text(template, fields)


def treatment_rows(items: Sequence[Mapping[str, Any]], currency_symbol: str) -> SafeHtml:
    """Lignes <tr> du tableau des soins (valeurs échappées)."""
    rows = []
    for item in items:
        description = html.escape(str(item["description"]))
        amount = html.escape(f"{item['cost']},00 {currency_symbol}")
        rows.append(f"<tr><td>{description}</td><td class=\"amount\">{amount}</td></tr>")
    return SafeHtml("\n".join(rows))
