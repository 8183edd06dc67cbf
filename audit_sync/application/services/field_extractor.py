"""
Extractor de campos etiquetados en el arbol de una auditoria.

SafetyCulture coloca las preguntas del formulario en `header_items`, `items`
o anidadas dentro de secciones, segun la plantilla. Por eso se recorre el
arbol completo en lugar de asumir una profundidad fija.

Un nodo califica si es un objeto con clave `label` y con `responses` o
`response_data`. Codificaciones de valor reconocidas (en este orden):

- text:                 {"text": "PN-42"}
- seleccion simple:     {"selected": {"label": "Entrada"}}
- numerico:             {"number": 12} / {"value": 12}
- fecha:                {"datetime": "2024-06-01T10:00:00Z"}
- multi-seleccion:      {"selected": [{"label": "Entrada"}, ...]}  (primer elemento)
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, Optional, Sequence

from audit_sync.domain.entities.audit import LabeledField
from audit_sync.domain.entities.json_tree import (
    JsonArray,
    JsonNode,
    JsonObject,
    JsonScalar,
    from_json,
    scalar_value,
    walk,
)


DEFAULT_ALLOWED_LABELS: Sequence[str] = ("Part-Number", "Quantity", "Transaction Type")

_RESPONSE_KEYS = ("responses", "response_data")


def _normalize_label(label: str) -> str:
    return label.strip().casefold()


def _format_number(value: Any) -> Optional[str]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _choice_value(node: JsonNode) -> Optional[str]:
    """Valor de una opcion: su `label`, o `value` si no tiene label."""
    if isinstance(node, JsonScalar):
        return node.value if isinstance(node.value, str) else _format_number(node.value)
    if isinstance(node, JsonObject):
        for key in ("label", "value"):
            raw = scalar_value(node.get(key))
            if isinstance(raw, str) and raw.strip():
                return raw
            number = _format_number(raw)
            if number is not None:
                return number
    return None


def _response_values(responses: JsonNode) -> Iterator[str]:
    """Un valor por cada codificacion reconocida presente en `responses`."""
    if not isinstance(responses, JsonObject):
        return

    text = scalar_value(responses.get("text"))
    if isinstance(text, str):
        yield text

    selected = responses.get("selected")
    if isinstance(selected, JsonObject):
        choice = _choice_value(selected)
        if choice is not None:
            yield choice

    for key in ("number", "value"):
        number = _format_number(scalar_value(responses.get(key)))
        if number is not None:
            yield number
            break

    when = scalar_value(responses.get("datetime"))
    if isinstance(when, str):
        yield when

    if isinstance(selected, JsonArray) and len(selected) > 0:
        choice = _choice_value(selected.items[0])
        if choice is not None:
            yield choice


def _labeled_node(node: JsonObject) -> Optional[tuple]:
    label = scalar_value(node.get("label"))
    if not isinstance(label, str):
        return None
    for key in _RESPONSE_KEYS:
        responses = node.get(key)
        if responses is not None:
            return label, responses
    return None


def extract(tree: Any, allowed_labels: Iterable[str] = DEFAULT_ALLOWED_LABELS) -> Iterator[LabeledField]:
    """
    Recorre el arbol en pre-orden (padre antes que hijos, arrays en orden de
    origen) y emite un LabeledField por cada valor reconocido de los labels
    permitidos. La comparacion de labels ignora mayusculas/minusculas.

    Es un generator: el arbol se recorre a medida que se consumen los pares.
    """
    canonical = {_normalize_label(label): label for label in allowed_labels}

    for node in walk(from_json(tree)):
        if not isinstance(node, JsonObject):
            continue
        labeled = _labeled_node(node)
        if labeled is None:
            continue
        label, responses = labeled
        if _normalize_label(label) not in canonical:
            continue
        for value in _response_values(responses):
            if value.strip():
                yield LabeledField(label=label, value=value)


def first_values(
    pairs: Iterable[LabeledField],
    allowed_labels: Iterable[str] = DEFAULT_ALLOWED_LABELS,
) -> Dict[str, str]:
    """
    Primer valor no vacio por label, usando la grafia del allow-list como clave.
    """
    canonical = {_normalize_label(label): label for label in allowed_labels}
    found: Dict[str, str] = {}
    for pair in pairs:
        key = canonical.get(_normalize_label(pair.label))
        if key is None or key in found:
            continue
        value = pair.value.strip()
        if value:
            found[key] = value
    return found
