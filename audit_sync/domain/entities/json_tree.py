"""
Representacion tipada de documentos JSON.

Union etiquetada: JsonObject (mapping ordenado), JsonArray (secuencia),
JsonScalar (texto, numero, bool o null). Se construye a partir de cualquier
valor Python producido por un decoder JSON, sin depender de la libreria
que hizo el parseo.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Mapping, Optional, Tuple, Union


@dataclass(frozen=True)
class JsonScalar:
    value: Union[str, int, float, bool, None]


@dataclass(frozen=True)
class JsonArray:
    items: Tuple["JsonNode", ...]

    def __iter__(self) -> Iterator["JsonNode"]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class JsonObject:
    # Tupla de pares para conservar el orden de origen y ser hashable
    items: Tuple[Tuple[str, "JsonNode"], ...]

    def get(self, key: str) -> Optional["JsonNode"]:
        for k, v in self.items:
            if k == key:
                return v
        return None

    def __contains__(self, key: str) -> bool:
        return any(k == key for k, _ in self.items)

    def values(self) -> Iterator["JsonNode"]:
        return (v for _, v in self.items)


JsonNode = Union[JsonObject, JsonArray, JsonScalar]

_NODE_TYPES = (JsonObject, JsonArray, JsonScalar)

Children = Iterator[Tuple[Optional[str], Any]]


def _fold(
    value: Any,
    expand: Callable[[Any], Optional[Children]],
    leaf: Callable[[Any], Any],
    build: Callable[[Any, List[Tuple[Optional[str], Any]]], Any],
) -> Any:
    """
    Reconstruye un arbol de abajo hacia arriba con una pila explicita.

    expand(v) devuelve los hijos (clave, hijo) de un contenedor o None si v
    es una hoja. Sin recursion: la profundidad del documento no tiene limite.
    """
    children = expand(value)
    if children is None:
        return leaf(value)

    # Cada frame: (contenedor, hijos pendientes, hijos ya convertidos, clave en el padre)
    stack = [(value, children, [], None)]
    while True:
        container, pending, built, key = stack[-1]
        for child_key, child in pending:
            grandchildren = expand(child)
            if grandchildren is not None:
                stack.append((child, grandchildren, [], child_key))
                break
            built.append((child_key, leaf(child)))
        else:
            stack.pop()
            node = build(container, built)
            if not stack:
                return node
            stack[-1][2].append((key, node))


def _expand_python(value: Any) -> Optional[Children]:
    if isinstance(value, _NODE_TYPES):
        return None
    if isinstance(value, Mapping):
        return ((str(k), v) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return ((None, v) for v in value)
    return None


def _python_leaf(value: Any) -> JsonNode:
    if isinstance(value, _NODE_TYPES):
        return value
    if value is None or isinstance(value, (str, int, float, bool)):
        return JsonScalar(value)
    raise TypeError(f"Valor no representable como JSON: {type(value).__name__}")


def _build_node(container: Any, built: List[Tuple[Optional[str], JsonNode]]) -> JsonNode:
    if isinstance(container, Mapping):
        return JsonObject(tuple(built))
    return JsonArray(tuple(node for _, node in built))


def from_json(value: Any) -> JsonNode:
    """
    Convierte un valor decodificado de JSON (dict/list/escalares) a JsonNode.

    Tambien acepta un JsonNode ya construido (se devuelve tal cual).
    """
    return _fold(value, _expand_python, _python_leaf, _build_node)


def _expand_node(node: JsonNode) -> Optional[Children]:
    if isinstance(node, JsonObject):
        return iter(node.items)
    if isinstance(node, JsonArray):
        return ((None, child) for child in node.items)
    return None


def _build_python(node: JsonNode, built: List[Tuple[Optional[str], Any]]) -> Any:
    if isinstance(node, JsonObject):
        return dict(built)
    return [value for _, value in built]


def to_python(node: JsonNode) -> Any:
    """Inversa de from_json."""
    return _fold(node, _expand_node, lambda leaf: leaf.value, _build_python)


def scalar_value(node: Optional[JsonNode]) -> Any:
    """Valor de un JsonScalar; None para nodos ausentes o compuestos."""
    if isinstance(node, JsonScalar):
        return node.value
    return None


def walk(node: JsonNode) -> Iterator[JsonNode]:
    """
    Recorrido en pre-orden: el nodo, luego sus hijos en orden de origen.
    Cada nodo se visita una sola vez (la entrada es un arbol).
    """
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        if isinstance(current, JsonObject):
            stack.extend(reversed([child for _, child in current.items]))
        elif isinstance(current, JsonArray):
            stack.extend(reversed(current.items))
