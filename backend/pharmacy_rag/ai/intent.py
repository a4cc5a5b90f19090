from __future__ import annotations

import re
from typing import Literal

Intent = Literal[
    "symptom_throat",
    "medication_query",
    "supplements",
    "medication",
    "product_list",
    "service_info",
    "appointment",
    "hours",
    "pricing",
    "general",
]

INTENTS: tuple[Intent, ...] = (
    "symptom_throat",
    "medication_query",
    "supplements",
    "medication",
    "product_list",
    "service_info",
    "appointment",
    "hours",
    "pricing",
    "general",
)

# First match wins. Symptoms go before named drugs, named drugs before
# supplements and generic medication, and product/service categories last:
# "consulta" appears in both service_info and appointment and must land on
# service_info.
_INTENT_RULES: tuple[tuple[re.Pattern[str], Intent], ...] = (
    (re.compile(r"\bgarganta|faringitis|odinofagia|dolor de garganta|irritación faríngea\b"), "symptom_throat"),
    (
        re.compile(r"\b(paracetamol|ibuprofeno|omeprazol|metformina|dalsy|gelocatil|nurofen|aspirina)\b"),
        "medication_query",
    ),
    (re.compile(r"\bsuplement|complement|vitamin|vitamina"), "supplements"),
    (re.compile(r"\bmedicament|medicina|fármaco|receta|posología"), "medication"),
    (re.compile(r"\bproductos|catálogo|catalogo|qué tienen|qué hay\b"), "product_list"),
    (re.compile(r"\bservicio|medición|consulta|presión|glucosa\b"), "service_info"),
    (re.compile(r"\bcita|reserv|agend|consulta|agendar\b"), "appointment"),
    (re.compile(r"\bhorario|abren|hora|24/7|disponible|cuándo abren\b"), "hours"),
    (re.compile(r"\bprecio|costo|cuánto|tarifa|vale\b"), "pricing"),
)

_EXPANSIONS: dict[Intent, str] = {
    "symptom_throat": (
        "dolor de garganta faringitis irritación faríngea pastillas para la garganta "
        "antiinflamatorio analgésico OTC venta libre"
    ),
    "medication_query": "medicamento OTC venta libre posología dosis efectos secundarios interacciones",
    "supplements": (
        "vitaminas complementos alimenticios minerales multivitamínico omega colágeno "
        "magnesio hierro B12 D3 zinc probióticos antioxidantes"
    ),
    "medication": (
        "fármacos dispensación receta OTC posología principio activo efectos secundarios "
        "interacciones contraindicaciones"
    ),
    "product_list": "medicamentos suplementos productos farmacéuticos catálogo disponible stock",
    "service_info": "consulta farmacéutica medición presión glucosa vacunación consejo nutricional asesoramiento",
    "appointment": (
        "consulta farmacéutica medición presión glucosa vacunación consejo nutricional "
        "asesoramiento cita reserva"
    ),
    "hours": "farmacia 24/7 atención nocturna emergencia disponible guardia horarios de apertura",
    "pricing": "euros coste tarifa consulta gratuita medición precio valor",
}

# Keyword sets for the category tier; matched as lowercase substrings of chunk text.
CATEGORY_KEYWORDS: dict[Intent, tuple[str, ...]] = {
    "supplements": ("vitamina", "suplemento", "complemento", "mineral"),
    "medication": ("medicamento", "fármaco", "receta", "otc", "venta libre"),
    "medication_query": ("medicamento", "fármaco", "receta", "otc", "venta libre"),
    "symptom_throat": ("analgésico", "antiinflamatorio", "otc", "venta libre", "paracetamol", "ibuprofeno"),
    "product_list": ("producto", "medicamento", "suplemento", "vitamina", "catálogo"),
    "service_info": ("servicio", "consulta", "medición", "presión", "glucosa"),
    "appointment": ("cita", "consulta", "servicio", "agendar", "reservar"),
    "hours": ("horario", "24/7", "abierto", "disponible", "guardia"),
    "pricing": ("precio", "costo", "tarifa", "euros", "gratuito"),
}

CATEGORY_INTENTS: frozenset[Intent] = frozenset(CATEGORY_KEYWORDS)


def detect_intent(query: str) -> Intent:
    lowered = (query or "").lower()
    for pattern, intent in _INTENT_RULES:
        if pattern.search(lowered):
            return intent
    return "general"


def expand_query(query: str, intent: Intent) -> str:
    suffix = _EXPANSIONS.get(intent)
    if not suffix:
        return query
    return f"{query} {suffix}"


def is_category_intent(intent: Intent) -> bool:
    return intent in CATEGORY_INTENTS
