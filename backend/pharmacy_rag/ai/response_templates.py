from __future__ import annotations

import re


_COPY = {
    "no_context": (
        "No encontré información específica sobre tu consulta. "
        "¿Podrías ser más específico o consultar con nuestro farmacéutico?"
    ),
    "throat_without_items": (
        "Para el dolor de garganta, te recomiendo consultar con nuestro farmacéutico para obtener "
        "recomendaciones personalizadas. Recuerda que si tienes fiebre alta, dificultad para respirar "
        "o los síntomas persisten más de 3 días, debes acudir a un profesional médico."
    ),
    "throat_intro": "Para el dolor de garganta (información general, no es un diagnóstico):",
    "throat_disclaimer": "\n".join(
        [
            "**⚠️ Importante:** Esta información es solo orientativa. Si experimentas:",
            "• Fiebre alta (>38°C)",
            "• Dificultad para respirar",
            "• Dolor intenso que no mejora",
            "• Síntomas que persisten más de 3 días",
            "",
            "**Debes acudir a un profesional médico o urgencias.**",
        ]
    ),
    "throat_question": "¿Prefieres que te recomiende opciones de **venta libre** o ver **servicios** de consulta farmacéutica?",
    "generic_intro": "Según la información disponible:",
    "generic_question": "¿Te gustaría más detalles sobre algún aspecto específico?",
    "price_unknown": "Precio a consultar",
    "medication_default": "Medicamento",
    "service_default": "Servicio",
}

SUGGESTED_ACTIONS = {
    "no_context": ["💊 Consultar sobre medicamentos", "📅 Agendar cita", "🕐 Ver horarios", "💰 Consultar precios"],
    "symptom_throat": ["💊 Ver opciones OTC", "📅 Consulta farmacéutica", "🆘 Urgencias si es grave"],
    "medication": ["📦 Reservar para recoger", "📋 Ver más información", "💊 Alternativas"],
    "service": ["📅 Agendar cita", "🕐 Ver horarios disponibles", "💰 Consultar precios"],
    "generic": ["💊 Más información", "📅 Agendar cita", "🕐 Ver horarios"],
}

_MEDICATION_NAME = re.compile(r"(paracetamol|ibuprofeno|omeprazol|metformina|aspirina)", re.IGNORECASE)
_PRICE = re.compile(r"(\d+[.,]\d+)\s*€")
_PRESCRIPTION = re.compile(r"\b(receta|prescripción|médico)\b", re.IGNORECASE)
_SERVICE_NAME = re.compile(r"(consulta|medición|servicio|farmacéutica|presión|glucosa)", re.IGNORECASE)


def extract_medication_name(text: str) -> str:
    match = _MEDICATION_NAME.search(text or "")
    return match.group(1) if match else _COPY["medication_default"]


def extract_price(text: str) -> str:
    match = _PRICE.search(text or "")
    return f"{match.group(1)}€" if match else _COPY["price_unknown"]


def extract_requires_prescription(text: str) -> bool:
    return bool(_PRESCRIPTION.search(text or ""))


def extract_service_name(text: str) -> str:
    match = _SERVICE_NAME.search(text or "")
    return match.group(1) if match else _COPY["service_default"]


def no_context_response() -> str:
    return _COPY["no_context"]


def throat_symptom_response(otc_items: list[str]) -> str:
    """The safety disclaimer is part of every throat answer, with or without products."""
    if not otc_items:
        return _COPY["throat_without_items"]
    items = "\n".join(f"• {item}" for item in otc_items)
    return "\n\n".join(
        [
            _COPY["throat_intro"],
            items,
            _COPY["throat_disclaimer"],
            _COPY["throat_question"],
        ]
    )


def medication_response(name: str, price: str, requires_prescription: bool = False) -> str:
    if requires_prescription:
        return "\n".join(
            [
                f"**{name}** - {price}",
                "Este medicamento requiere **receta médica**. ",
                "",
                "Para obtenerlo necesitas:",
                "1. 📝 Receta médica válida",
                "2. 📋 Documento de identidad",
                "3. 💰 Pago del medicamento",
                "",
                "¿Tienes la receta médica o prefieres consultar sobre alternativas de venta libre?",
            ]
        )
    return "\n".join(
        [
            f"**{name}** - {price} [Venta libre]",
            "",
            "Este medicamento está disponible **sin receta** (OTC).",
            "",
            "¿Quieres **reservarlo para recoger** hoy? Para hacerlo necesito:",
            "• 📦 **Cantidad** (ej. 1 caja, 2 unidades)",
            "• 👤 **Tu nombre** para la reserva",
            "",
            "*No es una compra online, solo reserva para recoger en farmacia.*",
        ]
    )


def service_response(name: str, description: str, price: str) -> str:
    return "\n".join(
        [
            f"**{name}** - {price}",
            "",
            description,
            "",
            "**📅 ¿Quieres agendar una cita?**",
            "Para reservar necesito:",
            "• 📅 **Fecha preferida** (hoy, mañana, otro día)",
            "• 🕐 **Hora aproximada** (mañana, tarde, noche)",
            "• 👤 **Tu nombre**",
            "• 📱 **Teléfono de contacto**",
            "",
            "¿Te gustaría agendar este servicio?",
        ]
    )


def generic_response(items: list[str]) -> str:
    bullets = "\n".join(f"• {item}" for item in items)
    return f"{_COPY['generic_intro']}\n\n{bullets}\n\n{_COPY['generic_question']}"


def context_block(lines: list[str]) -> str:
    return "Información relevante encontrada:\n" + "\n".join(lines)


def context_line(source: str, score: float, text: str) -> str:
    return f"• {source} (relevancia: {score:.3f}): {text}"
