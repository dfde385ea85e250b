"""Predefined replies for requests without grounded context.

Messages are deterministic for a given intent, reason and caller, so the
no-context behaviour is stable and testable. Counts go to Prometheus; the
responder itself keeps no state.
"""

from rag_assistant.documents.models import RankedDocument
from rag_assistant.intent.models import Intent, Query
from rag_assistant.observability.metrics import track_fallback
from rag_assistant.rag.models import CallerContext, FallbackResponse, Tone
from rag_assistant.text import normalize

NO_CONTEXT = "no_context"
RETRIEVAL_UNAVAILABLE = "retrieval_unavailable"

ESCALATION_CONFIDENCE = 0.5
FAMILIAR_AFTER_INTERACTIONS = 3

URGENT_KEYWORDS = ("urgente", "problema", "ayuda", "error", "fallo", "queja")
SENSITIVE_KEYWORDS = ("implemento", "implementar", "integrar", "instalar")

URGENT = "urgent"
SENSITIVE = "sensitive"
LOW_CONFIDENCE = "low_confidence"

MESSAGES: dict[Intent, str] = {
    Intent.PRICING: (
        "No tengo ahora mismo los precios actualizados para esa consulta. "
        "Prefiero no darte una cifra que no sea correcta: escríbenos y te "
        "enviamos la carta con precios."
    ),
    Intent.HOURS: (
        "No encuentro el horario exacto para lo que preguntas. Los horarios "
        "pueden cambiar en festivos, así que te recomendamos confirmarlo con "
        "nosotros antes de venir."
    ),
    Intent.LOCATION: (
        "No tengo a mano esa información sobre cómo llegar. Puedes ver la "
        "ubicación en la sección de contacto de la web o preguntarnos "
        "directamente."
    ),
    Intent.GENERAL: (
        "No he encontrado información sobre eso en nuestra web. ¿Puedes "
        "reformular la pregunta o prefieres que te pongamos en contacto con "
        "el equipo?"
    ),
}

UNAVAILABLE_MESSAGE = (
    "Ahora mismo no puedo consultar nuestra información. Inténtalo de nuevo "
    "en unos minutos o contacta con nosotros."
)

ESCALATION_MESSAGE = (
    "Entiendo que necesitas ayuda más concreta. ¿Te gustaría hablar con "
    "alguien de nuestro equipo? Podrán ayudarte mejor con tu consulta."
)

DEGRADED_PREFIX = (
    "Ahora mismo no puedo redactar una respuesta completa, pero esta "
    "información de nuestra web puede ayudarte:"
)

ACTIONS: dict[Intent, tuple[str, ...]] = {
    Intent.PRICING: ("contact",),
    Intent.HOURS: ("contact",),
    Intent.LOCATION: ("directions", "contact"),
    Intent.GENERAL: ("documentation", "contact"),
}


class FallbackResponder:
    """Chooses the reply shown when the pipeline cannot ground an answer."""

    def greeting(self, caller: CallerContext) -> str:
        if not caller.user_name:
            return ""
        return f"Hola {caller.user_name.strip()}, "

    def tone(self, caller: CallerContext) -> Tone:
        if caller.previous_interactions >= FAMILIAR_AFTER_INTERACTIONS:
            return Tone.FAMILIAR
        return Tone.FORMAL

    def escalation_reason(self, query: Query) -> str | None:
        """Why a human should take over, or None.

        Urgent wording wins over setup requests, which win over a guessed
        intent.
        """
        text = normalize(query.text)
        if any(keyword in text for keyword in URGENT_KEYWORDS):
            return URGENT
        if any(keyword in text for keyword in SENSITIVE_KEYWORDS):
            return SENSITIVE
        if query.intent is not Intent.GENERAL and query.confidence < ESCALATION_CONFIDENCE:
            return LOW_CONFIDENCE
        return None

    def should_escalate(self, query: Query) -> bool:
        """Offer a human for urgent or setup requests, or when the intent is a guess."""
        return self.escalation_reason(query) is not None

    def respond(
        self,
        query: Query,
        caller: CallerContext,
        reason: str = NO_CONTEXT,
    ) -> FallbackResponse:
        """Build the fallback for a query and record it.

        Args:
            query: The classified query.
            caller: Caller context, used for greeting and tone.
            reason: ``no_context`` or ``retrieval_unavailable``.

        Returns:
            The fallback response.
        """
        escalation_reason = self.escalation_reason(query)
        escalate = escalation_reason is not None

        if reason == RETRIEVAL_UNAVAILABLE:
            body = UNAVAILABLE_MESSAGE
        elif escalate:
            body = ESCALATION_MESSAGE
        else:
            body = MESSAGES[query.intent]

        greeting = self.greeting(caller)
        message = greeting + (body[0].lower() + body[1:] if greeting else body)

        track_fallback(query.intent.value, reason)

        return FallbackResponse(
            message=message,
            intent=query.intent,
            reason=reason,
            should_escalate=escalate,
            escalation_reason=escalation_reason,
            actions=ACTIONS[query.intent],
            tone=self.tone(caller),
        )

    def degraded(self, documents: list[RankedDocument]) -> str:
        """Answer that lists the sources of the context when generation fails."""
        sources = list(dict.fromkeys(doc.source for doc in documents))
        lines = [DEGRADED_PREFIX]
        for source in sources:
            lines.append(f"- {source}")
        return "\n".join(lines)
