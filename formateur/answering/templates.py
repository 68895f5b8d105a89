"""
User-facing Text Templates

Localized strings for every message the pipeline writes itself (no model
involved). Keys are ISO 639-1 codes; unknown codes fall back to French,
the language of the training corpus.
"""

from typing import Dict

DEFAULT_TEMPLATE_LANGUAGE = "fr"


REFUSAL_TEMPLATES = {
    "fr": """Cette information n'est pas disponible dans la documentation officielle dont je dispose.

Je vous recommande de :
- Reformuler votre question
- Contacter directement un conseiller {organization}""",
    "en": """This information is not available in the official documentation I have access to.

I recommend that you:
- Rephrase your question
- Contact a {organization} advisor directly""",
}


TECHNICAL_DIFFICULTY_TEMPLATES = {
    "fr": "Je rencontre une difficulté technique pour analyser cette question. "
          "Veuillez réessayer, reformuler votre question ou contacter un conseiller {organization}.",
    "en": "I am having a technical difficulty analysing this question. "
          "Please try again, rephrase your question or contact a {organization} advisor.",
}


HEDGE_TEMPLATES = {
    "fr": """**Analyse de votre question :**

{trace}

**Conclusion : information INCOMPLÈTE**{partial_info}

Pour votre cas spécifique, je vous conseille de contacter un conseiller {organization} pour obtenir une réponse précise et définitive.""",
    "en": """**Analysis of your question:**

{trace}

**Conclusion: INCOMPLETE information**{partial_info}

For your specific case, I advise you to contact a {organization} advisor for a precise and definitive answer.""",
}


PARTIAL_INFO_TEMPLATES = {
    "fr": "\n\nInformation trouvée dans la documentation : \"{quote}\"",
    "en": "\n\nInformation found in the documentation: \"{quote}\"",
}


TRACE_LABELS = {
    "fr": {
        "keywords": "**1. Termes clés identifiés :**",
        "no_keywords": "(aucun)",
        "search": "**2. Recherche dans la documentation :**",
        "found": "J'ai trouvé : \"{quote}\"",
        "not_found": "Aucune information exacte trouvée pour ces termes.",
        "ambiguities": "**3. Points problématiques détectés :**",
        "semantic": "**4. Analyse sémantique :**",
        "coverage": "**5. Évaluation de la couverture :**",
        "summary": "Couverture : {coverage} | Confiance : {confidence}",
    },
    "en": {
        "keywords": "**1. Key terms identified:**",
        "no_keywords": "(none)",
        "search": "**2. Search in the documentation:**",
        "found": "I found: \"{quote}\"",
        "not_found": "No exact information found for these terms.",
        "ambiguities": "**3. Problematic points detected:**",
        "semantic": "**4. Semantic analysis:**",
        "coverage": "**5. Coverage assessment:**",
        "summary": "Coverage: {coverage} | Confidence: {confidence}",
    },
}


LANGUAGE_INSTRUCTIONS = {
    "fr": "Respond in French.",
    "en": "Respond in English.",
}


def pick(templates: Dict[str, str], language: str):
    """Template for a language, falling back to the default language."""
    return templates.get(language, templates[DEFAULT_TEMPLATE_LANGUAGE])


def truncate(text: str, limit: int) -> str:
    """Cut text to ``limit`` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


def render_refusal(language: str, organization: str) -> str:
    return pick(REFUSAL_TEMPLATES, language).format(organization=organization)


def render_technical_difficulty(language: str, organization: str) -> str:
    return pick(TECHNICAL_DIFFICULTY_TEMPLATES, language).format(organization=organization)
