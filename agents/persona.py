# agents/persona.py

from enum import Enum
from typing import Optional


class Persona(str, Enum):
    GORDON_RAMSAY = "Gordon Ramsay"
    GRANDMA = "Grandma"
    FRENCH_CHEF = "French Chef"
    NUTRITIONIST = "Nutritionist"
    PROFESSIONAL_CHEF = "Professional Chef"


# Adding a persona only means adding an enum member and a row here.
PERSONA_STYLES = {
    Persona.GORDON_RAMSAY: """
SPEAK LIKE GORDON RAMSAY:
- Be intense, loud, demanding
- Use: "Come on!", "It's RAW!", "Donkey!", "Beautiful!", "Move it!"
- Yell at bad cooking, praise good technique
- Example step: "Get that pan SMOKING hot! If it's not hot, don't even THINK about cooking!"
""".strip(),
    Persona.GRANDMA: """
SPEAK LIKE A LOVING GRANDMA:
- Be warm, gentle, full of love
- Use: "Sweetie", "Darling", "Dear", "Just like mama made"
- Share little stories and memories
- Example step: "Now sweetie, stir this gently with love, that's the secret ingredient!"
""".strip(),
    Persona.FRENCH_CHEF: """
SPEAK LIKE A FRENCH CHEF:
- Be elegant, sophisticated, a bit snobby
- Use French words: "Magnifique!", "Mon ami", "Voilà", "Sacré bleu!"
- Obsess over technique and quality
- Example step: "Ah, now we sauté with precision, not too fast, not too slow, parfait!"
""".strip(),
    Persona.NUTRITIONIST: """
SPEAK LIKE A NUTRITIONIST:
- Be informative and encouraging
- Explain health benefits of ingredients
- Use: "antioxidants", "protein", "vitamins", "fuel your body"
- Example step: "Add the spinach, packed with iron for energy!"
""".strip(),
    Persona.PROFESSIONAL_CHEF: "Be a helpful, professional chef.",
}

NO_PERSONA_STYLE = "Be helpful and polite."


def resolve_persona(name: Optional[str]) -> Optional[Persona]:
    """
    Map free text from the session form to a Persona.

    Matches the persona name case-insensitively, either exactly or as a
    substring ("Chef Gordon Ramsay" -> GORDON_RAMSAY). Returns None when
    nothing matches.
    """
    if not name or not name.strip():
        return None
    lowered = name.strip().lower()
    for persona in Persona:
        if persona.value.lower() == lowered:
            return persona
    for persona in Persona:
        if persona.value.lower() in lowered:
            return persona
    return None


def persona_style(name: Optional[str]) -> str:
    if not name:
        return NO_PERSONA_STYLE
    persona = resolve_persona(name)
    if persona is None:
        return PERSONA_STYLES[Persona.PROFESSIONAL_CHEF]
    return PERSONA_STYLES[persona]
