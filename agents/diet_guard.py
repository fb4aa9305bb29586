# agents/diet_guard.py

from typing import List, Optional

from models.schema import DEFAULT_ALLERGIES, DEFAULT_DIET

_NO_ALLERGY_MARKERS = {"", "none", "no", "n/a", DEFAULT_ALLERGIES.lower()}


def parse_allergies(allergies: Optional[str]) -> List[str]:
    """Split the free-text allergy field into individual ingredients."""
    if not allergies or allergies.strip().lower() in _NO_ALLERGY_MARKERS:
        return []
    normalized = allergies.replace(";", ",").replace("\n", ",")
    return [item.strip() for item in normalized.split(",") if item.strip()]


def build_diet_constraints(diet_type: Optional[str], allergies: Optional[str]) -> str:
    """
    Constraint text for the system directive.

    Allergies are listed before the diet rule and the safety check tells the
    model that an allergy always wins over a diet substitution.
    """
    diet = diet_type.strip() if diet_type and diet_type.strip() else DEFAULT_DIET
    excluded = parse_allergies(allergies)

    lines = [f"User diet: {diet}"]
    if excluded:
        lines.append(f"Allergies: {', '.join(excluded)}")
    else:
        lines.append(f"Allergies: {DEFAULT_ALLERGIES}")

    lines.append("")
    lines.append("SAFETY CHECK (do this before every answer):")
    step = 1
    if excluded:
        lines.append(
            f"{step}. ALLERGIES COME FIRST: the user must never eat {', '.join(excluded)}. "
            "Check every ingredient, including oils, sauces, garnishes and derivatives "
            "(for example peanut oil or peanut butter for a peanut allergy). "
            "Remove or replace anything unsafe. This rule overrides every diet substitution."
        )
        step += 1
    if diet.lower() != DEFAULT_DIET.lower():
        lines.append(
            f"{step}. The recipe must be {diet}. Substitute ingredients that do not fit a {diet} diet, "
            "and make sure no substitute breaks an allergy rule."
        )
        step += 1
    lines.append(f"{step}. If a retrieved recipe breaks these rules, say what you changed and why.")
    return "\n".join(lines)
