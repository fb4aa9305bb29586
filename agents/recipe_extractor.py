# agents/recipe_extractor.py

from typing import List, Optional

from agents.llm_client import ChatModel
from agents.page_fetcher import PageFetcher
from models.schema import DEFAULT_DIET, DIET_CHOICES, ExtractedRecipe
from utils.errors import ExternalServiceError
from utils.json_utils import extract_json_object
from utils.logging_config import get_logger

logger = get_logger(__name__)

MAX_PAGE_CHARS = 20000
_LINE_ARTIFACTS = "▢□☑☐✓✔•·-*–— \t"

EXTRACTOR_SYSTEM_PROMPT = "You are an expert culinary data extractor and translator. You only answer with JSON."


def build_extraction_prompt(page_text: str) -> str:
    return f"""
Extract the recipe from the raw web page text below and return it as structured JSON in ENGLISH.

--- RAW TEXT START ---
{page_text}
--- RAW TEXT END ---

TASK:
1. Extract the title, ingredients, instructions and diet.
2. Translate everything to English. The output must not contain any foreign text.
3. Return one valid JSON object.

TITLE RULES:
- Translate the meaning of the title. Never keep the original name as a proper noun.
- Examples:
  - "Tort cu ciocolata" -> "Chocolate Cake"
  - "Cozonac" -> "Sweet Bread"
  - "Spaghete cu scoici" -> "Spaghetti with Clams"

INSTRUCTION RULES:
- Do not summarize. Keep every action, including small ones like "Preheat the oven" or "Let it cool".
- Split sentences that contain several actions into separate steps.
- Keep the original order of the steps.

CLEANING RULES:
- Remove checkboxes (▢, □, ☑), bullets (•, -), emojis and other UI symbols from the start of lines.
- Leave out ads, user comments and anything that is not part of the recipe.

JSON STRUCTURE:
{{
  "title": "English title",
  "ingredients": ["1 cup milk", "200g flour"],
  "instructions": ["Preheat the oven to 180C.", "Grease a baking pan."],
  "diet": "one of Vegetarian, Vegan, Keto, Omnivore"
}}

If the page does not contain a recipe, return {{"title": null}}.

OUTPUT RULES:
- Output ONLY the raw JSON. No markdown, no code fences, no commentary.
""".strip()


def _clean_items(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.splitlines()
    if not isinstance(value, list):
        value = [value]
    items = []
    for item in value:
        text = str(item).strip().lstrip(_LINE_ARTIFACTS).strip()
        if text:
            items.append(text)
    return items


def _normalize_diet(value) -> str:
    if isinstance(value, str):
        for choice in DIET_CHOICES:
            if value.strip().lower() == choice.lower():
                return choice
    return DEFAULT_DIET


def parse_extraction(response: str) -> Optional[ExtractedRecipe]:
    """
    Turn the model's answer into an ExtractedRecipe.

    Returns None when there is no JSON object in the answer or when the title
    is missing, null or the string "null", which is how the model says the
    page held no recipe.
    """
    data = extract_json_object(response)
    if data is None:
        logger.warning("Extractor response had no JSON object: %.200s", response)
        return None

    title = data.get("title")
    if title is None or not str(title).strip() or str(title).strip().lower() == "null":
        logger.info("Extractor found no recipe (null title)")
        return None

    return ExtractedRecipe(
        title=str(title).strip(),
        ingredients=_clean_items(data.get("ingredients")),
        instructions=_clean_items(data.get("instructions")),
        diet=_normalize_diet(data.get("diet")),
    )


class RecipeExtractor:
    def __init__(self, fetcher: PageFetcher, model: ChatModel):
        self.fetcher = fetcher
        self.model = model

    def extract(self, url: str) -> Optional[ExtractedRecipe]:
        try:
            page_text = self.fetcher.fetch_text(url)
        except ExternalServiceError as e:
            logger.error("Could not read %s: %s", url, e)
            return None

        logger.info("Read %d chars from %s, asking the model for the recipe", len(page_text), url)
        try:
            response = self.model.complete(
                build_extraction_prompt(page_text[:MAX_PAGE_CHARS]),
                system=EXTRACTOR_SYSTEM_PROMPT,
                temperature=0.0,
            )
        except ExternalServiceError as e:
            logger.error("Recipe extraction failed for %s: %s", url, e)
            return None

        recipe = parse_extraction(response)
        if recipe is not None:
            logger.info("Extracted '%s' (%s) from %s", recipe.title, recipe.diet, url)
        return recipe
