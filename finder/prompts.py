INTENT_PROMPT = """
You are a culinary search assistant. Analyze the following recipe search query
and extract what the user is looking for.

Query: "{query}"

Respond with ONE JSON object and nothing else, using exactly these keys:

{{
  "mainDish": ["the type of dish, e.g. soup, pasta, bread"],
  "cuisines": ["cuisines mentioned or implied, e.g. Italian, Jewish"],
  "includeIngredients": ["ingredients the user wants"],
  "excludeIngredients": ["ingredients the user does not want"],
  "dietaryPreferences": {{"kosher": true, "vegan": false}},
  "cookingMethods": ["e.g. baked, grilled, slow-cooked"],
  "explanation": "one sentence describing how you understood the query"
}}

Use empty lists when nothing applies. Never put the same ingredient in both
includeIngredients and excludeIngredients.
""".strip()


VIBE_PROMPT = """
You are a cheerful cooking companion. A user searched for "{query}" and found
these recipes: {titles}.

Write ONE short, upbeat sentence (at most 25 words) encouraging them to try
these recipes. Do not use lists, quotes or markdown.
""".strip()


class IntentPrompt:
    def __init__(
        self,
        query: str,
        template: str | None = None,
    ) -> None:
        self.query = query
        self.template = INTENT_PROMPT if template is None else template

    def __str__(self) -> str:
        return self.template.format(query=self.query.replace('"', "'"))


class VibePrompt:
    def __init__(
        self,
        query: str,
        titles: list[str],
        template: str | None = None,
    ) -> None:
        self.query = query
        # a few titles are enough to set the tone
        self.titles = titles[:3]
        self.template = VIBE_PROMPT if template is None else template

    def __str__(self) -> str:
        return self.template.format(
            query=self.query.replace('"', "'"),
            titles=", ".join(self.titles),
        )
