"""Prompt catalog and function-call schemas for the cookbook oracle calls."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

from core.contracts import CookbookOrder, CookbookOrderSubmission, Recipe, SynthesizedRecipe


def _function_definition(
    *,
    name: str,
    description: str,
    properties: Dict[str, Any],
    required: Sequence[str],
) -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": list(required),
            },
        },
    }


def function_name(function: Dict[str, Any]) -> str:
    return function["function"]["name"]


_STRING = {"type": "string"}
_STRING_LIST = {"type": "array", "items": {"type": "string"}}

_RECIPE_PROPERTIES: Dict[str, Any] = {
    "title": _STRING,
    "description": _STRING,
    "servings": _STRING,
    "prepTime": _STRING,
    "cookTime": _STRING,
    "totalTime": _STRING,
    "ingredients": _STRING_LIST,
    "directions": _STRING_LIST,
    "notes": _STRING,
}


def _recipe_json(recipe: Recipe, *, include_relevancy: bool = False) -> str:
    exclude = {"relevancy", "cleaned", "index_title", "aliases", "image_url"}
    if include_relevancy:
        exclude.discard("relevancy")
    return recipe.model_dump_json(by_alias=True, exclude=exclude, exclude_none=True)


# ---- ChooseRecipes: narrow search-result URLs ----

CHOOSE_RECIPES_SYSTEM_PROMPT = """You are an AI assistant specialized in selecting the most relevant recipe URLs from search results. Your task is to choose the most relevant recipes that best match the given query. Follow these guidelines:
1. Analyze the query carefully to understand the recipe requirements.
2. Evaluate each URL for relevance to the query, considering any available context in the URL.
3. If URLs contain meaningful information, prioritize those that seem most relevant to the query and filter out any irrelevant URLs.
4. If URLs do not contain meaningful context (e.g., only recipe IDs), select the first n URLs as specified in the user prompt.
5. The number of URLs to select will be specified in the user prompt.
6. Return only the indices of the selected URLs, up to the requested amount.
Your response should be a list of indices corresponding to the selected URLs."""

SELECT_TOP_RECIPES_FUNCTION = _function_definition(
    name="SelectTopRecipes",
    description="Select the indices of the most relevant recipe URLs from search results",
    properties={
        "selectedIndices": {
            "type": "array",
            "items": {"type": "integer"},
            "description": "Indices of the selected URLs ranked by relevancy",
        },
    },
    required=["selectedIndices"],
)


def build_choose_recipes_prompt(query: str, urls: List[str], count: int) -> str:
    url_list = "\n".join(f"{index}. {url}" for index, url in enumerate(urls, start=1))
    return (
        f"Query: '{query}'\n\n"
        f"URLs:\n{url_list}\n\n"
        f"Select the top {count} most relevant URLs and exclude anything seemingly irrelevant."
    )


# ---- RankRecipe: relevance scoring ----

RANK_RECIPE_SYSTEM_PROMPT = """You are a specialist in assessing the relevancy of a recipe given a query.
Your task is to identify whether the given recipe contains data related to an actual recipe.
Your goal is to provide a relevancy score of 0 if it's not a recipe and a score from 1 to 100 on how relevant a recipe is to the given query."""

RANK_RECIPE_FUNCTION = _function_definition(
    name="RankRecipe",
    description="Assess the relevancy of a recipe based on a given query",
    properties={
        "score": {
            "type": "integer",
            "description": (
                "A score of 0 if this is not a recipe or a score from 1 to 100 "
                "indicating how relevant the recipe is to the given query"
            ),
        },
        "reasoning": {
            "type": "string",
            "description": "A brief explanation of the relevancy decision",
        },
    },
    required=["score", "reasoning"],
)


def build_rank_recipe_prompt(recipe: Recipe, query: str) -> str:
    return f"Query: '{query}'\n\nRecipe data:\n{_recipe_json(recipe)}"


# ---- CleanRecipe: normalization ----

CLEAN_RECIPE_SYSTEM_PROMPT = """Please assist me in data migration from our legacy repository system in preparation for a data import.
Clean and standardize recipe data as follows:
1. Use consistent units (imperial or metric), and check spacing/spelling.
2. Format ingredients and directions as string arrays with no prefix. If ingredients/steps are merged, break them out into separate lines.
3. Remove irrelevant content (e.g., "Print Pin It") or bad encoding chars (e.g. '[]').
4. Remove redundant whitespace, tabs and newlines (e.g '\\n')
5. Do NOT add or alter recipe details.
6. Keep empty fields; replace nulls with empty strings.
7. Ensure consistent formatting.
8. Exclude field names within field values (e.g., {'servings': '4'} and not {'servings': 'Servings 4'})."""

CLEAN_RECIPE_FUNCTION = _function_definition(
    name="CleanRecipeData",
    description="Clean and standardize recipe data",
    properties=_RECIPE_PROPERTIES,
    required=list(_RECIPE_PROPERTIES),
)


def build_clean_recipe_prompt(recipe: Recipe) -> str:
    payload = recipe.model_dump_json(
        by_alias=True,
        include={
            "title", "description", "servings", "prep_time", "cook_time",
            "total_time", "ingredients", "directions", "notes",
        },
    )
    return f"Uncleaned Recipe Data:\n```json\n{payload}\n```\nReturn a clean json."


# ---- RecipeNamer: index title + aliases ----

RECIPE_NAMER_SYSTEM_PROMPT = """# Recipe Indexing and Alias Generation

Your task is to create entries for a recipe index and generate searchable aliases.

## Output:
1. **Index Entry**: The simplest possible name for the recipe, as it would appear in a cookbook index.
2. **Aliases**: A list including the original title and variations for searchability.

## Index Entry Rules:
1. Use the fewest words possible to describe the core dish.
2. Remove ALL of the following:
   - Cooking methods (baked, fried, slow cooker, etc.)
   - Descriptive adjectives (easy, creamy, best, etc.)
   - Brand names or appliance types
   - Dietary labels (keto, vegan, etc.)
   - Time-related words (quick, 30-minute, etc.)
3. Keep only the main ingredient or dish type.
4. If unsure, ask yourself: "What single page would I look for in a cookbook index to find this recipe?"

## Alias Rules:
1. First alias is always the original recipe title.
2. Include the Index Entry as an alias.
3. Add variations based on key ingredients and methods.

## Examples:

1. Input: "Crock Pot Buffalo Chicken Dip"
   Index Entry: "Chicken Dip"
   Aliases: ["Crock Pot Buffalo Chicken Dip", "Chicken Dip", "Buffalo Dip", "Slow Cooker Dip"]

2. Input: "30-Minute One-Pan Lemon Garlic Shrimp Pasta"
   Index Entry: "Shrimp Pasta"
   Aliases: ["30-Minute One-Pan Lemon Garlic Shrimp Pasta", "Shrimp Pasta", "Lemon Pasta", "Quick Pasta"]

3. Input: "Grandma's Best Old-Fashioned Apple Pie"
   Index Entry: "Apple Pie"
   Aliases: ["Grandma's Best Old-Fashioned Apple Pie", "Apple Pie", "Traditional Pie", "Fruit Pie"]

Remember: The Index Entry should be as simple as possible, like a cookbook index entry. All details go in the Aliases."""

INDEX_RECIPE_FUNCTION = _function_definition(
    name="IndexRecipe",
    description="Provide an indexed title and aliases",
    properties={
        "indexTitle": _STRING,
        "aliases": _STRING_LIST,
    },
    required=["indexTitle", "aliases"],
)


def build_recipe_namer_prompt(recipe: Recipe) -> str:
    return f"Recipe:\n```json\n{_recipe_json(recipe)}\n```"


# ---- ProcessOrder: order intake + conversational query relaxation ----

PROCESS_ORDER_SYSTEM_PROMPT = """You are an AI assistant tasked with generating an organized recipe list based on user-provided cookbook orders.

## Input
- Cookbook Content: desired recipes
- Cookbook Details: theme and organization preferences
- User Details: dietary needs and preferences

## Recipe List Guidelines
1. Respect Specific Recipes exactly as provided. Use General Meal Types to guide recipe generation. Match Expected Recipe Count precisely.
2. Align with the Theme, Primary Purpose, Desired Cuisines and Nutritional Guidance. Include Cultural Exploration if specified. Follow the Organization field for recipe ordering.
3. Adhere to Dietary Restrictions, Allergies, Skill Level, Cooking Goals, Time Constraints, Health Focus and Family Considerations.
4. For Specific Recipes below the count, supplement with complementary recipes. Without specific recipes, generate a diverse list based on input.
5. Use specific yet broad names (e.g., "Thai Basil Stir-Fry" rather than "15-Minute Thai Basil Stir-Fry"). Avoid time frames and measurements.
6. Arrange logically by meal type, cuisine, ingredients, cooking method or occasion.

## Output
A simple, ordered list of recipe names (e.g., ["Overnight Oats", "Lentil Soup", "Pizza"]).

Your goal is a tailored, organized recipe list that matches the user's vision, with names specific enough to find but not overly detailed."""

GENERATE_COOKBOOK_RECIPES_FUNCTION = _function_definition(
    name="GenerateCookbookRecipes",
    description="Generate a list of recipes for a cookbook based on the user's preferences and requirements",
    properties={
        "recipes": {
            "type": "array",
            "items": {"type": "string"},
            "description": "The ordered list of one or more recipe names",
        },
    },
    required=["recipes"],
)


def build_process_order_prompt(order: CookbookOrderSubmission) -> str:
    return f"Order:\n```md\n{order.to_markdown()}\n```"


def build_wider_query_request(recipe_name: str) -> str:
    return (
        f'Thank you. The recipe name "{recipe_name}" didn\'t yield any search results, '
        "likely due to its uniqueness or obscurity.\n"
        "Please provide a wider search query to retrieve similar recipes. "
        "With each failed attempt, generalize the search query.\n"
        "Only respond with the new recipe name."
    )


def build_failed_query_followup(recipe_name: str) -> str:
    return (
        "Sorry, that search also returned no matches. Suggest a more generalized query "
        f"for similar recipes, staying as true as possible to the original recipe '{recipe_name}'."
    )


GENERALIZE_QUERY_SYSTEM_PROMPT = """<SystemPrompt>
    <Context>Online Recipe Searching</Context>
    <Goal>Your task is to provide an ideal search query that aims to return search results yielding recipes that form the basis of the user's requested recipe.</Goal>
    <Input>A unique recipe name that does not return search results.</Input>
    <Output>Respond with only the new search query and nothing else.</Output>
    <Examples>
        <Example>
            <Input>Pan-Seared Partridge with Herb Infusion</Input>
            <Output>Partridge</Output>
        </Example>
        <Example>
            <Input>Luigi's Veggie Power-Up Pizza</Input>
            <Output>Vegetable Pizza</Output>
        </Example>
        <Example>
            <Input>Herb-Crusted Venison with Seasonal Vegetables</Input>
            <Output>Venison</Output>
        </Example>
    </Examples>
    <Rules>
        <Rule>Omit Previous Attempts</Rule>
        <Rule>The more attempts made, the more generalized the search query should be</Rule>
        <Rule>As part of your search query response suggestion, do not append 'Recipe' or 'Recipes'.</Rule>
    </Rules>
</SystemPrompt>"""


def build_generalize_query_prompt(recipe_name: str, previous_attempts: List[str]) -> str:
    return f"Recipe: {recipe_name}\nPrevious Attempts: {', '.join(previous_attempts)}"


# ---- SynthesizeRecipe ----

SYNTHESIZE_RECIPE_SYSTEM_PROMPT = """# Recipe Curation System Prompt

**Role:** AI assistant for personalized recipe creation.

**Steps:**
1. **Analyze Cookbook Order:**
   - Review Cookbook Content, Details, and User Details.
   - Focus on dietary restrictions, allergies, skill level, and cooking goals.
2. **Evaluate Provided Recipes:**
   - You are provided with a list of recipes scraped from the internet.
   - Use these recipes as a basis for inspiration for the new synthesized recipe, mixing and matching elements.
3. **Create New Recipe:**
   - Blend elements from relevant recipes.
   - Ensure it meets dietary needs, preferences, skill level, and time constraints.
   - Align with the cookbook's theme and cultural goals.
   - Don't include the word "Step" in the enumerated directions.
4. **Customize Recipe:**
   - Scale the ingredients to adjust for the desired serving size.
   - Include alternatives or substitutions when the provided recipes conflict with the user's dietary restrictions.
   - IMPORTANT: Always alter the synthesized recipe given the user's allergies.
5. **Enhance Recipe:**
   - Add cultural context or storytelling.
   - Incorporate educational content.
   - Include meal prep tips or leftover ideas.
   - Scale the amount of detail according to how specific the user's cookbook expectations are. Keep it concise for simple orders.
   - Do not add factual information such as nutritional data or facts.
6. **Format Output:**
   - Use the provided recipe structure and fill out all fields.
   - Include customizations, cultural context, or educational content in Notes. Use Markdown for formatting (triple ###).
   - Omit a conclusion.
7. **Provide Attribution:**
   - List "Inspired by" URLs from original recipes.
   - Only include those that contributed towards the synthesized recipe.
8. **Review and Refine:**
   - The synthesized recipe will be assessed for quality assurance.
   - Provide a new revision when provided suggestions for improvement.

**Goal:** Tailor recipes to user needs and preferences while maintaining original integrity and cookbook theme."""

SYNTHESIZE_RECIPE_FUNCTION = _function_definition(
    name="SynthesizeRecipe",
    description="Synthesize a personalized recipe using existing recipes and user's cookbook order",
    properties={**_RECIPE_PROPERTIES, "inspiredBy": _STRING_LIST},
    required=[*_RECIPE_PROPERTIES, "inspiredBy"],
)


def build_synthesize_recipe_prompt(
    recipe_name: str,
    recipes: List[Recipe],
    order: CookbookOrder,
) -> str:
    recipes_json = json.dumps(
        [json.loads(_recipe_json(recipe)) for recipe in recipes],
        ensure_ascii=False,
    )
    return (
        f"# Requested Recipe:\n{recipe_name}\n\n"
        f"# Recipe data:\n```json\n{recipes_json}\n```\n\n"
        f"# Cookbook Order:\n{order.to_markdown()}\n\n"
        "Please synthesize a personalized recipe."
    )


def build_revision_request(analysis_json: str) -> str:
    return f"A new revision is required. Refer to the QA analysis:\n```json\n{analysis_json}\n```"


# ---- AnalyzeRecipe ----

ANALYZE_RECIPE_SYSTEM_PROMPT = """# Recipe Quality Assurance System Prompt
You are an AI assistant specialized in rigorous recipe analysis and quality assurance. Your task is to critically review synthesized recipes, not on the recipe quality, but specifically towards ensuring they meet the specifications outlined in the cookbook order. You will work iteratively with the recipe synthesizer until the recipe meets the required quality standards and user's expectation.

## Analysis Process
1. Carefully review requested recipe name, cookbook order details and the synthesized recipe.
2. Analyze the recipe's compliance with the specified criteria in the cookbook order, focusing only on the information provided.
3. Evaluate the recipe's overall relevancy and appropriateness against the user's expectations.
4. Assign a quality score from 1 to 100, where:
   - 1-49: Significant issues or misalignment with requirements
   - 50-69: Notable problems, but some alignment with requirements
   - 70-79: Generally good, with minor issues
   - 80-89: Excellent, nearly fully aligned with requirements
   - 90-100: Outstanding, perfectly aligned with requirements
5. Provide a strict, critical analysis of the recipe's strengths and weaknesses.
6. Formulate clear, actionable suggestions for the recipe synthesizer to improve the recipe.
7. Use the AnalyzeRecipe function to submit your assessment.
8. Repeat the analysis process for each new or revised recipe until the score meets or exceeds the organizational passable value.

## Key Considerations
- Evaluate the recipe's alignment with the cookbook's theme, purpose, and style.
- Assess the appropriateness of the recipe for the specified skill level and time constraints.
- Consider the recipe's fit within the broader cookbook context, including cuisine variety and special sections.
- Flag any facts such as nutritional information, since they cannot be fact checked.
- IMPORTANT: Any presence of allergens in the ingredients must be removed.

## Iterative Process
- Expect to engage in multiple rounds of analysis as the synthesizer refines the recipe.
- In each iteration, compare the new version to the previous one, noting improvements and any remaining or new issues.
- Adjust your score, analysis, and suggestions based on the changes made in each iteration."""

ANALYZE_RECIPE_FUNCTION = _function_definition(
    name="AnalyzeRecipe",
    description="Analyze a synthesized recipe based on the cookbook order specifications",
    properties={
        "qualityScore": {
            "type": "integer",
            "description": (
                "A score from 1 to 100 indicating the overall quality and alignment "
                "of the recipe with the cookbook order specifications"
            ),
        },
        "analysis": {
            "type": "string",
            "description": "A strict, critical evaluation of the recipe's alignment with the cookbook order",
        },
        "suggestions": {
            "type": "string",
            "description": "Clear, actionable suggestions for the synthesizer to improve the recipe",
        },
    },
    required=["qualityScore", "analysis", "suggestions"],
)


def draft_json(recipe: SynthesizedRecipe) -> str:
    return recipe.model_dump_json(
        by_alias=True,
        exclude={"quality_score", "analysis_text", "suggestions_text", "image_urls", "source_recipes"},
    )


def build_analyze_recipe_prompt(
    recipe: SynthesizedRecipe,
    order: CookbookOrder,
    recipe_name: Optional[str],
) -> str:
    return (
        f"<requested-recipe-name>{recipe_name or ''}</requested-recipe-name>\n"
        f"<cookbook-order>\n```md\n{order.to_markdown()}\n```\n</cookbook-order>\n"
        f"<recipe-data>\n```json\n{draft_json(recipe)}\n```\n</recipe-data>\n"
        "<goal>Provide a quality score along with an analysis and suggestions for improvement</goal>"
    )
