"""Canonical data contracts for the cookbook acquisition and synthesis pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dedupe_text(values: List[str]) -> List[str]:
    seen = set()
    result: List[str] = []
    for value in values:
        text = str(value or "").strip()
        key = text.casefold()
        if not text or key in seen:
            continue
        seen.add(key)
        result.append(text)
    return result


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) == 0
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value == 0
    return False


def _clamp_score(value: Any) -> int:
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, score))


def _label(field_name: str) -> str:
    return " ".join(part.capitalize() for part in field_name.split("_"))


class CamelModel(BaseModel):
    """Base model persisted with camelCase keys, accepting either form on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class RelevancyResult(CamelModel):
    """Relevance verdict for one recipe against one query."""

    query: str = ""
    score: int = 0
    reasoning: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def _score(cls, value: Any) -> int:
        return _clamp_score(value)

    @field_validator("reasoning", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return str(value or "").strip()


class _RecipeFields(CamelModel):
    title: str = ""
    description: Optional[str] = None
    servings: Optional[str] = None
    prep_time: Optional[str] = None
    cook_time: Optional[str] = None
    total_time: Optional[str] = None
    ingredients: List[str] = Field(default_factory=list)
    directions: List[str] = Field(default_factory=list)
    notes: Optional[str] = None

    @field_validator("title", mode="before")
    @classmethod
    def _title_text(cls, value: Any) -> str:
        return str(value or "").strip()

    @field_validator(
        "description", "servings", "prep_time", "cook_time", "total_time", "notes",
        mode="before",
    )
    @classmethod
    def _optional_text(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, list):
            value = "\n".join(str(part) for part in value if part)
        text = str(value).strip()
        return text or None

    @field_validator("ingredients", "directions", mode="before")
    @classmethod
    def _text_list(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.splitlines()
        return [str(item).strip() for item in value if str(item or "").strip()]


class ScrapedRecipe(_RecipeFields):
    """Raw record parsed from a recipe page."""

    id: str
    source_url: str
    image_url: Optional[str] = None


class Recipe(_RecipeFields):
    """Canonical recipe entity owned by the repository.

    Identity is the source-URL fingerprint in ``id``. ``relevancy`` only grows
    and ``cleaned`` never reverts once set.
    """

    id: Optional[str] = None
    aliases: List[str] = Field(default_factory=list)
    index_title: Optional[str] = None
    source_url: Optional[str] = None
    image_url: Optional[str] = None
    cleaned: bool = False
    relevancy: Dict[str, RelevancyResult] = Field(default_factory=dict)

    @field_validator("aliases", mode="before")
    @classmethod
    def _alias_list(cls, value: Any) -> List[str]:
        return _dedupe_text(list(value or []))

    @field_validator("index_title", mode="before")
    @classmethod
    def _index_title(cls, value: Any) -> Optional[str]:
        text = str(value or "").strip()
        return text or None

    @classmethod
    def from_scraped(cls, scraped: ScrapedRecipe) -> "Recipe":
        payload = scraped.model_dump()
        payload["aliases"] = [scraped.title] if scraped.title else []
        return cls(**payload)

    def index_keys(self) -> List[str]:
        """Every string the recipe answers to in the repository index."""
        return _dedupe_text([self.title, self.index_title or "", *self.aliases])

    def relevancy_for(self, query: str) -> Optional[RelevancyResult]:
        return self.relevancy.get(query.strip().casefold())

    def record_relevancy(self, result: RelevancyResult) -> bool:
        """Store a verdict unless it would lower an existing score for the same query."""
        key = result.query.strip().casefold()
        existing = self.relevancy.get(key)
        if existing is not None and result.score < existing.score:
            return False
        self.relevancy[key] = result
        return True

    def add_aliases(self, aliases: List[str], first: bool = False) -> None:
        combined = [*aliases, *self.aliases] if first else [*self.aliases, *aliases]
        self.aliases = _dedupe_text(combined)

    def mark_cleaned(self) -> None:
        self.cleaned = True

    def merge_from(self, other: "Recipe") -> None:
        """Fold a newer copy of the same recipe into this one in place."""
        take_fields = other.cleaned or not self.cleaned
        if take_fields:
            for name in (
                "title", "description", "servings", "prep_time", "cook_time",
                "total_time", "ingredients", "directions", "notes",
            ):
                value = getattr(other, name)
                if not _is_empty(value):
                    setattr(self, name, value)

        for name in ("source_url", "image_url"):
            value = getattr(other, name)
            if value:
                setattr(self, name, value)
        # the index title picks the group file, so it is fixed once assigned
        self.index_title = self.index_title or other.index_title

        self.aliases = _dedupe_text([*self.aliases, *other.aliases])
        for result in other.relevancy.values():
            self.record_relevancy(result)
        self.cleaned = self.cleaned or other.cleaned


class RecipeContent(_RecipeFields):
    """Narrative fields of a recipe, as returned by the cleaner."""


class RecipeAnalysis(CamelModel):
    """Quality verdict returned by the analyzer."""

    quality_score: int = 0
    analysis: Optional[str] = None
    suggestions: Optional[str] = None

    @field_validator("quality_score", mode="before")
    @classmethod
    def _score(cls, value: Any) -> int:
        return _clamp_score(value)

    @field_validator("analysis", "suggestions", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> Optional[str]:
        text = str(value or "").strip()
        return text or None


class SynthesizedRecipe(_RecipeFields):
    """A draft or final recipe produced by the synthesizer."""

    inspired_by: List[str] = Field(default_factory=list)
    image_urls: List[str] = Field(default_factory=list)
    source_recipes: List[Recipe] = Field(default_factory=list)
    quality_score: Optional[int] = None
    analysis_text: Optional[str] = None
    suggestions_text: Optional[str] = None

    @field_validator("inspired_by", "image_urls", mode="before")
    @classmethod
    def _url_list(cls, value: Any) -> List[str]:
        return [str(item).strip() for item in (value or []) if str(item or "").strip()]

    def add_analysis(self, analysis: RecipeAnalysis) -> None:
        self.quality_score = analysis.quality_score
        self.analysis_text = analysis.analysis
        self.suggestions_text = analysis.suggestions


# ---- structured oracle results ----


class RecipeIndexResult(CamelModel):
    index_title: str
    aliases: List[str] = Field(default_factory=list)

    @field_validator("aliases", mode="before")
    @classmethod
    def _alias_list(cls, value: Any) -> List[str]:
        return _dedupe_text(list(value or []))


class UrlSelection(CamelModel):
    selected_indices: List[int] = Field(default_factory=list)


class RecipeRanking(CamelModel):
    score: int = 0
    reasoning: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def _score(cls, value: Any) -> int:
        return _clamp_score(value)


class OrderRecipeList(CamelModel):
    recipes: List[str] = Field(default_factory=list)


# ---- orders ----


class _MarkdownSection(CamelModel):
    def to_markdown(self, title: str) -> str:
        lines = [f"## {title}"]
        for name in type(self).model_fields:
            value = getattr(self, name)
            if _is_empty(value):
                continue
            if isinstance(value, list):
                value = ", ".join(str(item) for item in value)
            lines.append(f"{_label(name)}: {value}")
        return "\n".join(lines) + "\n"


class CookbookContent(_MarkdownSection):
    recipe_specification_type: Optional[str] = None
    specific_recipes: List[str] = Field(default_factory=list)
    general_meal_types: List[str] = Field(default_factory=list)
    expected_recipe_count: int = 0


class CookbookDetails(_MarkdownSection):
    theme: Optional[str] = None
    primary_purpose: Optional[str] = None
    desired_cuisines: List[str] = Field(default_factory=list)
    cultural_exploration: Optional[str] = None
    nutritional_guidance: Optional[str] = None
    recipe_modification: Optional[str] = None
    ingredient_flexibility: Optional[str] = None
    overall_style: Optional[str] = None
    organization: Optional[str] = None
    special_sections: List[str] = Field(default_factory=list)
    storytelling: Optional[str] = None
    educational_content: List[str] = Field(default_factory=list)
    practical_features: List[str] = Field(default_factory=list)


class UserDetails(_MarkdownSection):
    dietary_restrictions: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    skill_level: Optional[str] = None
    cooking_goals: List[str] = Field(default_factory=list)
    time_constraints: Optional[str] = None
    health_focus: Optional[str] = None
    family_considerations: Optional[str] = None
    serving_size: int = 0


class OrderStatus(str, Enum):
    """Lifecycle of a cookbook order."""

    SUBMITTED = "submitted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SkippedRecipe(CamelModel):
    """A recipe name the order proceeded without."""

    recipe_name: str
    reason: str
    attempted_queries: List[str] = Field(default_factory=list)


class CookbookOrderSubmission(CamelModel):
    """User submission an order is created from."""

    email: str
    cookbook_content: CookbookContent = Field(default_factory=CookbookContent)
    cookbook_details: CookbookDetails = Field(default_factory=CookbookDetails)
    user_details: UserDetails = Field(default_factory=UserDetails)

    @field_validator("email", mode="before")
    @classmethod
    def _non_empty_text(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("value is required")
        return text

    def to_markdown(self) -> str:
        return "\n".join(
            [
                self.cookbook_content.to_markdown("Cookbook Content"),
                self.cookbook_details.to_markdown("Cookbook Details"),
                self.user_details.to_markdown("User Details"),
            ]
        ).strip()


def _new_order_id() -> str:
    return uuid4().hex[:8]


class CookbookOrder(CookbookOrderSubmission):
    """An order being fulfilled by the scheduler."""

    order_id: str = Field(default_factory=_new_order_id)
    recipe_list: List[str] = Field(default_factory=list)
    synthesized_recipes: List[SynthesizedRecipe] = Field(default_factory=list)
    skipped_recipes: List[SkippedRecipe] = Field(default_factory=list)
    rejected_recipes: Dict[str, List[SynthesizedRecipe]] = Field(default_factory=dict)
    status: OrderStatus = OrderStatus.SUBMITTED
    created_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None

    @field_validator("recipe_list", mode="before")
    @classmethod
    def _names(cls, value: Any) -> List[str]:
        return [str(item).strip() for item in (value or []) if str(item or "").strip()]

    @classmethod
    def from_submission(
        cls,
        submission: CookbookOrderSubmission,
        recipe_list: List[str],
    ) -> "CookbookOrder":
        return cls(
            email=submission.email,
            cookbook_content=submission.cookbook_content.model_copy(deep=True),
            cookbook_details=submission.cookbook_details.model_copy(deep=True),
            user_details=submission.user_details.model_copy(deep=True),
            recipe_list=recipe_list,
        )


# ---- crawler configuration ----


class SiteSelectors(BaseModel):
    """Resolved per-site selector record (template fields merged with site overrides)."""

    site: str
    base_url: str
    search_page: str
    search_results: str
    title: Optional[str] = None
    description: Optional[str] = None
    servings: Optional[str] = None
    prep_time: Optional[str] = None
    cook_time: Optional[str] = None
    total_time: Optional[str] = None
    ingredients: str
    directions: str
    notes: Optional[str] = None
    image: Optional[str] = None
    stream_search: bool = False

    @field_validator("stream_search", mode="before")
    @classmethod
    def _flag(cls, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return bool(value)

    @field_validator("search_results", mode="before")
    @classmethod
    def _unescape_selector(cls, value: Any) -> str:
        return str(value or "").replace('\\"', '"')
