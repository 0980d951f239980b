"""
AI Response Orchestrator.

Produces mentor answers, contextual tips and micro-challenges by walking an
ordered chain of generation backends. The first backend that yields usable
output wins; when every backend fails, static fallback content is returned.
None of the public methods raise.
"""
import json
import logging
import random
import string
import time
from typing import Any, Callable, List, Optional, Sequence, TypeVar

from pydantic import TypeAdapter

from dataprosim.core.config import Settings
from dataprosim.schemas.ai import (
    BLOOM_LEVELS,
    BloomLevel,
    ChallengeRequest,
    ContextualTip,
    Difficulty,
    GeneratedChallenge,
    GeneratedTip,
    MentorRequest,
    MicroChallenge,
    TipCategory,
    TipsPayload,
    TipsRequest,
    WrappedTips,
)
from dataprosim.services.providers import (
    GenerationBackend,
    GenerationOptions,
    GenerationPrompt,
    MalformedOutputError,
    ProviderRegistry,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MENTOR_FALLBACK_RESPONSE = (
    "I'm currently having trouble connecting to AI services. Please try again "
    "in a moment, or contact support if the issue persists."
)

MENTOR_OPTIONS = GenerationOptions(max_tokens=500, temperature=0.7)
TIPS_OPTIONS = GenerationOptions(max_tokens=800, temperature=0.8, json_output=True)
CHALLENGE_OPTIONS = GenerationOptions(max_tokens=600, temperature=0.9, json_output=True)

DEFAULT_TIME_LIMIT = 10
DEFAULT_XP_REWARD = 50

TIP_PROMPTS = {
    TipCategory.DATA_UPLOAD: "Generate 3 actionable tips for someone who just uploaded a dataset for data analysis.",
    TipCategory.DATA_CLEANING: "Generate 3 tips for data cleaning and preprocessing based on common data quality issues.",
    TipCategory.EDA: "Generate 3 tips for effective exploratory data analysis and pattern discovery.",
    TipCategory.MODELING: "Generate 3 tips for model selection, training, and evaluation best practices.",
    TipCategory.CHART_GENERATION: "Generate 3 tips for creating effective data visualizations and charts.",
}

FALLBACK_TIPS = {
    TipCategory.DATA_UPLOAD: (
        "Check Data Quality First",
        "Always examine your dataset for missing values, duplicates, and data types before analysis.",
        Difficulty.BEGINNER,
    ),
    TipCategory.DATA_CLEANING: (
        "Handle Missing Values Strategically",
        "Choose appropriate imputation methods based on data type and missingness patterns.",
        Difficulty.INTERMEDIATE,
    ),
    TipCategory.EDA: (
        "Start with Summary Statistics",
        "Use describe() and info() to understand your data distribution and basic characteristics.",
        Difficulty.BEGINNER,
    ),
    TipCategory.MODELING: (
        "Split Data Before Preprocessing",
        "Always split your data into train/test sets before applying transformations to prevent data leakage.",
        Difficulty.INTERMEDIATE,
    ),
    TipCategory.CHART_GENERATION: (
        "Choose the Right Chart Type",
        "Use bar charts for categories, line charts for trends, and scatter plots for relationships.",
        Difficulty.BEGINNER,
    ),
}

_tips_adapter: TypeAdapter = TypeAdapter(TipsPayload)

_ID_ALPHABET = string.ascii_lowercase + string.digits


# =============================================================================
# Pure helpers
# =============================================================================

def difficulty_for_level(user_level: int) -> Difficulty:
    """Map a user level onto a difficulty tier."""
    if user_level <= 2:
        return Difficulty.BEGINNER
    if user_level <= 5:
        return Difficulty.INTERMEDIATE
    return Difficulty.ADVANCED


def bloom_level_for_level(user_level: int) -> BloomLevel:
    """Bloom level rises with user level and saturates at CREATE."""
    index = min(user_level - 1, len(BLOOM_LEVELS) - 1)
    return BLOOM_LEVELS[max(index, 0)]


def generate_challenge_id(prefix: str = "challenge") -> str:
    """Time-based id with a random suffix. Best-effort unique."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def _dump_json(value: Any) -> str:
    return json.dumps(value, default=str)


def _require_text(text: str) -> str:
    if not text or not text.strip():
        raise MalformedOutputError("parser", "empty response")
    return text


def load_json_payload(text: str) -> Any:
    """
    Parse provider JSON, tolerating a surrounding markdown code fence.

    Raises:
        MalformedOutputError: if the text is not valid JSON.
    """
    response_text = text.strip()

    if response_text.startswith("```"):
        lines = response_text.split("\n")
        end_idx = len(lines) - 1 if lines[-1].strip() == "```" else len(lines)
        response_text = "\n".join(lines[1:end_idx])

    try:
        return json.loads(response_text)
    except json.JSONDecodeError as e:
        raise MalformedOutputError("parser", f"Invalid JSON: {e}") from e


def decode_tips(payload: Any) -> List[GeneratedTip]:
    """
    Normalize either accepted tips shape into a list.

    A bare array and an object with a ``tips`` array decode to the same list.
    """
    try:
        decoded = _tips_adapter.validate_python(payload)
    except ValueError as e:
        raise MalformedOutputError("parser", f"Unexpected tips shape: {e}") from e

    if isinstance(decoded, WrappedTips):
        return decoded.tips
    return decoded


def fallback_tips(category: TipCategory) -> List[ContextualTip]:
    title, content, difficulty = FALLBACK_TIPS[category]
    return [
        ContextualTip(
            type=category,
            title=title,
            content=content,
            actionable=True,
            difficulty=difficulty,
        )
    ]


def fallback_challenge(difficulty: Difficulty) -> MicroChallenge:
    """Fixed exploration challenge used when no provider is available."""
    return MicroChallenge(
        id=generate_challenge_id("fallback"),
        title="Data Exploration Challenge",
        description=(
            "Explore your dataset and identify the top 3 most interesting patterns "
            "or insights. Document your findings with supporting evidence."
        ),
        difficulty=difficulty,
        bloom_level=BloomLevel.ANALYZE,
        time_limit=DEFAULT_TIME_LIMIT,
        xp_reward=DEFAULT_XP_REWARD,
        hints=[
            "Look for correlations between variables",
            "Check for outliers or unusual patterns",
            "Examine the distribution of key variables",
        ],
        expected_answer="Three documented insights with supporting data",
        validation_criteria=[
            "Identified at least 3 patterns",
            "Provided supporting evidence",
            "Used appropriate analysis methods",
        ],
    )


# =============================================================================
# Prompt builders
# =============================================================================

def build_mentor_prompt(request: MentorRequest) -> GenerationPrompt:
    system = (
        "You are DataProSimX AI Mentor, an expert data science tutor.\n\n"
        "Guidelines:\n"
        "- Provide clear, actionable guidance for data science tasks\n"
        "- Adapt your language to the user's experience level\n"
        "- Focus on practical, hands-on learning\n"
        "- Encourage exploration and experimentation\n"
        "- Use encouraging but professional tone"
    )

    context = request.context
    if context is not None:
        lines = [
            f"- Project: {context.project_title or 'Data Analysis Project'}",
            f"- Current Step: {context.current_step or 'Getting Started'}",
            f"- User Level: {context.user_level or 1}",
        ]
        if context.dataset_info:
            lines.append(f"- Dataset: {_dump_json(context.dataset_info)}")
        system += "\n\nContext:\n" + "\n".join(lines)

    return GenerationPrompt(system=system, user=request.message)


def build_tips_prompt(request: TipsRequest) -> GenerationPrompt:
    system = (
        "Generate contextual tips for data science workflow.\n\n"
        "Return a JSON array of exactly 3 tips with this structure:\n"
        "[\n"
        "  {\n"
        '    "title": "Short actionable title",\n'
        '    "content": "Detailed explanation (max 100 words)",\n'
        '    "actionable": true/false,\n'
        '    "difficulty": "beginner/intermediate/advanced"\n'
        "  }\n"
        "]\n\n"
        f"Context: {request.type.value}\n"
        f"User Level: {request.user_level or 1}"
    )
    if request.dataset_info:
        system += f"\nDataset Info: {_dump_json(request.dataset_info)}"

    return GenerationPrompt(system=system, user=TIP_PROMPTS[request.type])


def build_challenge_prompt(
    request: ChallengeRequest,
    difficulty: Difficulty,
    bloom_level: BloomLevel,
) -> GenerationPrompt:
    system = (
        "Generate a micro-challenge for data science learning.\n\n"
        "Return JSON with this exact structure:\n"
        "{\n"
        '  "title": "Challenge title",\n'
        '  "description": "Clear challenge description with specific task",\n'
        '  "timeLimit": 5,\n'
        '  "xpReward": 50,\n'
        '  "hints": ["hint1", "hint2", "hint3"],\n'
        '  "expectedAnswer": "expected outcome or approach",\n'
        '  "validationCriteria": ["criteria1", "criteria2"]\n'
        "}\n\n"
        "Requirements:\n"
        f"- Skill Area: {request.skill_area}\n"
        f"- Difficulty: {difficulty.value}\n"
        f"- Bloom's Level: {bloom_level.value}\n"
        f"- User Level: {request.user_level}"
    )
    if request.dataset_info:
        system += f"\n- Dataset Available: {_dump_json(request.dataset_info)}"
    system += "\n\nMake it practical, achievable in 5-15 minutes, and educational."

    user = (
        f"Create a {difficulty.value} {request.skill_area} challenge "
        f"focusing on {bloom_level.value} level skills."
    )
    return GenerationPrompt(system=system, user=user)


# =============================================================================
# Orchestrator
# =============================================================================

class AIService:
    """
    Orchestrates generation backends for the three AI request kinds.

    Each chain is tried in order, one attempt per backend. Backends are only
    awaited sequentially: the next one runs after the previous has failed.
    """

    def __init__(
        self,
        mentor_chain: Sequence[GenerationBackend],
        tips_chain: Sequence[GenerationBackend],
        challenge_chain: Sequence[GenerationBackend],
    ):
        self.mentor_chain = list(mentor_chain)
        self.tips_chain = list(tips_chain)
        self.challenge_chain = list(challenge_chain)

    async def _run_chain(
        self,
        kind: str,
        chain: Sequence[GenerationBackend],
        prompt: GenerationPrompt,
        options: GenerationOptions,
        decode: Callable[[str], T],
    ) -> Optional[T]:
        """Return the first successfully decoded result, or None if all fail."""
        for backend in chain:
            try:
                text = await backend.generate(prompt, options)
                result = decode(text)
            except Exception as e:
                logger.warning(
                    f"[AI] {kind} via {backend.name} failed: {e}",
                    extra={"provider": backend.name, "request_kind": kind},
                )
                continue

            logger.info(
                f"[AI] {kind} served by {backend.name}",
                extra={"provider": backend.name, "request_kind": kind},
            )
            return result

        logger.info(f"[AI] {kind}: all providers unavailable, using fallback", extra={"request_kind": kind})
        return None

    async def get_mentor_response(self, request: MentorRequest) -> str:
        prompt = build_mentor_prompt(request)
        response = await self._run_chain("mentor", self.mentor_chain, prompt, MENTOR_OPTIONS, _require_text)
        return response or MENTOR_FALLBACK_RESPONSE

    async def generate_contextual_tips(self, request: TipsRequest) -> List[ContextualTip]:
        """
        Tips for a workflow stage. The prompt asks for three; whatever count the
        provider returns is passed through. Falls back to one canned tip.
        """
        prompt = build_tips_prompt(request)

        def decode(text: str) -> List[ContextualTip]:
            tips = decode_tips(load_json_payload(text))
            if not tips:
                raise MalformedOutputError("parser", "no tips in payload")
            return [ContextualTip(type=request.type, **tip.model_dump()) for tip in tips]

        tips = await self._run_chain("tips", self.tips_chain, prompt, TIPS_OPTIONS, decode)
        return tips or fallback_tips(request.type)

    async def generate_micro_challenge(self, request: ChallengeRequest) -> MicroChallenge:
        difficulty = difficulty_for_level(request.user_level)
        bloom_level = bloom_level_for_level(request.user_level)
        prompt = build_challenge_prompt(request, difficulty, bloom_level)

        def decode(text: str) -> MicroChallenge:
            payload = load_json_payload(text)
            try:
                generated = GeneratedChallenge.model_validate(payload)
            except ValueError as e:
                raise MalformedOutputError("parser", f"Unexpected challenge shape: {e}") from e

            return MicroChallenge(
                id=generate_challenge_id(),
                title=generated.title,
                description=generated.description,
                difficulty=difficulty,
                bloom_level=bloom_level,
                time_limit=generated.time_limit or DEFAULT_TIME_LIMIT,
                xp_reward=generated.xp_reward or DEFAULT_XP_REWARD,
                hints=generated.hints or [],
                expected_answer=generated.expected_answer,
                validation_criteria=generated.validation_criteria or [],
            )

        challenge = await self._run_chain(
            "challenge", self.challenge_chain, prompt, CHALLENGE_OPTIONS, decode
        )
        return challenge or fallback_challenge(difficulty)


def build_ai_service(registry: ProviderRegistry, settings: Settings) -> AIService:
    """Wire the configured provider chains into an AIService."""
    return AIService(
        mentor_chain=registry.chain(settings.mentor_chain),
        tips_chain=registry.chain(settings.tips_chain),
        challenge_chain=registry.chain(settings.challenge_chain),
    )
