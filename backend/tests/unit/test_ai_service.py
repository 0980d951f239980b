"""
Unit Tests for the AI Response Orchestrator

Provider chains are driven with scripted backends; no network access.
"""
import json

import pytest

from dataprosim.schemas.ai import (
    BloomLevel,
    ChallengeRequest,
    Difficulty,
    MentorContext,
    MentorRequest,
    TipCategory,
    TipsRequest,
)
from dataprosim.services.ai_service import (
    CHALLENGE_OPTIONS,
    DEFAULT_TIME_LIMIT,
    DEFAULT_XP_REWARD,
    MENTOR_FALLBACK_RESPONSE,
    MENTOR_OPTIONS,
    TIPS_OPTIONS,
    AIService,
    bloom_level_for_level,
    build_mentor_prompt,
    decode_tips,
    difficulty_for_level,
    fallback_tips,
    generate_challenge_id,
    load_json_payload,
)
from dataprosim.services.providers import MalformedOutputError, ProviderError


def _tip(title="Look at nulls", difficulty="beginner"):
    return {
        "title": title,
        "content": "Count missing values per column.",
        "actionable": True,
        "difficulty": difficulty,
    }


CHALLENGE_PAYLOAD = {
    "title": "Find the churn driver",
    "description": "Identify the feature most correlated with churn.",
    "timeLimit": 7,
    "xpReward": 80,
    "hints": ["Try a correlation matrix"],
    "expectedAnswer": "tenure",
    "validationCriteria": ["Named one feature"],
}


class TestLevelMapping:
    """Difficulty and Bloom level derivation from user level."""

    @pytest.mark.parametrize("level,expected", [
        (0, Difficulty.BEGINNER),
        (1, Difficulty.BEGINNER),
        (2, Difficulty.BEGINNER),
        (3, Difficulty.INTERMEDIATE),
        (5, Difficulty.INTERMEDIATE),
        (6, Difficulty.ADVANCED),
        (42, Difficulty.ADVANCED),
    ])
    def test_difficulty_for_level(self, level, expected):
        assert difficulty_for_level(level) == expected

    @pytest.mark.parametrize("level,expected", [
        (1, BloomLevel.REMEMBER),
        (2, BloomLevel.UNDERSTAND),
        (3, BloomLevel.APPLY),
        (4, BloomLevel.ANALYZE),
        (5, BloomLevel.EVALUATE),
        (6, BloomLevel.CREATE),
    ])
    def test_bloom_level_for_level(self, level, expected):
        assert bloom_level_for_level(level) == expected

    @pytest.mark.parametrize("level", [7, 10, 1000])
    def test_bloom_level_saturates_at_create(self, level):
        assert bloom_level_for_level(level) == BloomLevel.CREATE

    @pytest.mark.parametrize("level", [0, -5])
    def test_bloom_level_clamps_low_levels(self, level):
        assert bloom_level_for_level(level) == BloomLevel.REMEMBER


class TestJsonHelpers:
    """Parsing of provider JSON payloads."""

    def test_load_plain_json(self):
        assert load_json_payload('{"a": 1}') == {"a": 1}

    def test_load_fenced_json(self):
        text = '```json\n[{"title": "x"}]\n```'
        assert load_json_payload(text) == [{"title": "x"}]

    def test_load_invalid_json_raises(self):
        with pytest.raises(MalformedOutputError):
            load_json_payload("Here are some tips for you!")

    def test_decode_bare_list(self):
        tips = decode_tips([_tip(), _tip("Second")])
        assert [t.title for t in tips] == ["Look at nulls", "Second"]

    def test_decode_wrapped_list(self):
        tips = decode_tips({"tips": [_tip()]})
        assert len(tips) == 1
        assert tips[0].title == "Look at nulls"

    def test_decode_normalizes_difficulty_case(self):
        tips = decode_tips([_tip(difficulty="Intermediate")])
        assert tips[0].difficulty == Difficulty.INTERMEDIATE

    def test_decode_rejects_unknown_shape(self):
        with pytest.raises(MalformedOutputError):
            decode_tips({"advice": "be careful"})

    def test_challenge_ids_are_prefixed_and_distinct(self):
        first = generate_challenge_id()
        second = generate_challenge_id()
        assert first.startswith("challenge_")
        assert first != second
        assert len(first.split("_")[2]) == 9


class TestMentorPrompt:

    def test_prompt_without_context(self):
        prompt = build_mentor_prompt(MentorRequest(message="What is EDA?"))
        assert prompt.user == "What is EDA?"
        assert "Context:" not in prompt.system

    def test_prompt_with_context_defaults(self):
        request = MentorRequest(message="Help", context=MentorContext(currentStep="eda"))
        prompt = build_mentor_prompt(request)
        assert "- Project: Data Analysis Project" in prompt.system
        assert "- Current Step: eda" in prompt.system
        assert "- User Level: 1" in prompt.system

    def test_combined_prompt_for_single_channel_providers(self):
        prompt = build_mentor_prompt(MentorRequest(message="Why scale?"))
        assert prompt.combined().endswith("\n\nUser Question: Why scale?")


class TestMentorResponse:
    """Mentor chain: primary, secondary, fallback."""

    @pytest.mark.asyncio
    async def test_primary_success_skips_secondary(self, make_backend):
        primary = make_backend("openai", responses=["Start with df.info()."])
        secondary = make_backend("gemini", responses=["unused"])
        service = AIService([primary, secondary], [], [])

        result = await service.get_mentor_response(MentorRequest(message="Where do I start?"))

        assert result == "Start with df.info()."
        assert len(primary.calls) == 1
        assert secondary.calls == []

    @pytest.mark.asyncio
    async def test_secondary_used_when_primary_fails(self, make_backend):
        primary = make_backend("openai", error=RuntimeError("boom"))
        secondary = make_backend("gemini", responses=["Gemini says hello."])
        service = AIService([primary, secondary], [], [])

        result = await service.get_mentor_response(MentorRequest(message="Hi"))

        assert result == "Gemini says hello."
        assert len(primary.calls) == 1
        assert len(secondary.calls) == 1

    @pytest.mark.asyncio
    async def test_empty_primary_output_counts_as_failure(self, make_backend):
        primary = make_backend("openai", responses=["   "])
        secondary = make_backend("gemini", responses=["Real answer"])
        service = AIService([primary, secondary], [], [])

        result = await service.get_mentor_response(MentorRequest(message="Hi"))

        assert result == "Real answer"

    @pytest.mark.asyncio
    async def test_all_failures_return_fallback(self, make_backend):
        service = AIService(
            [make_backend("openai", error=ProviderError("openai", "401")),
             make_backend("gemini", error=TimeoutError())],
            [],
            [],
        )

        result = await service.get_mentor_response(MentorRequest(message="Hi"))

        assert result == MENTOR_FALLBACK_RESPONSE

    @pytest.mark.asyncio
    async def test_unconfigured_backends_fall_back(self, unavailable_ai_service):
        result = await unavailable_ai_service.get_mentor_response(MentorRequest(message="Hi"))
        assert result == MENTOR_FALLBACK_RESPONSE

    @pytest.mark.asyncio
    async def test_missing_key_backend_is_never_invoked(self, make_backend):
        keyless = make_backend("openai", api_key="", responses=["never"])
        service = AIService([keyless], [], [])

        result = await service.get_mentor_response(MentorRequest(message="Hi"))

        assert result == MENTOR_FALLBACK_RESPONSE
        assert keyless.calls == []

    @pytest.mark.asyncio
    async def test_mentor_options(self, make_backend):
        backend = make_backend("openai", responses=["ok"])
        service = AIService([backend], [], [])

        await service.get_mentor_response(MentorRequest(message="Hi"))

        _, options = backend.calls[0]
        assert options == MENTOR_OPTIONS
        assert options.max_tokens == 500
        assert options.temperature == 0.7
        assert options.json_output is False


class TestContextualTips:

    @pytest.mark.asyncio
    async def test_single_tip_is_passed_through(self, make_backend):
        backend = make_backend("openai", responses=[json.dumps([_tip()])])
        service = AIService([], [backend], [])

        tips = await service.generate_contextual_tips(TipsRequest(type="eda"))

        assert len(tips) == 1
        assert tips[0].type == TipCategory.EDA
        assert tips[0].title == "Look at nulls"

    @pytest.mark.asyncio
    async def test_five_tips_are_not_truncated(self, make_backend):
        payload = [_tip(f"Tip {i}") for i in range(5)]
        backend = make_backend("openai", responses=[json.dumps(payload)])
        service = AIService([], [backend], [])

        tips = await service.generate_contextual_tips(TipsRequest(type="modeling"))

        assert len(tips) == 5
        assert all(t.type == TipCategory.MODELING for t in tips)

    @pytest.mark.asyncio
    async def test_wrapped_payload_matches_bare_payload(self, make_backend):
        bare = make_backend("openai", responses=[json.dumps([_tip()])])
        wrapped = make_backend("openai", responses=[json.dumps({"tips": [_tip()]})])

        from_bare = await AIService([], [bare], []).generate_contextual_tips(TipsRequest(type="eda"))
        from_wrapped = await AIService([], [wrapped], []).generate_contextual_tips(TipsRequest(type="eda"))

        assert [t.model_dump() for t in from_bare] == [t.model_dump() for t in from_wrapped]

    @pytest.mark.asyncio
    async def test_fenced_payload_is_accepted(self, make_backend):
        text = "```json\n" + json.dumps([_tip()]) + "\n```"
        backend = make_backend("openai", responses=[text])

        tips = await AIService([], [backend], []).generate_contextual_tips(TipsRequest(type="eda"))

        assert tips[0].title == "Look at nulls"

    @pytest.mark.asyncio
    async def test_unknown_difficulty_does_not_discard_batch(self, make_backend):
        payload = [_tip("Plot histograms", "intermediate"), _tip("Check skew", "expert")]
        backend = make_backend("openai", responses=[json.dumps(payload)])

        tips = await AIService([], [backend], []).generate_contextual_tips(TipsRequest(type="eda"))

        assert [t.title for t in tips] == ["Plot histograms", "Check skew"]
        assert [t.difficulty for t in tips] == [Difficulty.INTERMEDIATE, Difficulty.BEGINNER]

    @pytest.mark.asyncio
    async def test_null_optional_tip_fields_get_defaults(self, make_backend):
        tip = dict(_tip(), actionable=None, difficulty=None)
        backend = make_backend("openai", responses=[json.dumps([tip])])

        tips = await AIService([], [backend], []).generate_contextual_tips(TipsRequest(type="eda"))

        assert tips[0].actionable is True
        assert tips[0].difficulty == Difficulty.BEGINNER

    @pytest.mark.asyncio
    async def test_malformed_payload_falls_back(self, make_backend):
        backend = make_backend("openai", responses=["not json at all"])

        tips = await AIService([], [backend], []).generate_contextual_tips(TipsRequest(type="eda"))

        assert [t.model_dump() for t in tips] == [t.model_dump() for t in fallback_tips(TipCategory.EDA)]

    @pytest.mark.asyncio
    async def test_empty_list_falls_back(self, make_backend):
        backend = make_backend("openai", responses=["[]"])

        tips = await AIService([], [backend], []).generate_contextual_tips(
            TipsRequest(type="data_cleaning")
        )

        assert len(tips) == 1
        assert tips[0].title == "Handle Missing Values Strategically"
        assert tips[0].difficulty == Difficulty.INTERMEDIATE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("category", list(TipCategory))
    async def test_fallback_for_every_category(self, unavailable_ai_service, category):
        tips = await unavailable_ai_service.generate_contextual_tips(TipsRequest(type=category))

        assert len(tips) == 1
        assert tips[0].type == category
        assert tips[0].actionable is True

    @pytest.mark.asyncio
    async def test_eda_fallback_content(self, unavailable_ai_service):
        tips = await unavailable_ai_service.generate_contextual_tips(TipsRequest(type="eda"))

        assert tips[0].title == "Start with Summary Statistics"
        assert tips[0].difficulty == Difficulty.BEGINNER

    @pytest.mark.asyncio
    async def test_tips_options_request_json(self, make_backend):
        backend = make_backend("openai", responses=[json.dumps([_tip()])])

        await AIService([], [backend], []).generate_contextual_tips(TipsRequest(type="eda"))

        prompt, options = backend.calls[0]
        assert options == TIPS_OPTIONS
        assert options.json_output is True
        assert options.max_tokens == 800
        assert "Context: eda" in prompt.system


class TestMicroChallenge:

    @pytest.mark.asyncio
    async def test_generated_challenge_uses_derived_levels(self, make_backend):
        payload = dict(CHALLENGE_PAYLOAD, difficulty="beginner", bloomLevel="remember")
        backend = make_backend("openai", responses=[json.dumps(payload)])
        service = AIService([], [], [backend])

        challenge = await service.generate_micro_challenge(
            ChallengeRequest(userLevel=4, skillArea="feature engineering")
        )

        assert challenge.id.startswith("challenge_")
        assert challenge.title == "Find the churn driver"
        assert challenge.difficulty == Difficulty.INTERMEDIATE
        assert challenge.bloom_level == BloomLevel.ANALYZE
        assert challenge.time_limit == 7
        assert challenge.xp_reward == 80
        assert challenge.expected_answer == "tenure"

    @pytest.mark.asyncio
    async def test_missing_optional_fields_get_defaults(self, make_backend):
        payload = {"title": "Quick check", "description": "Count the rows."}
        backend = make_backend("openai", responses=[json.dumps(payload)])

        challenge = await AIService([], [], [backend]).generate_micro_challenge(
            ChallengeRequest(userLevel=1, skillArea="eda")
        )

        assert challenge.time_limit == DEFAULT_TIME_LIMIT
        assert challenge.xp_reward == DEFAULT_XP_REWARD
        assert challenge.hints == []
        assert challenge.validation_criteria == []

    @pytest.mark.asyncio
    async def test_challenge_options(self, make_backend):
        backend = make_backend("openai", responses=[json.dumps(CHALLENGE_PAYLOAD)])

        await AIService([], [], [backend]).generate_micro_challenge(
            ChallengeRequest(userLevel=7, skillArea="modeling")
        )

        prompt, options = backend.calls[0]
        assert options == CHALLENGE_OPTIONS
        assert options.temperature == 0.9
        assert "- Difficulty: advanced" in prompt.system
        assert "- Bloom's Level: create" in prompt.system

    @pytest.mark.asyncio
    @pytest.mark.parametrize("time_limit,expected", [
        (7.5, 8),
        ("6", 6),
        ("soon", DEFAULT_TIME_LIMIT),
        (None, DEFAULT_TIME_LIMIT),
        (-3, DEFAULT_TIME_LIMIT),
        (True, DEFAULT_TIME_LIMIT),
    ])
    async def test_loose_numeric_fields_are_coerced(self, make_backend, time_limit, expected):
        payload = dict(CHALLENGE_PAYLOAD, timeLimit=time_limit, xpReward=75.2)
        backend = make_backend("openai", responses=[json.dumps(payload)])

        challenge = await AIService([], [], [backend]).generate_micro_challenge(
            ChallengeRequest(userLevel=3, skillArea="eda")
        )

        assert challenge.id.startswith("challenge_")
        assert challenge.title == "Find the churn driver"
        assert challenge.time_limit == expected
        assert challenge.xp_reward == 75

    @pytest.mark.asyncio
    async def test_malformed_challenge_falls_back(self, make_backend):
        backend = make_backend("openai", responses=[json.dumps({"title": "no description"})])

        challenge = await AIService([], [], [backend]).generate_micro_challenge(
            ChallengeRequest(userLevel=2, skillArea="eda")
        )

        assert challenge.id.startswith("fallback_")
        assert challenge.difficulty == Difficulty.BEGINNER

    @pytest.mark.asyncio
    async def test_fallback_for_advanced_user(self, unavailable_ai_service):
        challenge = await unavailable_ai_service.generate_micro_challenge(
            ChallengeRequest(userLevel=7, skillArea="data_cleaning")
        )

        assert challenge.id.startswith("fallback_")
        assert challenge.title == "Data Exploration Challenge"
        assert challenge.difficulty == Difficulty.ADVANCED
        assert challenge.bloom_level == BloomLevel.ANALYZE
        assert challenge.time_limit == 10
        assert challenge.xp_reward == 50
        assert len(challenge.hints) == 3
        assert len(challenge.validation_criteria) == 3

    @pytest.mark.asyncio
    async def test_fallbacks_differ_only_by_id(self, unavailable_ai_service):
        request = ChallengeRequest(userLevel=7, skillArea="data_cleaning")

        first = await unavailable_ai_service.generate_micro_challenge(request)
        second = await unavailable_ai_service.generate_micro_challenge(request)

        assert first.id != second.id
        assert first.model_dump(exclude={"id"}) == second.model_dump(exclude={"id"})
