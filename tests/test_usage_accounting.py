import math

from core.domain.models import TokenUsage
from core.services.usage_accounting import UsageRecord, estimate_cost_usd, summarize_usage


def test_cost_uses_model_pricing_with_default_fallback():
    usage = TokenUsage(prompt_tokens=1_000_000, candidate_tokens=1_000_000, total_tokens=2_000_000)
    assert math.isclose(estimate_cost_usd(usage, "gemini-3-pro-preview"), 14.0)
    assert math.isclose(estimate_cost_usd(usage, "otro-motor"), 0.5)


def test_token_usage_combine():
    total = TokenUsage.combine(
        [TokenUsage(prompt_tokens=1, candidate_tokens=2, total_tokens=3)] * 3
    )
    assert (total.prompt_tokens, total.candidate_tokens, total.total_tokens) == (3, 6, 9)
    assert TokenUsage.combine([]) == TokenUsage()


def test_summarize_groups_by_model_and_skips_empty_records():
    used = TokenUsage(prompt_tokens=100, candidate_tokens=50, total_tokens=150)
    records = [
        UsageRecord.build(model="gemini-3-flash-preview", operation="analyze_vector", usage=used),
        UsageRecord.build(model="gemini-3-flash-preview", operation="analyze_vector", usage=used),
        UsageRecord.build(model="gemini-3-pro-preview", operation="synthesize_global_analysis", usage=used),
        UsageRecord.build(model="gemini-3-pro-preview", operation="get_asset_quote", usage=TokenUsage()),
    ]

    summary = summarize_usage(records)

    assert summary["gemini-3-flash-preview"].calls == 2
    assert summary["gemini-3-flash-preview"].usage.total_tokens == 300
    assert summary["gemini-3-pro-preview"].calls == 1
