"""Shows which blocks get cache breakpoints and how cached tokens are billed."""

from credit_gateway import RateConfig, UsageResult, calculate_billing, select_cache_blocks

HANDBOOK = "<document>\n" + "Employees accrue 2 days of leave per month.\n" * 200 + "</document>"


def main() -> None:
    messages = [
        {"role": "user", "content": HANDBOOK},
        {"role": "assistant", "content": "I have read the handbook."},
        {"role": "user", "content": "How much leave do I get per year?"},
    ]
    selection = select_cache_blocks(messages, system_prompt="You answer HR questions.")
    print(f"Cache breakpoints: {selection.cached_block_count}")
    for block in selection.blocks:
        where = "system prompt" if block.index is None else f"message {block.index}"
        print(f"  {where}: ~{block.estimated_tokens} tokens")

    # Pretend the relay served most of the prompt from cache
    usage = UsageResult(input_tokens=2400, output_tokens=40, cached_tokens=2200)
    billing = calculate_billing(usage, RateConfig(), cache_aware=True)
    print(f"Cache hit rate: {billing.cache_hit_rate}")
    print(f"Credits: {billing.total_credits} (saved ~{billing.credits_saved})")


if __name__ == "__main__":
    main()
