"""Pure domain rules: rating math, pairing, credit tiers, policy and config."""
