"""Chain-facing collaborators: native value accounts and the randomness coordinator."""
