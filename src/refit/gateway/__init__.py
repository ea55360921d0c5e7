"""Gateways wrapping side effects (network, clock, prompts) behind ABCs."""
