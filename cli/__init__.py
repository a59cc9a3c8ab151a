"""Command-line interface for building staking reward reports."""
