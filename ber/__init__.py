"""BER agent runtime: skill-based LLM agents with an approval-gated action workflow."""

__version__ = "0.1.0"
