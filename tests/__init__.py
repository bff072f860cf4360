"""
Test Suite

Structure:
- tests/unit/: Tests for individual components (registry, normalizer, signer,
  venue adapters, response normalizer, gateway). No test touches the network;
  the gateway is driven through scripted HttpExecutor implementations.

Uses pytest with pytest-asyncio for testing async functionality.
"""
