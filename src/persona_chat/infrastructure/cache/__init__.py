"""Cache clients."""
