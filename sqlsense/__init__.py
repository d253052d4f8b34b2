"""Context-aware SQL completion for terminal SQL clients."""
