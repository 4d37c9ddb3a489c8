"""Review environment lifecycle and agent orchestration for chaba."""
