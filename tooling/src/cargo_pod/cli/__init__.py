"""Command-line entry points for cargo-pod."""
