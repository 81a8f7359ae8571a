"""Command-line interface for eth-node-client."""
