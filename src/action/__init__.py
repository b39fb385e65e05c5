"""CI-triggered dispatcher for the Claude coding assistant.

This package turns a single GitHub Actions event into one assistant run:
- GitHub event normalization and trigger detection
- Branch lifecycle management (reuse PR branch or mint a fresh one)
- Capability (MCP server) configuration assembly and merging
- Assistant subprocess execution with prompt piping and timeout
- A single tracking comment and the action output contract
"""
