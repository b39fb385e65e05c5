"""Prompt generation for the assistant."""

from src.action.prompt.builder import (
    PromptContext,
    PromptFileError,
    create_prompt_file,
    generate_prompt,
    sanitize_content,
)

__all__ = [
    "PromptContext",
    "PromptFileError",
    "create_prompt_file",
    "generate_prompt",
    "sanitize_content",
]
