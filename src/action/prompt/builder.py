"""Prompt generation for the assistant.

Builds the prompt file the runner streams into the assistant. The prompt
has three parts:

1. A tagged context block: repository, event, entity, branch, tracking
   comment id, and the (sanitized) text that triggered the run.
2. Working instructions: how to report progress through the tracking
   comment and how to commit, which depends on commit signing and on
   whether a fresh branch was created.
3. Optional custom instructions from the workflow.

User-authored text is sanitized by escaping angle brackets so it cannot
close or open the prompt's own tags.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from src.action.config import DEFAULT_PROMPT_DIR
from src.action.events.models import EventContext, EventKind, TriggerDecision
from src.action.github.comments import SPINNER_HTML
from src.action.workspace.branch import BranchState

logger = logging.getLogger(__name__)

PROMPT_FILE_NAME = "claude-prompt.txt"
COMMENT_TOOL = "mcp__github_comment__update_claude_comment"
COMMIT_FILES_TOOL = "mcp__github_file_ops__commit_files"
NO_DESCRIPTION = "No description provided"


class PromptFileError(Exception):
    """Raised when the prompt file cannot be written."""

    pass


@dataclass
class PromptContext:
    """Everything the prompt is built from.

    Attributes:
        event: The normalized event.
        trigger: The matched trigger decision.
        branch: The checked-out branch.
        comment_id: Tracking comment id.
        trigger_phrase: Configured trigger phrase.
        direct_prompt: Configured direct instruction, if any.
        custom_instructions: Extra instructions appended verbatim.
        use_commit_signing: Whether commits go through the file-ops service.
        label_trigger: Configured label trigger, for the trigger description.
        assignee_trigger: Configured assignee trigger, for the description.
    """

    event: EventContext
    trigger: TriggerDecision
    branch: BranchState
    comment_id: int
    trigger_phrase: str = "@claude"
    direct_prompt: Optional[str] = None
    custom_instructions: Optional[str] = None
    use_commit_signing: bool = False
    label_trigger: Optional[str] = None
    assignee_trigger: Optional[str] = None


def sanitize_content(content: str) -> str:
    """Escape ``<`` and ``>`` in user-authored text."""
    return content.replace("<", "&lt;").replace(">", "&gt;")


def event_type_label(event: EventContext) -> str:
    """Short event classification shown to the assistant."""
    kind = event.event_kind
    if kind == EventKind.PULL_REQUEST_REVIEW_COMMENT:
        return "REVIEW_COMMENT"
    if kind == EventKind.PULL_REQUEST_REVIEW:
        return "PR_REVIEW"
    if kind == EventKind.ISSUE_COMMENT:
        return "GENERAL_COMMENT"
    if kind == EventKind.ISSUES:
        if event.event_action == "opened":
            return "ISSUE_CREATED"
        if event.event_action == "labeled":
            return "ISSUE_LABELED"
        return "ISSUE_ASSIGNED"
    return "PULL_REQUEST"


def trigger_description(ctx: PromptContext) -> str:
    if ctx.direct_prompt:
        return "direct prompt instruction"

    phrase = ctx.trigger_phrase
    kind = ctx.event.event_kind
    action = ctx.event.event_action

    if kind == EventKind.PULL_REQUEST_REVIEW_COMMENT:
        return f"PR review comment with '{phrase}'"
    if kind == EventKind.PULL_REQUEST_REVIEW:
        return f"PR review with '{phrase}'"
    if kind == EventKind.ISSUE_COMMENT:
        return f"issue comment with '{phrase}'"
    if kind == EventKind.ISSUES:
        if action == "opened":
            return f"new issue with '{phrase}' in body"
        if action == "labeled":
            return f"issue labeled with '{ctx.label_trigger}'"
        if ctx.assignee_trigger:
            return f"issue assigned to '{ctx.assignee_trigger}'"
        return "issue assigned event"
    return f"pull request {action}" if action else "pull request event"


def _trigger_body(ctx: PromptContext) -> str:
    if ctx.trigger.matched_text:
        return ctx.trigger.matched_text

    payload = ctx.event.payload
    if ctx.event.event_kind == EventKind.ISSUES:
        entity = payload.get("issue") or {}
    elif ctx.event.event_kind == EventKind.PULL_REQUEST:
        entity = payload.get("pull_request") or {}
    else:
        entity = {}
    return entity.get("body") or NO_DESCRIPTION


def _context_block(ctx: PromptContext) -> List[str]:
    event = ctx.event
    repo_name = event.repository.full_name
    number_tag = "pr_number" if event.is_pull_request else "issue_number"
    number_label = "PR Number" if event.is_pull_request else "Issue Number"
    event_line = event.event_kind.value
    if event.event_action:
        event_line += f" ({event.event_action})"

    lines = [
        "<formatted_context>",
        f"Repository: {repo_name}",
        f"Event: {event_line}",
        f"{number_label}: #{event.entity_number}",
        f"Branch: {ctx.branch.working_branch}",
        f"Base Branch: {ctx.branch.base_branch}",
        "</formatted_context>",
        "",
        "<pr_or_issue_body>",
        sanitize_content(_trigger_body(ctx)),
        "</pr_or_issue_body>",
        "",
        f"<event_type>{event_type_label(event)}</event_type>",
        f"<is_pr>{'true' if event.is_pull_request else 'false'}</is_pr>",
        f"<trigger_context>{trigger_description(ctx)}</trigger_context>",
        f"<repository>{repo_name}</repository>",
        f"<{number_tag}>{event.entity_number}</{number_tag}>",
        f"<claude_comment_id>{ctx.comment_id}</claude_comment_id>",
        f"<trigger_username>{ctx.trigger.triggering_user or event.actor}</trigger_username>",
        f"<trigger_phrase>{ctx.trigger_phrase}</trigger_phrase>",
    ]

    if ctx.trigger.matched_text and not ctx.direct_prompt:
        lines += [
            "<trigger_comment>",
            sanitize_content(ctx.trigger.matched_text),
            "</trigger_comment>",
        ]
    if ctx.direct_prompt:
        lines += [
            "<direct_prompt>",
            sanitize_content(ctx.direct_prompt),
            "</direct_prompt>",
        ]
    return lines


def _commit_instructions(ctx: PromptContext) -> List[str]:
    branch = ctx.branch.working_branch
    on_existing_pr_branch = ctx.event.is_pull_request and not ctx.branch.is_newly_created

    lines: List[str] = []
    if not on_existing_pr_branch:
        lines.append(
            f"- You are already on the correct branch ({branch}). "
            "Do not create a new branch."
        )

    if ctx.use_commit_signing:
        lines += [
            f"- Push changes directly to the current branch using {COMMIT_FILES_TOOL} "
            "(works for both new and existing files).",
            f"- Use {COMMIT_FILES_TOOL} to commit files atomically in a single commit.",
        ]
    else:
        push_target = "HEAD" if on_existing_pr_branch else branch
        lines += [
            "- Use git commands via the Bash tool to commit and push your changes:",
            "  - Stage files: Bash(git add <files>)",
            '  - Commit with a descriptive message: Bash(git commit -m "<message>")',
            f"  - Push to the remote: Bash(git push origin {push_target})",
        ]
    return lines


def _compare_url_instructions(ctx: PromptContext) -> List[str]:
    if not ctx.branch.is_newly_created:
        return []

    repo_name = ctx.event.repository.full_name
    base = ctx.branch.base_branch
    head = ctx.branch.working_branch
    entity = "PR" if ctx.event.is_pull_request else "issue"
    return [
        "- Provide a URL to create a PR manually in this format:",
        f"  [Create a PR](https://github.com/{repo_name}/compare/{base}...{head}"
        "?quick_pull=1&title=<url-encoded-title>&body=<url-encoded-body>)",
        "  - Use THREE dots (...) between branch names, not two (..)",
        "  - Encode all URL parameters; spaces become %20",
        f"  - The body should describe the changes and reference the original {entity}",
    ]


def generate_prompt(ctx: PromptContext) -> str:
    """Render the full prompt text."""
    is_pr = ctx.event.is_pull_request
    entity = "PR" if is_pr else "issue"
    request_source = (
        "the <direct_prompt> tag above"
        if ctx.direct_prompt
        else "the <trigger_comment> tag above"
    )
    push_method = (
        COMMIT_FILES_TOOL if ctx.use_commit_signing else "git commands (add, commit, push)"
    )

    sections: List[str] = [
        "You are Claude, an AI assistant designed to help with GitHub issues and "
        "pull requests. Think carefully as you analyze the context and respond "
        "appropriately. Here's the context for your current task:",
        "",
        *_context_block(ctx),
        "",
        "<comment_tool_info>",
        f"IMPORTANT: You have been provided with the {COMMENT_TOOL} tool to update "
        "your comment. Only the body parameter is required; the tool already "
        "knows which comment to update.",
        "</comment_tool_info>",
        "",
        "Your task is to analyze the context, understand the request, and provide "
        "helpful responses and/or implement code changes as needed.",
        "",
        "IMPORTANT CLARIFICATIONS:",
        "- When asked to \"review\" code, read the code and provide review feedback "
        "(do not implement changes unless explicitly asked)",
        "- Your console outputs and tool results are NOT visible to the user",
        "- ALL communication happens through your GitHub comment",
        "",
        "Follow these steps:",
        "",
        "1. Create a Todo List in your GitHub comment as a checklist "
        f"(- [ ] / - [x]) and keep it current with {COMMENT_TOOL}.",
        "2. Gather Context: analyze the context above and read relevant files.",
        f"3. Understand the Request: extract the request from {request_source}. "
        "Always check for and follow the repository's CLAUDE.md file(s).",
        "4. Execute Actions:",
        "   A. For questions and code reviews, answer in the comment with file "
        "paths and line numbers where applicable.",
        "   B. For implementation changes, edit files locally, then:",
        *["      " + line for line in _commit_instructions(ctx)],
        *["      " + line for line in _compare_url_instructions(ctx)],
        "5. Final Update: update the comment with the final todo state, remove the "
        "spinner and summarize what was done. If you changed files, push them via "
        f"{push_method} before saying that you're done.",
        "",
        "Important Notes:",
        f"- All communication must happen through GitHub {entity} comments.",
        f"- Never create new comments. Only update the existing comment using {COMMENT_TOOL}.",
        f"- Use this spinner HTML when work is in progress: {SPINNER_HTML}",
    ]

    if is_pr and not ctx.branch.is_newly_created:
        sections.append("- Always push to the existing branch when triggered on a PR.")
    else:
        sections.append(
            f"- IMPORTANT: You are already on the correct branch "
            f"({ctx.branch.working_branch}). Never create new branches when "
            "triggered on issues or closed/merged PRs."
        )
    sections.append("- Use h3 headers (###) for section titles in your comments.")

    prompt = "\n".join(sections) + "\n"

    if ctx.custom_instructions:
        prompt += f"\n\nCUSTOM INSTRUCTIONS:\n{ctx.custom_instructions}"

    return prompt


def create_prompt_file(
    ctx: PromptContext,
    prompt_dir: Union[str, Path] = DEFAULT_PROMPT_DIR,
) -> Path:
    """Write the prompt to ``<prompt_dir>/claude-prompt.txt``.

    Raises:
        PromptFileError: If the directory or file cannot be written.
    """
    content = generate_prompt(ctx)
    prompt_path = Path(prompt_dir) / PROMPT_FILE_NAME

    try:
        prompt_path.parent.mkdir(parents=True, exist_ok=True)
        prompt_path.write_text(content, encoding="utf-8")
    except OSError as exc:
        logger.error("Failed to create prompt file: %s", exc)
        raise PromptFileError(f"Failed to create prompt file: {exc}") from exc

    logger.info("Prompt file created successfully", extra={"path": str(prompt_path)})
    logger.debug("Final prompt:\n%s", content)
    return prompt_path
