"""Dispatcher orchestration.

Drives one GitHub event through the run:

event payload → normalize → trigger check → credential → tracking comment
→ branch → git auth → prompt file → capability config → settings file
→ assistant run.

Nothing with side effects happens before the trigger matches: an event
without a trigger is reported as skipped without fetching credentials or
touching GitHub. Any exception after that point is logged and reported as
a failure with exit code 1; the tracking comment is left in place so the
assistant's last status stays visible.
"""

import logging
from pathlib import Path
from typing import Callable, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from src.action.capabilities.merger import CapabilityConfigMerger
from src.action.capabilities.models import CapabilityRequest
from src.action.capabilities.probe import ActionsReadProbe
from src.action.config import ActionSettings
from src.action.events.handler import EventNormalizer, load_event_payload
from src.action.events.models import EventContext, TriggerDecision, TriggerRules
from src.action.events.trigger import evaluate_trigger
from src.action.github.auth import GitHubTokenProvider
from src.action.github.client import GitHubClient
from src.action.github.comments import create_tracking_comment
from src.action.prompt.builder import PromptContext, create_prompt_file
from src.action.runner.claude import ClaudeRunner
from src.action.runner.environment import (
    build_claude_arguments,
    build_claude_environment,
)
from src.action.runner.settings_file import setup_claude_settings
from src.action.workspace.branch import BranchCoordinator, utc_now
from src.action.workspace.git import GitCommandRunner

logger = logging.getLogger(__name__)

CONCLUSION_SUCCESS = "success"
CONCLUSION_FAILURE = "failure"
CONCLUSION_SKIPPED = "skipped"


class ActionOutcome(BaseModel):
    """Final result of a dispatcher run.

    Attributes:
        conclusion: "success", "failure" or "skipped".
        exit_code: Process exit code for the step.
        execution_file: Execution artifact path, when one was written.
        error: Error message for failures raised before or around the run.
    """

    model_config = ConfigDict(frozen=True)

    conclusion: str
    exit_code: int = 0
    execution_file: Optional[str] = None
    error: Optional[str] = None


def default_merger_factory(
    client_factory: Callable[[str], GitHubClient],
) -> CapabilityConfigMerger:
    return CapabilityConfigMerger(probe=ActionsReadProbe(client_factory))


class ActionOrchestrator:
    """Runs the dispatcher end to end.

    All collaborators are injected so each step can be replaced in tests.

    Attributes:
        settings: Validated action configuration.
        token_provider: Supplies the GitHub bearer credential.
        client_factory: Builds a GitHubClient from a token.
        git: Local git runner for the workspace.
        runner: Assistant subprocess runner.
        base_env: Environment inherited by the assistant.
        merger_factory: Builds the capability merger from the client factory.
        normalizer: Event normalizer.
        clock: Time source for branch names.
        home: Home directory holding the assistant settings file.
    """

    def __init__(
        self,
        settings: ActionSettings,
        token_provider: GitHubTokenProvider,
        client_factory: Callable[[str], GitHubClient],
        git: GitCommandRunner,
        runner: ClaudeRunner,
        base_env: Mapping[str, str],
        merger_factory: Callable[
            [Callable[[str], GitHubClient]], CapabilityConfigMerger
        ] = default_merger_factory,
        normalizer: Optional[EventNormalizer] = None,
        clock: Callable = utc_now,
        home: Optional[Path] = None,
    ):
        self.settings = settings
        self.token_provider = token_provider
        self.client_factory = client_factory
        self.git = git
        self.runner = runner
        self.merger_factory = merger_factory
        self.normalizer = normalizer or EventNormalizer()
        self.clock = clock
        self.base_env = base_env
        self.home = home

    @property
    def trigger_rules(self) -> TriggerRules:
        return TriggerRules(
            trigger_phrase=self.settings.trigger_phrase,
            assignee_trigger=self.settings.assignee_trigger,
            label_trigger=self.settings.label_trigger,
            direct_instruction=self.settings.direct_prompt,
        )

    async def run(self) -> ActionOutcome:
        """Process the current event.

        Returns:
            ActionOutcome; this method does not raise.
        """
        logger.info("Starting Claude action dispatcher...")

        try:
            context = self._load_context()
            decision = evaluate_trigger(context, self.trigger_rules)
            if not decision.matched:
                logger.info("No trigger found, skipping remaining steps")
                return ActionOutcome(conclusion=CONCLUSION_SKIPPED, exit_code=0)

            token = await self.token_provider.get_bearer_credential()
            async with self.client_factory(token) as client:
                return await self._dispatch(context, decision, token, client)
        except Exception as exc:
            logger.exception(
                "Claude action failed",
                extra={"event_name": self.settings.event_name},
            )
            return ActionOutcome(
                conclusion=CONCLUSION_FAILURE,
                exit_code=1,
                error=str(exc),
            )

    def _load_context(self) -> EventContext:
        payload = load_event_payload(self.settings.event_path)
        return self.normalizer.normalize(
            payload,
            self.settings.event_name,
            repository=self.settings.repository,
            event_action=self.settings.event_action,
        )

    async def _dispatch(
        self,
        context: EventContext,
        decision: TriggerDecision,
        token: str,
        client: GitHubClient,
    ) -> ActionOutcome:
        settings = self.settings

        comment = await create_tracking_comment(client, context)

        coordinator = BranchCoordinator(
            github_client=client,
            git=self.git,
            owner=context.repository.owner,
            repo=context.repository.repo,
            clock=self.clock,
        )
        branch = await coordinator.resolve_branch(
            context,
            base_branch_override=settings.base_branch,
            branch_prefix=settings.branch_prefix,
        )

        if settings.use_commit_signing:
            logger.info("Skipping git configuration (using commit signing)")
        else:
            await self.git.configure_auth(token, comment.user_login)

        prompt_path = create_prompt_file(
            PromptContext(
                event=context,
                trigger=decision,
                branch=branch,
                comment_id=comment.id,
                trigger_phrase=settings.trigger_phrase,
                direct_prompt=settings.direct_prompt,
                custom_instructions=settings.custom_instructions,
                use_commit_signing=settings.use_commit_signing,
                label_trigger=settings.label_trigger,
                assignee_trigger=settings.assignee_trigger,
            ),
            prompt_dir=settings.prompt_dir,
        )

        capability_config = await self.merger_factory(self.client_factory).merge(
            CapabilityRequest(
                github_token=token,
                owner=context.repository.owner,
                repo=context.repository.repo,
                branch=branch.working_branch,
                comment_id=str(comment.id),
                allowed_tools=settings.allowed_tool_names,
                context=context,
                use_commit_signing=settings.use_commit_signing,
                additional_permissions=settings.permissions,
                additional_config=settings.mcp_config,
                actions_token=settings.actions_token,
            )
        )

        setup_claude_settings(self.home)

        result = await self.runner.run(
            prompt_path,
            build_claude_arguments(settings, capability_config.to_json()),
            build_claude_environment(settings, self.base_env),
            settings.timeout_minutes,
        )

        if result.succeeded:
            logger.info("Claude action completed successfully")
            return ActionOutcome(
                conclusion=CONCLUSION_SUCCESS,
                exit_code=0,
                execution_file=result.artifact_path,
            )

        return ActionOutcome(
            conclusion=CONCLUSION_FAILURE,
            exit_code=result.exit_code or 1,
            execution_file=result.artifact_path,
        )
