"""Trigger evaluation for normalized GitHub events.

Decides whether an event should start the assistant. Evaluation order:

1. A configured direct instruction always triggers.
2. Comment and review events trigger when their body contains the
   trigger phrase (literal, case-sensitive substring).
3. Issue events trigger on the configured assignee, the configured label,
   or the trigger phrase in the body or title. These checks do not
   short-circuit each other; the title check runs last and its text wins.
4. Pull request events trigger on the phrase in the PR body.

The evaluator never raises: missing or mistyped payload fields count as
"no match".
"""

import logging
from typing import Any, Dict, Optional

from src.action.events.models import (
    EventContext,
    EventKind,
    TriggerDecision,
    TriggerRules,
)

logger = logging.getLogger(__name__)


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _login(value: Any) -> Optional[str]:
    login = _as_dict(value).get("login")
    return login if isinstance(login, str) and login else None


def _contains(text: Any, phrase: str) -> bool:
    return isinstance(text, str) and bool(phrase) and phrase in text


def evaluate_trigger(context: EventContext, rules: TriggerRules) -> TriggerDecision:
    """Evaluate trigger rules against an event.

    Args:
        context: The normalized event.
        rules: Trigger phrase, assignee/label triggers, direct instruction.

    Returns:
        A TriggerDecision; unmatched decisions carry no other fields.
    """
    if rules.direct_instruction:
        logger.info("Direct prompt provided, triggering action")
        return TriggerDecision(matched=True, matched_text=rules.direct_instruction)

    payload = context.payload
    kind = context.event_kind

    if kind in (EventKind.ISSUE_COMMENT, EventKind.PULL_REQUEST_REVIEW_COMMENT):
        decision = _evaluate_comment(_as_dict(payload.get("comment")), rules)
    elif kind == EventKind.PULL_REQUEST_REVIEW:
        decision = _evaluate_review(_as_dict(payload.get("review")), rules)
    elif kind == EventKind.ISSUES:
        decision = _evaluate_issue(context, rules)
    elif kind == EventKind.PULL_REQUEST:
        decision = _evaluate_pull_request(_as_dict(payload.get("pull_request")), rules)
    else:
        decision = TriggerDecision.no_match()

    if decision.matched:
        logger.info("Trigger detected in %s event", kind.value)
    else:
        logger.info("No trigger found in %s event", kind.value)
    return decision


def _evaluate_comment(comment: Dict[str, Any], rules: TriggerRules) -> TriggerDecision:
    body = comment.get("body")
    if not _contains(body, rules.trigger_phrase):
        return TriggerDecision.no_match()

    comment_id = comment.get("id")
    return TriggerDecision(
        matched=True,
        matched_text=body,
        triggering_user=_login(comment.get("user")),
        source_comment_id=str(comment_id) if comment_id is not None else None,
    )


def _evaluate_review(review: Dict[str, Any], rules: TriggerRules) -> TriggerDecision:
    body = review.get("body")
    if not _contains(body, rules.trigger_phrase):
        return TriggerDecision.no_match()

    return TriggerDecision(
        matched=True,
        matched_text=body,
        triggering_user=_login(review.get("user")),
    )


def _evaluate_issue(context: EventContext, rules: TriggerRules) -> TriggerDecision:
    payload = context.payload
    issue = _as_dict(payload.get("issue"))

    matched = False
    matched_text: Optional[str] = None
    triggering_user: Optional[str] = None

    if rules.assignee_trigger and context.event_action == "assigned":
        assignee = _login(payload.get("assignee"))
        if assignee is not None and assignee == rules.assignee_trigger:
            matched = True
            triggering_user = assignee

    if rules.label_trigger and context.event_action == "labeled":
        label_name = _as_dict(payload.get("label")).get("name")
        if label_name == rules.label_trigger:
            matched = True

    author = _login(issue.get("user"))

    body = issue.get("body")
    if _contains(body, rules.trigger_phrase):
        matched = True
        matched_text = body
        triggering_user = author

    title = issue.get("title")
    if _contains(title, rules.trigger_phrase):
        matched = True
        matched_text = title
        triggering_user = author

    if not matched:
        return TriggerDecision.no_match()
    return TriggerDecision(
        matched=True,
        matched_text=matched_text,
        triggering_user=triggering_user,
    )


def _evaluate_pull_request(
    pull_request: Dict[str, Any], rules: TriggerRules
) -> TriggerDecision:
    body = pull_request.get("body")
    if not _contains(body, rules.trigger_phrase):
        return TriggerDecision.no_match()

    return TriggerDecision(
        matched=True,
        matched_text=body,
        triggering_user=_login(pull_request.get("user")),
    )

