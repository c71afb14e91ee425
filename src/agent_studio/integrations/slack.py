"""Slack Web API integration."""

import logging
from dataclasses import dataclass

from agent_studio.db.models import Run

logger = logging.getLogger(__name__)


class SlackError(Exception):
    """Raised when a Slack operation fails."""


@dataclass
class SlackMessage:
    channel: str
    ts: str
    text: str


def get_client(token: str | None):
    """Get a Slack WebClient. Returns None if no token provided."""
    if not token:
        return None
    from slack_sdk import WebClient
    return WebClient(token=token)


def send_message(
    token: str | None,
    channel: str,
    text: str,
    blocks: list[dict] | None = None,
) -> SlackMessage:
    """Send a message to a Slack channel."""
    client = get_client(token)
    if not client:
        raise SlackError("Slack not configured: SLACK_BOT_TOKEN not set")

    from slack_sdk.errors import SlackApiError

    try:
        response = client.chat_postMessage(
            channel=channel,
            text=text,
            blocks=blocks,
        )
    except SlackApiError as e:
        raise SlackError(f"Slack API error: {e.response['error']}") from e

    return SlackMessage(
        channel=response["channel"],
        ts=response["ts"],
        text=text,
    )


def format_run_notification(run: Run, project: str) -> list[dict]:
    """Format a finished build run as Slack blocks."""
    status_emoji = {
        "completed": ":white_check_mark:",
        "error": ":x:",
        "cancelled": ":no_entry_sign:",
    }
    emoji = status_emoji.get(run.status, ":grey_question:")
    done = sum(1 for t in run.tasks if t.status == "completed")
    files = ", ".join(f"`{t.target_file}`" for t in run.tasks if t.status == "completed")

    text = (
        f"{emoji} *Build {run.status}* in {project}\n"
        f"Goal: {run.goal}\n"
        f"Tasks: {done}/{len(run.tasks)}"
    )
    if files:
        text += f"\nFiles: {files}"
    if run.error:
        text += f"\nError: {run.error[:200]}"

    return [{"type": "section", "text": {"type": "mrkdwn", "text": text}}]


def notify_run_finished(token: str | None, channel: str | None, run: Run, project: str):
    """Post a run summary to Slack (best-effort)."""
    if not token or not channel:
        return
    try:
        send_message(
            token,
            channel,
            f"Build {run.status}: {run.goal}",
            format_run_notification(run, project),
        )
    except Exception:
        logger.exception("Failed to send Slack notification for run %s", run.id)
