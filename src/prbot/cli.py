"""CLI entry point invoked by the CI workflow for ``/gpt`` comments."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from .config import BotSettings, ConfigError, load_settings
from .coordinator import RunConfig, RunCoordinator, RunResult
from .models import LLMClientError, ModelPlanSource, OpenAIChatClient
from .plan import PlanFormatError, parse_plan
from .prompts import extract_task
from .tools.context import sample_repository_context
from .tools.github import GitHubClient, GitHubError, GitHubVersionControl
from .tools.vcs import GitError, GitRepository

APP_HELP = "Apply model-proposed edits requested from pull-request comments."
LOG_FORMAT = "[gpt-pr-bot] %(levelname)s %(name)s: %(message)s"

LOGGER = logging.getLogger("prbot")

app = typer.Typer(help=APP_HELP)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)


def _load_settings_or_exit(config: Optional[Path]) -> BotSettings:
    try:
        return load_settings(config)
    except ConfigError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error


def _build_coordinator(
    *,
    settings: BotSettings,
    repository: GitRepository,
    github: GitHubClient,
    openai_api_key: str,
    pr_number: int,
    task: str,
    actor: str,
) -> RunCoordinator:
    pull = github.get_pull(pr_number)
    repository.configure_identity(settings.git.user_name, settings.git.user_email)

    client = OpenAIChatClient(
        api_key=openai_api_key,
        base_url=settings.model.base_url,
        model=settings.model.name,
        timeout=settings.model.timeout,
        max_attempts=settings.model.max_attempts,
        retry_delay=settings.model.retry_delay,
    )
    limits = settings.limits.to_plan_limits()
    context_settings = settings.context

    def sample_context() -> str:
        return sample_repository_context(
            repository,
            max_files=context_settings.max_files,
            max_sample_files=context_settings.max_sample_files,
            head_lines=context_settings.head_lines,
        )

    return RunCoordinator(
        RunConfig(
            task=task,
            actor=actor,
            inference_client=ModelPlanSource(client, limits=limits, temperature=settings.model.temperature),
            version_control=GitHubVersionControl(repository, github, remote=settings.git.remote),
            conversation_id=pr_number,
            base_branch=pull.head_ref,
            head_sha=pull.head_sha,
            branch_prefix=settings.git.branch_prefix,
            repo_root=repository.root,
            limits=limits,
            context_sampler=sample_context,
        )
    )


def _echo_result(result: RunResult) -> None:
    typer.echo(f"Outcome: {result.status.value}")
    for record in result.records:
        marker = "applied" if record.applied else f"skipped ({record.reason})"
        typer.echo(f"- {record.path} [{record.kind.value}] {marker}")
    if result.change_request is not None:
        typer.echo(f"Pull request: #{result.change_request.number}")
    if result.error:
        typer.echo(f"Error: {result.error}")


@app.command()
def run(
    comment: str = typer.Option("", envvar="COMMENT_BODY", help="Body of the triggering comment."),
    actor: str = typer.Option("unknown", envvar="ACTOR", help="Login of the commenter."),
    owner: str = typer.Option(..., envvar="REPO_OWNER", help="Repository owner."),
    repo: str = typer.Option(..., envvar="REPO_NAME", help="Repository name."),
    pr_number: int = typer.Option(..., envvar="PR_NUMBER", help="Pull request that received the comment."),
    github_token: str = typer.Option(..., envvar="GITHUB_TOKEN", help="Token for the GitHub API."),
    openai_api_key: str = typer.Option(..., envvar="OPENAI_API_KEY", help="API key for the model endpoint."),
    repo_root: Path = typer.Option(Path("."), help="Checkout of the pull request head."),
    config: Optional[Path] = typer.Option(None, help="YAML settings file kept outside the checked-out repository."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Handle one ``/gpt`` comment. Run failures are logged and exit with status 0."""
    _configure_logging(verbose)

    task = extract_task(comment)
    if not task:
        LOGGER.info("No task after /gpt")
        return

    settings = _load_settings_or_exit(config)

    try:
        repository = GitRepository.discover(repo_root)
        github = GitHubClient(
            owner=owner,
            repo=repo,
            token=github_token,
            api_url=settings.github.api_url,
            timeout=settings.github.timeout,
        )
        coordinator = _build_coordinator(
            settings=settings,
            repository=repository,
            github=github,
            openai_api_key=openai_api_key,
            pr_number=pr_number,
            task=task,
            actor=actor,
        )
    except (GitError, GitHubError, LLMClientError, ValueError) as error:
        LOGGER.error("Unable to start run: %s", error, exc_info=True)
        return

    result = coordinator.run()
    _echo_result(result)


@app.command()
def validate(
    plan_file: Path = typer.Argument(..., help="File containing raw model output."),
    config: Optional[Path] = typer.Option(None, help="YAML settings file kept outside the checked-out repository."),
) -> None:
    """Show which changes of a stored plan would be admitted. Touches no files."""
    settings = _load_settings_or_exit(config)
    try:
        raw = plan_file.read_text(encoding="utf-8")
    except OSError as error:
        typer.echo(f"Unable to read {plan_file}: {error}")
        raise typer.Exit(code=1) from error

    try:
        plan = parse_plan(raw, settings.limits.to_plan_limits())
    except PlanFormatError as error:
        typer.echo(f"Malformed plan: {error}")
        raise typer.Exit(code=1) from error

    if plan.is_empty:
        typer.echo(f"No admissible changes ({plan.proposed} proposed).")
    else:
        typer.echo(f"Admitted {len(plan.operations)} of {plan.proposed} change(s):")
        for operation in plan.operations:
            typer.echo(f"- {operation.path} [{operation.kind.value}] {operation.line_count} line(s)")
    for verdict in plan.rejected:
        typer.echo(f"Rejected #{verdict.index} ({verdict.path or '?'}): {verdict.reason}")
    typer.echo(json.dumps({"files": len(plan.target_files), "lines": plan.total_lines}))


if __name__ == "__main__":
    app()
