"""Issue Investigator — terminal runner.

Runs one investigation against a local checkout and renders live agent
panels in the terminal using Rich. Prints the RCA and the generated test
cases as Markdown when the workflow completes.

Usage:
    python cli.py "The login button does nothing on Safari" --repo-path ./checkout
    python cli.py "Signup rejects valid emails" --repository acme/web --provider openrouter

Needs OPENAI_API_KEY (or OPENROUTER_API_KEY with --provider openrouter) in
the environment or a .env file.
"""

import argparse
import asyncio
import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown

from core.config import Settings
from core.workflow import InvestigationWorkflow, WorkflowResult
from display.live import LiveDisplay
from display.markdown import render_rca_markdown, render_test_cases_markdown
from llm import build_client
from schemas.issue import IssueInput
from sre.integrations.notify import build_notifier
from sre.integrations.tracker import InMemoryTracker

console = Console()


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Investigate a reported issue against a local repository.")
    parser.add_argument("issue", help="Issue description, verbatim.")
    parser.add_argument("--repository", help="Repository identifier (defaults to GITHUB_REPO).")
    parser.add_argument("--repo-path", help="Local checkout to investigate (defaults to GITHUB_REPO_PATH).")
    parser.add_argument("--provider", choices=["openai", "openrouter"], help="Completion service.")
    parser.add_argument("--model", help="Model identifier.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log at DEBUG level.")
    return parser.parse_args(argv)


def _settings_from_args(args: argparse.Namespace) -> Settings:
    """Environment settings with command-line overrides applied."""
    overrides = {
        "repo_path": args.repo_path,
        "provider": args.provider,
        "model": args.model,
    }
    base = Settings.from_env()
    return base.model_copy(update={k: v for k, v in overrides.items() if v is not None})


# ── Results ───────────────────────────────────────────────────────────────────

def _print_results(result: WorkflowResult) -> None:
    """Render the RCA and test cases as Markdown."""
    console.print()
    console.rule(f"[bold]{result.ticket.key}[/bold]  [dim]{result.workflow_id}[/dim]")
    console.print(Markdown(render_rca_markdown(result.rca)))

    if result.test_cases is not None and result.test_cases.test_cases:
        console.print()
        console.print(Markdown(render_test_cases_markdown(result.test_cases)))
    else:
        console.print("\n[yellow]No test cases generated.[/yellow]")

    status = (
        "[bold yellow]⚠  RCA incomplete (iteration limit reached)[/bold yellow]"
        if result.rca.incomplete
        else "[bold green]✓  RCA complete[/bold green]"
    )
    console.print(f"\n{status}")
    console.print(f"[dim]{len(result.relevant_files)} relevant files · {result.elapsed_seconds:.1f}s[/dim]\n")


# ── Entry point ───────────────────────────────────────────────────────────────

async def _run(args: argparse.Namespace) -> None:
    settings = _settings_from_args(args)
    issue = IssueInput(description=args.issue, repository=args.repository)

    workflow = InvestigationWorkflow(
        settings,
        build_client(settings),
        InMemoryTracker(),
        build_notifier(settings.notify_webhook_url),
    )

    display = LiveDisplay(workflow.agent_names)
    event_queue: asyncio.Queue = asyncio.Queue()

    console.rule("[bold]Issue Investigator[/bold]")
    console.print(f"  repository  [cyan]{issue.repository or settings.default_repository}[/cyan]")
    console.print(f"  checkout    [cyan]{settings.repo_path}[/cyan]")
    console.print(f"  model       [cyan]{settings.provider}:{settings.model}[/cyan]")
    console.print()

    with display.make_live() as live:
        pipeline = asyncio.create_task(
            workflow.run(issue, event_queue=event_queue)
        )
        consumer = asyncio.create_task(
            display.consume(event_queue, live)
        )

        try:
            result = await pipeline
        finally:
            await event_queue.put(None)   # sentinel: tell consumer to stop
            await consumer

    _print_results(result)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    asyncio.run(_run(args))


if __name__ == "__main__":
    main()
