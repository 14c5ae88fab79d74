"""Command line interface for portal flows."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import typer

from portalflow import get_repository
from portalflow.config import load_config
from portalflow.contracts import FlowVariant, Message
from portalflow.conversation import ConversationSession, PlaybookFlow, ProspectSearchFlow
from portalflow.errors import ConfigError
from portalflow.gateway import build_gateway
from portalflow.steps import get_steps
from portalflow.traction import TractionData, calculate_overall_health, load_traction

app = typer.Typer(help="CLI for portal wizard and chat flows")

# Command groups
proposal_app = typer.Typer(help="Commands for saved proposals")
lists_app = typer.Typer(help="Commands for saved prospect lists")
traction_app = typer.Typer(help="Traction rocks, scorecard and playbooks")

app.add_typer(proposal_app, name="proposal")
app.add_typer(lists_app, name="lists")
app.add_typer(traction_app, name="traction")


@app.callback()
def main() -> None:
    """Portalflow CLI entry point."""
    pass


def _echo_message(message: Message) -> None:
    typer.echo(message.content)
    for question in message.data.get("clarifying_questions", []):
        typer.echo(f"  - {question}")
    if message.offered_actions:
        typer.echo("Options: " + ", ".join(f"{a.label} [{a.value}]" for a in message.offered_actions))


def _load_traction(path: Optional[Path]) -> TractionData:
    if path is None:
        return TractionData()
    try:
        return load_traction(path)
    except ConfigError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


@app.command("steps")
def steps(variant: FlowVariant = typer.Argument(FlowVariant.STANDARD)) -> None:
    """
    List the wizard steps for a flow variant.

    Example:
        portalflow steps nda
        # Output: 1. NDA Details - Agreement information
    """
    for step in get_steps(variant):
        typer.echo(f"{step.id}. {step.title} - {step.description}")


@proposal_app.command("list")
def proposal_list() -> None:
    """List saved proposals with their submission status."""
    repo = get_repository()
    proposals = asyncio.run(repo.list_proposals())
    if not proposals:
        typer.echo("No proposals found")
        return
    for proposal in proposals:
        typer.echo(f"{proposal.id}\t{proposal.name or '(untitled)'}\t{proposal.status.value}")


@proposal_app.command("show")
def proposal_show(proposal_id: str) -> None:
    """
    Show a saved proposal and its step completion.

    Args:
        proposal_id: Proposal ID to inspect (get from 'proposal list')
    """
    repo = get_repository()
    proposal = asyncio.run(repo.get_proposal(proposal_id))
    if proposal is None:
        typer.echo("Proposal not found")
        raise typer.Exit(code=1)
    typer.echo(f"Proposal {proposal.id}: {proposal.status.value}")
    typer.echo(f"Name: {proposal.name or '(untitled)'} ({proposal.variant.value})")
    if proposal.linked_project_id:
        typer.echo(f"Project: {proposal.linked_project_id}")
    if proposal.fields:
        typer.echo(f"Fields: {json.dumps(proposal.fields, default=str)}")


@lists_app.command("list")
def lists_list() -> None:
    """List saved prospect lists."""
    repo = get_repository()
    contact_lists = asyncio.run(repo.list_lists())
    if not contact_lists:
        typer.echo("No lists found")
        return
    for contact_list in contact_lists:
        typer.echo(f"{contact_list.name}\t{len(contact_list.items)} contacts")


@lists_app.command("show")
def lists_show(name: str) -> None:
    """Show the prospects on a saved list."""
    repo = get_repository()
    contact_list = asyncio.run(repo.get_list(name))
    if contact_list is None:
        typer.echo("List not found")
        raise typer.Exit(code=1)
    typer.echo(f"List {contact_list.name}: {len(contact_list.items)} contacts")
    for item in contact_list.items:
        typer.echo(f"- {item.name}\t{item.title or ''}\t{item.company or ''}")


@app.command("search")
def search(
    query: List[str] = typer.Argument(..., help="What kind of prospects to look for"),
    save: Optional[str] = typer.Option(None, help="Save the results to this list"),
) -> None:
    """
    Search for prospects in plain language.

    Example:
        portalflow search Find CTOs at SaaS companies in Texas --save "Texas CTOs"
    """
    try:
        gateway = build_gateway(config=load_config(), repository=get_repository())
    except ConfigError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    session = ConversationSession(ProspectSearchFlow(gateway, list_name=save))

    async def run() -> None:
        reply = await session.send(" ".join(query))
        if reply is not None:
            _echo_message(reply)
            for result in reply.data.get("results", []):
                typer.echo(f"- {result['name']}\t{result.get('title') or ''}\t{result.get('company') or ''}")
        if save and session.phase == "reviewing":
            reply = await session.send("save_list")
            if reply is not None:
                _echo_message(reply)

    asyncio.run(run())
    if session.phase == "collecting_criteria":
        raise typer.Exit(code=1)


@traction_app.command("health")
def traction_health(data: Path = typer.Argument(..., help="YAML file with rocks and metrics")) -> None:
    """Print the overall traction health score out of 10."""
    traction = _load_traction(data)
    score = calculate_overall_health(traction.rocks, traction.metrics)
    typer.echo(f"Overall health: {score}/10")


@traction_app.command("playbook")
def traction_playbook(
    data: Optional[Path] = typer.Option(None, help="YAML file with rocks and metrics"),
    output: Optional[Path] = typer.Option(None, help="Write the generated playbook JSON here"),
) -> None:
    """
    Build a Mattermost playbook with the Traction Assistant chat.

    Type 'quit' to leave early.
    """
    traction = _load_traction(data)
    session = ConversationSession(PlaybookFlow(traction.rocks, traction.metrics))
    _echo_message(session.last_message)

    async def run() -> None:
        while not session.is_complete:
            text = typer.prompt(">")
            if text.strip().lower() in ("quit", "exit"):
                return
            reply = await session.send(text)
            if reply is not None:
                _echo_message(reply)

    asyncio.run(run())
    if not session.is_complete:
        raise typer.Exit(code=1)

    playbook = session.context.get("playbook")
    if output is not None and playbook:
        output.write_text(json.dumps(playbook, indent=2))
        typer.echo(f"Playbook written to {output}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
