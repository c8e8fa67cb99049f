"""CLI entrypoint for lifeledger."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from ui.cli import commands

app = typer.Typer(help="Agent record lifecycle engine")
memory_app = typer.Typer(help="Flat memory commands")
episodes_app = typer.Typer(help="Episodic memory commands")
state_app = typer.Typer(help="Behavioral state commands")
conflicts_app = typer.Typer(help="Opinion conflict commands")
config_app = typer.Typer(help="Configuration commands")


@app.callback()
def main_callback(
    ctx: typer.Context,
    root: Optional[Path] = typer.Option(
        None, "--root", envvar="LEDGER_ROOT", help="Project root holding config/ and data"
    ),
) -> None:
    ctx.obj = {"root": root}


def _root(ctx: typer.Context) -> Optional[Path]:
    return (ctx.obj or {}).get("root")


@memory_app.command("remember")
def memory_remember_cmd(
    ctx: typer.Context,
    content: str = typer.Argument(..., help="Memory text content"),
    type: str = typer.Option("event", "--type", help="event, conversation, decision, insight, lesson, emotional"),
    importance: str = typer.Option("medium", help="low, medium, high or critical"),
    tag: list[str] = typer.Option([], "--tag", help="Tag (repeatable)"),
    emotional_weight: float = typer.Option(0.0, min=0.0, max=1.0),
) -> None:
    """Store a memory."""
    commands.memory_remember(_root(ctx), content, type, importance, tag, emotional_weight)


@memory_app.command("recall")
def memory_recall_cmd(
    ctx: typer.Context,
    query: str = typer.Argument(...),
    limit: int = typer.Option(10, min=1, max=100),
) -> None:
    """Search memories."""
    commands.memory_recall(_root(ctx), query, limit)


@memory_app.command("decay")
def memory_decay_cmd(ctx: typer.Context) -> None:
    """Run one decay sweep."""
    commands.memory_decay(_root(ctx))


@memory_app.command("curate")
def memory_curate_cmd(
    ctx: typer.Context,
    hours_back: Optional[float] = typer.Option(None, help="Look-back window in hours"),
    min_importance: Optional[str] = typer.Option(None, help="Lowest importance to promote"),
    min_salience: Optional[float] = typer.Option(None, min=0.0, max=1.0),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report without writing"),
) -> None:
    """Promote recent memories into MEMORY.md."""
    commands.memory_curate(_root(ctx), hours_back, min_importance, min_salience, dry_run)


@episodes_app.command("record")
def episodes_record_cmd(
    ctx: typer.Context,
    title: str = typer.Argument(...),
    summary: str = typer.Argument(...),
    emotional_weight: float = typer.Option(0.5, min=0.0, max=1.0),
    participant: list[str] = typer.Option([], "--participant"),
    tag: list[str] = typer.Option([], "--tag"),
    lesson: list[str] = typer.Option([], "--lesson"),
) -> None:
    """Record an episode."""
    commands.episodes_record(_root(ctx), title, summary, emotional_weight, participant, tag, lesson)


@episodes_app.command("query")
def episodes_query_cmd(
    ctx: typer.Context,
    text: Optional[str] = typer.Argument(None),
    tag: list[str] = typer.Option([], "--tag"),
    limit: int = typer.Option(20, min=1, max=200),
) -> None:
    """Search episodes."""
    commands.episodes_query(_root(ctx), text, tag, limit)


@episodes_app.command("consolidate")
def episodes_consolidate_cmd(ctx: typer.Context) -> None:
    """Archive stale episodes and distill lessons."""
    commands.episodes_consolidate(_root(ctx))


@state_app.command("boot")
def state_boot_cmd(ctx: typer.Context) -> None:
    """Show the compact behavioral state."""
    commands.state_boot(_root(ctx))


@state_app.command("decide")
def state_decide_cmd(
    ctx: typer.Context,
    situation: str = typer.Argument(...),
    action: str = typer.Argument(...),
    success: bool = typer.Option(True, "--success/--failure"),
) -> None:
    """Record a decision outcome."""
    commands.state_decide(_root(ctx), situation, action, success)


@state_app.command("evidence")
def state_evidence_cmd(
    ctx: typer.Context,
    key: str = typer.Argument(...),
    supports: bool = typer.Option(True, "--supports/--contradicts"),
    note: Optional[str] = typer.Option(None),
) -> None:
    """Submit evidence for a hypothesis."""
    commands.state_evidence(_root(ctx), key, supports, note)


@conflicts_app.command("list")
def conflicts_list_cmd(
    ctx: typer.Context,
    include_resolved: bool = typer.Option(False, "--all", help="Include resolved conflicts"),
) -> None:
    """Detect and list conflicts."""
    commands.conflicts_list(_root(ctx), include_resolved)


@conflicts_app.command("resolve")
def conflicts_resolve_cmd(
    ctx: typer.Context,
    conflict_id: str = typer.Argument(...),
    resolution: str = typer.Argument(...),
) -> None:
    """Mark a conflict resolved."""
    commands.conflicts_resolve(_root(ctx), conflict_id, resolution)


@app.command("opine")
def opine_cmd(
    ctx: typer.Context,
    topic: str = typer.Argument(...),
    opinion: str = typer.Argument(...),
    confidence: float = typer.Option(0.7, min=0.0, max=1.0),
) -> None:
    """Record or update an opinion."""
    commands.opine(_root(ctx), topic, opinion, confidence)


@app.command("boot")
def boot_cmd(ctx: typer.Context) -> None:
    """Start a session and print the wake context."""
    commands.boot(_root(ctx))


@app.command("reflect")
def reflect_cmd(ctx: typer.Context) -> None:
    """Run end-of-session reflection."""
    commands.reflect(_root(ctx))


@app.command("review")
def review_cmd(ctx: typer.Context) -> None:
    """Print today's review."""
    commands.review(_root(ctx))


@app.command("prompt")
def prompt_cmd(
    ctx: typer.Context,
    max_tokens: int = typer.Option(2000, min=0, help="Rough token budget"),
    section: list[str] = typer.Option([], "--section", help="opinions, memories, lifeboat or episodes (repeatable)"),
    no_lifeboat: bool = typer.Option(False, "--no-lifeboat", help="Leave out the lifeboat checkpoint"),
) -> None:
    """Render stored state as a prompt block."""
    commands.prompt(_root(ctx), max_tokens, section, not no_lifeboat)


@config_app.command("show")
def config_show_cmd(ctx: typer.Context) -> None:
    """Show effective configuration."""
    commands.config_show(_root(ctx))


app.add_typer(memory_app, name="memory")
app.add_typer(episodes_app, name="episodes")
app.add_typer(state_app, name="state")
app.add_typer(conflicts_app, name="conflicts")
app.add_typer(config_app, name="config")


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
