# display.py
# All terminal output for the skipchain explorer.
#
# This module owns presentation entirely. The scanner and the walker never
# format strings. Swap this file to change the entire UI.
#
# Colour language:
#   cyan: blocks and chain links
#   magenta: instructions and their arguments
#   yellow: scan progress and warnings
#   green: completed scans
#   red: failures, and the clicked block inside a result list

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.rule import Rule
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from skipchain_explorer.codec import display_value, instruction_hash
from skipchain_explorer.models import (
    Block,
    DecodeWarning,
    DirectionFailed,
    Instruction,
    Match,
    ScanOutcome,
    Transaction,
)

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    if len(value) > max_len:
        return value[:max_len] + "…"
    return value


def _add_instruction(parent: Tree, position: int, instruction: Instruction) -> None:
    node = parent.add(
        f"[magenta]{instruction.kind.capitalize()} instruction {position}[/magenta]"
        f"  [dim]contract:[/dim] [white]{escape(instruction.contract_id)}[/white]"
    )
    node.add(f"[dim]Hash:[/dim] {instruction_hash(instruction)}")
    node.add(f"[dim]Instance ID:[/dim] {instruction.instance_id.hex()}")
    for i, arg in enumerate(instruction.args):
        node.add(f"{i}) [bold]{escape(arg.name)}[/bold]  [dim]{escape(_mono(display_value(arg.value), 80))}[/dim]")


# ---------------------------------------------------------------------------
# Block detail
# ---------------------------------------------------------------------------


def block_detail(block: Block, transactions: list[Transaction]) -> None:
    console.print()
    tree = Tree(f"[bold cyan]Block {block.index}[/bold cyan]  [dim]Hash: {block.hex_hash}[/dim]")

    for i, transaction in enumerate(transactions):
        accepted = "[green]Accepted[/green]" if transaction.accepted else "[red]Not accepted[/red]"
        tx_node = tree.add(f"Transaction {i} {accepted}")
        for j, instruction in enumerate(transaction.instructions):
            _add_instruction(tx_node, j, instruction)

    details = tree.add("[cyan]Block details[/cyan]")
    verifiers = details.add(f"Verifiers: {len(block.verifiers)}")
    for j, uid in enumerate(block.verifiers):
        verifiers.add(f"Verifier: {j}, ID: {uid.hex()}")
    backlinks = details.add(f"Backlinks: {len(block.backlinks)}")
    for j, value in enumerate(block.backlinks):
        backlinks.add(f"Backlink: {j}, Value: {value.hex()}")
    forward = details.add(f"ForwardLinks: {len(block.forward_links)}")
    for j, link in enumerate(block.forward_links):
        forward.add(f"ForwardLink: {j}, To: {link.to.hex()}")

    console.print(tree)


def block_undecodable(block: Block, reason: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold red]Block {block.index} payload could not be decoded.[/bold red]\n"
            f"[dim]{escape(reason)}[/dim]",
            title=_label("DECODE ERROR", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )


# ---------------------------------------------------------------------------
# Instance scan
# ---------------------------------------------------------------------------


def scan_started(instruction: Instruction) -> None:
    console.print()
    console.print(
        Rule(f"[yellow]INSTANCE SCAN — {instruction.instance_id.hex()}[/yellow]", style="yellow")
    )


def progress_bar() -> Progress:
    """A fresh bar for one scan's percentage stream."""
    return Progress(
        TextColumn("[yellow]Scanning chain[/yellow]"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    )


def match_found(match: Match, clicked_hash: str) -> None:
    style = "bold red" if match.block_hash == clicked_hash else "magenta"
    console.print(
        f"  [{style}]{match.instruction.kind.capitalize()}[/{style}]"
        f"  block {match.block_index}  [dim]{instruction_hash(match.instruction)[:16]}…[/dim]"
    )


def decode_warning(event: DecodeWarning) -> None:
    console.print(
        f"  [yellow]⚠ Skipped block {event.block_index}[/yellow]  [dim]{escape(_mono(event.reason, 80))}[/dim]"
    )


def direction_failed(event: DirectionFailed) -> None:
    console.print(
        Panel(
            f"[bold red]The {event.direction.value} walk stopped after block "
            f"{event.block_hash[:16]}….[/bold red]\n[dim]{escape(event.reason)}[/dim]",
            title=_label("FETCH FAILED ✗", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )


def scan_summary(
    instance_id: bytes,
    matches: list[Match],
    clicked_hash: str,
    outcome: ScanOutcome,
) -> None:
    console.print()
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="dim",
        show_header=True,
        header_style="bold dim",
        padding=(0, 1),
    )
    table.add_column("Kind", width=8)
    table.add_column("Block", justify="right", width=7)
    table.add_column("Contract", width=16)
    table.add_column("Instruction hash", style="dim white")
    table.add_column("Args", style="dim white")

    for match in sorted(matches, key=lambda m: m.block_index):
        instruction = match.instruction
        style = "bold red" if match.block_hash == clicked_hash else None
        table.add_row(
            instruction.kind,
            str(match.block_index),
            escape(instruction.contract_id),
            instruction_hash(instruction)[:24] + "…",
            escape(_mono(", ".join(f"{a.name}={display_value(a.value)}" for a in instruction.args), 40)),
            style=style,
        )

    color = {
        ScanOutcome.COMPLETED: "green",
        ScanOutcome.PARTIAL: "yellow",
        ScanOutcome.CANCELLED: "red",
    }[outcome]
    console.print(
        Panel(
            table,
            title=_label(f"SUMMARY OF INSTANCE {instance_id.hex()[:16]}…", color),
            subtitle=f"[dim]{len(matches)} instruction(s), scan {outcome.value}[/dim]",
            border_style=color,
            padding=(0, 1),
        )
    )


def halt(reason: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]{escape(reason)}[/bold white]",
            title=_label("HALT", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
    console.print()
