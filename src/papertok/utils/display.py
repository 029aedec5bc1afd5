"""Console output utilities."""

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..core.models import Paper, PaperSummary, RankedPaper, TermGlossaryItem, UserPreference

console = Console()

# Category codes offered during onboarding
KNOWN_CATEGORIES: list[tuple[str, str, str]] = [
    ("cs.AI", "人工智能", "Artificial Intelligence"),
    ("cs.CL", "计算语言学", "Computation and Language"),
    ("cs.CV", "计算机视觉", "Computer Vision"),
    ("cs.LG", "机器学习", "Machine Learning"),
    ("cs.NE", "神经网络", "Neural and Evolutionary Computing"),
    ("stat.ML", "统计机器学习", "Machine Learning (Statistics)"),
    ("cs.CR", "密码学", "Cryptography and Security"),
    ("cs.DB", "数据库", "Databases"),
    ("cs.DC", "分布式计算", "Distributed Computing"),
    ("cs.IR", "信息检索", "Information Retrieval"),
]


def print_paper_list(papers: list[RankedPaper], show_score: bool = True) -> None:
    """Display a list of papers."""
    table = Table(
        title="Feed",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold cyan",
    )

    table.add_column("#", style="dim", width=3)
    table.add_column("arXiv ID", style="green", width=12)
    table.add_column("Title", width=50)
    table.add_column("Category", style="yellow", width=10)
    table.add_column("Published", style="dim", width=10)
    if show_score:
        table.add_column("Score", style="magenta", width=6)

    for i, rec in enumerate(papers, 1):
        paper = rec.paper
        title = paper.title[:47] + "..." if len(paper.title) > 50 else paper.title
        if rec.summary and rec.summary.title_chinese:
            title = f"{title}\n[dim]{rec.summary.title_chinese}[/dim]"

        row = [
            str(i),
            paper.arxiv_id,
            title,
            paper.primary_category,
            paper.published.strftime("%Y-%m-%d"),
        ]
        if show_score:
            row.append(f"{rec.score:.3f}")

        table.add_row(*row)

    console.print(table)


def print_paper_detail(
    paper: Paper,
    summary: PaperSummary | None = None,
    terms: list[TermGlossaryItem] | None = None,
) -> None:
    """Display paper details."""
    # Title
    console.print(
        Panel(
            f"[bold]{paper.title}[/bold]",
            title=f"[green]{paper.arxiv_id}[/green]",
            border_style="blue",
        )
    )
    if summary and summary.title_chinese:
        console.print(f"[magenta]{summary.title_chinese}[/magenta]")

    # Metadata
    console.print(f"[cyan]Authors:[/cyan] {', '.join(paper.authors[:5])}")
    if len(paper.authors) > 5:
        console.print(f"       and {len(paper.authors) - 5} more")
    if summary and summary.institutions:
        console.print(f"[cyan]Institutions:[/cyan] {summary.institutions}")
    console.print(f"[cyan]Categories:[/cyan] {', '.join(paper.categories)}")
    console.print(f"[cyan]Published:[/cyan] {paper.published.strftime('%Y-%m-%d')}")
    if paper.pdf_url:
        console.print(f"[cyan]PDF:[/cyan] {paper.pdf_url}")

    # Summary
    if summary and summary.is_complete:
        if summary.one_liner:
            console.print()
            console.print(
                Panel(
                    summary.one_liner,
                    title="[yellow]One-liner[/yellow]",
                    border_style="yellow",
                )
            )
        for label, text in (
            ("Problem", summary.problem),
            ("Method", summary.method),
            ("Result", summary.result),
        ):
            if text:
                console.print()
                console.print(Panel(text, title=f"[cyan]{label}[/cyan]", border_style="cyan"))
        console.print(f"[dim]Model: {summary.model_name}[/dim]")

    if terms:
        print_terms(terms)

    # Abstract
    console.print()
    console.print(
        Panel(
            paper.abstract,
            title="[dim]Abstract[/dim]",
            border_style="dim",
        )
    )


def print_terms(terms: list[TermGlossaryItem]) -> None:
    """Display Terms to Know."""
    table = Table(title="Terms to Know", box=box.SIMPLE, show_lines=True)
    table.add_column("Term", style="green")
    table.add_column("中文", style="magenta")
    table.add_column("Explanation")
    table.add_column("In this paper", style="dim")

    for term in terms:
        table.add_row(term.term_english, term.term_chinese, term.explanation, term.context_meaning)

    console.print()
    console.print(table)


def print_preference(preference: UserPreference | None) -> None:
    """Display the selected categories."""
    if preference is None or not preference.selected_categories:
        console.print("[dim]No categories selected[/dim]")
        return

    names = {code: english for code, _, english in KNOWN_CATEGORIES}
    table = Table(title="Selected Categories", box=box.SIMPLE)
    table.add_column("Category", style="green")
    table.add_column("Name", style="yellow")

    for code in preference.selected_categories:
        table.add_row(code, names.get(code, ""))

    console.print(table)
    console.print(f"[dim]Updated: {preference.updated_at.strftime('%Y-%m-%d %H:%M')}[/dim]")


def print_success(message: str) -> None:
    """Display a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Display an error message."""
    console.print(f"[red]✗[/red] {message}")


def print_info(message: str) -> None:
    """Display an info message."""
    console.print(f"[blue]ℹ[/blue] {message}")
