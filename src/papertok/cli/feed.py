"""Feed and paper commands."""
from typing import Optional

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn

from ..core.models import RankedPaper, SummaryState
from .bridge import ServiceBridge, run
from ..utils.display import (
    console, print_paper_list, print_paper_detail,
    print_success, print_error, print_info
)


def _require_paper(bridge: ServiceBridge, arxiv_id: str):
    paper = bridge.store.get_paper(arxiv_id)
    if paper is None:
        print_error(f"Paper not found in local cache: {arxiv_id}. Run 'ptk feed' first.")
        raise typer.Exit(1)
    return paper


def feed(
    pages: int = typer.Option(1, "--pages", "-p", help="Number of pages to load"),
    page_size: Optional[int] = typer.Option(None, "--page-size", help="Papers per arXiv request"),
    summarize: bool = typer.Option(False, "--summarize", "-s", help="Generate summaries for the top papers"),
    limit: int = typer.Option(20, "--limit", "-l", help="Maximum number of papers shown"),
):
    """Load the ranked feed for your categories."""
    bridge = ServiceBridge(page_size=page_size, preload_count=max(limit - 1, 0))

    categories = bridge.preferences.get_categories()
    if not categories:
        print_error("No categories selected. Add one with 'ptk prefs add-category'.")
        raise typer.Exit(1)

    print_info(f"Categories: {', '.join(categories)}")

    async def _load():
        await bridge.feed.load_first_page()
        for _ in range(pages - 1):
            if not await bridge.feed.load_next_page():
                break

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task("Fetching papers...", total=None)
        run(_load())

    if not bridge.feed.ranked_ids:
        print_info("No papers found.")
        return

    print_info(f"{len(bridge.feed.ranked_ids)} papers in feed")

    if summarize:
        async def _summarize():
            bridge.feed.prefetch_summaries(0)
            await bridge.feed.drain()

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task("Generating summaries...", total=None)
            run(_summarize())

        shown = bridge.feed.ranked_ids[:limit]
        success_count = sum(
            1 for arxiv_id in shown
            if bridge.summarization.get_state(arxiv_id) == SummaryState.COMPLETE
        )
        if success_count < len(shown):
            failed_count = len(shown) - success_count
            print_info(f"Summaries: {success_count} succeeded, {failed_count} failed")

    print_paper_list(bridge.feed.ranked_papers()[:limit])


def show(
    arxiv_id: str = typer.Argument(..., help="arXiv ID"),
    summary: bool = typer.Option(False, "--summary", "-s", help="Generate the summary if missing"),
):
    """Show paper details."""
    bridge = ServiceBridge()
    paper = _require_paper(bridge, arxiv_id)

    if summary:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task("Generating summary...", total=None)
            run(bridge.summarization.generate_summary(paper))

    print_paper_detail(
        paper,
        summary=bridge.summarization.get_summary(arxiv_id),
        terms=bridge.summarization.get_terms(arxiv_id),
    )


def summarize(
    arxiv_id: str = typer.Argument(..., help="arXiv ID"),
    regenerate: bool = typer.Option(False, "--regenerate", "-r", help="Discard the cached summary first"),
):
    """Generate the structured summary of a paper."""
    bridge = ServiceBridge()
    paper = _require_paper(bridge, arxiv_id)

    action = bridge.summarization.regenerate_summary if regenerate else bridge.summarization.generate_summary
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task("Generating summary...", total=None)
        result = run(action(paper))

    if not result.is_complete:
        print_info("The model response did not contain every section.")

    print_paper_detail(paper, summary=result, terms=bridge.summarization.get_terms(arxiv_id))


def translate(
    arxiv_id: str = typer.Argument(..., help="arXiv ID"),
):
    """Translate a paper title into Chinese."""
    bridge = ServiceBridge()
    paper = _require_paper(bridge, arxiv_id)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task("Translating title...", total=None)
        result = run(bridge.summarization.translate_title(paper))

    console.print(f"[bold]{paper.title}[/bold]")
    console.print(f"[magenta]{result.title_chinese or ''}[/magenta]")


def like(
    arxiv_id: str = typer.Argument(..., help="arXiv ID"),
    favorite: Optional[bool] = typer.Option(
        None, "--on/--off", help="Set favorite explicitly instead of toggling"
    ),
):
    """Toggle favorite on a paper."""
    bridge = ServiceBridge()
    _require_paper(bridge, arxiv_id)

    if favorite is not None:
        bridge.preferences.set_favorite(arxiv_id, favorite)
    else:
        favorite = bridge.preferences.toggle_favorite(arxiv_id)

    if favorite:
        print_success(f"Added to favorites: {arxiv_id}")
    else:
        print_success(f"Removed from favorites: {arxiv_id}")


def skip(
    arxiv_id: str = typer.Argument(..., help="arXiv ID"),
):
    """Mark a paper as skipped."""
    bridge = ServiceBridge()
    _require_paper(bridge, arxiv_id)
    bridge.preferences.mark_skipped(arxiv_id)
    print_success(f"Skipped: {arxiv_id}")


def read(
    arxiv_id: str = typer.Argument(..., help="arXiv ID"),
    seconds: float = typer.Option(0.0, "--seconds", "-t", help="Time spent reading, in seconds"),
):
    """Record that a paper was read."""
    bridge = ServiceBridge()
    _require_paper(bridge, arxiv_id)

    try:
        action = bridge.preferences.record_view(arxiv_id, seconds)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Marked as read: {arxiv_id} ({action.dwell_time_seconds:.0f}s total)")


def favorites(
    limit: int = typer.Option(50, "--limit", "-l", help="Maximum number of results"),
):
    """List favorite papers."""
    bridge = ServiceBridge()
    papers = bridge.preferences.get_favorites()[:limit]

    if not papers:
        print_info("No favorites yet.")
        return

    ranked = bridge.ranker.rank_papers(papers)
    print_paper_list(ranked)


def papers(
    limit: int = typer.Option(20, "--limit", "-l", help="Maximum number of results"),
):
    """List papers in the local cache, newest first."""
    bridge = ServiceBridge()
    cached = bridge.store.get_all_papers(limit=limit)

    if not cached:
        print_info("No cached papers. Run 'ptk feed' first.")
        return

    print_info(f"{len(cached)} of {bridge.store.count_papers()} cached papers")
    rows = [RankedPaper(paper=p, score=0.0, summary=bridge.store.get_summary(p.arxiv_id)) for p in cached]
    print_paper_list(rows, show_score=False)
