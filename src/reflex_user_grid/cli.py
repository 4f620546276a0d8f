"""CLI for reflex-user-grid -- browse a remote user list in the browser.

Usage::

    # Browse the default endpoint
    user-grid view

    # Another endpoint, 20 rows per page, widths persisted to a file
    user-grid view --endpoint https://example.org/users --page-size 20 --widths-file widths.json

    # Print one page headlessly
    user-grid dump --sort age:desc --filter gender=f --page 2

The ``view`` command uses the reusable ``UserGridMixin`` and ``user_grid``
helpers; ``dump`` drives the same ``GridController`` without a browser.
"""

import asyncio
import contextlib
import os
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Annotated, Optional

import httpx
import typer

from reflex_user_grid.controller import GridController
from reflex_user_grid.coordinator import DEFAULT_ENDPOINT, RequestCoordinator
from reflex_user_grid.fields import display_row
from reflex_user_grid.models import FILTER_KEYS, PAGE_SIZES, SORT_KEYS, GridSnapshot

app = typer.Typer(
    name="user-grid",
    help="Browse a paginated remote user list with sorting, filtering and paging.",
    no_args_is_help=True,
)


def _build_app_code(
    endpoint: str,
    page_size: int,
    filter_mode: str,
    widths_file: Path | None,
    title: str,
) -> str:
    """Generate the Reflex app module source code."""
    widths_path = str(widths_file.resolve()) if widths_file else ""

    # Use placeholder substitution to avoid escaping nightmares.
    template = _APP_TEMPLATE
    template = template.replace("__ENDPOINT__", repr(endpoint))
    template = template.replace("__PAGE_SIZE__", str(page_size))
    template = template.replace("__FILTER_MODE__", repr(filter_mode))
    template = template.replace("__WIDTHS_PATH__", repr(widths_path))
    template = template.replace("__TITLE__", repr(title))
    return template


# ---------------------------------------------------------------------------
# App template -- uses __PLACEHOLDER__ tokens for dynamic parts.
# ---------------------------------------------------------------------------

_APP_TEMPLATE = '''"""Auto-generated user grid app."""

import reflex as rx

from reflex_user_grid import UserGridMixin, user_grid


class UsersState(UserGridMixin, rx.State):
    """Viewer state using UserGridMixin."""

    _ug_endpoint: str = __ENDPOINT__
    _ug_page_size: int = __PAGE_SIZE__
    _ug_filter_mode: str = __FILTER_MODE__
    _ug_widths_path: str = __WIDTHS_PATH__


def index() -> rx.Component:
    return rx.box(
        rx.heading(__TITLE__, size="6", margin_bottom="0.2em"),
        rx.text(
            "Click a row to open the user card.",
            color="var(--gray-10)",
            margin_bottom="1em",
        ),
        user_grid(UsersState),
        padding="2em",
        max_width="1600px",
        margin="0 auto",
    )


app = rx.App()
app.add_page(index, on_load=UsersState.ug_load)
'''


def _parse_sort(sort: str | None) -> tuple[str, str] | None:
    if not sort:
        return None
    key, _, order = sort.partition(":")
    order = order or "asc"
    if key not in SORT_KEYS and key not in FILTER_KEYS:
        raise typer.BadParameter(f"unknown sort key {key!r}; choose from {', '.join(SORT_KEYS)}")
    if order not in ("asc", "desc"):
        raise typer.BadParameter(f"sort order must be asc or desc, got {order!r}")
    return key, order


def _parse_filters(filters: list[str]) -> dict[str, str]:
    parsed: dict[str, str] = {}
    for item in filters:
        key, sep, value = item.partition("=")
        if not sep or key not in FILTER_KEYS:
            raise typer.BadParameter(
                f"filters look like KEY=VALUE with KEY in {', '.join(FILTER_KEYS)}; got {item!r}"
            )
        parsed[key] = value
    return parsed


async def _dump_page(
    coordinator: RequestCoordinator,
    page: int,
    page_size: int,
    sort: tuple[str, str] | None,
    filters: dict[str, str],
) -> GridSnapshot:
    controller = GridController(coordinator, page_size=page_size, debounce_delay=0)
    try:
        for key, value in filters.items():
            controller.set_filter(key, value)
        await controller.wait_idle()
        if sort is not None:
            key, order = sort
            controller.toggle_sort(key)
            if order == "desc":
                controller.toggle_sort(key)
        # Supersedes anything scheduled above; only this fetch applies.
        controller.load()
        await controller.wait_idle()
        if page != 1:
            # The first fetch established the total; now jump.
            controller.set_page(page)
            await controller.wait_idle()
        return controller.snapshot()
    finally:
        await controller.aclose()


def _make_coordinator(endpoint: str, filter_mode: str) -> RequestCoordinator:
    return RequestCoordinator(endpoint=endpoint, filter_mode=filter_mode)  # type: ignore[arg-type]


@app.command()
def dump(
    endpoint: Annotated[str, typer.Option("--endpoint", "-e", help="User list endpoint URL")] = DEFAULT_ENDPOINT,
    page: Annotated[int, typer.Option("--page", "-p", help="Page number (1-based)")] = 1,
    page_size: Annotated[int, typer.Option("--page-size", "-n", help="Rows per page (5, 10, 20 or 50)")] = 10,
    sort: Annotated[Optional[str], typer.Option("--sort", "-s", help="KEY[:asc|desc], e.g. fio or age:desc")] = None,
    filters: Annotated[Optional[list[str]], typer.Option("--filter", "-f", help="KEY=VALUE, repeatable")] = None,
    filter_mode: Annotated[str, typer.Option("--filter-mode", help="local or remote")] = "local",
) -> None:
    """Fetch one page through the grid engine and print it as TSV."""
    if page_size not in PAGE_SIZES:
        raise typer.BadParameter(f"page size must be one of {PAGE_SIZES}")
    if filter_mode not in ("local", "remote"):
        raise typer.BadParameter("filter mode must be local or remote")
    parsed_sort = _parse_sort(sort)
    parsed_filters = _parse_filters(filters or [])

    coordinator = _make_coordinator(endpoint, filter_mode)
    # Engine diagnostics go to stderr so stdout stays plain TSV.
    with contextlib.redirect_stdout(sys.stderr):
        snapshot = asyncio.run(_dump_page(coordinator, page, page_size, parsed_sort, parsed_filters))

    if snapshot.error:
        typer.echo(snapshot.error, err=True)
        raise typer.Exit(code=1)

    typer.echo("\t".join(FILTER_KEYS))
    for record in snapshot.rows:
        row = display_row(record, FILTER_KEYS)
        typer.echo("\t".join(row[key] for key in FILTER_KEYS))
    typer.echo(f"page {snapshot.page} of {snapshot.total_pages}, {snapshot.total} users")


@app.command()
def view(
    endpoint: Annotated[str, typer.Option("--endpoint", "-e", help="User list endpoint URL")] = DEFAULT_ENDPOINT,
    page_size: Annotated[int, typer.Option("--page-size", "-n", help="Initial rows per page")] = 10,
    filter_mode: Annotated[str, typer.Option("--filter-mode", help="local or remote")] = "local",
    widths_file: Annotated[Optional[Path], typer.Option("--widths-file", "-w", help="Persist column widths to this JSON file")] = None,
    port: Annotated[int, typer.Option("--port", "-p", help="Port for the Reflex frontend")] = 3000,
    title: Annotated[str, typer.Option("--title", "-t", help="Page title")] = "Users",
) -> None:
    """Launch the user grid in an interactive browser app."""
    if page_size not in PAGE_SIZES:
        typer.echo(f"Error: page size must be one of {PAGE_SIZES}", err=True)
        raise typer.Exit(code=1)
    if filter_mode not in ("local", "remote"):
        typer.echo("Error: --filter-mode must be local or remote", err=True)
        raise typer.Exit(code=1)

    try:
        httpx.URL(endpoint)
    except httpx.InvalidURL as exc:
        typer.echo(f"Error: invalid endpoint URL: {exc}", err=True)
        raise typer.Exit(code=1)

    app_code = _build_app_code(endpoint, page_size, filter_mode, widths_file, title)

    # Create a temporary Reflex app directory.
    tmp_dir = Path(tempfile.mkdtemp(prefix="user_grid_"))
    app_name = "user_grid_app"
    app_pkg = tmp_dir / app_name
    app_pkg.mkdir()
    (app_pkg / "__init__.py").write_text("")
    (app_pkg / f"{app_name}.py").write_text(app_code)

    rxconfig_code = f"""import reflex as rx
config = rx.Config(app_name="{app_name}", frontend_port={port})
"""
    (tmp_dir / "rxconfig.py").write_text(rxconfig_code)

    typer.echo(f"Launching user grid for: {endpoint}")
    typer.echo(f"Page size: {page_size} | Filter mode: {filter_mode} | Port: {port}")

    os.chdir(tmp_dir)

    # Step 1: initialise the Reflex project (creates .web/ with node_modules).
    # We use subprocess because reflex's CLI calls sys.exit() on completion.
    typer.echo("Initializing Reflex project...")
    subprocess.run(
        [sys.executable, "-m", "reflex", "init"],
        cwd=str(tmp_dir),
        check=True,
    )

    # Step 2: run the app via exec (replaces this process).
    typer.echo("Starting viewer...")
    os.execvp(sys.executable, [sys.executable, "-m", "reflex", "run"])


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
