"""Example Reflex app demonstrating the user grid.

Two tabs, each backed by its own ``UserGridMixin`` subclass so their
sort/filter/page/width state is fully independent:
  1. Local filtering -- any active filter pulls the whole collection and
     filters, sorts and pages it in the backend process.  Column widths
     persist to ``data/column_widths.json``.
  2. Remote filtering -- filters go to the endpoint's ``/filter`` route;
     only the current page is ever transferred.
"""

from pathlib import Path

import reflex as rx

from reflex_user_grid import UserGridMixin, user_grid

WIDTHS_PATH: Path = Path(__file__).parent / "data" / "column_widths.json"


class LocalUsersState(UserGridMixin, rx.State):
    """Grid state that filters client-side."""

    _ug_page_size: int = 10
    _ug_filter_mode: str = "local"
    _ug_widths_path: str = str(WIDTHS_PATH)


class RemoteUsersState(UserGridMixin, rx.State):
    """Grid state that delegates filtering to the endpoint."""

    _ug_page_size: int = 20
    _ug_filter_mode: str = "remote"


def _intro(text: str) -> rx.Component:
    return rx.text(text, margin_bottom="1em", color="var(--gray-11)")


def local_tab() -> rx.Component:
    return rx.box(
        _intro(
            "Filters match case-insensitive substrings; gender accepts M/F or "
            "the Russian М/Ж. Drag a header edge to resize a column."
        ),
        user_grid(LocalUsersState, height="60vh"),
        padding_top="1em",
    )


def remote_tab() -> rx.Component:
    return rx.box(
        _intro("Filters are sent to the endpoint, which matches values exactly."),
        user_grid(RemoteUsersState, height="60vh"),
        padding_top="1em",
    )


def index() -> rx.Component:
    """Render the main page with tabs."""
    return rx.box(
        rx.heading("User Grid -- Reflex Demo", size="6", margin_bottom="1em"),
        rx.tabs.root(
            rx.tabs.list(
                rx.tabs.trigger("Local filtering", value="local"),
                rx.tabs.trigger("Remote filtering", value="remote"),
            ),
            rx.tabs.content(local_tab(), value="local"),
            rx.tabs.content(remote_tab(), value="remote"),
            default_value="local",
        ),
        padding="2em",
        max_width="1600px",
        margin="0 auto",
    )


app = rx.App()
app.add_page(index, on_load=[LocalUsersState.ug_load, RemoteUsersState.ug_load])
