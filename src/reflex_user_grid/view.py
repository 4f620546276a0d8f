"""Reflex components rendering a :class:`UserGridMixin` state.

No grid logic lives here: every gesture is forwarded to a ``ug_*`` event
handler and everything displayed comes from ``ug_*`` state vars.
"""

from typing import Any

import reflex as rx
from reflex.components.el import Div

from reflex_user_grid.models import COLUMNS, PAGE_SIZES, Column


# ---------------------------------------------------------------------------
# Pointer events
# ---------------------------------------------------------------------------
# Plain DOM mouse events carry no payload to the backend by default.  The
# resize gesture needs the pointer X, so this surface forwards ``clientX``.

def _client_x_spec(event: rx.Var) -> list[rx.Var]:
    return [rx.Var(f"{event}.clientX")]


class PointerSurface(Div):
    """A ``<div>`` whose mouse events report the pointer X coordinate."""

    on_mouse_down: rx.EventHandler[_client_x_spec]
    on_mouse_move: rx.EventHandler[_client_x_spec]
    on_mouse_up: rx.EventHandler[_client_x_spec]


# ---------------------------------------------------------------------------
# Pieces
# ---------------------------------------------------------------------------

def _header_cell(state_cls: type, column: Column) -> rx.Component:
    return rx.el.th(
        rx.el.button(
            column.label,
            rx.el.span(state_cls.ug_sort_icons[column.key], margin_left="0.4em"),
            type="button",
            on_click=state_cls.ug_toggle_sort(column.key),
            background="none",
            border="none",
            cursor="pointer",
            font_weight="600",
        ),
        PointerSurface.create(
            on_mouse_down=state_cls.ug_begin_resize(column.key),
            position="absolute",
            top="0",
            right="0",
            width="6px",
            height="100%",
            cursor="col-resize",
        ),
        width=state_cls.ug_widths[column.key],
        position="relative",
        text_align="left",
    )


def _filter_cell(state_cls: type, column: Column) -> rx.Component:
    if column.key == "gender":
        control = rx.el.select(
            rx.el.option("All", value=""),
            rx.el.option("M", value="male"),
            rx.el.option("F", value="female"),
            value=state_cls.ug_filters[column.key],
            on_change=state_cls.ug_set_filter(column.key),
            width="100%",
        )
    else:
        control = rx.el.input(
            type="text",
            placeholder=column.label,
            value=state_cls.ug_filters[column.key],
            on_change=state_cls.ug_set_filter(column.key),
            width="100%",
        )
    return rx.el.th(control, width=state_cls.ug_widths[column.key])


def _body_row(state_cls: type, row: rx.Var) -> rx.Component:
    return rx.el.tr(
        *[
            rx.el.td(
                row[column.key],
                width=state_cls.ug_widths[column.key],
                text_align="right" if column.numeric else "left",
                overflow="hidden",
                text_overflow="ellipsis",
                white_space="nowrap",
            )
            for column in COLUMNS
        ],
        on_click=state_cls.ug_select_row(row["id"]),
        cursor="pointer",
    )


def user_grid_toolbar(state_cls: type) -> rx.Component:
    """Status line plus the reset-filters and refresh buttons."""
    return rx.hstack(
        rx.text(
            rx.cond(
                state_cls.ug_loading,
                "Loading users...",
                "Showing " + state_cls.ug_rows.length().to(str)  # type: ignore[union-attr]
                + " of " + state_cls.ug_total.to(str) + " users",  # type: ignore[union-attr]
            ),
            size="2",
            color="var(--gray-11)",
        ),
        rx.spacer(),
        rx.button("Reset filters", variant="outline", on_click=state_cls.ug_reset_filters),
        rx.button("Refresh", on_click=state_cls.ug_refresh),
        align="center",
        width="100%",
        margin_bottom="0.5em",
    )


def user_grid_pagination(state_cls: type) -> rx.Component:
    """First/prev/next/last buttons, page indicator and page-size select."""
    return rx.hstack(
        rx.button("«", on_click=state_cls.ug_go_to("first"), disabled=~state_cls.ug_can_prev, size="1"),
        rx.button("‹", on_click=state_cls.ug_go_to("prev"), disabled=~state_cls.ug_can_prev, size="1"),
        rx.text(
            "Page ", state_cls.ug_page.to(str), " of ", state_cls.ug_total_pages.to(str),  # type: ignore[union-attr]
            size="2",
        ),
        rx.button("›", on_click=state_cls.ug_go_to("next"), disabled=~state_cls.ug_can_next, size="1"),
        rx.button("»", on_click=state_cls.ug_go_to("last"), disabled=~state_cls.ug_can_next, size="1"),
        rx.text("Rows per page", size="2", margin_left="1em"),
        rx.el.select(
            *[rx.el.option(str(size), value=str(size)) for size in PAGE_SIZES],
            value=state_cls.ug_page_size.to(str),  # type: ignore[union-attr]
            on_change=state_cls.ug_set_page_size,
        ),
        align="center",
        spacing="2",
        margin_top="0.5em",
    )


def user_grid_detail(state_cls: type) -> rx.Component:
    """Modal card for the selected record."""
    detail = state_cls.ug_detail

    def field(label: str, *lines: Any) -> rx.Component:
        return rx.box(
            rx.text(label, size="1", color="var(--gray-10)"),
            *[rx.text(line, size="2") for line in lines],
        )

    return rx.dialog.root(
        rx.dialog.content(
            rx.dialog.title(detail["name"]),
            rx.badge(detail["badge"]),
            rx.grid(
                field("Phone", detail["phone"]),
                field("Email", detail["email"]),
                field("Height / Weight", detail["body"]),
                field("Address", detail["street"], detail["locality"], detail["region"]),
                rx.image(src=detail["image"], alt="Avatar", width="96px"),
                columns="2",
                spacing="3",
                margin_top="1em",
            ),
            rx.dialog.close(rx.button("Close", variant="soft", margin_top="1em")),
        ),
        open=state_cls.ug_detail_open,
        on_open_change=state_cls.ug_set_detail_open,
    )


def user_grid(state_cls: type, *, height: str = "auto", width: str = "100%") -> rx.Component:
    """Return the complete grid bound to a :class:`UserGridMixin` subclass.

    Args:
        state_cls: The ``rx.State`` subclass that also inherits from
            :class:`~reflex_user_grid.state.UserGridMixin`.
        height: CSS height of the scrollable table area.
        width: CSS width of the component.

    Returns:
        A Reflex component: toolbar, table, pagination, error banner,
        detail modal and (while dragging) the resize overlay.
    """
    table = rx.el.table(
        rx.el.thead(
            rx.el.tr(*[_header_cell(state_cls, c) for c in COLUMNS]),
            rx.el.tr(*[_filter_cell(state_cls, c) for c in COLUMNS]),
        ),
        rx.el.tbody(rx.foreach(state_cls.ug_rows, lambda row: _body_row(state_cls, row))),
        table_layout="fixed",
        border_collapse="collapse",
        width="max-content",
    )

    return rx.box(
        user_grid_toolbar(state_cls),
        rx.box(
            table,
            rx.cond(
                ~state_cls.ug_loading & (state_cls.ug_rows.length() == 0),  # type: ignore[union-attr]
                rx.text("No users match the current filters.", color="var(--gray-10)", padding="1em"),
            ),
            overflow="auto",
            height=height,
        ),
        user_grid_pagination(state_cls),
        rx.cond(
            state_cls.ug_error != "",
            rx.callout(state_cls.ug_error, color_scheme="red", icon="triangle_alert", margin_top="0.5em"),
        ),
        user_grid_detail(state_cls),
        rx.cond(
            state_cls.ug_resizing,
            PointerSurface.create(
                on_mouse_move=state_cls.ug_move_resize,
                on_mouse_up=state_cls.ug_end_resize,
                position="fixed",
                top="0",
                left="0",
                width="100vw",
                height="100vh",
                cursor="col-resize",
                z_index="1000",
            ),
        ),
        width=width,
    )
