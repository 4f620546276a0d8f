"""Reflex configuration for the user grid demo app."""

import reflex as rx

config = rx.Config(
    app_name="user_grid_demo",
    plugins=[rx.plugins.SitemapPlugin()],
)
