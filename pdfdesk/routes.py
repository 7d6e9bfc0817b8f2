"""
Routes
======
Path → page table for the browser shell and nav highlighting.
Tool pages count as children of the "PDF Tools" nav entry.
"""

from __future__ import annotations

from dataclasses import dataclass, field

HOME = "/"
PDF_TOOLS = "/pdf-tools"

ROUTES: dict[str, str] = {
    "/": "page-home",
    "/pdf-tools": "page-pdf-tools",
    "/merge-pdf": "page-merge-pdf",
    "/split-pdf": "page-split-pdf",
    "/compress-pdf": "page-compress-pdf",
    "/pdf-to-image": "page-pdf-to-image",
    "/image-to-pdf": "page-image-to-pdf",
}

TOOL_ROUTES = frozenset({
    "/merge-pdf",
    "/split-pdf",
    "/compress-pdf",
    "/pdf-to-image",
    "/image-to-pdf",
})

# (route, label) in display order
NAV_LINKS: tuple[tuple[str, str], ...] = (
    ("/", "Home"),
    ("/pdf-tools", "PDF Tools"),
    ("/merge-pdf", "Merge PDF"),
    ("/split-pdf", "Split PDF"),
    ("/compress-pdf", "Compress PDF"),
    ("/pdf-to-image", "PDF to Image"),
    ("/image-to-pdf", "Image to PDF"),
)


@dataclass(frozen=True)
class NavState:
    route: str
    page_id: str
    active_links: frozenset[str] = field(default_factory=frozenset)

    def is_active(self, link_route: str) -> bool:
        return link_route in self.active_links


def normalize(route: str) -> str:
    route = "/" + (route or "").strip("/")
    return route


def resolve_page(route: str) -> str:
    """Page id for a route; unknown routes fall back to home."""
    return ROUTES.get(normalize(route), ROUTES[HOME])


def navigate(route: str, nav_links=NAV_LINKS) -> NavState:
    """Visible page and highlighted nav links after navigating to ``route``."""
    route = normalize(route)
    active = set()
    for link_route, _label in nav_links:
        if link_route == route:
            active.add(link_route)
        if link_route == PDF_TOOLS and route in TOOL_ROUTES:
            active.add(link_route)
    return NavState(route=route, page_id=resolve_page(route), active_links=frozenset(active))
