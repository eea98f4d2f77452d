"""
Rendering of the panel page
"""

from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATE_DIR = Path(__file__).parent / "templates"

template_env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True
)


def render_panel_html(title: str,
                      websocket_url: Optional[str] = None,
                      default_code: str = "",
                      default_variables: str = "{}") -> str:
    """
    Render the panel page.

    Args:
        title: Page title
        websocket_url: Message channel URL; derived from the page location if None
        default_code: Initial contents of the script editor
        default_variables: Initial contents of the variables JSON editor
    """
    template = template_env.get_template("panel.html")
    return template.render(
        title=title,
        websocket_url=websocket_url,
        default_code=default_code,
        default_variables=default_variables,
    )
