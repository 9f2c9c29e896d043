"""
Maintenance page rendering.

Renders an optional HTML template with string.Template placeholders
($sales_channel_name, $retry_after), or a built-in page.
"""

import html
import logging
import string
from functools import lru_cache
from pathlib import Path
from typing import Optional

logger = logging.getLogger("storefront.maintenance_page")

DEFAULT_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="robots" content="noindex">
<title>$sales_channel_name - Maintenance</title>
</head>
<body>
<main>
<h1>We'll be back soon</h1>
<p>$sales_channel_name is currently undergoing maintenance.
Please try again in a few minutes.</p>
</main>
</body>
</html>
"""


@lru_cache(maxsize=8)
def _load_template(template_path: str) -> string.Template:
    return string.Template(Path(template_path).read_text(encoding="utf-8"))


def load_template(template_path: Optional[str]) -> string.Template:
    if template_path:
        try:
            return _load_template(template_path)
        except OSError as e:
            logger.error(f"Failed to read maintenance template {template_path}: {e}")
    return string.Template(DEFAULT_TEMPLATE)


def render_maintenance_page(
    sales_channel_name: Optional[str], retry_after: int, template_path: Optional[str] = None
) -> str:
    template = load_template(template_path)
    return template.safe_substitute(
        sales_channel_name=html.escape(sales_channel_name or "This shop"),
        retry_after=retry_after,
    )
