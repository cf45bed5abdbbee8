"""Inline delivery of template sources and render data to browser code.

Client code can re-render server templates by reading the raw source out of a
``<script type="text/x-template">`` tag and the partials and indexed render
data out of two globals::

    const source = document.getElementById("tpl-emails__welcome").innerHTML;
    const data = __template_server_data["emails/welcome"]["3"];
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import orjson

if TYPE_CHECKING:
    from .pipeline import RenderPipeline

SCRIPT_TYPE = "text/x-template"
SCRIPT_ID_PREFIX = "tpl-"
PARTIALS_GLOBAL = "__template_server_partials"
DATA_GLOBAL = "__template_server_data"


def script_id(name: str) -> str:
    return SCRIPT_ID_PREFIX + name.replace("/", "__")


def wrap_template(name: str, source: str) -> str:
    """Wrap a raw template source in a script tag, flattened to one line."""
    output = source
    for char in ("\n", "\t", "\r"):
        output = output.replace(char, "")
    output = output.strip()
    return f'<script id="{script_id(name)}" type="{SCRIPT_TYPE}">{output}</script>'


def to_script_json(value: Any, pretty: bool = False) -> str:
    """Serialize ``value`` for embedding inside a ``<script>`` element."""
    option = orjson.OPT_NON_STR_KEYS | orjson.OPT_SORT_KEYS
    if pretty:
        option |= orjson.OPT_INDENT_2
    return orjson.dumps(value, option=option, default=str).decode("utf-8").replace("</", "<\\/")


def assign_global(name: str, value: Any, pretty: bool = False) -> str:
    return (
        '<script type="text/javascript">\n'
        f"\t{name} = {to_script_json(value, pretty=pretty)};\n"
        "</script>"
    )


def export_sources(sources: Mapping[str, str]) -> str:
    return "".join(wrap_template(name, source) for name, source in sources.items())


def export_templates(pipeline: RenderPipeline) -> str:
    """Every template in the store as a script tag, then partials and render data."""
    parts = [
        wrap_template(name, pipeline.get_template(name))
        for name in sorted(pipeline.store.list_all())
        if pipeline.store.exists(name)
    ]
    parts.append(assign_global(PARTIALS_GLOBAL, dict(pipeline.partials)))
    parts.append(assign_global(DATA_GLOBAL, pipeline.render_data(), pretty=True))
    return "\n".join(parts)


__all__ = [
    "DATA_GLOBAL",
    "PARTIALS_GLOBAL",
    "SCRIPT_TYPE",
    "assign_global",
    "export_sources",
    "export_templates",
    "script_id",
    "to_script_json",
    "wrap_template",
]
