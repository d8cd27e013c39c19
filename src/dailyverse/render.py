"""Rendering of the legacy script-global form of the current snapshot.

Older pages load `daily.js` with a `<script>` tag and read `window.dailyVerse`.
"""
import json

import pystache


LEGACY_JS_TEMPLATE = "{{=<< >>=}}window.<<global_name>>=<<&payload>>;\n"


def script_safe_json(data: object) -> str:
    """JSON that can sit inside a <script> element without closing it."""
    return json.dumps(data, ensure_ascii=False).replace("</", "<\\/")


def render_legacy_js(payload: dict[str, object], global_name: str = "dailyVerse") -> str:
    rnd = pystache.Renderer(escape=lambda s: s)
    template = pystache.parse(LEGACY_JS_TEMPLATE)
    context = {
        "global_name": global_name,
        "payload": script_safe_json(payload),
    }
    return rnd.render(template, context)
