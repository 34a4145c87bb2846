from __future__ import annotations

import json
import re
from collections.abc import Iterable
from typing import Any, Protocol


# Action and mapping records are operator-authored; the JSON boundary below only
# guarantees the payload cannot terminate the surrounding <script> element.
_SCRIPT_UNSAFE = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}
_SCRIPT_UNSAFE_RE = re.compile("[" + "".join(_SCRIPT_UNSAFE) + "]")
_CLOSING_BODY_RE = re.compile(r"</body\s*>", re.IGNORECASE)

_BINDING_SCRIPT = """
<script data-sitebind="actions">(function (actions, siteName) {
  function fieldValue(name) {
    var el = document.querySelector('[name="' + CSS.escape(name) + '"]')
      || document.querySelector('[data-field="' + CSS.escape(name) + '"]')
      || document.getElementById(name);
    if (!el) { return ''; }
    return el.value || el.textContent || '';
  }
  actions.forEach(function (action) {
    var elements;
    try { elements = document.querySelectorAll(action.selector || ''); } catch (e) { return; }
    elements.forEach(function (el) {
      if (el.__sitebindBound) { return; }
      el.__sitebindBound = true;
      el.addEventListener('click', function (ev) {
        ev.preventDefault();
        var body = {};
        (action.fields || []).forEach(function (name) { body[name] = fieldValue(name); });
        var url = '/api/sites/' + encodeURIComponent(siteName)
          + '/endpoints/' + encodeURIComponent(action.apiName) + '/execute';
        fetch(url, {
          method: 'POST',
          headers: {'Content-Type': 'application/json'},
          body: JSON.stringify({body: body})
        }).catch(function (err) { if (window.console) { console.error(err); } });
      });
    });
  });
})(%(actions)s, %(site)s);</script>
"""


class ActionRule(Protocol):
    id: str
    selector: str
    api_name: str
    method: str
    fields: list[str]
    page: str | None


def script_safe_json(value: Any) -> str:
    encoded = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return _SCRIPT_UNSAFE_RE.sub(lambda match: _SCRIPT_UNSAFE[match.group(0)], encoded)


def applicable_actions(actions: Iterable[ActionRule], page_path: str) -> list[ActionRule]:
    return [action for action in actions if not action.page or action.page == page_path]


def _action_payload(action: ActionRule) -> dict[str, Any]:
    return {
        "id": action.id,
        "selector": action.selector,
        "apiName": action.api_name,
        "method": action.method,
        "fields": list(action.fields or []),
        "page": action.page,
    }


def build_action_script(actions: Iterable[ActionRule], *, site_name: str) -> str:
    payload = [_action_payload(action) for action in actions]
    return _BINDING_SCRIPT % {"actions": script_safe_json(payload), "site": script_safe_json(site_name)}


def inject_actions(html: str, actions: Iterable[ActionRule], *, site_name: str, page_path: str) -> str:
    """
    Append the click-binding script for the actions that apply to ``page_path``.

    The script goes right before the last ``</body>`` tag, or at the end of the
    document when there is none. Nothing is emitted when no action applies.
    """

    selected = applicable_actions(actions, page_path)
    if not selected:
        return html

    script = build_action_script(selected, site_name=site_name)
    closing_tags = list(_CLOSING_BODY_RE.finditer(html))
    if not closing_tags:
        return html + script

    insert_at = closing_tags[-1].start()
    return html[:insert_at] + script + html[insert_at:]
