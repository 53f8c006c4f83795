"""HTML pages returned by the provider redirect callback."""

import json
from typing import Any

from liquid import Environment

from telegate.core.modules.auth.models import AuthResult

SUCCESS_MESSAGE_TYPE = "auth-success"

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <title>{{ title | escape }}</title>
  </head>
  <body>
    <h1>{{ title | escape }}</h1>
    <p>{{ message | escape }}</p>
    {%- if payload %}
    <script>
      (function () {
        var target = window.opener || (window.parent !== window ? window.parent : null);
        if (target) {
          target.postMessage({{ payload }}, {{ target_origin }});
        }
        setTimeout(function () { window.close(); }, 1000);
      })();
    </script>
    {%- endif %}
  </body>
</html>
"""

_env = Environment()
_page = _env.from_string(_PAGE_TEMPLATE)


def script_json(value: Any) -> str:
    """JSON that is safe to embed inside a <script> element."""
    return json.dumps(value).replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


def render_success_page(result: AuthResult, target_origin: str) -> str:
    """Page relaying the new session to the window that opened the login."""
    payload = {"type": SUCCESS_MESSAGE_TYPE, **result.model_dump(mode="json", by_alias=True)}
    return _page.render(
        title="Authentication Successful",
        message="You can close this window.",
        payload=script_json(payload),
        target_origin=script_json(target_origin),
    )


def render_error_page(title: str, message: str) -> str:
    """Page explaining a failed login. It posts nothing to the opener."""
    return _page.render(title=title, message=message, payload=None, target_origin=None)
