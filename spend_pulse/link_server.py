"""Local web page that hosts Plaid Link for connecting a real bank.

``run_link_server`` serves a one-page app on ``localhost``, opens the
browser, and blocks until Plaid Link redirects back with a public token (or
the user cancels). The public token is returned to the caller for exchange.
"""

from __future__ import annotations

import json
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any
from urllib.parse import parse_qs, urlparse

from .errors import BankClientError
from .logging_setup import get_logger

_logger = get_logger("spend_pulse.link_server")

DEFAULT_PORT = 8234

_LINK_PAGE = """<!DOCTYPE html>
<html>
<head>
  <title>Link Account - Spend Pulse</title>
  <script src="https://cdn.plaid.com/link/v2/stable/link-initialize.js"></script>
  <style>
    body {{ font-family: system-ui, sans-serif; display: flex; justify-content: center;
           align-items: center; min-height: 100vh; margin: 0; background: #f5f5f5; }}
    .container {{ text-align: center; padding: 40px; background: white; border-radius: 12px;
                 box-shadow: 0 2px 10px rgba(0,0,0,0.1); }}
    button {{ background: #0066ff; color: white; border: none; padding: 14px 28px;
             font-size: 16px; border-radius: 8px; cursor: pointer; }}
  </style>
</head>
<body>
  <div class="container">
    <h1>Connect a Card</h1>
    <p>Connect a credit card to track spending.</p>
    <button id="link-btn">Connect with Plaid</button>
    <div id="status"></div>
  </div>
  <script>
    const handler = Plaid.create({{
      token: {token},
      onSuccess: (publicToken, metadata) => {{
        document.getElementById('status').textContent = 'Connecting...';
        window.location.href = '/callback?public_token=' + encodeURIComponent(publicToken)
          + '&metadata=' + encodeURIComponent(JSON.stringify(metadata));
      }},
      onExit: (err) => {{
        if (err) {{
          document.getElementById('status').textContent = 'Error: ' + err.display_message;
        }} else {{
          window.location.href = '/exit';
        }}
      }},
    }});
    document.getElementById('link-btn').addEventListener('click', () => handler.open());
  </script>
</body>
</html>
"""

_DONE_PAGE = "<h1>Account linked</h1><p>You can close this window and return to the terminal.</p>"
_CANCEL_PAGE = "<h1>Link cancelled</h1><p>You can close this window.</p>"


@dataclass(frozen=True, slots=True)
class LinkCallback:
    """What Plaid Link handed back: the public token plus display metadata."""

    public_token: str
    institution: str = "Unknown Institution"
    accounts: list[str] = field(default_factory=list)


def parse_callback(query: str) -> LinkCallback | None:
    """Parse the ``/callback`` query string; ``None`` when the token is missing."""

    params = parse_qs(query)
    token = (params.get("public_token") or [""])[0]
    if not token:
        return None
    institution = "Unknown Institution"
    accounts: list[str] = []
    raw_meta = (params.get("metadata") or [""])[0]
    if raw_meta:
        try:
            meta: Any = json.loads(raw_meta)
        except ValueError:
            _logger.debug("link:metadata_unparseable", exc_info=True)
            meta = {}
        if isinstance(meta, dict):
            inst = meta.get("institution")
            if isinstance(inst, dict) and inst.get("name"):
                institution = str(inst["name"])
            for a in meta.get("accounts") or []:
                if isinstance(a, dict) and a.get("name"):
                    mask = a.get("mask")
                    accounts.append(f"{a['name']} (...{mask})" if mask else str(a["name"]))
    return LinkCallback(public_token=token, institution=institution, accounts=accounts)


class _State:
    def __init__(self, link_token: str) -> None:
        self.link_token = link_token
        self.result: LinkCallback | None = None
        self.cancelled = False


def _handler_for(state: _State) -> type[BaseHTTPRequestHandler]:
    class _Handler(BaseHTTPRequestHandler):
        def _send(self, status: int, body: str) -> None:
            data = body.encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

        def do_GET(self) -> None:  # noqa: N802 - http.server naming
            url = urlparse(self.path)
            if url.path == "/":
                self._send(200, _LINK_PAGE.format(token=json.dumps(state.link_token)))
            elif url.path == "/callback":
                cb = parse_callback(url.query)
                if cb is None:
                    self._send(400, "<h1>Error: no public token received</h1>")
                    return
                state.result = cb
                self._send(200, _DONE_PAGE)
            elif url.path == "/exit":
                state.cancelled = True
                self._send(200, _CANCEL_PAGE)
            else:
                self._send(404, "Not found")

        def log_message(self, format: str, *args: Any) -> None:
            _logger.debug("link:http " + format, *args)

    return _Handler


def run_link_server(
    link_token: str,
    *,
    port: int = DEFAULT_PORT,
    open_browser: Callable[[str], Any] = webbrowser.open,
    on_progress: Callable[[str], None] | None = None,
) -> LinkCallback:
    """Serve Plaid Link on ``localhost:port`` until a callback or cancel arrives.

    Raises
    ------
    BankClientError
        The user closed Link without connecting an account.
    """

    state = _State(link_token)
    url = f"http://localhost:{port}"
    with HTTPServer(("127.0.0.1", port), _handler_for(state)) as server:
        if on_progress:
            on_progress(f"Browser opening at {url}")
        open_browser(url)
        while state.result is None and not state.cancelled:
            server.handle_request()
    if state.result is None:
        raise BankClientError("Link cancelled by user")
    return state.result


__all__ = ["DEFAULT_PORT", "LinkCallback", "parse_callback", "run_link_server"]
