"""
Admin pages — plain HTML for people, not API clients.

  GET  /     — registered Rokus
  GET  /add  — form to register a Roku by IP address
  POST /add  — probe the address and register whatever answers
"""

import html
import ipaddress
import logging

from aiohttp import web

from .registry import DeviceRegistry

logger = logging.getLogger("roku-service.admin")

_STYLE = """
*{box-sizing:border-box;margin:0;padding:0}
body{font-family:'Helvetica Neue',-apple-system,sans-serif;background:#000;color:#fff;padding:20px;line-height:1.7}
.container{max-width:600px;margin:0 auto}
.header{text-align:center;margin-bottom:30px;padding-bottom:20px;border-bottom:1px solid #333}
h1{font-size:24px;font-weight:300;letter-spacing:2px;margin-bottom:8px}
table{width:100%;border-collapse:collapse;margin-bottom:20px}
th,td{text-align:left;padding:8px;border-bottom:1px solid #222;font-size:14px}
th{color:#666;font-weight:400;text-transform:uppercase;letter-spacing:.5px;font-size:12px}
.empty{color:#666;text-align:center;padding:20px}
a{color:#999;text-decoration:underline}a:hover{color:#fff}
label{display:block;margin-top:12px;color:#666;font-size:13px;text-transform:uppercase;letter-spacing:.5px}
input[type="text"]{width:100%;padding:12px;margin:8px 0;background:#000;border:1px solid #333;border-radius:4px;color:#fff;font-size:14px}
.error{color:#e5484d;font-size:13px}
.submit-btn{display:block;width:100%;padding:14px;margin-top:20px;background:#6c3c97;border:none;border-radius:4px;color:#fff;font-size:16px;font-weight:600;cursor:pointer;text-align:center;text-decoration:none}
"""


def _page(title: str, body: str) -> str:
    return f'''<!DOCTYPE html><html><head>
<meta charset="UTF-8"><meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Roku Service - {html.escape(title)}</title>
<style>{_STYLE}</style></head><body>
<div class="container">
<div class="header"><h1>{html.escape(title.upper())}</h1></div>
{body}
</div></body></html>'''


def _display_order(record):
    name = record.name or ""
    return (not name, name.casefold(), name, record.id)


class AdminPages:
    """Device list and manual registration form."""

    def __init__(self, registry: DeviceRegistry):
        self.registry = registry

    def add_routes(self, app: web.Application):
        app.router.add_get("/", self.index)
        app.router.add_get("/add", self.add_form)
        app.router.add_post("/add", self.add_submit)

    async def index(self, request: web.Request) -> web.Response:
        records = await self.registry.list_devices(False)
        if records:
            rows = "\n".join(
                f"<tr><td>{html.escape(r.name or '')}</td>"
                f"<td>{html.escape(r.id)}</td>"
                f"<td>{html.escape(r.address)}</td></tr>"
                for r in sorted(records, key=_display_order)
            )
            table = f'''<table>
<tr><th>Name</th><th>Id</th><th>I.P. Address</th></tr>
{rows}
</table>'''
        else:
            table = '<p class="empty">No Rokus registered yet.</p>'
        body = f'{table}\n<a href="/add" class="submit-btn">Add a Roku</a>'
        return web.Response(text=_page("Rokus", body), content_type="text/html")

    def _render_form(self, ip: str = "", name: str = "", error: str | None = None) -> web.Response:
        error_html = f'<p class="error">{html.escape(error)}</p>' if error else ""
        body = f'''<form action="/add" method="POST">
<label for="ip_address">I.P. Address</label>
<input type="text" id="ip_address" name="ip_address" value="{html.escape(ip)}" placeholder="e.g. 192.168.1.50">
{error_html}
<label for="name">Name (optional)</label>
<input type="text" id="name" name="name" value="{html.escape(name)}">
<button type="submit" class="submit-btn">Add Roku</button>
</form>
<p><a href="/">Back to the list</a></p>'''
        return web.Response(text=_page("Add a Roku", body), content_type="text/html")

    async def add_form(self, request: web.Request) -> web.Response:
        return self._render_form()

    async def add_submit(self, request: web.Request) -> web.Response:
        form = await request.post()
        ip = str(form.get("ip_address", "")).strip()
        name = str(form.get("name", "")).strip()

        if not ip:
            return self._render_form(ip, name, "I.P. Address is required.")
        try:
            ipaddress.ip_address(ip)
        except ValueError:
            return self._render_form(ip, name, "I.P. Address is not a valid address.")

        record = await self.registry.add_device(ip, name or None)
        if record is None:
            return self._render_form(
                ip, name, "A roku with this I.P. address could not be found on your local network.")

        logger.info("Registered Roku #%s at %s", record.id, record.address)
        raise web.HTTPFound("/")
