"""
Login and dashboard pages served by the gateway itself.

Both pages are static markup. The dashboard keeps a short history of visited
targets in the browser's localStorage and navigates to <origin>/<url>; the
login page navigates to /<password>, which the login path turns into a
session cookie. Neither page touches the session cookie directly.
"""

COMMON_STYLE = """
:root { --bg:#09090b; --box:#18181b; --text:#e4e4e7; --primary:#3b82f6; --border:#27272a; }
body { background:var(--bg); color:var(--text); font-family:system-ui,sans-serif; height:100vh; display:grid; place-items:center; margin:0; }
.card { background:var(--box); border:1px solid var(--border); padding:2rem; border-radius:12px; width:300px; text-align:center; box-shadow:0 10px 30px #0008; }
input { width:100%; background:#000; border:1px solid var(--border); color:#fff; padding:12px; border-radius:6px; margin-bottom:12px; box-sizing:border-box; outline:none; }
input:focus { border-color:var(--primary); }
button { width:100%; background:var(--primary); color:#fff; border:none; padding:12px; border-radius:6px; font-weight:600; cursor:pointer; }
.list { margin-top:1.5rem; text-align:left; display:flex; flex-direction:column; gap:8px; }
.item { font-size:13px; color:#888; padding:8px; border-radius:4px; display:flex; justify-content:space-between; cursor:pointer; }
.item:hover { background:#27272a; color:#fff; }
"""

DASHBOARD_SCRIPT = """
const KEY = 'gw_h', u = document.getElementById('url'), h = document.getElementById('hist');
function load() { return JSON.parse(localStorage.getItem(KEY) || '[]'); }
function render() {
  h.innerHTML = '';
  load().forEach(function (v) {
    const row = document.createElement('div'), label = document.createElement('span'), del = document.createElement('span');
    row.className = 'item';
    label.textContent = v.replace(/^https?:\\/\\//, '');
    del.textContent = '\\u2715';
    row.onclick = function () { u.value = v; go(); };
    del.onclick = function (e) { e.stopPropagation(); localStorage.setItem(KEY, JSON.stringify(load().filter(function (i) { return i !== v; }))); render(); };
    row.append(label, del);
    h.append(row);
  });
}
function go(e) {
  if (e) e.preventDefault();
  let v = u.value.trim();
  if (!v) return;
  if (!/^https?:/i.test(v)) v = 'https://' + v;
  localStorage.setItem(KEY, JSON.stringify([v].concat(load().filter(function (i) { return i !== v; })).slice(0, 5)));
  location.href = location.origin + '/' + v;
}
document.getElementById('go').onsubmit = go;
render();
"""


def _page(title: str, body: str) -> str:
    return (
        '<!DOCTYPE html><html lang="en"><head><meta charset="UTF-8">'
        '<meta name="viewport" content="width=device-width">'
        f"<title>{title}</title><style>{COMMON_STYLE}</style></head>"
        f"<body>{body}</body></html>"
    )


def render_dashboard() -> str:
    return _page(
        "Gateway",
        '<div class="card">'
        '<h3 style="margin-top:0">Gateway</h3>'
        '<form id="go">'
        '<input id="url" placeholder="https://..." autofocus autocomplete="off">'
        "<button>Connect</button>"
        "</form>"
        '<div id="hist" class="list"></div>'
        "</div>"
        f"<script>{DASHBOARD_SCRIPT}</script>",
    )


def render_login() -> str:
    return _page(
        "Locked",
        '<div class="card">'
        '<h3 style="margin-top:0">Restricted</h3>'
        "<form onsubmit=\"event.preventDefault();"
        "location.href='/'+encodeURIComponent(document.getElementById('p').value)\">"
        '<input type="password" id="p" placeholder="Password" autofocus>'
        "<button>Unlock</button>"
        "</form>"
        "</div>",
    )
