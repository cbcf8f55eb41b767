from __future__ import annotations

from html import escape

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from chatgate.apps.api.deps import get_app_settings, get_request_context
from chatgate.core.config import Settings
from chatgate.domain.context import RequestContext

router = APIRouter(tags=["pages"], include_in_schema=False)


def _page(title: str, body: str) -> HTMLResponse:
    return HTMLResponse(
        "<!doctype html><html><head><meta charset=\"utf-8\">"
        f"<title>{escape(title)}</title></head><body>{body}</body></html>"
    )


_CHAT_SCRIPT = """
<script>
const sessionId = localStorage.getItem("chat_session_id") || crypto.randomUUID();
localStorage.setItem("chat_session_id", sessionId);

async function browserFingerprint() {
  const stored = localStorage.getItem("chat_fingerprint");
  if (stored) return stored;
  const traits = [
    navigator.userAgent,
    navigator.language,
    screen.width + "x" + screen.height + "x" + screen.colorDepth,
    Intl.DateTimeFormat().resolvedOptions().timeZone,
    navigator.hardwareConcurrency,
  ].join("|");
  let value;
  if (crypto.subtle) {
    const digest = await crypto.subtle.digest("SHA-256", new TextEncoder().encode(traits));
    value = Array.from(new Uint8Array(digest)).map((b) => b.toString(16).padStart(2, "0")).join("").slice(0, 32);
  } else {
    value = crypto.randomUUID();
  }
  localStorage.setItem("chat_fingerprint", value);
  return value;
}

document.getElementById("chat-form").addEventListener("submit", async (event) => {
  event.preventDefault();
  const input = document.getElementById("message");
  const log = document.getElementById("log");
  const message = input.value;
  input.value = "";
  log.insertAdjacentHTML("beforeend", "<p><b>You:</b> " + message.replace(/</g, "&lt;") + "</p>");
  const fingerprint = await browserFingerprint();
  const res = await fetch("/api/chat", {
    method: "POST",
    headers: {"Content-Type": "application/json"},
    body: JSON.stringify({message, sessionId, fingerprint}),
  });
  const data = await res.json();
  const text = data.reply || data.error || "";
  log.insertAdjacentHTML("beforeend", "<p><b>Assistant:</b> " + text.replace(/</g, "&lt;") + "</p>");
});
</script>
"""


def _json_form(form_id: str, endpoint: str, fields: list[tuple[str, str, str]], on_success: str) -> str:
    inputs = "".join(
        f'<label>{escape(label)} <input name="{name}" type="{kind}"></label><br>'
        for name, label, kind in fields
    )
    return f"""
<form id="{form_id}">{inputs}<button type="submit">Submit</button></form>
<p id="{form_id}-error"></p>
<script>
document.getElementById("{form_id}").addEventListener("submit", async (event) => {{
  event.preventDefault();
  const body = Object.fromEntries(new FormData(event.target).entries());
  const res = await fetch("{endpoint}", {{
    method: "POST",
    headers: {{"Content-Type": "application/json"}},
    body: JSON.stringify(body),
  }});
  if (res.ok) {{ window.location.href = "{on_success}"; return; }}
  const data = await res.json().catch(() => ({{}}));
  document.getElementById("{form_id}-error").textContent = data.error || "Request failed";
}});
</script>
"""


@router.get("/", response_class=HTMLResponse)
async def chat_page() -> HTMLResponse:
    return _page(
        "Chat",
        '<h1>Chat</h1><div id="log"></div>'
        '<form id="chat-form"><input id="message" autocomplete="off"><button type="submit">Send</button></form>'
        + _CHAT_SCRIPT,
    )


@router.get("/login", response_class=HTMLResponse)
async def login_page() -> HTMLResponse:
    form = _json_form(
        "login-form",
        "/api/auth/login",
        [("email", "Email", "email"), ("password", "Password", "password")],
        "/",
    )
    return _page("Sign in", f'<h1>Sign in</h1>{form}<p><a href="/signup">Create an account</a></p>')


@router.get("/signup", response_class=HTMLResponse)
async def signup_page() -> HTMLResponse:
    form = _json_form(
        "signup-form",
        "/api/auth/signup",
        [("full_name", "Full name", "text"), ("email", "Email", "email"), ("password", "Password", "password")],
        "/login",
    )
    return _page("Sign up", f'<h1>Create an account</h1>{form}<p><a href="/login">Sign in</a></p>')


@router.get("/access-denied", response_class=HTMLResponse)
async def access_denied_page(
    ctx: RequestContext = Depends(get_request_context),
    settings: Settings = Depends(get_app_settings),
) -> HTMLResponse:
    blocked_ip = ctx.cookie(settings.blocked_ip_cookie_name) or "Unknown"
    return _page(
        "Access denied",
        "<h1>Access denied</h1>"
        "<p>Your network is not authorized to use this application.</p>"
        f"<p>Your IP address: <code>{escape(blocked_ip)}</code></p>"
        "<p>If you believe this is a mistake, contact your administrator and "
        "ask them to add this IP address to the allowlist.</p>",
    )


@router.get("/admin", response_class=HTMLResponse)
async def admin_page() -> HTMLResponse:
    links = "".join(
        f'<li><a href="/api/admin/{path}">{escape(label)}</a></li>'
        for path, label in (
            ("stats", "Stats"),
            ("ip-whitelist", "IP allowlist"),
            ("access-logs", "Access logs"),
            ("sessions", "Chat sessions"),
            ("users", "Users"),
        )
    )
    return _page("Admin", f"<h1>Admin</h1><ul>{links}</ul>")


@router.get("/admin/login", response_class=HTMLResponse)
async def admin_login_page() -> HTMLResponse:
    form = _json_form("admin-login-form", "/api/admin/login", [("secretKey", "Secret key", "password")], "/admin")
    return _page("Admin sign in", f"<h1>Admin sign in</h1>{form}")
