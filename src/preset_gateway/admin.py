"""
Admin API and dashboard for Preset Gateway.

All routes sit behind HTTP Basic auth against the single configured
admin user.
"""

import logging
import secrets
from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel, Field

from .errors import AdminAuthError, ValidationError
from .keys import KeyStore
from .presets import PresetMatcher
from .stats import StatsAggregator

logger = logging.getLogger(__name__)

_basic = HTTPBasic(auto_error=False)


class CreateKeyBody(BaseModel):
    name: str = "unnamed"


class UpdateKeyBody(BaseModel):
    enabled: Optional[bool] = None
    name: Optional[str] = None


class CreatePresetBody(BaseModel):
    keywords: Optional[List[str]] = None
    response: Optional[str] = None
    match_count: Optional[int] = Field(default=None, alias="matchCount")


def create_admin_router(
    keys: KeyStore,
    presets: PresetMatcher,
    stats: StatsAggregator,
    admin_user: str,
    admin_password: str,
) -> APIRouter:
    """Build the /admin routes bound to the given services."""

    def require_admin(credentials: Optional[HTTPBasicCredentials] = Depends(_basic)) -> str:
        if credentials is None:
            raise AdminAuthError("Authentication required")
        user_ok = secrets.compare_digest(credentials.username.encode(), admin_user.encode())
        pass_ok = secrets.compare_digest(credentials.password.encode(), admin_password.encode())
        if not (user_ok and pass_ok):
            logger.warning("Rejected admin login for user %r", credentials.username)
            raise AdminAuthError("Invalid credentials")
        return credentials.username

    router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])

    @router.get("/api/stats")
    async def get_stats():
        return stats.snapshot()

    # Keys

    @router.get("/api/keys")
    async def list_keys():
        return [k.to_dict() for k in keys.list()]

    @router.post("/api/keys")
    async def create_key(body: Optional[CreateKeyBody] = None):
        name = (body.name if body else "") or "unnamed"
        return keys.create(name).to_dict()

    @router.patch("/api/keys/{key_id}")
    async def update_key(key_id: str, body: UpdateKeyBody):
        record = keys.get(key_id)
        if body.enabled is not None:
            record = keys.set_enabled(key_id, body.enabled)
        if body.name is not None:
            record = keys.rename(key_id, body.name)
        return record.to_dict()

    @router.delete("/api/keys/{key_id}")
    async def delete_key(key_id: str):
        keys.delete(key_id)
        return {"success": True, "count": len(keys)}

    # Presets

    @router.get("/api/presets")
    async def list_presets():
        return [p.to_dict() for p in presets.list()]

    @router.post("/api/presets")
    async def create_preset(body: CreatePresetBody):
        if not body.keywords or not body.response:
            raise ValidationError("Missing keywords or response")
        count = presets.add(body.keywords, body.response, body.match_count)
        return {"success": True, "count": count}

    @router.delete("/api/presets/{index}")
    async def delete_preset(index: int):
        count = presets.remove(index)
        return {"success": True, "count": count}

    # Dashboard

    @router.get("", response_class=HTMLResponse)
    @router.get("/stats", response_class=HTMLResponse)
    async def dashboard():
        return DASHBOARD_HTML

    return router


DASHBOARD_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <title>Preset Gateway - Admin</title>
  <style>
    body { font-family: sans-serif; background: #f5f5f5; margin: 2rem; }
    .cards { display: flex; gap: 1rem; }
    .card { background: #fff; padding: 1rem; border-radius: 6px; min-width: 10rem; }
    .value { font-size: 2rem; font-weight: bold; }
    table { background: #fff; border-collapse: collapse; margin-top: 1rem; }
    td, th { padding: 4px 10px; border-bottom: 1px solid #ddd; text-align: left; }
    pre { max-height: 100px; overflow: auto; font-size: 0.8rem; }
  </style>
</head>
<body>
  <h2>Preset Gateway</h2>
  <div class="cards" id="stats"></div>

  <h3>Client keys</h3>
  <input id="keyName" placeholder="name"> <button onclick="addKey()">Create key</button>
  <table id="keys"></table>

  <h3>Presets</h3>
  <table id="presets"></table>
  <p>
    <input id="newKeywords" placeholder="keywords, comma separated">
    <input id="newMatchCount" type="number" value="1" min="1">
    <br><textarea id="newResponse" rows="4" cols="60"></textarea>
    <br><button onclick="addPreset()">Add preset</button>
  </p>

  <script>
    const esc = s => String(s).replace(/[&<>"]/g, c => ({'&':'&amp;','<':'&lt;','>':'&gt;','"':'&quot;'}[c]));

    async function loadData() {
      const [stats, keys, presets] = await Promise.all([
        fetch('/admin/api/stats').then(r => r.json()),
        fetch('/admin/api/keys').then(r => r.json()),
        fetch('/admin/api/presets').then(r => r.json()),
      ]);
      const card = (label, v) => `<div class="card">${label}<div class="value">${v}</div></div>`;
      document.getElementById('stats').innerHTML =
        card('Total', stats.totalRequests) + card('Today', stats.todayRequests) +
        card('Success', stats.successfulRequests) + card('Failed', stats.failedRequests) +
        card('Presets', presets.length);

      document.getElementById('keys').innerHTML = keys.map(k => `
        <tr><td>${esc(k.name)}</td><td><code>${esc(k.secret)}</code></td>
        <td>${k.enabled ? 'enabled' : 'disabled'}</td>
        <td><button onclick="toggleKey('${k.id}', ${!k.enabled})">${k.enabled ? 'Disable' : 'Enable'}</button>
        <button onclick="deleteKey('${k.id}')">Delete</button></td></tr>`).join('');

      document.getElementById('presets').innerHTML = presets.map((p, i) => `
        <tr><td>${p.keywords.map(esc).join(', ')}</td><td>min ${p.matchCount || 1}</td>
        <td><pre>${esc(p.response.substring(0, 200))}</pre></td>
        <td><button onclick="deletePreset(${i})">Delete</button></td></tr>`).join('');
    }

    async function send(method, url, body) {
      await fetch(url, {
        method, headers: {'Content-Type': 'application/json'},
        body: body ? JSON.stringify(body) : undefined,
      });
      loadData();
    }

    const addKey = () => send('POST', '/admin/api/keys', {name: document.getElementById('keyName').value});
    const toggleKey = (id, enabled) => send('PATCH', '/admin/api/keys/' + id, {enabled});
    const deleteKey = id => confirm('Delete this key?') && send('DELETE', '/admin/api/keys/' + id);
    const deletePreset = i => confirm('Delete this preset?') && send('DELETE', '/admin/api/presets/' + i);

    function addPreset() {
      const keywords = document.getElementById('newKeywords').value.split(',').map(k => k.trim()).filter(k => k);
      const matchCount = parseInt(document.getElementById('newMatchCount').value) || 1;
      const response = document.getElementById('newResponse').value;
      if (!keywords.length || !response) { alert('Keywords and response are required'); return; }
      send('POST', '/admin/api/presets', {keywords, matchCount, response});
    }

    loadData();
  </script>
</body>
</html>
"""
