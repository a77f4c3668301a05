"""Single-page browser chat UI served at ``/``.

All client state lives in ``localStorage`` under the keys in ``STORAGE_KEYS``;
the page only talks to the relay endpoints.
"""

from __future__ import annotations

import json

STORAGE_KEYS = {
    "WEBHOOK_CONFIG": "relaychat_webhook_config",
    "PROFILES": "relaychat_profiles",
    "CHAT_HISTORY": "relaychat_chat_history",
    "CURRENT_CONVERSATION": "relaychat_current_conversation",
    "THEME": "relaychat_theme",
    "SETTINGS": "relaychat_settings",
}

MAX_HISTORY_ENTRIES = 100

_TEMPLATE = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>RelayChat</title>
    <style>
      :root { color-scheme: light; --accent: #2563eb; --border: #d4d4d8; --bg: #f8fafc; --ink: #18181b; }
      body.dark { color-scheme: dark; --border: #3f3f46; --bg: #18181b; --ink: #f4f4f5; }
      * { box-sizing: border-box; }
      body { margin: 0; font-family: system-ui, sans-serif; background: var(--bg); color: var(--ink); }
      .wrap { max-width: 960px; margin: 0 auto; padding: 16px; min-height: 100vh; display: flex; flex-direction: column; gap: 12px; }
      header { display: flex; align-items: center; justify-content: space-between; border-bottom: 2px solid var(--accent); padding-bottom: 8px; }
      nav button.active { background: var(--accent); color: #fff; }
      .tab { display: none; flex-direction: column; gap: 8px; flex: 1; }
      .tab.active { display: flex; }
      #transcript { flex: 1; overflow-y: auto; border: 1px solid var(--border); border-radius: 8px; padding: 12px; min-height: 320px; }
      .msg { margin: 6px 0; padding: 8px 12px; border-radius: 8px; white-space: pre-wrap; max-width: 80%; }
      .msg.user { background: var(--accent); color: #fff; margin-left: auto; }
      .msg.assistant { border: 1px solid var(--border); }
      .msg.error { border: 1px solid #dc2626; color: #dc2626; }
      .meta { font-size: 12px; opacity: 0.7; }
      form { display: flex; gap: 8px; }
      input, select, textarea, button { font: inherit; padding: 8px; border-radius: 6px; border: 1px solid var(--border); }
      textarea { flex: 1; resize: vertical; }
      #status { font-size: 13px; }
    </style>
  </head>
  <body>
    <div class="wrap">
      <header>
        <strong>RelayChat</strong>
        <nav>
          <button data-tab="chat" class="active">Chat</button>
          <button data-tab="config">Webhook</button>
          <button data-tab="history">History</button>
          <button id="theme-toggle" title="Toggle theme">&#9680;</button>
        </nav>
      </header>

      <section id="tab-chat" class="tab active">
        <div id="transcript"></div>
        <form id="chat-form">
          <textarea id="chat-input" rows="2" placeholder="Type a message..."></textarea>
          <button type="submit" id="send-btn">Send</button>
        </form>
        <button id="new-conversation">New conversation</button>
      </section>

      <section id="tab-config" class="tab">
        <label>Webhook URL <input id="cfg-url" type="url" placeholder="https://example.com/webhook" /></label>
        <label>Method
          <select id="cfg-method"><option>POST</option><option>GET</option><option>PUT</option><option>PATCH</option></select>
        </label>
        <label>Headers (JSON) <textarea id="cfg-headers" rows="3">{}</textarea></label>
        <div>
          <button id="cfg-save">Save</button>
          <button id="cfg-test">Test connection</button>
          <input id="profile-name" placeholder="Profile name" />
          <button id="profile-save">Save profile</button>
          <select id="profile-list"></select>
          <button id="profile-load">Load profile</button>
        </div>
        <div id="status"></div>
      </section>

      <section id="tab-history" class="tab">
        <input id="history-search" placeholder="Search conversations..." />
        <div id="history-list"></div>
      </section>
    </div>
    <script>
      const KEYS = __STORAGE_KEYS__;
      const MAX_HISTORY = __MAX_HISTORY__;

      const store = {
        load(key, fallback) {
          try { const raw = localStorage.getItem(key); return raw === null ? fallback : JSON.parse(raw); }
          catch (err) { console.error('storage load failed', err); return fallback; }
        },
        save(key, value) {
          try { localStorage.setItem(key, JSON.stringify(value)); return true; }
          catch (err) { console.error('storage save failed', err); return false; }
        },
      };

      const $ = (id) => document.getElementById(id);
      let conversation = store.load(KEYS.CURRENT_CONVERSATION, null) || newConversation();

      function newConversation() {
        return { id: crypto.randomUUID(), title: null, messages: [], createdAt: new Date().toISOString() };
      }

      function readConfig() {
        let headers = {};
        try { headers = JSON.parse($('cfg-headers').value || '{}'); }
        catch (err) { setStatus('Headers must be valid JSON'); throw err; }
        return { url: $('cfg-url').value.trim(), method: $('cfg-method').value, headers };
      }

      function showConfig(cfg) {
        $('cfg-url').value = cfg.url || '';
        $('cfg-method').value = cfg.method || 'POST';
        $('cfg-headers').value = JSON.stringify(cfg.headers || {}, null, 2);
      }

      function setStatus(text) { $('status').textContent = text; }

      function render() {
        const box = $('transcript');
        box.innerHTML = '';
        for (const msg of conversation.messages) {
          const el = document.createElement('div');
          el.className = 'msg ' + msg.role;
          el.textContent = msg.content;
          if (msg.metadata && msg.metadata.responseTime !== undefined) {
            const meta = document.createElement('div');
            meta.className = 'meta';
            meta.textContent = msg.metadata.responseTime + ' ms';
            el.appendChild(meta);
          }
          box.appendChild(el);
        }
        box.scrollTop = box.scrollHeight;
      }

      function persist() {
        store.save(KEYS.CURRENT_CONVERSATION, conversation);
        if (!conversation.messages.length) return;
        const history = store.load(KEYS.CHAT_HISTORY, []).filter((c) => c.id !== conversation.id);
        const first = conversation.messages.find((m) => m.role === 'user');
        conversation.title = conversation.title || (first ? first.content.slice(0, 50) : 'New conversation');
        history.unshift({ ...conversation, updatedAt: new Date().toISOString() });
        store.save(KEYS.CHAT_HISTORY, history.slice(0, MAX_HISTORY));
      }

      async function postJSON(path, body) {
        const resp = await fetch(path, {
          method: 'POST', headers: { 'Content-Type': 'application/json' }, body: JSON.stringify(body),
        });
        return resp.json();
      }

      async function sendMessage(text) {
        const cfg = store.load(KEYS.WEBHOOK_CONFIG, null);
        if (!cfg || !cfg.url) { setStatus('Configure a webhook first'); return; }
        conversation.messages.push({ role: 'user', content: text, timestamp: new Date().toISOString() });
        render();
        $('send-btn').disabled = true;
        try {
          const result = await postJSON('/relay/send', {
            ...cfg, payload: { message: text, conversationId: conversation.id },
          });
          if (result.success) {
            conversation.messages.push({
              role: 'assistant', content: result.content, timestamp: new Date().toISOString(),
              metadata: { ...result.metadata, responseTime: result.responseTime },
            });
          } else {
            conversation.messages.push({ role: 'error', content: result.error + ' (' + (result.code || 'INVALID') + ')' });
          }
        } catch (err) {
          conversation.messages.push({ role: 'error', content: String(err) });
        } finally {
          $('send-btn').disabled = false;
          persist();
          render();
        }
      }

      function renderHistory() {
        const term = $('history-search').value.toLowerCase();
        const list = $('history-list');
        list.innerHTML = '';
        for (const conv of store.load(KEYS.CHAT_HISTORY, [])) {
          const haystack = (conv.title || '') + ' ' + conv.messages.map((m) => m.content).join(' ');
          if (term && !haystack.toLowerCase().includes(term)) continue;
          const btn = document.createElement('button');
          btn.textContent = conv.title || 'Untitled';
          btn.onclick = () => { conversation = conv; store.save(KEYS.CURRENT_CONVERSATION, conv); switchTab('chat'); render(); };
          list.appendChild(btn);
        }
      }

      function renderProfiles() {
        const select = $('profile-list');
        select.innerHTML = '';
        for (const name of Object.keys(store.load(KEYS.PROFILES, {}))) {
          const opt = document.createElement('option');
          opt.textContent = name;
          select.appendChild(opt);
        }
      }

      function switchTab(name) {
        document.querySelectorAll('.tab').forEach((t) => t.classList.toggle('active', t.id === 'tab-' + name));
        document.querySelectorAll('nav button[data-tab]').forEach((b) => b.classList.toggle('active', b.dataset.tab === name));
        if (name === 'history') renderHistory();
      }

      document.querySelectorAll('nav button[data-tab]').forEach((b) => b.addEventListener('click', () => switchTab(b.dataset.tab)));
      $('theme-toggle').onclick = () => {
        const dark = !document.body.classList.contains('dark');
        document.body.classList.toggle('dark', dark);
        store.save(KEYS.THEME, dark ? 'dark' : 'light');
      };
      $('chat-form').onsubmit = (e) => {
        e.preventDefault();
        const text = $('chat-input').value.trim();
        if (!text) return;
        $('chat-input').value = '';
        sendMessage(text);
      };
      $('new-conversation').onclick = () => { persist(); conversation = newConversation(); persist(); render(); };
      $('cfg-save').onclick = () => { store.save(KEYS.WEBHOOK_CONFIG, readConfig()); setStatus('Configuration saved'); };
      $('cfg-test').onclick = async () => {
        setStatus('Testing...');
        const result = await postJSON('/relay/test', readConfig());
        setStatus(result.success
          ? 'HTTP ' + result.status + ' ' + (result.statusText || '') + ' in ' + result.responseTime + ' ms'
          : (result.error || 'Test failed') + (result.code ? ' (' + result.code + ')' : ''));
      };
      $('profile-save').onclick = () => {
        const name = $('profile-name').value.trim();
        if (!name) return;
        const profiles = store.load(KEYS.PROFILES, {});
        profiles[name] = readConfig();
        store.save(KEYS.PROFILES, profiles);
        renderProfiles();
      };
      $('profile-load').onclick = () => {
        const cfg = store.load(KEYS.PROFILES, {})[$('profile-list').value];
        if (cfg) { showConfig(cfg); store.save(KEYS.WEBHOOK_CONFIG, cfg); }
      };
      $('history-search').oninput = renderHistory;

      document.body.classList.toggle('dark', store.load(KEYS.THEME, 'light') === 'dark');
      showConfig(store.load(KEYS.WEBHOOK_CONFIG, {}));
      store.save(KEYS.SETTINGS, store.load(KEYS.SETTINGS, { maxHistory: MAX_HISTORY }));
      renderProfiles();
      render();
    </script>
  </body>
</html>
"""


def render_chat_page() -> str:
    return (
        _TEMPLATE
        .replace("__STORAGE_KEYS__", json.dumps(STORAGE_KEYS))
        .replace("__MAX_HISTORY__", str(MAX_HISTORY_ENTRIES))
    )
