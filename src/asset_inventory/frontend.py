#!/usr/bin/env python3
"""
Web frontend for Asset Inventory - bulk import wizard

Provides a small web interface over the import session:
- upload (CSV or JSON file)
- mapping (review auto-mapped headers, add extended properties)
- preview (validate the first rows)
- commit (save the valid records)
"""

import os
import uuid
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from flask import Flask, jsonify, render_template_string, request, session

from .config_loader import Config, load_config
from .logging_config import get_logger
from .parsers import ParseError
from .persistence import InMemoryAssetStore
from .schema import ValidationError, validate_mapping_file
from .session import (
    CommitNotAllowedError,
    ImportSession,
    SessionState,
    SessionStateError,
    StaleOperationError,
)
from .transformer import CustomMapping

# Initialize logger for this module
logger = get_logger(__name__)

MAX_IMPORT_SESSIONS = 256

# HTML template for the frontend
HTML_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Asset Inventory - Bulk Import</title>
    <style>
        body { font-family: -apple-system, 'Segoe UI', Roboto, Arial, sans-serif; background: #f7fafc; margin: 0; padding: 20px; }
        .container { max-width: 1100px; margin: 0 auto; background: white; border-radius: 12px; box-shadow: 0 10px 30px rgba(0,0,0,0.1); padding: 30px; }
        h1 { font-weight: 300; margin-top: 0; }
        .step { display: none; }
        .step.active { display: block; }
        table { border-collapse: collapse; width: 100%; margin: 10px 0; }
        th, td { border-bottom: 1px solid #e2e8f0; padding: 6px 8px; text-align: left; font-size: 0.9em; }
        .invalid { color: #c53030; }
        .valid { color: #2f855a; }
        .status-area { margin: 10px 0; padding: 10px; border-radius: 6px; display: none; }
        .status-area.error { display: block; background: #fff5f5; color: #c53030; }
        .status-area.info { display: block; background: #ebf8ff; color: #2b6cb0; }
        button { padding: 8px 16px; margin-right: 6px; border: none; border-radius: 6px; background: #667eea; color: white; cursor: pointer; }
        button:disabled { background: #a0aec0; cursor: not-allowed; }
    </style>
</head>
<body>
    <div class="container">
        <h1>Bulk Import Assets</h1>
        <div id="status" class="status-area"></div>

        <div id="step-uploaded" class="step active">
            <p>Upload a CSV or JSON file with one asset per row.</p>
            <input type="file" id="file" accept=".csv,.json">
            <button onclick="upload()">Upload</button>
        </div>

        <div id="step-mapped" class="step">
            <ul id="warnings"></ul>
            <table><thead><tr><th>Source header</th><th>Target field</th></tr></thead><tbody id="mapping"></tbody></table>
            <button onclick="post('/api/back')">Back</button>
            <button onclick="preview()">Preview</button>
        </div>

        <div id="step-previewed" class="step">
            <p id="summary"></p>
            <table><thead><tr><th>#</th><th>Status</th><th>Device ID</th><th>Name</th><th>Errors</th></tr></thead><tbody id="rows"></tbody></table>
            <button onclick="post('/api/back')">Back</button>
            <button id="commit" onclick="post('/api/commit')">Import</button>
        </div>

        <div id="step-committed" class="step">
            <p id="report"></p>
            <button onclick="post('/api/reset')">Import another file</button>
        </div>
    </div>

    <script>
        let fields = [];

        function showStatus(message, type) {
            const el = document.getElementById('status');
            el.className = 'status-area ' + type;
            el.textContent = message;
        }

        async function call(url, options) {
            const response = await fetch(url, options);
            const data = await response.json();
            if (!data.success) { showStatus(data.error, 'error'); }
            return data;
        }

        function render(state) {
            document.querySelectorAll('.step').forEach(el => el.classList.remove('active'));
            document.getElementById('step-' + state.state).classList.add('active');
            document.getElementById('warnings').innerHTML = state.warnings.map(w => '<li>' + w + '</li>').join('');

            const options = ['<option value="">(skip)</option>'].concat(
                fields.map(f => '<option value="' + f.path + '">' + f.label + ' (' + f.path + ')</option>'));
            document.getElementById('mapping').innerHTML = state.headers.map(h =>
                '<tr><td>' + h + '</td><td><select data-header="' + h + '" onchange="remap(this)">' +
                options.join('').replace('value="' + (state.mapping[h] || '') + '"', 'value="' + (state.mapping[h] || '') + '" selected') +
                '</select></td></tr>').join('');

            if (state.preview) {
                document.getElementById('summary').textContent =
                    state.preview.valid_count + ' valid, ' + state.preview.invalid_count + ' invalid of ' + state.row_count + ' rows';
            }
            document.getElementById('commit').disabled = !state.commit_allowed;
            if (state.report) {
                document.getElementById('report').textContent =
                    'Created ' + state.report.created + ', updated ' + state.report.updated + ', failed ' + state.report.failed;
            }
        }

        async function refresh() {
            const data = await call('/api/session');
            if (data.success) { render(data.session); }
        }

        async function post(url) {
            const data = await call(url, { method: 'POST' });
            if (data.success) { showStatus('', ''); await refresh(); }
        }

        async function upload() {
            const form = new FormData();
            form.append('file', document.getElementById('file').files[0]);
            const data = await call('/api/upload', { method: 'POST', body: form });
            if (data.success) { showStatus('', ''); render(data.session); }
        }

        async function remap(select) {
            const data = await call('/api/session');
            const mappings = Object.assign({}, data.session.mapping);
            mappings[select.dataset.header] = select.value || null;
            await call('/api/mapping', {
                method: 'PUT',
                headers: { 'Content-Type': 'application/json' },
                body: JSON.stringify({ mappings: mappings, custom_mappings: data.session.custom_mappings })
            });
            await refresh();
        }

        async function preview() {
            const data = await call('/api/preview', { method: 'POST' });
            if (!data.success) { return; }
            document.getElementById('rows').innerHTML = (data.rows || []).map(r =>
                '<tr><td>' + r.row_number + '</td><td class="' + (r.is_valid ? 'valid">valid' : 'invalid">invalid') + '</td><td>' +
                (r.record.deviceId || '') + '</td><td>' + (r.record.name || '') + '</td><td>' +
                Object.values(r.errors).join('; ') + '</td></tr>').join('');
            await refresh();
        }

        call('/api/fields').then(data => { fields = data.fields || []; refresh(); });
    </script>
</body>
</html>
"""


def _session_id() -> str:
    """Return the id of the browser's import session, creating one if needed."""
    if "import_session_id" not in session:
        session["import_session_id"] = uuid.uuid4().hex
    return session["import_session_id"]


def _log_background_result(future) -> None:
    error = future.exception()
    if isinstance(error, StaleOperationError):
        logger.info(f"Discarded stale background result: {error}")
    elif error is not None:
        logger.error(f"Background operation failed: {error}")


def create_app(config: Optional[Config] = None, store: Optional[InMemoryAssetStore] = None) -> Flask:
    """
    Create the Flask application.

    Args:
        config: Loaded configuration (default: load_config())
        store: Asset store shared by all sessions (default: a new in-memory store)
    """
    app = Flask(__name__)
    app.secret_key = os.getenv(
        "ASSET_INVENTORY_SECRET_KEY", "asset-inventory-dev-key-change-in-production"
    )

    config = config or load_config()
    store = store if store is not None else InMemoryAssetStore()
    sessions: "OrderedDict[str, ImportSession]" = OrderedDict()
    pending = {}
    executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="asset-import")

    app.config["ASSET_CONFIG"] = config
    app.config["ASSET_STORE"] = store
    app.config["IMPORT_SESSIONS"] = sessions
    app.config["IMPORT_EXECUTOR"] = executor
    app.config["MAX_IMPORT_SESSIONS"] = MAX_IMPORT_SESSIONS

    def current_session() -> ImportSession:
        sid = _session_id()
        if sid in sessions:
            sessions.move_to_end(sid)
            return sessions[sid]

        # Least recently used sessions are dropped once the limit is reached
        while len(sessions) >= app.config["MAX_IMPORT_SESSIONS"]:
            evicted, _ = sessions.popitem(last=False)
            pending.pop(evicted, None)
        sessions[sid] = ImportSession.from_config(config, store=store)
        return sessions[sid]

    def is_pending() -> bool:
        future = pending.get(_session_id())
        return future is not None and not future.done()

    def session_payload(import_session: ImportSession) -> dict:
        payload = import_session.to_dict()
        payload["pending"] = is_pending()
        return payload

    def run_in_background(import_session: ImportSession, submit):
        future = submit(executor)
        future.add_done_callback(_log_background_result)
        pending[_session_id()] = future
        return (
            jsonify(
                {"success": True, "pending": True, "session": session_payload(import_session)}
            ),
            202,
        )

    @app.errorhandler(SessionStateError)
    def handle_state_error(error):
        return jsonify({"success": False, "error": str(error)}), 409

    @app.route("/")
    def index():
        """Main page."""
        return render_template_string(HTML_TEMPLATE)

    @app.route("/api/fields")
    def fields():
        """List the target field catalog."""
        descriptors = [
            {
                "path": descriptor.path,
                "label": descriptor.label,
                "required": descriptor.required,
                "kind": descriptor.kind.tag.value,
                "values": list(descriptor.kind.values),
            }
            for descriptor in current_session().registry
        ]
        return jsonify({"success": True, "fields": descriptors})

    @app.route("/api/upload", methods=["POST"])
    def upload():
        """Parse an uploaded file and propose a mapping."""
        upload_file = request.files.get("file")
        if upload_file is None or not upload_file.filename:
            return jsonify({"success": False, "error": "No file uploaded"}), 400

        import_session = current_session()
        if import_session.state is SessionState.COMMITTED:
            import_session.reset()
        while import_session.state is not SessionState.UPLOADED:
            import_session.back()

        try:
            import_session.load_bytes(upload_file.read(), upload_file.filename)
        except ParseError as e:
            return jsonify({"success": False, "error": str(e)}), 400

        return jsonify({"success": True, "session": session_payload(import_session)})

    @app.route("/api/session")
    def get_session():
        """Current state of this browser's import."""
        return jsonify({"success": True, "session": session_payload(current_session())})

    @app.route("/api/mapping", methods=["PUT"])
    def put_mapping():
        """Replace the mapping with the operator's edits."""
        import_session = current_session()
        try:
            schema = validate_mapping_file(request.get_json(silent=True) or {})
        except ValidationError as e:
            return jsonify({"success": False, "error": str(e)}), 400

        headers = set(import_session.headers)
        unknown = [h for h in schema.mappings if h not in headers]
        unknown += [c.source_header for c in schema.custom_mappings if c.source_header not in headers]
        if unknown:
            return (
                jsonify({"success": False, "error": f"Unknown source headers: {', '.join(unknown)}"}),
                400,
            )

        try:
            import_session.replace_mappings(
                dict(schema.mappings),
                [CustomMapping(c.source_header, c.key, c.scope) for c in schema.custom_mappings],
            )
        except KeyError as e:
            return jsonify({"success": False, "error": str(e.args[0])}), 400

        return jsonify({"success": True, "session": session_payload(import_session)})

    @app.route("/api/preview", methods=["POST"])
    def preview():
        """Validate the first rows with the current mapping."""
        import_session = current_session()
        if len(import_session.rows) > config.background_threshold:
            return run_in_background(import_session, import_session.submit_preview)

        outcomes = import_session.preview()
        return jsonify(
            {
                "success": True,
                "rows": [outcome.to_dict() for outcome in outcomes],
                "report": import_session.preview_report().to_dict(),
                "commit_allowed": import_session.commit_allowed(),
            }
        )

    @app.route("/api/commit", methods=["POST"])
    def commit():
        """Save the valid records of the whole file."""
        import_session = current_session()
        try:
            if len(import_session.rows) > config.background_threshold:
                return run_in_background(import_session, import_session.submit_commit)
            report = import_session.commit()
        except CommitNotAllowedError as e:
            return jsonify({"success": False, "error": str(e)}), 409

        return jsonify({"success": True, "report": report.to_dict()})

    @app.route("/api/back", methods=["POST"])
    def back():
        import_session = current_session()
        import_session.back()
        return jsonify({"success": True, "session": session_payload(import_session)})

    @app.route("/api/reset", methods=["POST"])
    def reset():
        import_session = current_session()
        import_session.reset()
        sessions.pop(_session_id(), None)
        pending.pop(_session_id(), None)
        return jsonify({"success": True, "session": session_payload(import_session)})

    return app


def start_frontend(host: str = "127.0.0.1", port: int = 5000, debug: bool = False):
    """
    Start the web frontend server.

    Args:
        host: Host to bind to
        port: Port to listen on
        debug: Enable debug mode
    """
    print("\nAsset Inventory - Bulk Import")
    print("=" * 50)
    print(f"Starting server on http://{host}:{port}")
    print("Press Ctrl+C to stop")
    print("=" * 50)

    create_app().run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    start_frontend(debug=True)
