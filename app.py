import os
import logging
import jinja2
from datetime import datetime, timezone
from decimal import Decimal
from dotenv import load_dotenv
from flask import Flask, render_template, request, redirect, url_for, flash, jsonify, g
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import OperationalError, SQLAlchemyError

import auth
from aggregator import summarize
from coach import generate_tip, TipGenerationError
from tip_fetcher import TipFetcher, NO_ENTRIES_TIP
from validation import validate_entry, EntryValidationError, LABELS

load_dotenv()

# ==========================================
# CONFIGURATION & SETUP
# ==========================================
app = Flask(__name__)

# SQLite file next to wherever the server is started, unless DATABASE_URL says otherwise
basedir = os.path.abspath(os.getcwd())
app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv(
    'DATABASE_URL', 'sqlite:///' + os.path.join(basedir, 'sales.db'))
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'sales-tracker-dev-key')

app.config['DEMO_USERNAME'] = os.getenv('DEMO_USERNAME', 'demo')
app.config['DEMO_PASSWORD'] = os.getenv('DEMO_PASSWORD', 'demo123')
app.config['TOKEN_MAX_AGE'] = int(os.getenv('TOKEN_MAX_AGE', 2 * 60 * 60))

app.config['OPENAI_API_KEY'] = os.getenv('OPENAI_API_KEY', '')
app.config['OPENAI_MODEL'] = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')
app.config['TIP_ENDPOINT_URL'] = os.getenv('TIP_ENDPOINT_URL', '')
app.config['TIP_TIMEOUT'] = float(os.environ['TIP_TIMEOUT']) if os.getenv('TIP_TIMEOUT') else None
app.config['ENTRY_LIMIT'] = int(os.getenv('ENTRY_LIMIT', 100))

db = SQLAlchemy(app)

# ==========================================
# DATABASE MODELS
# ==========================================
class Entry(db.Model):
    """One day of sales numbers. Rows are never edited, only added or cleared."""
    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.String(10), nullable=False)
    voice_lines = db.Column(db.Integer, nullable=False, default=0)
    bts = db.Column(db.Integer, nullable=False, default=0)
    iot = db.Column(db.Integer, nullable=False, default=0)
    hsi = db.Column(db.Integer, nullable=False, default=0)
    accessories = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    protection = db.Column(db.Integer, nullable=False, default=0)
    plan_name = db.Column(db.String(100), nullable=False)
    mrc = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_form(cls, values):
        return cls(
            date=values['date'],
            voice_lines=int(values['voiceLines']),
            bts=int(values['bts']),
            iot=int(values['iot']),
            hsi=int(values['hsi']),
            accessories=Decimal(values['accessories']),
            protection=int(values['protection']),
            plan_name=values['planName'],
            mrc=Decimal(values['mrc']),
        )

    def to_dict(self):
        return {
            'id': self.id,
            'date': self.date,
            'voiceLines': str(self.voice_lines),
            'bts': str(self.bts),
            'iot': str(self.iot),
            'hsi': str(self.hsi),
            'accessories': f"{self.accessories:.2f}",
            'protection': str(self.protection),
            'planName': self.plan_name,
            'mrc': f"{self.mrc:.2f}",
        }

# ==========================================
# PERSISTENCE HELPERS
# ==========================================
def add_entry(values):
    entry = Entry.from_form(values)
    db.session.add(entry)
    db.session.commit()
    return entry

def recent_entries(limit=None):
    """Newest first, capped at ENTRY_LIMIT rows."""
    if limit is None:
        limit = app.config['ENTRY_LIMIT']
    return Entry.query.order_by(Entry.created_at.desc(), Entry.id.desc()).limit(limit).all()

def clear_entries():
    count = Entry.query.filter(Entry.id.isnot(None)).delete(synchronize_session=False)
    db.session.commit()
    return count

def fetch_tip(entries):
    endpoint = app.config['TIP_ENDPOINT_URL'] or url_for('api_generate_tip', _external=True)
    fetcher = TipFetcher(endpoint, g.auth_session, timeout=app.config['TIP_TIMEOUT'])
    return fetcher.fetch(entries)

# ==========================================
# HTML TEMPLATES
# ==========================================

BASE_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Sales Tracker</title>
    <link href="https://cdn.jsdelivr.net/npm/bootstrap@5.3.0/dist/css/bootstrap.min.css" rel="stylesheet">
    <link rel="stylesheet" href="https://cdn.jsdelivr.net/npm/bootstrap-icons@1.10.0/font/bootstrap-icons.css">
    <style>
        body { background-color: #f4f6f9; font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; }
        .sidebar { min-height: 100vh; background: #1e293b; color: white; }
        .nav-link { color: #cbd5e1; margin-bottom: 5px; }
        .nav-link:hover, .nav-link.active { color: white; background: #334155; border-radius: 5px; }
        .card { border: none; border-radius: 10px; box-shadow: 0 2px 4px rgba(0,0,0,0.05); }
        .stat-card { border-left: 4px solid; }
        .btn-primary { background-color: #3b82f6; border: none; }
        .btn-primary:hover { background-color: #2563eb; }
    </style>
</head>
<body>
    <div class="container-fluid">
        <div class="row">
            {% if page != 'login' %}
            <!-- Sidebar -->
            <div class="col-md-2 sidebar p-3">
                <h3 class="text-center mb-4 fw-bold"><i class="bi bi-phone"></i> Sales Tracker</h3>
                <ul class="nav flex-column">
                    <li class="nav-item">
                        <a class="nav-link {% if page == 'tracker' %}active{% endif %}" href="/tracker">
                            <i class="bi bi-graph-up me-2"></i> Tracker
                        </a>
                    </li>
                    <li class="nav-item">
                        <a class="nav-link" href="/logout">
                            <i class="bi bi-box-arrow-right me-2"></i> Log Out
                        </a>
                    </li>
                </ul>
            </div>
            {% endif %}

            <!-- Main Content -->
            <div class="{% if page == 'login' %}col-md-12{% else %}col-md-10{% endif %} p-4">
                {% with messages = get_flashed_messages(with_categories=true) %}
                {% for category, message in messages %}
                <div class="alert alert-{{ category }} alert-dismissible fade show" role="alert">
                    {{ message }}
                    <button type="button" class="btn-close" data-bs-dismiss="alert"></button>
                </div>
                {% endfor %}
                {% endwith %}
                {% block content %}{% endblock %}
            </div>
        </div>
    </div>
    <script src="https://cdn.jsdelivr.net/npm/bootstrap@5.3.0/dist/js/bootstrap.bundle.min.js"></script>
</body>
</html>
"""

LOGIN_TEMPLATE = """
{% extends "base" %}
{% block content %}
<div class="row justify-content-center">
    <div class="col-md-4 mt-5">
        <div class="card p-4">
            <h2 class="fw-bold mb-3">Log In</h2>
            {% if error %}
            <div class="text-danger mb-3">{{ error }}</div>
            {% endif %}
            <form action="/login" method="POST">
                <div class="mb-3">
                    <label class="form-label">Username</label>
                    <input type="text" name="username" class="form-control" value="{{ username or '' }}" required>
                </div>
                <div class="mb-3">
                    <label class="form-label">Password</label>
                    <input type="password" name="password" class="form-control" required>
                </div>
                <button type="submit" class="btn btn-primary w-100">Sign In</button>
            </form>
        </div>
    </div>
</div>
{% endblock %}
"""

TRACKER_TEMPLATE = """
{% extends "base" %}
{% block content %}
<h2 class="fw-bold mb-4">Performance Tracker</h2>

<div class="row mb-4">
    <!-- Entry Form -->
    <div class="col-md-6 mb-4">
        <div class="card p-4 h-100">
            <h5>Enter Daily Sales</h5>
            <form action="/add_entry" method="POST">
                <div class="row">
                    {% for name, label, kind in fields %}
                    <div class="col-md-6 mb-3">
                        <label class="form-label">{{ label }}</label>
                        <input type="{{ kind }}" name="{{ name }}" class="form-control"
                               {% if name == 'date' %}value="{{ today }}"{% endif %} required>
                    </div>
                    {% endfor %}
                </div>
                <button type="submit" class="btn btn-primary"><i class="bi bi-plus-lg"></i> Submit</button>
            </form>
        </div>
    </div>

    <!-- Latest Entry -->
    <div class="col-md-6 mb-4">
        <div class="card p-4 h-100">
            <h5>Latest Entry Overview</h5>
            {% if stats.latest %}
            <p class="mb-1 text-muted">{{ stats.latest.date }} &middot; {{ stats.latest.planName }}</p>
            <p class="mb-1">Voice Lines: {{ stats.latest.voiceLines }}</p>
            <p class="mb-1">BTS: {{ stats.latest.bts }}</p>
            <p class="mb-1">IoT: {{ stats.latest.iot }}</p>
            <p class="mb-1">HSI: {{ stats.latest.hsi }}</p>
            <p class="mb-1">Accessories: ${{ stats.latest.accessories }}</p>
            <p class="mb-1">Protection: {{ stats.latest.protection }}</p>
            <p class="mb-1">MRC: ${{ stats.latest.mrc }}</p>
            {% else %}
            <p class="text-muted">No entries yet</p>
            {% endif %}
        </div>
    </div>
</div>

<!-- Summary Statistics -->
<div class="row mb-4">
    <div class="col-md-3">
        <div class="card stat-card p-3 h-100" style="border-color: #3b82f6;">
            <h6 class="text-muted">Total Lines</h6>
            <h3 id="total-lines">{{ stats.total_lines }}</h3>
            <small class="text-muted">Voice {{ stats.voice_lines }} / BTS {{ stats.bts }} / IoT {{ stats.iot }} / HSI {{ stats.hsi }}</small>
        </div>
    </div>
    <div class="col-md-3">
        <div class="card stat-card p-3 h-100" style="border-color: #10b981;">
            <h6 class="text-muted">Accessories</h6>
            <h3 id="accessories">${{ stats.accessories }}</h3>
            <small class="text-muted">{{ stats.entry_count }} entries, avg {{ stats.average_lines }} lines</small>
        </div>
    </div>
    <div class="col-md-3">
        <div class="card stat-card p-3 h-100" style="border-color: #f59e0b;">
            <h6 class="text-muted">Protection</h6>
            <h3 id="protection-percent">{{ stats.protection_percent }}</h3>
            <small class="text-muted">{{ stats.protection }} plans attached</small>
        </div>
    </div>
    <div class="col-md-3">
        <div class="card stat-card p-3 h-100" style="border-color: #ef4444;">
            <h6 class="text-muted">Average MRC</h6>
            <h3 id="average-mrc">${{ stats.average_mrc }}</h3>
            <small class="text-muted">Per entry</small>
        </div>
    </div>
</div>

<!-- Tip of the Day -->
<div class="card p-4 mb-4">
    <h5><i class="bi bi-lightbulb"></i> Tip of the Day</h5>
    <p id="tip" class="mb-0">{{ tip }}</p>
</div>

<!-- Entries Table -->
<div class="card p-0 overflow-hidden">
    <div class="card-header bg-white py-3 d-flex justify-content-between align-items-center">
        <h5 class="m-0">All Entries</h5>
        <form action="/clear_entries" method="POST" onsubmit="return confirm('Delete every entry?')">
            <button class="btn btn-sm btn-outline-danger"><i class="bi bi-trash"></i> Clear All</button>
        </form>
    </div>
    <div class="table-responsive">
        <table class="table table-hover mb-0 align-middle">
            <thead class="table-light">
                <tr>
                    {% for name, label, kind in fields %}<th>{{ label }}</th>{% endfor %}
                </tr>
            </thead>
            <tbody>
                {% for entry in entries %}
                <tr>
                    {% for name, label, kind in fields %}
                    <td>{% if name in ('accessories', 'mrc') %}${% endif %}{{ entry[name] }}</td>
                    {% endfor %}
                </tr>
                {% else %}
                <tr>
                    <td colspan="{{ fields|length }}" class="text-center py-4 text-muted">
                        <i class="bi bi-inbox display-6 d-block mb-2"></i>
                        No entries yet
                    </td>
                </tr>
                {% endfor %}
            </tbody>
        </table>
    </div>
</div>
{% endblock %}
"""

# Register templates in memory
app.jinja_loader = jinja2.DictLoader({
    'base': BASE_TEMPLATE,
    'login': LOGIN_TEMPLATE,
    'tracker': TRACKER_TEMPLATE,
})

ENTRY_FIELDS = [
    ('date', LABELS['date'], 'date'),
    ('voiceLines', LABELS['voiceLines'], 'text'),
    ('bts', LABELS['bts'], 'text'),
    ('iot', LABELS['iot'], 'text'),
    ('hsi', LABELS['hsi'], 'text'),
    ('accessories', LABELS['accessories'], 'text'),
    ('protection', LABELS['protection'], 'text'),
    ('planName', LABELS['planName'], 'text'),
    ('mrc', LABELS['mrc'], 'text'),
]

# ==========================================
# ROUTES & LOGIC
# ==========================================

@app.route('/')
def home():
    if auth.AuthSession.from_flask_session().is_authenticated:
        return redirect(url_for('tracker'))
    return redirect(url_for('login_page'))

@app.route('/login', methods=['GET', 'POST'])
def login_page():
    if request.method == 'GET':
        return render_template('login', page='login')

    username = request.form.get('username', '')
    token = auth.login(username, request.form.get('password', ''))
    if token is None:
        return render_template('login', page='login', username=username,
                               error='Invalid credentials'), 401

    auth.AuthSession(token).store()
    return redirect(url_for('tracker'))

@app.route('/logout')
def logout():
    auth.AuthSession.forget()
    flash('Logged out.', 'info')
    return redirect(url_for('login_page'))

@app.route('/tracker')
@auth.token_required
def tracker():
    entries = [e.to_dict() for e in recent_entries()]
    stats = summarize(entries)
    tip = fetch_tip(entries)
    return render_template(
        'tracker',
        page='tracker',
        fields=ENTRY_FIELDS,
        entries=entries,
        stats=stats,
        tip=tip,
        today=datetime.today().strftime('%Y-%m-%d'),
    )

@app.route('/add_entry', methods=['POST'])
@auth.token_required
def add_entry_route():
    try:
        values = validate_entry(request.form)
    except EntryValidationError as e:
        for field, message in e.errors.items():
            flash(f"{LABELS[field]}: {message}", 'warning')
        return redirect(url_for('tracker'))

    try:
        add_entry(values)
    except SQLAlchemyError:
        db.session.rollback()
        app.logger.exception("Error inserting entry")
        flash('Could not save the entry. Please try again.', 'danger')
        return redirect(url_for('tracker'))

    flash('Entry saved.', 'success')
    return redirect(url_for('tracker'))

@app.route('/clear_entries', methods=['POST'])
@auth.token_required
def clear_entries_route():
    try:
        count = clear_entries()
    except SQLAlchemyError:
        db.session.rollback()
        app.logger.exception("Error clearing entries")
        flash('Could not clear entries. Please try again.', 'danger')
        return redirect(url_for('tracker'))

    app.logger.info("Cleared %d entries", count)
    flash(f'Cleared {count} entries.', 'info')
    return redirect(url_for('tracker'))

# --- JSON API ---
@app.route('/api/login', methods=['POST'])
def api_login():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    token = auth.login(data.get('username'), data.get('password'))
    if token is None:
        return jsonify({'error': 'Invalid credentials'}), 401
    return jsonify({'token': token})

@app.route('/api/generateTip', methods=['POST'])
@auth.api_token_required
def api_generate_tip():
    data = request.get_json(silent=True)
    entries = data.get('entries') if isinstance(data, dict) else None
    if not isinstance(entries, list):
        return jsonify({'error': 'Missing or invalid `entries` array'}), 400
    if not entries:
        return jsonify({'tip': NO_ENTRIES_TIP})

    try:
        tip = generate_tip(entries)
    except TipGenerationError as e:
        app.logger.warning("Tip generation failed: %s", e)
        return jsonify({'error': 'Failed to generate tip'}), 500
    return jsonify({'tip': tip})

@app.route('/api/entries')
@auth.api_token_required
def api_entries():
    return jsonify([e.to_dict() for e in recent_entries()])

@app.route('/api/clearEntries', methods=['POST'])
@auth.api_token_required
def api_clear_entries():
    try:
        count = clear_entries()
    except SQLAlchemyError as e:
        db.session.rollback()
        app.logger.exception("Error clearing entries")
        return jsonify({'error': str(e)}), 500
    app.logger.info("Cleared %d entries via API", count)
    return jsonify({'cleared': count})

# ==========================================
# INITIALIZATION HELPERS
# ==========================================
def init_db():
    """Create/repair schema."""
    with app.app_context():
        try:
            db.create_all()
            Entry.query.first()
        except OperationalError:
            app.logger.warning("Schema mismatch. Rebuilding...")
            db.drop_all()
            db.create_all()

def run_flask():
    """Initialize DB and run the Flask server."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    init_db()
    app.run(
        host="127.0.0.1",
        port=5000,
        debug=False
    )

if __name__ == '__main__':
    # Development mode: run with Python directly
    run_flask()
