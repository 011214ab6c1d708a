# --- Imports ---
import os, sys, logging, uuid, secrets
from datetime import datetime, timezone
from functools import wraps
from flask import Flask, Response, request, session, jsonify
from flask_login import LoginManager, UserMixin, current_user, login_required
from werkzeug.security import generate_password_hash, check_password_hash
from dotenv import load_dotenv
from itsdangerous import URLSafeTimedSerializer, SignatureExpired, BadSignature
from flask_talisman import Talisman
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from flask_socketio import SocketIO, join_room

from .ai_gateway import AIGateway, DEFAULT_MODEL
from .entities import DAYS, Priority, Role
from .quiz import AttemptGate, DEFAULT_SET, PRACTICE_SET
from .sync import MESSAGE_WINDOW
# ==============================================================================
# --- 1. INITIAL CONFIGURATION & SETUP ---
# ==============================================================================
load_dotenv()
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
# --- Security Check for Essential Environment Variables ---
REQUIRED_KEYS = ['SECRET_KEY']
for key in REQUIRED_KEYS:
    if not os.environ.get(key):
        logging.critical(f"CRITICAL ERROR: Environment variable '{key}' is not set.")
        sys.exit(f"Error: Missing required environment variable '{key}'. Add it to the environment or to .env and restart.")
# --- Flask App Initialization ---
app = Flask(__name__)
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY')
app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///classroom.db')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
FORCE_HTTPS = os.environ.get('FORCE_HTTPS', 'true').lower() == 'true'
# --- Security: Content Security Policy (CSP) ---
csp = {
    'default-src': "'self'",
    'script-src': ["'self'", "https://cdn.tailwindcss.com", "https://cdnjs.cloudflare.com", "'unsafe-inline'"],
    'style-src': ["'self'", "https://fonts.googleapis.com", "'unsafe-inline'"],
    'font-src': ["'self'", "https://fonts.gstatic.com"],
    'connect-src': ["'self'", "ws:", "wss:"],
}
Talisman(app, content_security_policy=csp, force_https=FORCE_HTTPS, session_cookie_secure=FORCE_HTTPS)
# --- Site & API Configuration ---
SITE_CONFIG = {
    "STUDENT_CODE": os.environ.get('STUDENT_CODE', ''),
    "ADMIN_CODE": os.environ.get('ADMIN_CODE', ''),
    "QUIZ_ATTEMPT_GATE": AttemptGate.parse(os.environ.get('QUIZ_ATTEMPT_GATE', AttemptGate.DEFAULT_SET_ONLY.value)),
    "TOKEN_MAX_AGE": int(os.environ.get('TOKEN_MAX_AGE', 60 * 60 * 24 * 30)),
}
CLASSROOM_ROOM = 'classroom'
# --- Service Initializations (DB, SocketIO, Tokens, Gemini) ---
token_serializer = URLSafeTimedSerializer(app.config['SECRET_KEY'])
db = SQLAlchemy(app)
socketio = SocketIO(app, cors_allowed_origins="*")
ai_gateway = AIGateway(api_key=os.environ.get('GEMINI_API_KEY', ''), model_name=os.environ.get('GEMINI_MODEL', DEFAULT_MODEL))
if not ai_gateway.available:
    logging.warning("GEMINI_API_KEY is not set; translation and quiz generation are disabled.")
# ==============================================================================
# --- 2. DATABASE MODELS (SQLALCHEMY) ---
# ==============================================================================
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    if type(dbapi_connection).__module__.startswith('sqlite3'):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
def utcnow(): return datetime.now(timezone.utc).replace(tzinfo=None)
def new_id(): return str(uuid.uuid4())
class User(UserMixin, db.Model):
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    email = db.Column(db.String(120), unique=True, nullable=False)
    name = db.Column(db.String(80), nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=Role.STUDENT.value)
    session_epoch = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow)
    messages = db.relationship('Message', back_populates='user', lazy=True, passive_deletes=True)
    quiz_results = db.relationship('QuizResult', back_populates='user', lazy='dynamic', cascade="all, delete-orphan")
    @property
    def is_admin(self): return self.role == Role.ADMIN.value
    def to_dict(self):
        return {"id": self.id, "email": self.email, "name": self.name, "role": self.role, "created_at": self.created_at.isoformat()}
class Message(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    user = db.relationship('User', back_populates='messages')
    def to_dict(self):
        author = {"name": self.user.name, "role": self.user.role} if self.user else {"name": "Unknown", "role": Role.STUDENT.value}
        return {"id": self.id, "user_id": self.user_id, "content": self.content, "created_at": self.created_at.isoformat(), "author": author}
class Announcement(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    title = db.Column(db.String(150), nullable=False)
    content = db.Column(db.Text, nullable=False)
    priority = db.Column(db.String(10), nullable=False, default=Priority.NORMAL.value)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    def to_dict(self):
        return {"id": self.id, "title": self.title, "content": self.content, "priority": self.priority, "created_at": self.created_at.isoformat()}
class ScheduleItem(db.Model):
    __tablename__ = 'schedule_item'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    day = db.Column(db.String(10), nullable=False)
    time = db.Column(db.String(40), nullable=False)
    subject = db.Column(db.String(120), nullable=False)
    room = db.Column(db.String(60), nullable=False, default='')
    created_at = db.Column(db.DateTime, default=utcnow)
    def to_dict(self):
        return {"id": self.id, "day": self.day, "time": self.time, "subject": self.subject, "room": self.room, "created_at": self.created_at.isoformat()}
class QuizResult(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False, index=True)
    score = db.Column(db.Integer, nullable=False)
    total = db.Column(db.Integer, nullable=False)
    question_set = db.Column(db.String(20), nullable=False, default=DEFAULT_SET)
    created_at = db.Column(db.DateTime, default=utcnow)
    user = db.relationship('User', back_populates='quiz_results')
    def to_dict(self):
        return {"id": self.id, "user_id": self.user_id, "score": self.score, "total": self.total, "question_set": self.question_set, "created_at": self.created_at.isoformat()}
# ==============================================================================
# --- 3. USER & SESSION MANAGEMENT ---
# ==============================================================================
login_manager = LoginManager()
login_manager.init_app(app)
@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Login required.", "logged_in": False}), 401
# Sessions are bearer tokens only; no login cookie is ever set.
@login_manager.request_loader
def load_user_from_request(req):
    token = bearer_token(req)
    return resolve_token(token)[0] if token else None
def issue_token(user):
    return token_serializer.dumps({"uid": user.id, "epoch": user.session_epoch}, salt='session-token')
def resolve_token(token):
    """Returns (user, None) or (None, reason) with reason 'invalid' or 'not_found'."""
    try: data = token_serializer.loads(token, salt='session-token', max_age=SITE_CONFIG['TOKEN_MAX_AGE'])
    except (SignatureExpired, BadSignature): return None, 'invalid'
    user = db.session.get(User, data.get('uid'))
    if not user: return None, 'not_found'
    if user.session_epoch != data.get('epoch'): return None, 'invalid'
    return user, None
def bearer_token(req=None):
    header = (req or request).headers.get('Authorization', '')
    return header[len('Bearer '):].strip() if header.startswith('Bearer ') else None
# ==============================================================================
# --- 4. DECORATORS & HELPER FUNCTIONS ---
# ==============================================================================
def service_config():
    return {"quiz_attempt_gate": SITE_CONFIG['QUIZ_ATTEMPT_GATE'].value, "ai_enabled": ai_gateway.available, "days": DAYS, "message_window": MESSAGE_WINDOW}
def role_required(role_name):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated: return jsonify({"error": "Login required."}), 401
            if current_user.role != role_name and current_user.role != Role.ADMIN.value: return jsonify({"error": f"{role_name.capitalize()} access required."}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator
admin_required = role_required(Role.ADMIN.value)
def broadcast_change(collection, kind, record_id):
    socketio.emit(collection, {"event": kind, "id": record_id}, room=CLASSROOM_ROOM)
def role_for_code(code):
    code = (code or '').strip()
    if SITE_CONFIG['ADMIN_CODE'] and code == SITE_CONFIG['ADMIN_CODE']: return Role.ADMIN.value
    if SITE_CONFIG['STUDENT_CODE']:
        return Role.STUDENT.value if code == SITE_CONFIG['STUDENT_CODE'] else None
    return Role.STUDENT.value if not code else None
def json_body(): return request.get_json(silent=True) or {}
# ==============================================================================
# --- 5. FRONTEND & CORE ROUTES ---
# ==============================================================================
@app.route('/')
def index():
    nonce = secrets.token_hex(16)
    session['_csp_nonce'] = nonce
    final_html = HTML_CONTENT.replace('{csp_nonce}', nonce)
    return Response(final_html, mimetype='text/html')
@app.route('/api/status')
def status():
    if current_user.is_authenticated: return jsonify({"logged_in": True, "user": current_user.to_dict(), "config": service_config()})
    return jsonify({"logged_in": False, "config": service_config()})
@app.route('/api/session')
def resolve_session():
    token = bearer_token()
    if not token: return jsonify({"error": "No session token.", "logged_in": False}), 401
    user, problem = resolve_token(token)
    if problem == 'not_found': return jsonify({"error": "User not found.", "logged_in": False}), 404
    if not user: return jsonify({"error": "Session expired.", "logged_in": False}), 401
    return jsonify({"logged_in": True, "user": user.to_dict(), "config": service_config()})
# ==============================================================================
# --- 6. AUTHENTICATION API ROUTES ---
# ==============================================================================
@app.route('/api/login', methods=['POST'])
def login():
    data = json_body()
    email = (data.get('email') or '').strip().lower()
    user = User.query.filter_by(email=email).first() if email else None
    if user and check_password_hash(user.password_hash, data.get('password', '')):
        logging.info(f"User {user.email} signed in.")
        return jsonify({"success": True, "token": issue_token(user), "user": user.to_dict()})
    return jsonify({"error": "Invalid email or password."}), 401
@app.route('/api/logout', methods=['POST'])
@login_required
def logout():
    user = current_user._get_current_object()
    user.session_epoch += 1
    db.session.commit()
    socketio.emit('auth', {"event": "SIGNED_OUT"}, room=f'user_{user.id}')
    logging.info(f"User {user.email} signed out; issued tokens revoked.")
    return jsonify({"success": True})
@app.route('/api/signup', methods=['POST'])
def signup():
    data = json_body()
    name, password, email = (data.get('name') or '').strip(), data.get('password') or '', (data.get('email') or '').strip().lower()
    if not all([name, password, email]) or len(password) < 6 or '@' not in email: return jsonify({"error": "Valid email, name, and password (min 6 chars) are required."}), 400
    if User.query.filter_by(email=email).first(): return jsonify({"error": "Email already in use."}), 409
    role = role_for_code(data.get('code'))
    if role is None: return jsonify({"error": "Invalid registration code."}), 403
    new_user = User(email=email, name=name, password_hash=generate_password_hash(password), role=role)
    db.session.add(new_user)
    db.session.commit()
    logging.info(f"Registered {role} account {email}.")
    return jsonify({"success": True, "token": issue_token(new_user), "user": new_user.to_dict()}), 201
# ==============================================================================
# --- 7. MESSAGING ROUTES ---
# ==============================================================================
@app.route('/api/messages', methods=['GET', 'POST'])
@login_required
def manage_messages():
    if request.method == 'GET':
        latest = Message.query.order_by(Message.created_at.desc()).limit(MESSAGE_WINDOW).all()
        return jsonify({"success": True, "messages": [m.to_dict() for m in reversed(latest)]})
    content = (json_body().get('content') or '').strip()
    if not content: return jsonify({"error": "Message content is required."}), 400
    if len(content) > 2000: return jsonify({"error": "Message is too long (max 2000 characters)."}), 400
    new_message = Message(user_id=current_user.id, content=content)
    db.session.add(new_message)
    db.session.commit()
    broadcast_change('messages', 'INSERT', new_message.id)
    return jsonify({"success": True, "item": new_message.to_dict()}), 201
@app.route('/api/messages/<message_id>', methods=['GET'])
@login_required
def get_message(message_id):
    message = db.get_or_404(Message, message_id)
    return jsonify({"success": True, "item": message.to_dict()})
# ==============================================================================
# --- 8. ANNOUNCEMENTS ROUTES ---
# ==============================================================================
@app.route('/api/announcements', methods=['GET'])
@login_required
def list_announcements():
    announcements = Announcement.query.order_by(Announcement.created_at.desc()).all()
    return jsonify({"success": True, "announcements": [a.to_dict() for a in announcements]})
@app.route('/api/announcements', methods=['POST'])
@admin_required
def post_announcement():
    data = json_body()
    title, content = (data.get('title') or '').strip(), (data.get('content') or '').strip()
    priority = (data.get('priority') or Priority.NORMAL.value).upper()
    if not title or not content: return jsonify({"error": "Title and content are required."}), 400
    if priority not in (p.value for p in Priority): return jsonify({"error": "Priority must be NORMAL or URGENT."}), 400
    announcement = Announcement(title=title, content=content, priority=priority)
    db.session.add(announcement)
    db.session.commit()
    broadcast_change('announcements', 'INSERT', announcement.id)
    return jsonify({"success": True, "item": announcement.to_dict()}), 201
@app.route('/api/announcements/<announcement_id>', methods=['GET', 'DELETE'])
@login_required
def manage_announcement(announcement_id):
    announcement = db.get_or_404(Announcement, announcement_id)
    if request.method == 'GET': return jsonify({"success": True, "item": announcement.to_dict()})
    if not current_user.is_admin: return jsonify({"error": "Admin access required."}), 403
    db.session.delete(announcement)
    db.session.commit()
    broadcast_change('announcements', 'DELETE', announcement_id)
    return jsonify({"success": True})
# ==============================================================================
# --- 9. SCHEDULE ROUTES ---
# ==============================================================================
@app.route('/api/schedule', methods=['GET'])
@login_required
def list_schedule():
    items = ScheduleItem.query.all()
    items.sort(key=lambda i: (DAYS.index(i.day) if i.day in DAYS else len(DAYS), i.time))
    return jsonify({"success": True, "schedule": [i.to_dict() for i in items]})
@app.route('/api/schedule', methods=['POST'])
@admin_required
def add_schedule_item():
    data = json_body()
    day, time, subject, room = data.get('day'), (data.get('time') or '').strip(), (data.get('subject') or '').strip(), (data.get('room') or '').strip()
    if day not in DAYS: return jsonify({"error": f"Day must be one of {', '.join(DAYS)}."}), 400
    if not time or not subject: return jsonify({"error": "Time and subject are required."}), 400
    item = ScheduleItem(day=day, time=time, subject=subject, room=room)
    db.session.add(item)
    db.session.commit()
    broadcast_change('schedule', 'INSERT', item.id)
    return jsonify({"success": True, "item": item.to_dict()}), 201
@app.route('/api/schedule/<item_id>', methods=['GET', 'DELETE'])
@login_required
def manage_schedule_item(item_id):
    item = db.get_or_404(ScheduleItem, item_id)
    if request.method == 'GET': return jsonify({"success": True, "item": item.to_dict()})
    if not current_user.is_admin: return jsonify({"error": "Admin access required."}), 403
    db.session.delete(item)
    db.session.commit()
    broadcast_change('schedule', 'DELETE', item_id)
    return jsonify({"success": True})
# ==============================================================================
# --- 10. QUIZ RESULT ROUTES ---
# ==============================================================================
def gating_result(user_id, question_set):
    """The stored result that blocks another scored attempt at question_set, if any."""
    gate = SITE_CONFIG['QUIZ_ATTEMPT_GATE']
    query = QuizResult.query.filter_by(user_id=user_id)
    if gate is AttemptGate.DEFAULT_SET_ONLY:
        if question_set != DEFAULT_SET: return None
        query = query.filter_by(question_set=DEFAULT_SET)
    return query.first()
@app.route('/api/quiz/result', methods=['GET'])
@login_required
def latest_quiz_result():
    query = QuizResult.query.filter_by(user_id=current_user.id)
    question_set = request.args.get('question_set')
    if question_set: query = query.filter_by(question_set=question_set)
    result = query.order_by(QuizResult.created_at.desc()).first()
    return jsonify({"success": True, "result": result.to_dict() if result else None})
@app.route('/api/quiz/results', methods=['POST'])
@login_required
def submit_quiz_result():
    data = json_body()
    question_set = data.get('question_set', DEFAULT_SET)
    try: score, total = int(data['score']), int(data['total'])
    except (KeyError, TypeError, ValueError): return jsonify({"error": "Integer score and total are required."}), 400
    if total <= 0 or not 0 <= score <= total: return jsonify({"error": "Score must be between 0 and total."}), 400
    if question_set not in (DEFAULT_SET, PRACTICE_SET): return jsonify({"error": "Unknown question set."}), 400
    if gating_result(current_user.id, question_set): return jsonify({"error": "You have already attempted this quiz."}), 409
    result = QuizResult(user_id=current_user.id, score=score, total=total, question_set=question_set)
    db.session.add(result)
    db.session.commit()
    logging.info(f"Stored {question_set} quiz result {score}/{total} for {current_user.email}.")
    return jsonify({"success": True, "result": result.to_dict()}), 201
# ==============================================================================
# --- 11. AI GATEWAY ROUTES ---
# ==============================================================================
@app.route('/api/ai/translate', methods=['POST'])
@login_required
def translate_text():
    translation = ai_gateway.translate(json_body().get('text') or '')
    return jsonify({"success": translation is not None, "translation": translation, "available": ai_gateway.available})
@app.route('/api/ai/quiz', methods=['POST'])
@login_required
def generate_quiz():
    data = json_body()
    questions = ai_gateway.generate_quiz(data.get('context') or '', data.get('objective') or '')
    return jsonify({"success": bool(questions), "questions": questions, "available": ai_gateway.available})
# ==============================================================================
# --- 12. SOCKET.IO EVENTS ---
# ==============================================================================
@socketio.on('connect')
def on_connect(auth=None):
    token = (auth or {}).get('token') if isinstance(auth, dict) else None
    user = resolve_token(token)[0] if token else None
    if user is None: return False
    join_room(CLASSROOM_ROOM)
    join_room(f'user_{user.id}')
# ==============================================================================
# --- 13. ERROR HANDLERS ---
# ==============================================================================
def wants_json(): return request.path.startswith('/api/')
@app.errorhandler(404)
def not_found(e):
    if wants_json(): return jsonify({"error": "Not found."}), 404
    return e
@app.errorhandler(405)
def method_not_allowed(e):
    if wants_json(): return jsonify({"error": "Method not allowed."}), 405
    return e
@app.errorhandler(SQLAlchemyError)
def database_error(e):
    db.session.rollback()
    logging.error(f"Database error on {request.method} {request.path}: {e}")
    return jsonify({"error": "The database is unavailable, please try again."}), 503
@app.errorhandler(500)
def internal_error(e):
    original = getattr(e, 'original_exception', None) or e
    logging.error(f"Unhandled error on {request.method} {request.path}: {original!r}")
    if wants_json(): return jsonify({"error": "Internal server error."}), 500
    return Response(FALLBACK_HTML.replace('{diagnostic}', type(original).__name__), status=500, mimetype='text/html')
# ==============================================================================
# --- 14. HTML & JAVASCRIPT FRONTEND ---
# ==============================================================================
FALLBACK_HTML = """<!DOCTYPE html>
<html lang="en"><head><meta charset="UTF-8" /><title>Classroom Portal - Error</title></head>
<body style="font-family:sans-serif;background:#111;color:#eee;display:flex;align-items:center;justify-content:center;height:100vh;margin:0">
<div style="max-width:32rem;text-align:center"><h1>Something went wrong</h1>
<p>The portal hit an unexpected error: <code>{diagnostic}</code></p><p>Please reload the page. If it keeps happening, tell your teacher.</p>
<button onclick="location.reload()">Reload</button></div></body></html>
"""
HTML_CONTENT = """
<!DOCTYPE html>
<html lang="en" class="dark">
<head>
    <meta charset="UTF-8" /><meta name="viewport" content="width=device-width, initial-scale=1.0" /><title>Classroom Portal</title>
    <script src="https://cdn.tailwindcss.com"></script><script src="https://cdnjs.cloudflare.com/ajax/libs/socket.io/4.7.5/socket.io.min.js"></script>
</head>
<body class="bg-gray-900 text-gray-100 h-screen flex flex-col">
    <div id="banner" class="hidden bg-red-700 text-white text-sm p-2 text-center">Live updates are offline; this view may be stale.</div>
    <main id="app" class="flex-1 p-6 max-w-3xl mx-auto w-full"><p class="animate-pulse">Connecting...</p></main>
    <script nonce="{csp_nonce}">
    const app = document.getElementById('app'), banner = document.getElementById('banner');
    let token = localStorage.getItem('portal_token'), socket = null;
    const api = async (method, path, body) => {
        const res = await fetch(path, {method, headers: Object.assign({'Content-Type': 'application/json'}, token ? {'Authorization': 'Bearer ' + token} : {}), body: body ? JSON.stringify(body) : undefined});
        const data = await res.json().catch(() => ({}));
        if (!res.ok) throw Object.assign(new Error(data.error || res.statusText), {status: res.status});
        return data;
    };
    const esc = s => String(s).replace(/[&<>"']/g, c => ({'&': '&amp;', '<': '&lt;', '>': '&gt;', '"': '&quot;', "'": '&#39;'}[c]));
    function renderLogin(error) {
        app.innerHTML = `<form id="login" class="space-y-3 max-w-sm mx-auto"><h1 class="text-2xl font-bold">Classroom Portal</h1>
            <input name="email" placeholder="Email" class="w-full p-2 bg-gray-800 rounded" /><input name="password" type="password" placeholder="Password" class="w-full p-2 bg-gray-800 rounded" />
            <p class="text-red-400 text-sm">${error ? esc(error) : ''}</p><button class="w-full bg-blue-600 p-2 rounded">Sign in</button></form>`;
        document.getElementById('login').onsubmit = async ev => {
            ev.preventDefault();
            const f = new FormData(ev.target);
            try { const data = await api('POST', '/api/login', {email: f.get('email'), password: f.get('password')}); token = data.token; localStorage.setItem('portal_token', token); start(); }
            catch (err) { renderLogin(err.message); }
        };
    }
    function renderChat(user, messages) {
        app.innerHTML = `<div class="flex justify-between mb-4"><h1 class="text-xl font-bold">Chat</h1><button id="logout" class="text-sm text-gray-400">Sign out (${esc(user.name)})</button></div>
            <ul id="messages" class="space-y-2 mb-4">${messages.map(m => `<li><b>${esc(m.author.name)}</b>: ${esc(m.content)}</li>`).join('')}</ul>
            <form id="send" class="flex gap-2"><input name="content" class="flex-1 p-2 bg-gray-800 rounded" /><button class="bg-blue-600 px-4 rounded">Send</button></form>`;
        document.getElementById('logout').onclick = async () => { try { await api('POST', '/api/logout'); } finally { token = null; localStorage.removeItem('portal_token'); if (socket) socket.disconnect(); renderLogin(); } };
        document.getElementById('send').onsubmit = ev => { ev.preventDefault(); const input = ev.target.content, content = input.value.trim(); input.value = ''; if (content) api('POST', '/api/messages', {content}).catch(err => alert(err.message)); };
    }
    async function start() {
        if (!token) return renderLogin();
        try {
            const session = await api('GET', '/api/session');
            const messages = (await api('GET', '/api/messages')).messages;
            renderChat(session.user, messages);
            socket = io({auth: {token}});
            socket.on('connect', () => banner.classList.add('hidden'));
            socket.on('disconnect', () => banner.classList.remove('hidden'));
            socket.on('messages', async ev => {
                if (ev.event !== 'INSERT' || document.getElementById('msg-' + ev.id)) return;
                const m = (await api('GET', '/api/messages/' + ev.id)).item;
                const li = document.createElement('li'); li.id = 'msg-' + m.id; li.innerHTML = `<b>${esc(m.author.name)}</b>: ${esc(m.content)}`;
                document.getElementById('messages').appendChild(li);
            });
            socket.on('auth', ev => { if (ev.event === 'SIGNED_OUT') { token = null; localStorage.removeItem('portal_token'); socket.disconnect(); renderLogin(); } });
        } catch (err) {
            if (err.status === 401 || err.status === 404) { token = null; localStorage.removeItem('portal_token'); return renderLogin(); }
            app.innerHTML = `<p class="text-red-400">Connection failed: ${esc(err.message)}</p><button id="retry" class="mt-4 bg-white text-black px-4 py-1 rounded">Retry</button>`;
            document.getElementById('retry').onclick = start;
        }
    }
    start();
    </script>
</body>
</html>
"""
# ==============================================================================
# --- 15. APP INITIALIZATION & EXECUTION ---
# ==============================================================================
def initialize_app_database():
    with app.app_context():
        db.create_all()
        if not User.query.filter_by(role=Role.ADMIN.value).first():
            admin_pass = os.environ.get('ADMIN_PASSWORD', 'change-this-default-password')
            admin_email = os.environ.get('ADMIN_EMAIL', 'admin@example.com').lower()
            admin = User(email=admin_email, name='Teacher', password_hash=generate_password_hash(admin_pass), role=Role.ADMIN.value)
            db.session.add(admin)
            logging.info(f"Created default admin user with email {admin_email}.")
        if not Announcement.query.first():
            db.session.add(Announcement(title='Welcome', content='Welcome to the classroom portal!', priority=Priority.NORMAL.value))
            logging.info("Created default welcome announcement.")
        db.session.commit()
def main():
    initialize_app_database()
    port = int(os.environ.get('PORT', 5000))
    socketio.run(app, host='0.0.0.0', port=port, debug=os.environ.get('FLASK_DEBUG', '0') == '1', allow_unsafe_werkzeug=True)
if __name__ == '__main__':
    main()
