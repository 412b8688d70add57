from flask import (
    Flask,
    abort,
    jsonify,
    request,
)
from flask_sqlalchemy import SQLAlchemy
from flask_login import (
    LoginManager,
    login_user,
    logout_user,
    login_required,
    current_user,
)
import os
import click
from sqlalchemy import inspect, text

from .errors import LeagueError


db = SQLAlchemy()
login_manager = LoginManager()


def upgrade_schema():
    """Add columns that older databases are missing.

    Databases created before optimistic versioning have no ``version`` column
    on ``tournament``; the tournament id on ``match`` and the ``finished``
    flag were also added after the first release.
    """
    inspector = inspect(db.engine)
    tables = inspector.get_table_names()
    if 'tournament' in tables:
        columns = [c['name'] for c in inspector.get_columns('tournament')]
        if 'finished' not in columns:
            db.session.execute(text('ALTER TABLE tournament ADD COLUMN finished BOOLEAN DEFAULT 0'))
            db.session.execute(text('UPDATE tournament SET finished=0 WHERE finished IS NULL'))
            db.session.commit()
        if 'version' not in columns:
            db.session.execute(text('ALTER TABLE tournament ADD COLUMN version INTEGER DEFAULT 1'))
            db.session.execute(text('UPDATE tournament SET version=1 WHERE version IS NULL'))
            db.session.commit()
    if 'match' in tables:
        columns = [c['name'] for c in inspector.get_columns('match')]
        if 'tournament_id' not in columns:
            db.session.execute(text('ALTER TABLE "match" ADD COLUMN tournament_id INTEGER'))
            db.session.commit()


def create_app():
    app = Flask(__name__)
    db_file = os.environ.get('LEAGUE_DB_PATH', 'league.db')
    log_db_file = os.environ.get('LEAGUE_LOG_DB_PATH', db_file.replace('.db', '_logs.db'))
    app.config['SQLALCHEMY_DATABASE_URI'] = f'sqlite:///{db_file}'
    app.config['SQLALCHEMY_BINDS'] = {
        'logs': f'sqlite:///{log_db_file}',
    }
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['SECRET_KEY'] = os.environ.get('FLASK_SECRET', 'dev-secret-change-me')
    app.config['DEFAULT_MODE'] = os.environ.get('LEAGUE_DEFAULT_MODE', 'double')

    db.init_app(app)
    login_manager.init_app(app)

    with app.app_context():
        upgrade_schema()

    from .models import User, SiteLog, TournamentLog
    from . import services
    from .schedule import generate, rounds_for
    from .state import Participant

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify(error='unauthorized', message='Login required'), 401

    @app.errorhandler(LeagueError)
    def league_error(exc):
        return jsonify(error=exc.code, message=str(exc)), exc.status

    def log_site(action, result, error=None):
        log = SiteLog(action=action, result=result, error=error,
                      user_id=current_user.id if current_user.is_authenticated else None)
        db.session.add(log)
        db.session.commit()

    def log_tournament(tid, action, result, error=None):
        log = TournamentLog(tournament_id=tid, action=action, result=result, error=error,
                            user_id=current_user.id if current_user.is_authenticated else None)
        db.session.add(log)
        db.session.commit()

    def json_body():
        data = request.get_json(silent=True)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            abort(400)
        return data

    # ---------- CLI ----------
    @app.cli.command('db-init')
    def db_init():
        db.create_all()
        if not db.session.query(User).filter_by(email="admin@example.com").first():
            u = User(email="admin@example.com", name="Admin", is_admin=True)
            u.set_password("admin123")
            db.session.add(u)
            db.session.commit()
            print("Created default admin: admin@example.com / admin123")
        print("Database initialized.")

    @app.cli.command('create-admin')
    @click.option('--email', help='Email for the admin user')
    @click.option('--password', help='Password for the admin user')
    def create_admin(email, password):
        if not email:
            email = click.prompt("Admin email", default="admin@example.com")
        if not password:
            password = click.prompt("Password", hide_input=True, confirmation_prompt=True)
        if db.session.query(User).filter_by(email=email).first():
            print("User exists")
            return
        u = User(email=email, name="Admin", is_admin=True)
        u.set_password(password)
        db.session.add(u)
        db.session.commit()
        print("Admin created.")

    @app.cli.command('preview-schedule')
    @click.option('--players', 'n_players', type=int, default=4, show_default=True)
    @click.option('--mode', type=click.Choice(['single', 'double']), default=None)
    def preview_schedule(n_players, mode):
        mode = mode or app.config['DEFAULT_MODE']
        participants = [Participant(name=f'P{i + 1}', color='#1f2937') for i in range(n_players)]
        try:
            fixtures, rounds = generate(participants, mode)
        except LeagueError as exc:
            raise click.ClickException(str(exc))
        print(f"{n_players} players, {mode} round robin: {rounds_for(n_players, mode)} rounds")
        for number, rnd in enumerate(rounds, start=1):
            pairs = ', '.join(
                f"{participants[fixtures[i].a].name} vs {participants[fixtures[i].b].name}"
                for i in rnd
            )
            print(f"Round {number}: {pairs}")

    # ---------- Auth ----------
    @app.route('/api/login', methods=['POST'])
    def login():
        data = json_body()
        email = (data.get('email') or '').strip().lower()
        password = data.get('password') or ''
        u = db.session.query(User).filter_by(email=email).first()
        if u and u.check_password(password):
            login_user(u)
            log_site('login', 'success')
            return jsonify(ok=True, user={'id': u.id, 'name': u.name})
        log_site('login', 'failure', 'invalid credentials')
        return jsonify(error='invalid_credentials', message='Invalid credentials'), 401

    @app.route('/api/logout', methods=['POST'])
    @login_required
    def logout():
        logout_user()
        log_site('logout', 'success')
        return jsonify(ok=True)

    # ---------- Tournament ----------
    @app.route('/api/tournaments')
    def list_tournaments():
        return jsonify(tournaments=services.list_tournaments(db.session))

    @app.route('/api/tournaments/active')
    def active_tournament():
        t = services.get_active_tournament(db.session)
        return jsonify(tournament=services.serialize_tournament(t) if t else None)

    @app.route('/api/tournaments', methods=['POST'])
    @login_required
    def start_tournament():
        data = json_body()
        try:
            t = services.start_tournament(
                db.session,
                data.get('name'),
                data.get('participants'),
                mode=data.get('mode') or app.config['DEFAULT_MODE'],
                tiebreaker_enabled=data.get('tiebreakerEnabled', False),
            )
        except LeagueError as exc:
            log_site('start_tournament', 'failure', exc.code)
            raise
        log_site('start_tournament', 'success', t.name)
        log_tournament(t.id, 'start', 'success')
        return jsonify(tournament=services.serialize_tournament(t)), 201

    @app.route('/api/tournaments/<int:tid>')
    def view_tournament(tid):
        t = services.get_tournament(db.session, tid)
        return jsonify(tournament=services.serialize_tournament(t))

    @app.route('/api/tournaments/<int:tid>/fixtures/<int:idx>/played', methods=['POST'])
    @login_required
    def mark_fixture_played(tid, idx):
        match_id = json_body().get('matchId')
        if match_id is not None and (not isinstance(match_id, int) or isinstance(match_id, bool)):
            abort(400)
        try:
            state = services.record_fixture_result(db.session, tid, idx, match_id)
        except LeagueError as exc:
            log_tournament(tid, 'fixture_played', 'failure', exc.code)
            raise
        log_tournament(tid, 'fixture_played', 'success', f'fixture {idx}')
        return jsonify(ok=True, state=state.to_dict())

    @app.route('/api/tournaments/<int:tid>/fixtures/<int:idx>/play', methods=['POST'])
    @login_required
    def play_fixture(tid, idx):
        winner = json_body().get('winner')
        try:
            match, state = services.play_fixture(db.session, tid, idx, winner)
        except LeagueError as exc:
            log_tournament(tid, 'fixture_play', 'failure', exc.code)
            raise
        log_tournament(tid, 'fixture_play', 'success', f'fixture {idx}')
        return jsonify(ok=True, matchId=match.id if match else None, state=state.to_dict())

    @app.route('/api/tournaments/<int:tid>/advance', methods=['POST'])
    @login_required
    def advance_round(tid):
        try:
            state = services.advance_tournament_round(db.session, tid)
        except LeagueError as exc:
            log_tournament(tid, 'advance_round', 'failure', exc.code)
            raise
        log_tournament(tid, 'advance_round', 'success', f'round {state.current_round + 1}')
        return jsonify(ok=True, currentRound=state.current_round)

    @app.route('/api/tournaments/<int:tid>/finish', methods=['POST'])
    @login_required
    def finish_tournament(tid):
        services.finish_tournament(db.session, tid)
        log_tournament(tid, 'finish', 'success')
        return jsonify(ok=True)

    @app.route('/api/tournaments/<int:tid>/standings')
    def tournament_standings(tid):
        return jsonify(standings=services.get_standings(db.session, tid))

    @app.route('/api/tournaments/<int:tid>/results')
    def tournament_results(tid):
        return jsonify(results=services.tournament_results(db.session, tid))

    # ---------- Matches ----------
    @app.route('/api/matches', methods=['POST'])
    @login_required
    def save_match():
        data = json_body()
        try:
            m = services.record_match(
                db.session,
                data.get('players'),
                tournament_id=data.get('tournamentId'),
                starting_hp=data.get('startingHp', 40),
            )
        except LeagueError as exc:
            log_site('save_match', 'failure', exc.code)
            raise
        log_site('save_match', 'success', f'match {m.id}')
        return jsonify(matchId=m.id), 201

    return app
