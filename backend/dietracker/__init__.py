from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:8081",
    "http://127.0.0.1:8081",
    "http://localhost:19006",
    "http://127.0.0.1:19006",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from dietracker.main import main
    flask_app.register_blueprint(main)

    from dietracker.api.matches import matches
    flask_app.register_blueprint(matches, url_prefix='/api/matches')

    from dietracker.api.history import history
    flask_app.register_blueprint(history, url_prefix='/api/history')

    # Importing here ensures the handlers bind to the initialized socketio instance
    from dietracker.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from dietracker.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Sign in required'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed users
            users = ['testuser1', 'testuser2', 'testuser3', 'testuser4']
            for u in users:
                user = User(username=u, nickname=u.replace('testuser', 'Tester '))
                user.set_password('password')
                db.session.add(user)

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('purge-matches')
    @click.option('--max-age-hours', type=int, default=None,
                  help='Override LIVE_MATCH_TTL_HOURS for this run.')
    def purge_matches_command(max_age_hours):
        """Deletes live matches nobody has touched within the TTL."""
        from dietracker.services.matches.session import purge_stale_matches
        hours = max_age_hours if max_age_hours is not None else flask_app.config['LIVE_MATCH_TTL_HOURS']
        with flask_app.app_context():
            removed = purge_stale_matches(hours)
        print(f'Removed {removed} stale live match(es).')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(purge_matches_command)

    return flask_app
