from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from smacktalk.main import main
    flask_app.register_blueprint(main)

    from smacktalk.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    # Importing here ensures the handlers bind to the initialized socketio instance
    from smacktalk.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates all game tables."""
        import smacktalk.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('cleanup-idle')
    @click.option('--max-age', type=int, default=None, help='Idle seconds before a game is removed.')
    def cleanup_idle_command(max_age):
        """Deletes games that have been idle longer than IDLE_GAME_TTL_SEC."""
        from smacktalk.services.games.cleanup import sweep_idle_games
        with flask_app.app_context():
            ttl = max_age if max_age is not None else int(flask_app.config.get('IDLE_GAME_TTL_SEC', 86400))
            removed = sweep_idle_games(ttl)
            print(f'Removed {len(removed)} idle game(s).')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(cleanup_idle_command)

    return flask_app
