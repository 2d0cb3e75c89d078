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
socketio = SocketIO(async_mode=None)

# Imported after the extensions above; the game services depend on them
from quizzy.services.games.registry import SessionRegistry  # noqa: E402

registry = SessionRegistry()


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    origins = flask_app.config.get('CORS_ORIGINS', [])

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=origins)
    registry.init_app(flask_app)

    from quizzy.main import main
    flask_app.register_blueprint(main)

    from quizzy.auth import auth
    flask_app.register_blueprint(auth, url_prefix='/api/auth')

    from quizzy.api.quizzes import quizzes
    flask_app.register_blueprint(quizzes, url_prefix='/api/quizzes')

    from quizzy.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from quizzy.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    # Flask-Login user loader
    from quizzy.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Authentication required'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from quizzy.models import Quiz, Question, Option
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            admin = User(username='admin')
            admin.set_password('password')
            db.session.add(admin)
            db.session.flush()

            quiz = Quiz(title='Sample quiz', timer_seconds=flask_app.config['DEFAULT_TIMER_SECONDS'], owner_id=admin.id)
            samples = [
                ('What is the capital of France?', ['Berlin', 'Paris', 'Madrid', 'Rome'], 1),
                ('How many legs does a spider have?', ['6', '8', '10', '12'], 1),
            ]
            for q_idx, (text, options, correct) in enumerate(samples):
                question = Question(question_text=text, order_index=q_idx)
                for o_idx, option_text in enumerate(options):
                    question.options.append(Option(option_text=option_text, is_correct=(o_idx == correct), order_index=o_idx))
                quiz.questions.append(question)
            db.session.add(quiz)
            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
