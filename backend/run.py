from config import Config
from quizgame import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # Use SocketIO server to enable websockets in dev
    socketio.run(app, host=Config.HOST, port=Config.PORT, debug=app.config.get('DEBUG', False),
                 allow_unsafe_werkzeug=True)
