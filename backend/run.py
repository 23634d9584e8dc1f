from channel_chess import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # Use SocketIO server so the off-path relay works in dev
    socketio.run(app, debug=True)
