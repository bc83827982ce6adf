import logging

from flask import Flask, jsonify, request
from flask_cors import CORS

from perudo.server.config import FLASK_DEBUG, FLASK_HOST, FLASK_PORT, GUEST_NAME
from perudo.server.engine import GameError
from perudo.server.models import PlayerRef
from perudo.server.session import GameNotFound, GameSessions, StaleStateError

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

# All rooms live behind one session object
sessions = GameSessions()


def player_ref(data):
    player_id = data.get('player_id')
    if not player_id:
        return None
    return PlayerRef(id=str(player_id), display_name=data.get('name') or GUEST_NAME)


def game_response(game_id, viewer_id=None):
    return jsonify({
        'success': True,
        'game_id': game_id,
        'state': sessions.state(game_id, viewer_id=viewer_id),
    })


def run_move(game_id, viewer_id, move, *args):
    """Run a session call and answer with the viewer's snapshot, or the error."""
    try:
        move(*args)
        return game_response(game_id, viewer_id)
    except GameNotFound as e:
        return jsonify({'error': str(e), 'code': 'game_not_found'}), 404
    except StaleStateError as e:
        logger.info("Conflicting write: %s", e)
        return jsonify({'error': str(e), 'code': 'stale_state'}), 409
    except GameError as e:
        return jsonify({'error': str(e), 'code': e.code}), 400


@app.route('/api/health')
def health():
    return {'status': 'ok'}


# Game API

@app.route('/api/game/new', methods=['POST'])
def new_game():
    """Create a room; ``practice`` fills it with AI opponents."""
    data = request.get_json() or {}
    host = player_ref(data)
    if not host:
        return jsonify({'error': 'player_id is required'}), 400

    game = sessions.create_room(host, practice=bool(data.get('practice', False)))
    return game_response(game.id, host.id)


@app.route('/api/game/<game_id>/join', methods=['POST'])
def join_game(game_id):
    data = request.get_json() or {}
    ref = player_ref(data)
    if not ref:
        return jsonify({'error': 'player_id is required'}), 400

    return run_move(game_id, ref.id, sessions.join, game_id, ref)


@app.route('/api/game/<game_id>/ai', methods=['POST'])
def add_ai(game_id):
    data = request.get_json() or {}
    return run_move(game_id, data.get('player_id'), sessions.add_ai, game_id, data.get('name'))


@app.route('/api/game/<game_id>/start', methods=['POST'])
def start_game(game_id):
    data = request.get_json() or {}
    player_id = data.get('player_id')
    return run_move(game_id, player_id, sessions.start, game_id, player_id)


@app.route('/api/game/<game_id>/state')
def game_state(game_id):
    """Get current game state, hiding other players' dice from the viewer."""
    viewer_id = request.args.get('player_id')
    try:
        return jsonify(sessions.state(game_id, viewer_id=viewer_id))
    except GameNotFound as e:
        return jsonify({'error': str(e), 'code': 'game_not_found'}), 404


@app.route('/api/game/<game_id>/bid', methods=['POST'])
def place_bid(game_id):
    data = request.get_json() or {}
    player_id = data.get('player_id')
    count = data.get('count')
    face = data.get('face')
    return run_move(game_id, player_id, sessions.bid, game_id, player_id, count, face)


@app.route('/api/game/<game_id>/call', methods=['POST'])
def call(game_id):
    """Call dudo or calza on the current bid."""
    data = request.get_json() or {}
    player_id = data.get('player_id')
    return run_move(game_id, player_id, sessions.call, game_id, player_id, data.get('kind', 'dudo'))


@app.route('/api/game/<game_id>/next-round', methods=['POST'])
def next_round(game_id):
    """Start the next round once the result has been shown."""
    data = request.get_json() or {}
    player_id = data.get('player_id')
    return run_move(game_id, player_id, sessions.next_round, game_id, player_id)


@app.route('/api/game/<game_id>/timeout', methods=['POST'])
def timeout(game_id):
    data = request.get_json() or {}
    return run_move(game_id, data.get('player_id'), sessions.handle_timeout, game_id)


# Stats API

@app.route('/api/stats')
def stats():
    return jsonify(sessions.leaderboard())


if __name__ == '__main__':
    logging.basicConfig(level=logging.DEBUG if FLASK_DEBUG else logging.INFO)
    app.run(debug=FLASK_DEBUG, host=FLASK_HOST, port=FLASK_PORT)
