from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Live quiz server'})


@main.route('/health')
def health():
    store = current_app.extensions['quiz_store']
    registry = current_app.extensions['quiz_registry']
    status = store.ping()
    return jsonify({
        'ok': bool(status.get('ok')),
        'store': status,
        'mode': store.mode(),
        'sessions': len(registry),
    }), (200 if status.get('ok') else 503)
