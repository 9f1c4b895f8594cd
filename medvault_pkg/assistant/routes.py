# medvault_pkg/assistant/routes.py
import datetime
import uuid

from flask import Blueprint, jsonify
from ..errors import MalformedInput
from ..utils import get_json_body, login_required
from .responses import GREETING, get_response

assistant_bp = Blueprint('assistant_bp', __name__)


def _message(content, sender):
    return {
        "id": str(uuid.uuid4()),
        "content": content,
        "sender": sender,
        "timestamp": datetime.datetime.utcnow().isoformat()
    }


@assistant_bp.route('/assistant/greeting', methods=['GET'])
@login_required
def get_greeting():
    return jsonify({"message": _message(GREETING, 'assistant')}), 200


@assistant_bp.route('/assistant/messages', methods=['POST'])
@login_required
def send_message():
    data = get_json_body()
    content = data.get('content')
    if not isinstance(content, str) or not content.strip():
        raise MalformedInput("Message content cannot be empty.")
    return jsonify({
        "message": _message(content.strip(), 'user'),
        "reply": _message(get_response(content), 'assistant')
    }), 200
