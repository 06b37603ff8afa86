from flask import Blueprint, jsonify

from smacktalk.services.games.rules import RULESETS

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the SmackTalk game server!'})


@main.route('/rulesets')
def list_rulesets():
    return jsonify([
        {
            'name': ruleset.name,
            'max_rounds': ruleset.max_rounds,
            'combo_streaks': ruleset.combo_streaks,
            'rounds': [
                {'number': r.number, 'name': r.name, 'multiplier': r.multiplier, 'pairing': r.pairing}
                for r in ruleset.rounds
            ],
        }
        for ruleset in RULESETS.values()
    ])
