from __future__ import annotations

import random

from flask import Blueprint, current_app, jsonify, request

bp = Blueprint("words", __name__)


@bp.get("/drawguess/words")
def get_words():
    try:
        count = int(request.args.get("count", "3"))
    except ValueError:
        count = 3
    count = max(1, min(count, 20))

    pool = current_app.extensions["playroom"].drawguess.words
    difficulty = request.args.get("difficulty", pool.default_difficulty)
    language = request.args.get("language", pool.default_language)

    bucket = pool.bucket(difficulty, language)
    return jsonify({"languages": pool.languages(), "words": random.sample(bucket, min(count, len(bucket)))})
