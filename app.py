import os
import random
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request, session

from game2048 import Game, MoveResult, SIZE, check_direction, get_max_tile
from leaderboard import Leaderboard

app = Flask(__name__)

# 游戏配置，可用环境变量覆盖
app.config["SECRET_KEY"] = os.getenv("GAME2048_SECRET_KEY", "change_this_to_a_random_secret_key")
app.config["BOARD_SIZE"] = int(os.getenv("GAME2048_SIZE", SIZE))
app.config["MAX_HISTORY"] = int(os.getenv("GAME2048_MAX_HISTORY", 20))  # 撤回最多保存多少步
app.config["LEADERBOARD_PATH"] = os.getenv(
    "GAME2048_LEADERBOARD", os.path.join("data", "leaderboard.json")
)

_rng = random.Random()


def get_leaderboard() -> Leaderboard:
    return Leaderboard(app.config["LEADERBOARD_PATH"])


def record_final_score(final_score: int) -> None:
    """游戏结束时把最终分数写入排行榜。"""
    try:
        scores = get_leaderboard().record(final_score)
    except (OSError, ValueError):
        # 排行榜写不进去也不能挡住这局结束
        app.logger.exception("failed to record final score %d", final_score)
        return
    app.logger.info("game over with score %d, leaderboard now %s", final_score, scores)


def start_new_game() -> Game:
    """初始化一局新游戏。"""
    game = Game(
        size=app.config["BOARD_SIZE"],
        rng=_rng,
        on_game_over=record_final_score,
        max_history=app.config["MAX_HISTORY"],
    )
    app.logger.info("new %dx%d game started", game.size, game.size)
    return game


def load_game() -> Game:
    """从 session 取出当前游戏，没有时新开一局。"""
    data = session.get("game")
    if data is None:
        return start_new_game()
    return Game.from_dict(
        data,
        rng=_rng,
        on_game_over=record_final_score,
        max_history=app.config["MAX_HISTORY"],
    )


def save_game(game: Game) -> None:
    """保存游戏状态到 session。"""
    session["game"] = game.to_dict()


def state_to_json(game: Game, result: Optional[MoveResult] = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "board": game.board,
        "size": game.size,
        "score": game.score,
        "maxTile": get_max_tile(game.board),
        "gameOver": game.game_over,
        "canUndo": game.can_undo,
    }
    if result is not None:
        out["changed"] = result.changed
        out["gained"] = result.gained
    return out


def _request_value(name: str) -> Optional[str]:
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        return payload.get(name)
    return request.form.get(name)


@app.route("/api/state", methods=["GET"])
def get_state():
    """当前游戏状态。"""
    game = load_game()
    save_game(game)
    return jsonify(state_to_json(game))


@app.route("/api/move", methods=["POST"])
def move():
    """处理移动操作。"""
    direction = _request_value("direction")
    try:
        check_direction(direction)
    except ValueError as exc:
        app.logger.warning("rejected move: %s", exc)
        return jsonify({"error": str(exc)}), 400
    game = load_game()
    result = game.move(direction)
    save_game(game)
    return jsonify(state_to_json(game, result))


@app.route("/api/undo", methods=["POST"])
def undo():
    """撤回一步。"""
    game = load_game()
    game.undo()
    save_game(game)
    return jsonify(state_to_json(game))


@app.route("/api/reset", methods=["POST"])
def reset():
    """重新开始一局游戏（排行榜保留）。"""
    game = start_new_game()
    save_game(game)
    return jsonify(state_to_json(game))


@app.route("/api/leaderboard", methods=["GET"])
def leaderboard():
    return jsonify({"leaderboard": get_leaderboard().load()})


if __name__ == "__main__":
    app.run(debug=True)
