import random
from enum import Enum
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

SIZE = 4  # 默认棋盘大小：4x4
MIN_SIZE = 2
DIRECTIONS = ("left", "right", "up", "down")
TILE_VALUES = (2, 4)
TWO_PROBABILITY = 0.9  # 新数字为 2 的概率，否则为 4

Board = List[List[int]]
Row = List[int]
Cell = Tuple[int, int]


class BoardShapeError(ValueError):
    """棋盘不是 N x N 方阵（程序错误，而不是玩家输入错误）。"""


class Status(Enum):
    PLAYING = "playing"
    GAME_OVER = "game_over"


class MoveResult(NamedTuple):
    """一次移动的结果：生成新数字之前的棋盘、是否有变化、合并得分。"""
    board: Board
    changed: bool
    gained: int


def new_board(size: int = SIZE) -> Board:
    """创建一个空棋盘。"""
    if size < MIN_SIZE:
        raise ValueError(f"board size must be at least {MIN_SIZE}, got {size}")
    return [[0] * size for _ in range(size)]


def copy_grid(board: Board) -> Board:
    """深拷贝二维网格。"""
    return [row[:] for row in board]


def board_size(board: Board) -> int:
    """返回方阵的边长，形状不对时立即报错。"""
    size = len(board)
    if size == 0 or any(len(row) != size for row in board):
        shape = [len(row) for row in board]
        raise BoardShapeError(f"board must be a non-empty N x N grid, got row lengths {shape}")
    return size


def empty_cells(board: Board) -> List[Cell]:
    """按行优先顺序列出所有空格。"""
    size = board_size(board)
    return [
        (r, c)
        for r in range(size)
        for c in range(size)
        if board[r][c] == 0
    ]


def get_max_tile(board: Board) -> int:
    """取得当前最大的数字。"""
    return max(max(row) for row in board)


def score(board: Board) -> int:
    """分数 = 棋盘上所有数字之和。"""
    return sum(sum(row) for row in board)


# ---------------------------------------------------------------------------
# 生成新数字
# ---------------------------------------------------------------------------

def random_tile(rng: random.Random) -> int:
    """90% 生成 2，10% 生成 4。"""
    return TILE_VALUES[0] if rng.random() < TWO_PROBABILITY else TILE_VALUES[1]


def add_random_tile(board: Board, rng: Optional[random.Random] = None) -> Optional[Cell]:
    """
    在空格随机生成一个 2 或 4（原地修改）
    返回生成的位置 (r, c)，如果棋盘已满返回 None
    """
    cells = empty_cells(board)
    if not cells:
        return None

    rng = rng or random.Random()
    r, c = rng.choice(cells)
    board[r][c] = random_tile(rng)
    return r, c


def spawn_tile(board: Board, rng: Optional[random.Random] = None) -> Board:
    """返回一个新棋盘：在随机空格放入新数字，原棋盘保持不变。"""
    spawned = copy_grid(board)
    add_random_tile(spawned, rng)
    return spawned


def new_game(size: int = SIZE, rng: Optional[random.Random] = None) -> Board:
    """新游戏初始棋盘：随机出现两个数字。"""
    rng = rng or random.Random()
    board = new_board(size)
    add_random_tile(board, rng)
    add_random_tile(board, rng)
    return board


# ---------------------------------------------------------------------------
# 移动与合并
# ---------------------------------------------------------------------------

def compress_and_merge_row(row: Row) -> Tuple[Row, int]:
    """
    向左挤压并合并一行，同时返回本行增加的分数。
    例如: [2, 0, 2, 4] -> [4, 4, 0, 0], score_gain = 4
    每个数字一次移动中最多参与一次合并: [2, 2, 2, 2] -> [4, 4, 0, 0]
    """
    arr = [x for x in row if x != 0]
    new_row: Row = []
    score_gain = 0
    i = 0

    while i < len(arr):
        if i + 1 < len(arr) and arr[i] == arr[i + 1]:
            merged = arr[i] * 2
            new_row.append(merged)
            score_gain += merged
            i += 2  # 跳过被吃掉的邻居
        else:
            new_row.append(arr[i])
            i += 1

    new_row += [0] * (len(row) - len(new_row))
    return new_row, score_gain


def slide_and_merge(row: Row) -> Row:
    """只要结果行，不要分数。"""
    return compress_and_merge_row(row)[0]


def reverse_row(row: Row) -> Row:
    return list(reversed(row))


def reverse_rows(board: Board) -> Board:
    """每一行做反转。"""
    return [reverse_row(row) for row in board]


def transpose(board: Board) -> Board:
    """矩阵转置。"""
    board_size(board)
    return [list(row) for row in zip(*board)]


def _transpose_then_reverse(board: Board) -> Board:
    return reverse_rows(transpose(board))


def _reverse_then_transpose(board: Board) -> Board:
    return transpose(reverse_rows(board))


def _identity(board: Board) -> Board:
    return copy_grid(board)


# 方向 -> (移动前变换, 移动后变换)，所有方向都化归为向左移动
_TRANSFORMS: Dict[str, Tuple[Callable[[Board], Board], Callable[[Board], Board]]] = {
    "left": (_identity, _identity),
    "right": (reverse_rows, reverse_rows),
    "up": (transpose, transpose),
    "down": (_transpose_then_reverse, _reverse_then_transpose),
}


def move_left(board: Board) -> Tuple[Board, int]:
    """整盘向左移动。"""
    board_size(board)
    new_board_state: Board = []
    total_gain = 0
    for row in board:
        new_row, gain = compress_and_merge_row(row)
        new_board_state.append(new_row)
        total_gain += gain
    return new_board_state, total_gain


def boards_equal(a: Board, b: Board) -> bool:
    """逐格比较两个棋盘。"""
    size = board_size(a)
    if board_size(b) != size:
        return False
    return all(a[r][c] == b[r][c] for r in range(size) for c in range(size))


def check_direction(direction: Any) -> str:
    """方向必须是 DIRECTIONS 中的字符串，否则抛出 ValueError。"""
    if not isinstance(direction, str) or direction not in _TRANSFORMS:
        raise ValueError(f"invalid direction: {direction!r}, must be one of {DIRECTIONS}")
    return direction


def apply_move(board: Board, direction: str) -> MoveResult:
    """整盘向指定方向移动，返回新棋盘（不生成新数字，不修改原棋盘）。"""
    pre, post = _TRANSFORMS[check_direction(direction)]
    moved, gain = move_left(pre(board))
    result = post(moved)
    return MoveResult(result, not boards_equal(board, result), gain)


def can_move(board: Board) -> bool:
    """判断是否还能继续游戏。"""
    size = board_size(board)
    for r in range(size):
        for c in range(size):
            if board[r][c] == 0:
                return True

    for r in range(size):
        for c in range(size - 1):
            if board[r][c] == board[r][c + 1]:
                return True

    for c in range(size):
        for r in range(size - 1):
            if board[r][c] == board[r + 1][c]:
                return True

    return False


def is_game_over(board: Board) -> bool:
    """没有空格，且任意行、列都没有相邻的相同数字。"""
    return not can_move(board)


# ---------------------------------------------------------------------------
# 游戏状态
# ---------------------------------------------------------------------------

class Game:
    """
    一局游戏：当前棋盘、撤回历史和结束状态。

    rng 用于生成新数字，测试时传入带种子的 random.Random。
    on_game_over(score) 在每次进入 GAME_OVER 时恰好调用一次，
    用来把最终分数交给排行榜。
    max_history 为 None 时历史不设上限，否则超出时丢弃最早的记录。
    """

    def __init__(
        self,
        size: int = SIZE,
        rng: Optional[random.Random] = None,
        on_game_over: Optional[Callable[[int], None]] = None,
        max_history: Optional[int] = None,
    ) -> None:
        self.size = size
        self.rng = rng or random.Random()
        self.on_game_over = on_game_over
        self.max_history = max_history
        self.board: Board = new_game(size, self.rng)
        self.history: List[Board] = []
        self.status = Status.PLAYING

    @property
    def score(self) -> int:
        return score(self.board)

    @property
    def game_over(self) -> bool:
        return self.status is Status.GAME_OVER

    @property
    def can_undo(self) -> bool:
        return bool(self.history)

    def move(self, direction: str) -> MoveResult:
        """执行一次移动；棋盘没有变化时不记录历史、不生成新数字。"""
        if self.game_over:
            check_direction(direction)
            return MoveResult(copy_grid(self.board), False, 0)

        result = apply_move(self.board, direction)
        if not result.changed:
            return result

        self.history.append(copy_grid(self.board))
        if self.max_history is not None and len(self.history) > self.max_history:
            self.history.pop(0)

        self.board = spawn_tile(result.board, self.rng)

        if is_game_over(self.board):
            self.status = Status.GAME_OVER
            if self.on_game_over is not None:
                self.on_game_over(self.score)
        return result

    def undo(self) -> bool:
        """撤回一步；没有历史时什么都不做。"""
        if not self.history:
            return False
        self.board = self.history.pop()
        self.status = Status.PLAYING
        return True

    def restart(self) -> None:
        """重新开始一局。"""
        self.board = new_game(self.size, self.rng)
        self.history = []
        self.status = Status.PLAYING

    def to_dict(self) -> Dict[str, Any]:
        """可直接 JSON 序列化的快照，用于保存到 session。"""
        return {
            "board": copy_grid(self.board),
            "history": [copy_grid(b) for b in self.history],
            "game_over": self.game_over,
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        rng: Optional[random.Random] = None,
        on_game_over: Optional[Callable[[int], None]] = None,
        max_history: Optional[int] = None,
    ) -> "Game":
        """从 to_dict 的快照恢复一局游戏。"""
        board = copy_grid(data["board"])
        game = cls.__new__(cls)
        game.size = board_size(board)
        game.rng = rng or random.Random()
        game.on_game_over = on_game_over
        game.max_history = max_history
        game.board = board
        game.history = [copy_grid(b) for b in data.get("history", [])]
        game.status = Status.GAME_OVER if data.get("game_over") else Status.PLAYING
        return game
