import json
import os
import tempfile
import threading
from typing import List

CAPACITY = 5  # 排行榜最多保留 5 个分数

# 所有 Leaderboard 实例共用，保护 record 的读-改-写
_record_lock = threading.Lock()


def insert_score(scores: List[int], new_score: int, capacity: int = CAPACITY) -> List[int]:
    """加入一个分数，按从高到低排序并截取前 capacity 个，返回新列表。"""
    return sorted([*scores, new_score], reverse=True)[:capacity]


def _ensure_parent_dir(path: str) -> None:
    """写文件前确保目录存在。"""
    directory = os.path.dirname(path)
    if directory and not os.path.exists(directory):
        os.makedirs(directory, exist_ok=True)


class Leaderboard:
    """
    以 JSON 数组保存的历史最高分（从高到低，最多 capacity 个）。
    文件不存在时视为空排行榜。
    """

    def __init__(self, path: str, capacity: int = CAPACITY) -> None:
        self.path = path
        self.capacity = capacity

    def load(self) -> List[int]:
        if not os.path.isfile(self.path):
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list) or not all(
            isinstance(x, int) and not isinstance(x, bool) for x in data
        ):
            raise ValueError(f"leaderboard file {self.path!r} must hold a JSON list of integers")
        return sorted(data, reverse=True)[: self.capacity]

    def save(self, scores: List[int]) -> None:
        """先写同目录下的临时文件，再整体替换，读者不会看到写了一半的文件。"""
        _ensure_parent_dir(self.path)
        fd, tmp_path = tempfile.mkstemp(
            dir=os.path.dirname(self.path) or ".", prefix=".leaderboard-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(scores, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise

    def record(self, final_score: int) -> List[int]:
        """记录一局的最终分数，返回更新后的排行榜。"""
        with _record_lock:
            scores = insert_score(self.load(), final_score, self.capacity)
            self.save(scores)
        return scores
