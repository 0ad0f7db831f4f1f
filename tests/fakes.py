"""
测试用的内存元素与记录调用次数的适配器
"""
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional

from deferring.adapter import CreateResult, SourceAdapter
from deferring.errors import ElementNotFoundError
from deferring.relation import Relation


class Item:
    """测试用的元素 - id 不为 None 即视为已持久化"""

    def __init__(self, id: Optional[int] = None, name: str = ""):
        self.id = id
        self.name = name
        self.owner = None

    def __repr__(self) -> str:
        return f"Item(id={self.id}, name={self.name!r})"


class Owner:
    """测试用的父记录"""

    def __init__(self, id: int = 1):
        self.id = id


class RecordingAdapter(SourceAdapter):
    """
    内存适配器 - 记录每个能力的调用次数

    Attributes:
        rows: 当前"已持久化"的关联元素
        repository: id -> 元素（用于 resolve）
        calls: 能力名 -> 调用次数
    """

    def __init__(self, rows: Iterable[Item] = (), relation: Optional[Relation] = None,
                 repository: Optional[Dict[int, Item]] = None):
        super().__init__(relation or Relation(name="items", factory=Item))
        self.rows: List[Item] = list(rows)
        self.repository: Dict[int, Item] = dict(repository or {})
        for row in self.rows:
            self.repository.setdefault(row.id, row)
        self.calls: Counter = Counter()
        self._next_id = max(self.repository, default=0) + 1

    @property
    def fetches(self) -> int:
        return self.calls["fetch_all"]

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    def fetch_all(self) -> List[Item]:
        self.calls["fetch_all"] += 1
        return list(self.rows)

    def reload(self) -> None:
        self.calls["reload"] += 1

    def count(self) -> int:
        self.calls["count"] += 1
        return len(self.rows)

    def first(self) -> Optional[Item]:
        self.calls["first"] += 1
        return self.rows[0] if self.rows else None

    def last(self) -> Optional[Item]:
        self.calls["last"] += 1
        return self.rows[-1] if self.rows else None

    def is_empty(self) -> bool:
        self.calls["is_empty"] += 1
        return not self.rows

    def query(self, *criteria: Any) -> List[Item]:
        self.calls["query"] += 1
        return [row for row in self.rows if all(c(row) for c in criteria)]

    def find(self, ident: Any) -> Item:
        self.calls["find"] += 1
        for row in self.rows:
            if row.id == ident:
                return row
        raise ElementNotFoundError("Item", ident)

    def resolve(self, ids: Iterable[Any]) -> List[Item]:
        self.calls["resolve"] += 1
        result = []
        for ident in ids:
            if ident not in self.repository:
                raise ElementNotFoundError("Item", ident)
            result.append(self.repository[ident])
        return result

    def create(self, *args, **kwargs) -> CreateResult:
        self.calls["create"] += 1
        element = self.relation.build(*args, **kwargs)
        errors = self.relation.validate(element)
        if errors:
            return CreateResult.fail(element, errors)
        element.id = self._next_id
        self._next_id += 1
        self.repository[element.id] = element
        self.rows.append(element)
        return CreateResult.ok(element)


