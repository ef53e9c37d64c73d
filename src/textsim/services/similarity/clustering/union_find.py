"""带成员列表的并查集"""

from __future__ import annotations


class UnionFind:
    """并查集

    路径压缩 + 按大小合并。每个根节点在 arena 中持有其成员列表，
    被吸收的根对应的槽位置空。
    """

    def __init__(self, n: int) -> None:
        self._parent = list(range(n))
        self._members: list[list[int]] = [[i] for i in range(n)]

    def __len__(self) -> int:
        return len(self._parent)

    def find(self, x: int) -> int:
        """返回 x 所在集合的根，同时压缩路径"""
        root = x
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[x] != root:
            self._parent[x], x = root, self._parent[x]
        return root

    def size(self, root: int) -> int:
        return len(self._members[root])

    def members(self, root: int) -> list[int]:
        return self._members[root]

    def union(self, a: int, b: int) -> int:
        """合并 a、b 两个根所在集合

        较小集合并入较大集合，大小相同时并入 a。成员列表按
        "保留方在前、被吸收方在后" 拼接。

        Args:
            a: 第一个集合的根
            b: 第二个集合的根

        Returns:
            合并后的根
        """
        if a == b:
            return a
        if len(self._members[b]) > len(self._members[a]):
            a, b = b, a
        self._parent[b] = a
        self._members[a].extend(self._members[b])
        self._members[b] = []
        return a

    def groups(self) -> list[list[int]]:
        """按 arena 顺序返回所有非空成员列表"""
        return [members for members in self._members if members]
