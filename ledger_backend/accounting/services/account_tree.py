# accounting/services/account_tree.py

"""
======================================================
PATH: accounting/services/account_tree.py
======================================================
CHART OF ACCOUNTS TREE

In-memory view of the account hierarchy, built once per request.

Construction (arena):
- load every account in one query
- index nodes by id
- build child lists from parent_id

Traversal uses explicit stacks (no recursion), so deep charts never hit
the interpreter recursion limit. Parent links that do not reach a root
(a cycle written around the model guards) are reported, not looped on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Iterator

from accounting.models.account import Account
from accounting.money import ZERO, q2
from accounting.services.exceptions import ChartOfAccountsError, RejectionCode


@dataclass
class AccountNode:
    account: Account
    children: list[int] = field(default_factory=list)
    depth: int = 0

    @property
    def id(self) -> int:
        return self.account.id

    @property
    def is_leaf(self) -> bool:
        return not self.children


class AccountTree:
    def __init__(self, accounts: Iterable[Account]):
        self.nodes: dict[int, AccountNode] = {a.id: AccountNode(account=a) for a in accounts}
        self.roots: list[int] = []

        for node in self.nodes.values():
            parent_id = node.account.parent_id
            if parent_id is None or parent_id not in self.nodes:
                self.roots.append(node.id)
            else:
                self.nodes[parent_id].children.append(node.id)

        self.roots.sort(key=self._code_of)
        for node in self.nodes.values():
            node.children.sort(key=self._code_of)

        self._assign_depths()

    @classmethod
    def load(cls, queryset=None) -> "AccountTree":
        qs = queryset if queryset is not None else Account.objects.all()
        return cls(qs.order_by("code"))

    def _code_of(self, account_id: int) -> str:
        return self.nodes[account_id].account.code

    def _assign_depths(self) -> None:
        reached: set[int] = set()
        stack = [(root_id, 0) for root_id in reversed(self.roots)]
        while stack:
            node_id, depth = stack.pop()
            node = self.nodes[node_id]
            node.depth = depth
            reached.add(node_id)
            stack.extend((child_id, depth + 1) for child_id in reversed(node.children))

        if len(reached) != len(self.nodes):
            stranded = sorted(
                n.account.code for n in self.nodes.values() if n.id not in reached
            )
            raise ChartOfAccountsError(
                f"Account hierarchy contains a cycle: {', '.join(stranded)}",
                code=RejectionCode.ACCOUNT_CYCLE,
                accounts=stranded,
            )

    # -------------------------------------------------
    # Lookups
    # -------------------------------------------------

    def __contains__(self, account_id: int) -> bool:
        return account_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def get(self, account_id: int) -> AccountNode:
        return self.nodes[account_id]

    def by_code(self, code: str) -> AccountNode | None:
        for node in self.nodes.values():
            if node.account.code == code:
                return node
        return None

    # -------------------------------------------------
    # Traversal
    # -------------------------------------------------

    def pre_order_ids(self, start: int | None = None) -> Iterator[int]:
        """Parents before children, siblings in code order."""
        stack = [start] if start is not None else list(reversed(self.roots))
        while stack:
            node_id = stack.pop()
            yield node_id
            stack.extend(reversed(self.nodes[node_id].children))

    def post_order_ids(self, start: int | None = None) -> list[int]:
        """Children before parents."""
        order: list[int] = []
        stack = [start] if start is not None else list(self.roots)
        while stack:
            node_id = stack.pop()
            order.append(node_id)
            stack.extend(self.nodes[node_id].children)
        order.reverse()
        return order

    def descendant_ids(self, account_id: int, *, include_self: bool = True) -> list[int]:
        ids = list(self.pre_order_ids(account_id))
        return ids if include_self else ids[1:]

    def ancestor_ids(self, account_id: int) -> list[int]:
        ids: list[int] = []
        parent_id = self.nodes[account_id].account.parent_id
        while parent_id is not None and parent_id in self.nodes:
            ids.append(parent_id)
            parent_id = self.nodes[parent_id].account.parent_id
        return ids

    # -------------------------------------------------
    # Aggregation
    # -------------------------------------------------

    def rollup(self, direct: dict[int, Decimal]) -> dict[int, Decimal]:
        """
        Hierarchical balances from direct (own-posting) balances.

        balance(node) = direct(node) + sum(balance(child) for child in children)
        """
        totals: dict[int, Decimal] = {}
        for node_id in self.post_order_ids():
            node = self.nodes[node_id]
            total = direct.get(node_id, ZERO)
            for child_id in node.children:
                total += totals[child_id]
            totals[node_id] = q2(total)
        return totals
