from __future__ import annotations

import copy
import re
from dataclasses import dataclass
from typing import Any, Iterable

from freelanceflow.db.dynamodb.errors import DdbConflict

_INDEX_KEYS = {
    None: ("pk", "sk"),
    "GSI1": ("gsi1pk", "gsi1sk"),
    "GSI2": ("gsi2pk", "gsi2sk"),
}

_SECTION_RE = re.compile(r"\b(SET|REMOVE|ADD)\b")


@dataclass
class FakePage:
    items: list[dict[str, Any]]
    last_evaluated_key: dict[str, Any] | None = None


def _name(token: str, names: dict[str, str] | None) -> str:
    token = token.strip()
    if token.startswith("#"):
        return (names or {})[token]
    return token


class FakeTable:
    """
    In-memory stand-in for `DynamoTable`.

    Supports the expression subset the repositories write: SET/REMOVE/ADD
    updates, `attribute_exists`/`attribute_not_exists`/equality conditions
    joined with AND, and pk/GSI key conditions built with boto3 `Key`.
    """

    table_name = "test-table"

    def __init__(self):
        self.items: dict[tuple[str, str], dict[str, Any]] = {}
        self.transactions: list[list[dict[str, Any]]] = []
        self.fail_transactions = False

    # --- helpers ---

    @staticmethod
    def _k(key: dict[str, Any]) -> tuple[str, str]:
        return (str(key["pk"]), str(key["sk"]))

    def _check(
        self,
        current: dict[str, Any] | None,
        condition: str | None,
        names: dict[str, str] | None,
        values: dict[str, Any] | None,
    ) -> bool:
        if not condition:
            return True
        for clause in re.split(r"\s+AND\s+", condition.strip()):
            clause = clause.strip()
            m = re.fullmatch(r"attribute_not_exists\((.+)\)", clause)
            if m:
                if current is not None and _name(m.group(1), names) in current:
                    return False
                continue
            m = re.fullmatch(r"attribute_exists\((.+)\)", clause)
            if m:
                if current is None or _name(m.group(1), names) not in current:
                    return False
                continue
            m = re.fullmatch(r"(\S+)\s*=\s*(:\w+)", clause)
            if m:
                if current is None or current.get(_name(m.group(1), names)) != (values or {})[m.group(2)]:
                    return False
                continue
            raise NotImplementedError(f"condition not supported by FakeTable: {clause}")
        return True

    def _apply_update(
        self,
        current: dict[str, Any],
        expression: str,
        names: dict[str, str] | None,
        values: dict[str, Any] | None,
    ) -> dict[str, Any]:
        out = copy.deepcopy(current)
        parts = _SECTION_RE.split(expression)
        # parts: ["", "SET", "...", "REMOVE", "..."]
        for i in range(1, len(parts), 2):
            action, body = parts[i], parts[i + 1]
            for clause in (c.strip() for c in body.split(",")):
                if not clause:
                    continue
                if action == "SET":
                    left, right = (s.strip() for s in clause.split("=", 1))
                    out[_name(left, names)] = copy.deepcopy((values or {})[right])
                elif action == "REMOVE":
                    out.pop(_name(clause, names), None)
                else:
                    left, right = clause.split()
                    attr = _name(left, names)
                    out[attr] = (out.get(attr) or 0) + (values or {})[right]
        return out

    def _conflict(self, op: str, key: dict[str, Any] | None = None) -> DdbConflict:
        return DdbConflict(message="Conditional check failed", operation=op, table_name=self.table_name, key=key)

    # --- DynamoTable surface ---

    def get_item(self, *, key: dict[str, Any]) -> dict[str, Any] | None:
        item = self.items.get(self._k(key))
        return copy.deepcopy(item) if item is not None else None

    def put_item(
        self,
        *,
        item: dict[str, Any],
        condition_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        k = self._k(item)
        if not self._check(self.items.get(k), condition_expression, expression_attribute_names, expression_attribute_values):
            raise self._conflict("PutItem", {"pk": k[0], "sk": k[1]})
        self.items[k] = copy.deepcopy(item)
        return {}

    def delete_item(
        self,
        *,
        key: dict[str, Any],
        condition_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        k = self._k(key)
        if not self._check(self.items.get(k), condition_expression, expression_attribute_names, expression_attribute_values):
            raise self._conflict("DeleteItem", key)
        self.items.pop(k, None)
        return {}

    def update_item(
        self,
        *,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_names: dict[str, str] | None,
        expression_attribute_values: dict[str, Any],
        condition_expression: str | None = None,
        return_values: str = "ALL_NEW",
    ) -> dict[str, Any] | None:
        k = self._k(key)
        current = self.items.get(k)
        if not self._check(current, condition_expression, expression_attribute_names, expression_attribute_values):
            raise self._conflict("UpdateItem", key)
        updated = self._apply_update(
            current if current is not None else {"pk": k[0], "sk": k[1]},
            update_expression,
            expression_attribute_names,
            expression_attribute_values,
        )
        self.items[k] = updated
        return copy.deepcopy(updated)

    def _matches(self, cond: Any, item: dict[str, Any]) -> bool:
        expr = cond.get_expression()
        op = expr["operator"]
        vals = expr["values"]
        if op == "AND":
            return all(self._matches(v, item) for v in vals)
        attr, value = vals[0].name, vals[1]
        if attr not in item:
            return False
        if op == "=":
            return item[attr] == value
        if op == "begins_with":
            return str(item[attr]).startswith(str(value))
        raise NotImplementedError(f"key condition not supported by FakeTable: {op}")

    def query_page(
        self,
        *,
        key_condition_expression: Any,
        index_name: str | None = None,
        limit: int = 50,
        scan_index_forward: bool = False,
        filter_expression: Any | None = None,
        exclusive_start_key: dict[str, Any] | None = None,
    ) -> FakePage:
        items = self.query_all(
            key_condition_expression=key_condition_expression,
            index_name=index_name,
            scan_index_forward=scan_index_forward,
        )
        return FakePage(items=items[: max(1, int(limit or 50))])

    def query_all(
        self,
        *,
        key_condition_expression: Any,
        index_name: str | None = None,
        scan_index_forward: bool = False,
        filter_expression: Any | None = None,
        max_items: int = 10_000,
    ) -> list[dict[str, Any]]:
        pk_attr, sk_attr = _INDEX_KEYS[index_name]
        hits = [
            it
            for it in self.items.values()
            if pk_attr in it and self._matches(key_condition_expression, it)
        ]
        hits.sort(key=lambda it: str(it.get(sk_attr) or ""), reverse=not scan_index_forward)
        return [copy.deepcopy(it) for it in hits[:max_items]]

    def describe(self) -> dict[str, Any]:
        return {"TableName": self.table_name, "TableStatus": "ACTIVE"}

    # --- transactions ---

    def tx_put(self, *, item: dict[str, Any], condition_expression: str | None = None, **kw: Any) -> dict[str, Any]:
        return {"op": "put", "item": copy.deepcopy(item), "condition": condition_expression, **kw}

    def tx_delete(self, *, key: dict[str, Any], condition_expression: str | None = None, **kw: Any) -> dict[str, Any]:
        return {"op": "delete", "key": dict(key), "condition": condition_expression, **kw}

    def tx_update(
        self,
        *,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_names: dict[str, str] | None,
        expression_attribute_values: dict[str, Any],
        condition_expression: str | None = None,
    ) -> dict[str, Any]:
        return {
            "op": "update",
            "key": dict(key),
            "update": update_expression,
            "names": expression_attribute_names,
            "values": copy.deepcopy(expression_attribute_values),
            "condition": condition_expression,
        }

    def transact_write(
        self,
        *,
        puts: Iterable[dict[str, Any]] = (),
        deletes: Iterable[dict[str, Any]] = (),
        updates: Iterable[dict[str, Any]] = (),
        retry_policy: Any = None,
    ) -> dict[str, Any]:
        entries = [*puts, *deletes, *updates]
        if self.fail_transactions:
            raise self._conflict("TransactWriteItems")

        # All-or-nothing: every condition is evaluated before anything is written.
        for e in entries:
            key = e["item"] if e["op"] == "put" else e["key"]
            current = self.items.get(self._k(key))
            names = e.get("names") or e.get("expression_attribute_names")
            values = e.get("values") or e.get("expression_attribute_values")
            if not self._check(current, e.get("condition"), names, values):
                raise self._conflict("TransactWriteItems", {"pk": key["pk"], "sk": key["sk"]})

        for e in entries:
            if e["op"] == "put":
                self.items[self._k(e["item"])] = copy.deepcopy(e["item"])
            elif e["op"] == "delete":
                self.items.pop(self._k(e["key"]), None)
            else:
                k = self._k(e["key"])
                self.items[k] = self._apply_update(
                    self.items.get(k) or {"pk": k[0], "sk": k[1]},
                    e["update"],
                    e["names"],
                    e["values"],
                )
        self.transactions.append(entries)
        return {"ok": True}

    # --- test conveniences ---

    def entities(self, entity_type: str) -> list[dict[str, Any]]:
        return [copy.deepcopy(it) for it in self.items.values() if it.get("entityType") == entity_type]


class RecordingNotifier:
    def __init__(self, *, fail: bool = False):
        self.events: list[tuple[str, str, dict[str, Any]]] = []
        self.fail = fail

    def emit(self, room: str, event: str, payload: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("transport down")
        self.events.append((room, event, payload))

    def names(self) -> list[str]:
        return [e for _, e, _ in self.events]
